"""
Click-based command line interface for banktx.
"""

import logging
from pathlib import Path
from typing import Optional

import click

from banktx.core.db import Database
from banktx.cli.commands.account import account
from banktx.cli.commands.database import init_db
from banktx.cli.commands.transfer import transfer


class CLIContext:
    """Shared state passed between commands through ``ctx.obj``."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.db_path: Optional[Path] = None
        self._db: Optional[Database] = None

    def get_db(self) -> Database:
        """Open the database on first use and reuse it afterwards."""
        if self._db is None:
            self._db = Database(self.db_path)
        return self._db

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def main(ctx, verbose):
    """Atomic account transfers over pooled SQLite connections."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = CLIContext(verbose=verbose)
    ctx.call_on_close(ctx.obj.close)


main.add_command(init_db)
main.add_command(account)
main.add_command(transfer)
