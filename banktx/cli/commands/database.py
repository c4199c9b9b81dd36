"""
Database-related CLI commands.
"""
import click

from banktx.core.db import BankTxError
from banktx.cli.common import db_option, use_db_path, report_error


@click.command('init-db')
@db_option
@click.pass_context
def init_db(ctx, db_path):
    """Create the accounts database and its schema."""
    use_db_path(ctx, db_path)

    try:
        db = ctx.obj.get_db()
    except BankTxError as e:
        report_error(ctx, "initialization", e)

    click.secho(f"Database ready at {db.db_path}", fg='green')
