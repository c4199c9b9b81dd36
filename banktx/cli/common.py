"""
Options and helpers shared by CLI commands.
"""
from pathlib import Path

import click

db_option = click.option(
    '--db',
    'db_path',
    type=click.Path(dir_okay=False),
    default=None,
    help='Path to the accounts database (default: $BANKTX_DB_PATH or OS data dir)'
)


def use_db_path(ctx, db_path):
    """Point the shared context at ``db_path`` when one was given."""
    if db_path:
        ctx.obj.db_path = Path(db_path)


def report_error(ctx, action, error):
    """Print an error in red and abort the command."""
    click.secho(f"Error during {action}: {error}", fg='red', err=True)
    if ctx.obj.verbose:
        import traceback
        click.echo(traceback.format_exc(), err=True)
    raise click.Abort()
