"""
Transfer CLI command.
"""
import click

from banktx.core.db import BankTxError, Database
from banktx.services import (
    ConnectionParamTransferService,
    DeclarativeTransferService,
    TransferService,
)
from banktx.cli.common import db_option, use_db_path, report_error

MODES = ('declarative', 'manager', 'connection-param')


def build_transfer_service(db: Database, mode: str):
    """Create the transfer service for a demarcation ``mode``."""
    blocked = db.settings.blocked_accounts
    if mode == 'declarative':
        return DeclarativeTransferService(db.transactions, db.accounts, blocked)
    if mode == 'manager':
        return TransferService(db.transactions, db.accounts, blocked)
    if mode == 'connection-param':
        return ConnectionParamTransferService(db.pool, db.accounts, blocked)
    raise ValueError(f"Unknown transfer mode: {mode}")


@click.command()
@click.argument('from_id')
@click.argument('to_id')
@click.argument('amount', type=int)
@click.option(
    '--mode',
    type=click.Choice(MODES),
    default='declarative',
    help='How the transaction boundary is demarcated'
)
@db_option
@click.pass_context
def transfer(ctx, from_id, to_id, amount, mode, db_path):
    """Transfer AMOUNT from FROM_ID to TO_ID atomically."""
    use_db_path(ctx, db_path)

    try:
        db = ctx.obj.get_db()
        service = build_transfer_service(db, mode)
        service.transfer(from_id, to_id, amount)
    except BankTxError as e:
        report_error(ctx, "transfer", e)

    click.secho(f"Transferred {amount} from {from_id} to {to_id}", fg='green')
    for account_id in (from_id, to_id):
        found = db.accounts.find_by_id(account_id)
        click.echo(f"  {found.account_id}: {found.balance}")
