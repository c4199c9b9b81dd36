"""
Account CLI commands.

Each command runs a single repository call outside any unit of work.
"""
import click

from banktx.core.db import BankTxError
from banktx.core.models import Account
from banktx.cli.common import db_option, use_db_path, report_error


@click.group()
def account():
    """Create, show and delete accounts."""


@account.command('create')
@click.argument('account_id')
@click.argument('balance', type=int)
@db_option
@click.pass_context
def create(ctx, account_id, balance, db_path):
    """Create ACCOUNT_ID with an opening BALANCE."""
    use_db_path(ctx, db_path)

    try:
        db = ctx.obj.get_db()
        db.accounts.save(Account(account_id=account_id, balance=balance))
    except BankTxError as e:
        report_error(ctx, "account creation", e)

    click.secho(f"Created account {account_id} with balance {balance}", fg='green')


@account.command('show')
@click.argument('account_id')
@db_option
@click.pass_context
def show(ctx, account_id, db_path):
    """Show the balance of ACCOUNT_ID."""
    use_db_path(ctx, db_path)

    try:
        found = ctx.obj.get_db().accounts.find_by_id(account_id)
    except BankTxError as e:
        report_error(ctx, "lookup", e)

    click.echo(f"Account: {found.account_id}")
    click.echo(f"  Balance: {found.balance}")


@account.command('delete')
@click.argument('account_id')
@db_option
@click.pass_context
def delete(ctx, account_id, db_path):
    """Delete ACCOUNT_ID."""
    use_db_path(ctx, db_path)

    try:
        ctx.obj.get_db().accounts.delete(account_id)
    except BankTxError as e:
        report_error(ctx, "account deletion", e)

    click.echo(f"Deleted account {account_id}")
