"""
Tests for the three transfer services.

Each scenario runs against every demarcation style: connection passed as a
parameter, TransactionManager driven by hand, and @transactional.
"""
import threading

import pytest

from banktx.core.config import Settings
from banktx.core.db import BusinessInvariantError, DataAccessError, Database, NotFoundError
from banktx.core.models import Account
from banktx.services import (
    ConnectionParamTransferService,
    DeclarativeTransferService,
    TransferService,
)

MEMBER_A = "memberA"
MEMBER_B = "memberB"
MEMBER_EX = "ex"

SERVICE_TYPES = ["connection-param", "manager", "declarative"]


def make_service(db, kind, blocked_accounts=None):
    """Build a transfer service of the given kind over ``db``."""
    if kind == "connection-param":
        return ConnectionParamTransferService(db.pool, db.accounts, blocked_accounts)
    if kind == "manager":
        return TransferService(db.transactions, db.accounts, blocked_accounts)
    return DeclarativeTransferService(db.transactions, db.accounts, blocked_accounts)


@pytest.fixture(params=SERVICE_TYPES)
def service(request, db):
    """A transfer service of each kind."""
    return make_service(db, request.param)


def balances(db, *account_ids):
    return [db.accounts.find_by_id(account_id).balance for account_id in account_ids]


# =============================================================================
# Scenarios
# =============================================================================
def test_transfer_commits(db, service):
    """A=10000, B=10000; moving 2000 leaves A=8000, B=12000."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=10000))
    db.accounts.save(Account(account_id=MEMBER_B, balance=10000))

    service.transfer(MEMBER_A, MEMBER_B, 2000)

    assert balances(db, MEMBER_A, MEMBER_B) == [8000, 12000]


def test_transfer_to_blocked_account_rolls_back(db, service):
    """The debit already written is undone when the target check fails."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=10000))
    db.accounts.save(Account(account_id=MEMBER_EX, balance=10000))

    with pytest.raises(BusinessInvariantError) as excinfo:
        service.transfer(MEMBER_A, MEMBER_EX, 2000)

    assert excinfo.type is BusinessInvariantError
    assert excinfo.value.context["account_id"] == MEMBER_EX
    assert balances(db, MEMBER_A, MEMBER_EX) == [10000, 10000]


def test_repeated_failures_leave_original_balances(db, service):
    """Every failed attempt restores the exact starting state."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=10000))
    db.accounts.save(Account(account_id=MEMBER_EX, balance=10000))

    for _ in range(5):
        with pytest.raises(BusinessInvariantError):
            service.transfer(MEMBER_A, MEMBER_EX, 2000)
        assert balances(db, MEMBER_A, MEMBER_EX) == [10000, 10000]


def test_transfer_from_missing_account(db, service):
    """A missing source aborts before anything is written."""
    db.accounts.save(Account(account_id=MEMBER_B, balance=10000))

    with pytest.raises(NotFoundError):
        service.transfer("ghost", MEMBER_B, 100)

    assert balances(db, MEMBER_B) == [10000]


def test_transfer_to_missing_account(db, service):
    """A missing target aborts the whole transfer."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=10000))

    with pytest.raises(NotFoundError):
        service.transfer(MEMBER_A, "ghost", 100)

    assert balances(db, MEMBER_A) == [10000]


@pytest.mark.parametrize("amount", [0, 1, 2000, 10000, 15000])
def test_committed_transfer_preserves_total(db, service, amount):
    """The sum of both balances is unchanged by a committed transfer."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=10000))
    db.accounts.save(Account(account_id=MEMBER_B, balance=3000))

    service.transfer(MEMBER_A, MEMBER_B, amount)

    a, b = balances(db, MEMBER_A, MEMBER_B)
    assert a + b == 13000
    assert b == 3000 + amount


def test_connection_returned_clean(db, service):
    """After success and after failure, no connection stays out or bound."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=10000))
    db.accounts.save(Account(account_id=MEMBER_B, balance=10000))
    db.accounts.save(Account(account_id=MEMBER_EX, balance=10000))

    service.transfer(MEMBER_A, MEMBER_B, 1)
    with pytest.raises(BusinessInvariantError):
        service.transfer(MEMBER_A, MEMBER_EX, 1)

    assert db.pool.in_use == 0
    assert db.context.current() is None

    conn = db.pool.acquire()
    try:
        assert conn.auto_commit is True
        assert not conn.in_transaction
    finally:
        db.pool.release(conn)


def test_blocked_accounts_are_configurable(db):
    """Only the configured ids are refused."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=100))
    db.accounts.save(Account(account_id=MEMBER_EX, balance=100))
    db.accounts.save(Account(account_id="frozen", balance=100))
    service = make_service(db, "declarative", blocked_accounts={"frozen"})

    service.transfer(MEMBER_A, MEMBER_EX, 10)
    with pytest.raises(BusinessInvariantError):
        service.transfer(MEMBER_A, "frozen", 10)

    assert balances(db, MEMBER_A, MEMBER_EX, "frozen") == [90, 110, 100]


def test_overdraft_is_not_prevented(db, service):
    """Balances may go negative; the data layer does not forbid it."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=100))
    db.accounts.save(Account(account_id=MEMBER_B, balance=0))

    service.transfer(MEMBER_A, MEMBER_B, 500)

    assert balances(db, MEMBER_A, MEMBER_B) == [-400, 500]


def test_transfer_to_same_account_is_refused(db, service):
    """Moving money from an account to itself neither creates nor destroys any."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=100))

    with pytest.raises(BusinessInvariantError) as excinfo:
        service.transfer(MEMBER_A, MEMBER_A, 30)

    assert excinfo.value.context["account_id"] == MEMBER_A
    assert balances(db, MEMBER_A) == [100]
    assert db.pool.in_use == 0


def test_amount_outside_integer_range_rolls_back(db, service):
    """A credit SQLite cannot store fails as DataAccessError and undoes the debit."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=10000))
    db.accounts.save(Account(account_id=MEMBER_B, balance=10000))

    with pytest.raises(DataAccessError) as excinfo:
        service.transfer(MEMBER_A, MEMBER_B, 2**63)

    assert isinstance(excinfo.value.cause, OverflowError)
    assert balances(db, MEMBER_A, MEMBER_B) == [10000, 10000]
    assert db.pool.in_use == 0


def test_steps_without_unit_of_work_leave_partial_write(db):
    """Without a unit of work the debit survives the failed target check."""
    db.accounts.save(Account(account_id=MEMBER_A, balance=10000))
    db.accounts.save(Account(account_id=MEMBER_EX, balance=10000))
    logic = make_service(db, "declarative")

    from_account = db.accounts.find_by_id(MEMBER_A)
    to_account = db.accounts.find_by_id(MEMBER_EX)
    db.accounts.update_balance(MEMBER_A, from_account.balance - 2000)
    with pytest.raises(BusinessInvariantError):
        logic._validate(to_account)

    assert balances(db, MEMBER_A, MEMBER_EX) == [8000, 10000]


def test_declarative_service_holds_no_transaction_code():
    """The declarative transfer is the business logic wrapped by the decorator."""
    wrapped = DeclarativeTransferService.transfer.__wrapped__
    assert wrapped.__name__ == "transfer"
    assert "transaction_manager" not in wrapped.__code__.co_names


# =============================================================================
# Concurrency
# =============================================================================
@pytest.mark.parametrize("kind", SERVICE_TYPES)
def test_concurrent_transfers_do_not_interfere(temp_db_path, kind):
    """Parallel transfers between disjoint pairs each see only their own work."""
    pairs = 8
    settings = Settings(pool_size=pairs, acquire_timeout=30.0, busy_timeout=30.0)
    with Database(temp_db_path, settings=settings) as db:
        for i in range(pairs):
            db.accounts.save(Account(account_id=f"from-{i}", balance=1000))
            target = MEMBER_EX if i == 0 else f"to-{i}"
            db.accounts.save(Account(account_id=target, balance=1000))
        service = make_service(db, kind)

        barrier = threading.Barrier(pairs)
        errors = {}

        def worker(i):
            target = MEMBER_EX if i == 0 else f"to-{i}"
            barrier.wait()
            try:
                service.transfer(f"from-{i}", target, 10 * (i + 1))
            except BusinessInvariantError as e:
                errors[i] = e

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(pairs)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert list(errors) == [0]
        assert balances(db, "from-0", MEMBER_EX) == [1000, 1000]
        for i in range(1, pairs):
            amount = 10 * (i + 1)
            assert balances(db, f"from-{i}", f"to-{i}") == [1000 - amount, 1000 + amount]
        assert db.pool.in_use == 0
