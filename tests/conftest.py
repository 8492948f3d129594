"""
Pytest fixtures for the practice billing test suite.

Provides:
- An isolated in-memory SQLite database per test (tables created fresh)
- A session, a DeterministicClock, and KernelSettings from the packaged config
- A seeded chart of accounts, customer, and service
- Factories for works, periods, and tasks

SQLite runs with foreign keys on and SAVEPOINT-compatible transaction
handling (see practice_kernel.db.engine.build_engine).
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from practice_config import CONFIG_ENV_VAR, get_active_config
from practice_config.bridges import build_kernel_settings
from practice_kernel.db.engine import build_engine, create_tables
from practice_kernel.domain.clock import DeterministicClock
from practice_kernel.domain.dtos import OwnerKind, OwnerRef
from practice_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from practice_kernel.models.directory import (
    Customer,
    DocumentTemplate,
    Service,
    TaskTemplate,
)
from practice_kernel.models.ledger import Account, AccountType, NormalBalance
from practice_kernel.models.task import Task, TaskStatus
from practice_kernel.models.work import Work
from practice_kernel.services.period_generator import PeriodGenerator
from practice_kernel.services.task_tracker import TaskTracker

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture practice_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "invoice_emitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("practice_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    engine = build_engine("sqlite:///:memory:")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = Session(engine)
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def config(monkeypatch):
    """The packaged default configuration (PRACTICE_CONFIG ignored)."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    return get_active_config()


@pytest.fixture
def settings(config):
    return build_kernel_settings(config)


# =============================================================================
# Seed data
# =============================================================================


def _account(session, code, name, account_type, normal_balance):
    account = Account(
        code=code,
        name=name,
        account_type=account_type.value,
        normal_balance=normal_balance.value,
        created_by_id=TEST_ACTOR_ID,
    )
    session.add(account)
    return account


@pytest.fixture
def accounts(session):
    """Tenant chart of accounts matching the packaged ledger mapping."""
    seeded = {
        "cash": _account(session, "1000", "Bank", AccountType.ASSET, NormalBalance.DEBIT),
        "receivable": _account(
            session, "1200", "Accounts Receivable", AccountType.ASSET, NormalBalance.DEBIT
        ),
        "income": _account(
            session, "4000", "Professional Fees", AccountType.REVENUE, NormalBalance.CREDIT
        ),
    }
    session.flush()
    return seeded


@pytest.fixture
def customer(session, accounts):
    customer = Customer(code="ACME", name="Acme Traders", created_by_id=TEST_ACTOR_ID)
    session.add(customer)
    session.flush()
    return customer


@pytest.fixture
def service(session):
    """Bookkeeping service with three task templates and one document."""
    service = Service(
        code="BOOK",
        name="Bookkeeping",
        default_price=None,
        tax_rate=Decimal("0"),
        payment_terms=None,
        created_by_id=TEST_ACTOR_ID,
    )
    session.add(service)
    session.flush()
    for order, title in enumerate(["Collect statements", "Reconcile bank", "Review"]):
        session.add(
            TaskTemplate(
                service_id=service.id,
                title=title,
                sort_order=order,
                created_by_id=TEST_ACTOR_ID,
            )
        )
    session.add(
        DocumentTemplate(
            service_id=service.id,
            name="Bank statement",
            is_required=True,
            created_by_id=TEST_ACTOR_ID,
        )
    )
    session.flush()
    return service


@pytest.fixture
def make_work(session, customer, service):
    """Factory for works; recurring monthly on the 10th by default."""

    def _make(
        *,
        is_recurring=True,
        recurrence_pattern="monthly",
        anchor_day=10,
        start_date=date(2025, 10, 7),
        billing_amount=Decimal("1000.00"),
        auto_bill=True,
        title="Monthly bookkeeping",
    ):
        work = Work(
            customer_id=customer.id,
            service_id=service.id,
            title=title,
            is_recurring=is_recurring,
            recurrence_pattern=recurrence_pattern if is_recurring else None,
            anchor_day=anchor_day if is_recurring else None,
            start_date=start_date,
            billing_amount=billing_amount,
            auto_bill=auto_bill,
            created_by_id=TEST_ACTOR_ID,
        )
        session.add(work)
        session.flush()
        return work

    return _make


@pytest.fixture
def generator(session, clock, settings):
    return PeriodGenerator(session, clock, settings)


@pytest.fixture
def tracker(session, clock):
    return TaskTracker(session, clock)


@pytest.fixture
def make_period(generator, make_work):
    """Factory: a recurring work plus its first period (three template tasks)."""

    def _make(**work_fields):
        work = make_work(**work_fields)
        window = generator.next_period_window(work, None)
        period, _ = generator.create_period(work, window, TEST_ACTOR_ID)
        return period

    return _make


@pytest.fixture
def tasks_of(session):
    """Tasks of an owner, in template order."""

    def _tasks(owner):
        query = session.query(Task)
        if isinstance(owner, OwnerRef) and owner.kind == OwnerKind.WORK:
            query = query.filter(Task.work_id == owner.owner_id, Task.period_id.is_(None))
        else:
            period_id = owner.owner_id if isinstance(owner, OwnerRef) else owner.id
            query = query.filter(Task.period_id == period_id)
        return query.order_by(Task.sort_order).all()

    return _tasks


@pytest.fixture
def complete_all(tracker, tasks_of):
    """Complete every task of an owner; returns the last CompletionChange."""

    def _complete(owner):
        change = None
        for task in tasks_of(owner):
            change = tracker.set_status(task.id, TaskStatus.COMPLETED, TEST_ACTOR_ID)
        return change

    return _complete
