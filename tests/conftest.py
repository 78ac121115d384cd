import random
from datetime import datetime, timezone

import pytest

from expensechain import create_app
from expensechain.records import UserRole
from expensechain.services.currency_service import fallback_rate_table
from expensechain.services.datastore import InMemoryStore
from expensechain.services.directory_service import AccountSession, add_team_member, create_account
from expensechain.services.expense_ledger import ExpenseLedger

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TODAY = FIXED_NOW.date()
PASSWORD = "changeme123"


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def ledger() -> ExpenseLedger:
    return ExpenseLedger(clock=lambda: FIXED_NOW)


@pytest.fixture()
def rates():
    return fallback_rate_table("USD")


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture()
def admin_session(store) -> AccountSession:
    return create_account(
        store,
        company_name="Acme Corp",
        base_currency_code="USD",
        admin_name="Alice Admin",
        admin_email="alice@acme.test",
        password=PASSWORD,
        country="United States",
    )


@pytest.fixture()
def manager(admin_session):
    return add_team_member(admin_session, "Mark Manager", "mark@acme.test", UserRole.MANAGER, PASSWORD)


@pytest.fixture()
def employee(admin_session, manager):
    return add_team_member(
        admin_session, "Erin Employee", "erin@acme.test", UserRole.EMPLOYEE, PASSWORD, manager_id=manager.id
    )


@pytest.fixture()
def session_for(admin_session):
    def _session_for(user) -> AccountSession:
        return AccountSession(store=admin_session.store, account=admin_session.account, user=user)

    return _session_for


@pytest.fixture()
def manager_session(session_for, manager) -> AccountSession:
    return session_for(manager)


@pytest.fixture()
def employee_session(session_for, employee) -> AccountSession:
    return session_for(employee)


@pytest.fixture()
def app():
    app = create_app("testing")
    engine = app.extensions["expensechain"]
    engine.ledger = ExpenseLedger(clock=lambda: FIXED_NOW)
    yield app
    engine.close()


@pytest.fixture()
def client(app):
    return app.test_client()
