from datetime import timedelta
from decimal import Decimal
from itertools import count

import pytest

from expensechain import create_app, db
from expensechain.errors import ConflictError, InvalidTransitionError, ValidationError
from expensechain.records import CategoryRecord, ExpenseCandidate, ExpenseStatus, UserRole
from expensechain.services.datastore import SqlAlchemyStore
from expensechain.services.directory_service import (
    DEFAULT_CATEGORIES,
    AccountSession,
    add_team_member,
    create_account,
)
from expensechain.services.expense_ledger import ExpenseLedger

from conftest import FIXED_NOW, PASSWORD, TODAY


@pytest.fixture()
def sql_app():
    app = create_app("testing", overrides={"EXPENSE_STORE": "sql"})
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def sql_store(sql_app) -> SqlAlchemyStore:
    store = sql_app.extensions["expensechain"].store
    assert isinstance(store, SqlAlchemyStore)
    return store


@pytest.fixture()
def ticking_ledger() -> ExpenseLedger:
    ticks = count()
    return ExpenseLedger(clock=lambda: FIXED_NOW + timedelta(seconds=next(ticks)))


@pytest.fixture()
def team(sql_store):
    admin_session = create_account(
        sql_store,
        company_name="Globex",
        base_currency_code="GBP",
        admin_name="Gina Admin",
        admin_email="gina@globex.test",
        password=PASSWORD,
        country="United Kingdom",
    )
    manager = add_team_member(admin_session, "Max Manager", "max@globex.test", UserRole.MANAGER, PASSWORD)
    employee = add_team_member(
        admin_session, "Eve Employee", "eve@globex.test", UserRole.EMPLOYEE, PASSWORD, manager_id=manager.id
    )

    def session_for(user):
        return AccountSession(store=sql_store, account=admin_session.account, user=user)

    return admin_session, session_for(manager), session_for(employee)


def candidate(amount="40.00", currency="USD", category="Meals & Entertainment"):
    return ExpenseCandidate(
        amount=amount,
        currency_code=currency,
        category=category,
        description="Working lunch with vendor",
        expense_date=TODAY.isoformat(),
    )


def test_new_account_gets_default_categories(sql_store, team):
    admin_session, _, _ = team
    categories = sql_store.list_categories(admin_session.account.id)

    assert [(c.name, c.monthly_budget) for c in categories] == list(DEFAULT_CATEGORIES)
    assert all(c.spent_to_date == Decimal("0") for c in categories)
    assert sql_store.get_account(admin_session.account.id).base_currency_code == "GBP"


def test_duplicate_email_and_category_conflict(sql_store, team):
    admin_session, _, _ = team
    with pytest.raises(ConflictError):
        add_team_member(admin_session, "Copy", "MAX@globex.test", UserRole.EMPLOYEE)
    with pytest.raises(ConflictError):
        sql_store.add_category(
            CategoryRecord(account_id=admin_session.account.id, name="Other", monthly_budget=Decimal("1"))
        )
    # The session is still usable after the rolled-back insert.
    assert len(sql_store.list_users(admin_session.account.id)) == 3


def test_submit_approve_and_spend_persist(sql_store, team, ticking_ledger, rates):
    _, manager_session, employee_session = team
    expense = ticking_ledger.submit(employee_session, candidate(), rates)

    assert expense.base_currency_code == "GBP"
    assert expense.base_currency_amount == Decimal("29.20")

    stored = sql_store.get_expense(employee_session.account.id, expense.id)
    assert stored.status is ExpenseStatus.PENDING_APPROVAL
    assert stored.approval_chain == (UserRole.MANAGER,)
    assert stored.base_currency_amount == Decimal("29.20")

    approved = ticking_ledger.approve(manager_session, expense.id, "ok")
    assert approved.status is ExpenseStatus.APPROVED
    assert approved.approved_by == manager_session.user.id
    assert approved.approval_comments == "ok"

    with pytest.raises(InvalidTransitionError):
        ticking_ledger.reject(manager_session, expense.id, "too late")

    meals = next(
        c for c in sql_store.list_categories(employee_session.account.id) if c.name == "Meals & Entertainment"
    )
    assert meals.spent_to_date == Decimal("29.20")


def test_guarded_transition_only_fires_once(sql_store, team, ticking_ledger, rates):
    admin_session, manager_session, employee_session = team
    expense = ticking_ledger.submit(employee_session, candidate(), rates)
    account_id = admin_session.account.id

    first = sql_store.transition(account_id, expense.id, ExpenseStatus.REJECTED, admin_session.user.id, FIXED_NOW, "no")
    second = sql_store.transition(account_id, expense.id, ExpenseStatus.APPROVED, manager_session.user.id, FIXED_NOW)

    assert first.status is ExpenseStatus.REJECTED
    assert first.rejection_reason == "no"
    assert second is None
    assert sql_store.get_expense(account_id, expense.id).approved_by is None


def test_listing_is_newest_first_and_scoped(sql_store, team, ticking_ledger, rates):
    admin_session, _, employee_session = team
    older = ticking_ledger.submit(employee_session, candidate(), rates)
    newer = ticking_ledger.submit(admin_session, candidate(amount="2000", currency="GBP"), rates)

    assert [e.id for e in sql_store.list_expenses(admin_session.account.id)] == [newer.id, older.id]
    assert newer.approval_chain == (UserRole.MANAGER, UserRole.FINANCE)
    assert [e.id for e in ticking_ledger.list_for(employee_session)] == [older.id]
    assert sql_store.get_expense("another-account", older.id) is None


def test_sub_cent_amounts_are_rejected_before_storage(sql_store, team, ticking_ledger, rates):
    admin_session, _, employee_session = team
    with pytest.raises(ValidationError) as excinfo:
        ticking_ledger.submit(employee_session, candidate(amount="0.001"), rates)
    assert [v.field for v in excinfo.value.violations] == ["amount"]
    assert sql_store.list_expenses(admin_session.account.id) == []

    smallest = ticking_ledger.submit(employee_session, candidate(amount="0.01", currency="GBP"), rates)
    stored = sql_store.get_expense(admin_session.account.id, smallest.id)
    assert stored.original_amount == smallest.original_amount == Decimal("0.01")


def test_same_instant_submissions_list_in_insertion_order(sql_store, team, rates):
    admin_session, _, employee_session = team
    frozen_ledger = ExpenseLedger(clock=lambda: FIXED_NOW)
    submitted = [frozen_ledger.submit(employee_session, candidate(), rates).id for _ in range(4)]

    listed = [e.id for e in sql_store.list_expenses(admin_session.account.id)]
    assert listed == list(reversed(submitted))
