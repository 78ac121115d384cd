import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from expensechain.errors import AuthorizationError, InvalidTransitionError, NotFoundError, ValidationError
from expensechain.records import ExpenseCandidate, ExpenseStatus, UserRole
from expensechain.services.demo_data import DEMO_PASSWORD, seed_demo_data
from expensechain.services.directory_service import (
    add_category,
    add_team_member,
    authenticate,
    create_account,
)
from expensechain.services.expense_ledger import ExpenseLedger

from conftest import FIXED_NOW, PASSWORD, TODAY


def uber_ride(**overrides) -> ExpenseCandidate:
    fields = dict(
        amount="125.50",
        currency_code="USD",
        category="Travel & Transportation",
        description="Uber to client meeting for Q4 planning",
        expense_date=TODAY.isoformat(),
    )
    fields.update(overrides)
    return ExpenseCandidate(**fields)


def test_submit_then_manager_approves(ledger, rates, employee_session, manager_session, manager):
    expense = ledger.submit(employee_session, uber_ride(), rates)

    assert expense.status is ExpenseStatus.PENDING_APPROVAL
    assert expense.base_currency_amount == Decimal("125.50")
    assert expense.approval_chain == (UserRole.MANAGER,)
    assert expense.exchange_rate == Decimal("1")
    assert expense.submitted_at == FIXED_NOW

    approved = ledger.approve(manager_session, expense.id, "Looks good")
    assert approved.status is ExpenseStatus.APPROVED
    assert approved.approved_by == manager.id
    assert approved.approved_at == FIXED_NOW
    assert approved.approval_comments == "Looks good"
    assert approved.rejected_by is None

    with pytest.raises(InvalidTransitionError):
        ledger.approve(manager_session, expense.id)
    assert ledger.get(manager_session, expense.id) == approved


def test_reject_records_reason(ledger, rates, employee_session, admin_session):
    expense = ledger.submit(employee_session, uber_ride(), rates)
    rejected = ledger.reject(admin_session, expense.id, "Personal trip")

    assert rejected.status is ExpenseStatus.REJECTED
    assert rejected.rejected_by == admin_session.user.id
    assert rejected.rejection_reason == "Personal trip"
    assert rejected.approved_by is None

    with pytest.raises(InvalidTransitionError):
        ledger.approve(admin_session, expense.id)


def test_foreign_currency_is_normalized_and_snapshotted(ledger, rates, employee_session):
    expense = ledger.submit(employee_session, uber_ride(amount="1000", currency_code="eur"), rates)

    assert expense.original_currency_code == "EUR"
    assert expense.original_amount == Decimal("1000")
    assert expense.base_currency_amount == Decimal("1176.47")
    assert expense.exchange_rate == Decimal("1.1765")
    assert expense.approval_chain == (UserRole.MANAGER, UserRole.FINANCE)


def test_missing_currency_defaults_to_account_base(ledger, rates, employee_session):
    expense = ledger.submit(employee_session, uber_ride(currency_code=None), rates)
    assert expense.original_currency_code == "USD"


def test_large_expense_needs_full_chain(ledger, rates, employee_session):
    expense = ledger.submit(employee_session, uber_ride(amount="7500"), rates)
    assert expense.approval_chain == (UserRole.MANAGER, UserRole.FINANCE, UserRole.DIRECTOR)


def test_invalid_submission_stores_nothing(ledger, rates, employee_session):
    with pytest.raises(ValidationError) as excinfo:
        ledger.submit(employee_session, uber_ride(amount="-1", description="short"), rates)

    fields = {violation.field for violation in excinfo.value.violations}
    assert fields == {"amount", "description"}
    assert ledger.list_for(employee_session) == []


def test_employee_and_own_manager_cannot_approve(ledger, rates, session_for, employee_session, manager_session):
    own = ledger.submit(manager_session, uber_ride(), rates)
    with pytest.raises(AuthorizationError) as excinfo:
        ledger.approve(manager_session, own.id)
    assert not isinstance(excinfo.value, InvalidTransitionError)

    expense = ledger.submit(employee_session, uber_ride(), rates)
    with pytest.raises(AuthorizationError):
        ledger.approve(employee_session, expense.id)
    assert ledger.get(employee_session, expense.id).status is ExpenseStatus.PENDING_APPROVAL


def test_finance_role_cannot_close_expenses(ledger, rates, admin_session, session_for, employee_session):
    finance = add_team_member(admin_session, "Fran Finance", "fran@acme.test", UserRole.FINANCE, PASSWORD)
    expense = ledger.submit(employee_session, uber_ride(amount="2500"), rates)
    with pytest.raises(AuthorizationError):
        ledger.approve(session_for(finance), expense.id)


def test_admin_can_approve_own_expense(ledger, rates, admin_session):
    expense = ledger.submit(admin_session, uber_ride(), rates)
    assert ledger.approve(admin_session, expense.id).status is ExpenseStatus.APPROVED


def test_unknown_expense_is_not_found(ledger, manager_session):
    with pytest.raises(NotFoundError):
        ledger.approve(manager_session, "missing-id")


def test_employees_only_see_their_own_expenses(ledger, rates, admin_session, session_for, employee_session):
    colleague = add_team_member(admin_session, "Carl Colleague", "carl@acme.test", UserRole.EMPLOYEE, PASSWORD)
    mine = ledger.submit(employee_session, uber_ride(), rates)
    theirs = ledger.submit(session_for(colleague), uber_ride(), rates)

    assert [expense.id for expense in ledger.list_for(employee_session)] == [mine.id]
    with pytest.raises(NotFoundError):
        ledger.get(employee_session, theirs.id)
    assert [expense.id for expense in ledger.list_for(admin_session)] == [theirs.id, mine.id]


def test_accounts_are_isolated(ledger, rates, store, admin_session, employee_session):
    other_admin = create_account(
        store,
        company_name="Acme Corp",
        base_currency_code="USD",
        admin_name="Alice Admin",
        admin_email="alice@other.test",
        password=PASSWORD,
    )
    ours = ledger.submit(employee_session, uber_ride(), rates)
    theirs = ledger.submit(other_admin, uber_ride(), rates)

    assert [expense.id for expense in ledger.list_for(admin_session)] == [ours.id]
    assert [expense.id for expense in ledger.list_for(other_admin)] == [theirs.id]
    with pytest.raises(NotFoundError):
        ledger.approve(other_admin, ours.id)
    assert ledger.get(admin_session, ours.id).status is ExpenseStatus.PENDING_APPROVAL


def test_concurrent_approvals_have_exactly_one_winner(ledger, rates, admin_session, manager_session, employee_session):
    expense = ledger.submit(employee_session, uber_ride(), rates)
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def decide(session, action):
        barrier.wait()
        try:
            getattr(ledger, action)(session, expense.id, "")
            result = "ok"
        except InvalidTransitionError:
            result = "conflict"
        with lock:
            outcomes.append(result)

    threads = [
        threading.Thread(target=decide, args=(manager_session, "approve")),
        threading.Thread(target=decide, args=(admin_session, "reject")),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["conflict", "ok"]
    final = ledger.get(admin_session, expense.id)
    assert (final.approved_by is None) != (final.rejected_by is None)


def test_filters_and_approval_queue(ledger, rates, employee_session, manager_session):
    ride = ledger.submit(employee_session, uber_ride(), rates)
    lunch = ledger.submit(
        employee_session,
        uber_ride(category="Meals & Entertainment", description="Team lunch with client",
                  expense_date=(TODAY - timedelta(days=3)).isoformat()),
        rates,
    )
    ledger.approve(manager_session, lunch.id)

    assert ledger.filter(manager_session, status=ExpenseStatus.PENDING_APPROVAL) == [ride]
    assert [e.id for e in ledger.filter(manager_session, category="Meals & Entertainment")] == [lunch.id]
    assert [e.id for e in ledger.filter(manager_session, expense_date=TODAY)] == [ride.id]
    assert [e.id for e in ledger.approval_queue(manager_session)] == [ride.id]
    assert ledger.approval_queue(employee_session) == []


def test_spend_grows_on_every_submission(ledger, rates, employee_session, manager_session):
    first = ledger.submit(employee_session, uber_ride(amount="100"), rates)
    ledger.submit(employee_session, uber_ride(amount="50.25"), rates)
    ledger.reject(manager_session, first.id, "Duplicate")

    travel = next(c for c in ledger.category_budgets(manager_session) if c.name == "Travel & Transportation")
    assert travel.spent_to_date == Decimal("150.25")
    assert travel.to_dict()["remaining"] == 4849.75


def test_summary_counts_and_monthly_totals(ledger, rates, employee_session, manager_session, admin_session):
    ride = ledger.submit(employee_session, uber_ride(), rates)
    ledger.submit(employee_session, uber_ride(amount="74.50", expense_date="2026-08-02"), rates)
    ledger.approve(manager_session, ride.id)

    summary = ledger.summary(admin_session)

    assert summary["total_expenses"] == 200.0
    assert summary["expense_count"] == 2
    assert summary["approved"] == 1
    assert summary["pending_approvals"] == 1
    assert summary["rejected"] == 0
    assert summary["active_users"] == 3
    assert [point["month"] for point in summary["monthly_totals"]] == [
        "2026-05", "2026-06", "2026-07", "2026-08", "2026-09", "2026-10",
    ]
    assert [point["total"] for point in summary["monthly_totals"]] == [0.0, 0.0, 0.0, 74.5, 0.0, 125.5]


def test_add_category_requires_approver(admin_session, employee_session, ledger):
    category = add_category(admin_session, "Client Gifts", "750")
    assert category.monthly_budget == Decimal("750")
    assert "Client Gifts" in [c.name for c in ledger.category_budgets(admin_session)]

    with pytest.raises(AuthorizationError):
        add_category(employee_session, "Snacks", "10")
    with pytest.raises(ValidationError):
        add_category(admin_session, "Negative", "-1")


def test_team_management(admin_session, manager_session, employee):
    assert employee.manager_id == manager_session.user.id
    with pytest.raises(AuthorizationError):
        add_team_member(manager_session, "Nina New", "nina@acme.test", UserRole.EMPLOYEE)
    with pytest.raises(ValidationError):
        add_team_member(admin_session, "Nina New", "nina@acme.test", UserRole.EMPLOYEE, manager_id=employee.id)

    assert authenticate(admin_session.store, "ERIN@acme.test", PASSWORD) == employee
    assert authenticate(admin_session.store, "erin@acme.test", "wrong") is None


def test_demo_data_seeds_one_approved_and_one_pending(store):
    ledger = ExpenseLedger(clock=lambda: FIXED_NOW)
    admin_session = seed_demo_data(store, ledger)

    expenses = ledger.list_for(admin_session)
    assert [expense.status for expense in expenses] == [ExpenseStatus.PENDING_APPROVAL, ExpenseStatus.APPROVED]
    assert authenticate(store, "john.smith@demo.com", DEMO_PASSWORD) is not None
    assert {user.role for user in store.list_users(admin_session.account.id)} == {
        UserRole.ADMIN, UserRole.MANAGER, UserRole.EMPLOYEE,
    }
