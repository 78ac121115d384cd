"""Fixture data for the in-memory demo store."""
from __future__ import annotations

import logging
from datetime import timedelta

from expensechain.records import ExpenseCandidate, UserRole
from expensechain.services.currency_service import fallback_rate_table
from expensechain.services.directory_service import AccountSession, add_team_member, create_account
from expensechain.services.datastore import ExpenseStore
from expensechain.services.expense_ledger import ExpenseLedger

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo1234"


def seed_demo_data(store: ExpenseStore, ledger: ExpenseLedger) -> AccountSession:
    """Create the demo company with an employee, a manager, an admin and two expenses."""
    admin_session = create_account(
        store,
        company_name="Demo Company",
        base_currency_code="USD",
        admin_name="Mike Davis",
        admin_email="mike.davis@demo.com",
        password=DEMO_PASSWORD,
        country="United States",
    )
    manager = add_team_member(
        admin_session, "Sarah Johnson", "sarah.johnson@demo.com", UserRole.MANAGER, DEMO_PASSWORD
    )
    employee = add_team_member(
        admin_session,
        "John Smith",
        "john.smith@demo.com",
        UserRole.EMPLOYEE,
        DEMO_PASSWORD,
        manager_id=manager.id,
    )

    employee_session = AccountSession(store=store, account=admin_session.account, user=employee)
    manager_session = AccountSession(store=store, account=admin_session.account, user=manager)
    rates = fallback_rate_table()
    today = ledger.today()

    lunch = ledger.submit(
        employee_session,
        ExpenseCandidate(
            amount="89.99",
            currency_code="USD",
            category="Meals & Entertainment",
            description="Client lunch meeting",
            expense_date=today - timedelta(days=21),
        ),
        rates,
    )
    ledger.approve(manager_session, lunch.id, "Within policy")
    ledger.submit(
        employee_session,
        ExpenseCandidate(
            amount="125.50",
            currency_code="USD",
            category="Travel & Transportation",
            description="Uber to client meeting",
            expense_date=today - timedelta(days=18),
        ),
        rates,
    )
    logger.info("Seeded demo account %s", admin_session.account.id)
    return admin_session
