"""Create accounts, users, categories and expenses

Revision ID: 20261019_initial
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None

USER_ROLES = ('EMPLOYEE', 'MANAGER', 'FINANCE', 'DIRECTOR', 'ADMIN')
EXPENSE_STATUSES = ('PENDING_APPROVAL', 'APPROVED', 'REJECTED')


def upgrade():
    op.create_table(
        'accounts',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('country', sa.String(length=120), nullable=True),
        sa.Column('base_currency_code', sa.String(length=10), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('account_id', sa.String(length=36), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('role', sa.Enum(*USER_ROLES, name='user_role'), nullable=False),
        sa.Column('manager_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_account_id', 'users', ['account_id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.String(length=36), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('monthly_budget', sa.Numeric(12, 2), nullable=False),
        sa.Column('spent_to_date', sa.Numeric(14, 2), nullable=False),
        sa.UniqueConstraint('account_id', 'name', name='uq_category_account_name'),
    )
    op.create_index('ix_categories_account_id', 'categories', ['account_id'])

    op.create_table(
        'expenses',
        sa.Column('seq', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('account_id', sa.String(length=36), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('owner_user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('original_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('original_currency_code', sa.String(length=10), nullable=False),
        sa.Column('base_currency_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('base_currency_code', sa.String(length=10), nullable=False),
        sa.Column('exchange_rate', sa.Numeric(18, 4), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('expense_date', sa.Date(), nullable=False),
        sa.Column('approval_chain', sa.JSON(), nullable=False),
        sa.Column('status', sa.Enum(*EXPENSE_STATUSES, name='expense_status'), nullable=False),
        sa.Column('ocr_confidence', sa.Integer(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('approved_by', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approval_comments', sa.Text(), nullable=True),
        sa.Column('rejected_by', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
    )
    op.create_index('ix_expenses_id', 'expenses', ['id'], unique=True)
    op.create_index('ix_expenses_account_id', 'expenses', ['account_id'])
    op.create_index('ix_expenses_owner_user_id', 'expenses', ['owner_user_id'])
    op.create_index('ix_expenses_status', 'expenses', ['status'])
    op.create_index('ix_expenses_submitted_at', 'expenses', ['submitted_at'])


def downgrade():
    op.drop_index('ix_expenses_submitted_at', table_name='expenses')
    op.drop_index('ix_expenses_status', table_name='expenses')
    op.drop_index('ix_expenses_owner_user_id', table_name='expenses')
    op.drop_index('ix_expenses_account_id', table_name='expenses')
    op.drop_index('ix_expenses_id', table_name='expenses')
    op.drop_table('expenses')
    op.drop_index('ix_categories_account_id', table_name='categories')
    op.drop_table('categories')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_account_id', table_name='users')
    op.drop_table('users')
    op.drop_table('accounts')
