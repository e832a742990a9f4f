"""Add profit sharing tables

Revision ID: 5c2e9a7d41b0
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c2e9a7d41b0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Companies running profit sharing plans
    op.create_table('ps_companies',
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Plans
    op.create_table('ps_plans',
        sa.Column('company_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('trigger_amount', sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column('total_shares', sa.Integer(), nullable=True),
        sa.Column('schedule', sa.String(length=20), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('profit_description', sa.Text(), nullable=True),
        sa.Column('payment_terms', sa.String(length=50), nullable=True),
        sa.Column('payment_schedule_dates', sa.JSON(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['ps_companies.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_ps_plans_company', 'ps_plans', ['company_id'], unique=False)

    # Stakeholder records (one per person per company)
    op.create_table('ps_stakeholders',
        sa.Column('company_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=True),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('linked_user_id', sa.String(length=128), nullable=True),
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['ps_companies.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_ps_stakeholders_company', 'ps_stakeholders', ['company_id'], unique=False)
    op.create_index('idx_ps_stakeholders_user', 'ps_stakeholders', ['linked_user_id'], unique=False)

    # Awards
    op.create_table('ps_awards',
        sa.Column('stakeholder_id', sa.String(length=32), nullable=False),
        sa.Column('plan_id', sa.String(length=32), nullable=True),
        sa.Column('award_date', sa.Date(), nullable=True),
        sa.Column('award_start_date', sa.Date(), nullable=True),
        sa.Column('award_end_date', sa.Date(), nullable=True),
        sa.Column('shares_issued', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('issued_at', sa.DateTime(), nullable=True),
        sa.Column('issued_by', sa.String(length=128), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('accepted_by', sa.String(length=128), nullable=True),
        sa.Column('document_ref', sa.String(length=500), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['stakeholder_id'], ['ps_stakeholders.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_ps_awards_stakeholder', 'ps_awards', ['stakeholder_id'], unique=False)
    op.create_index('idx_ps_awards_plan', 'ps_awards', ['plan_id'], unique=False)

    # Profit entries (valuations)
    op.create_table('ps_valuations',
        sa.Column('company_id', sa.String(length=32), nullable=False),
        sa.Column('plan_id', sa.String(length=32), nullable=True),
        sa.Column('valuation_date', sa.Date(), nullable=False),
        sa.Column('profit_amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('profit_type', sa.String(length=20), nullable=False, server_default='actual'),
        sa.Column('price_per_share', sa.Numeric(precision=18, scale=6), nullable=True),
        sa.Column('total_shares', sa.Numeric(precision=18, scale=4), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['ps_companies.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_ps_valuations_company_date', 'ps_valuations', ['company_id', 'valuation_date'], unique=False)
    op.create_index('idx_ps_valuations_plan', 'ps_valuations', ['plan_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_ps_valuations_plan', table_name='ps_valuations')
    op.drop_index('idx_ps_valuations_company_date', table_name='ps_valuations')
    op.drop_table('ps_valuations')
    op.drop_index('idx_ps_awards_plan', table_name='ps_awards')
    op.drop_index('idx_ps_awards_stakeholder', table_name='ps_awards')
    op.drop_table('ps_awards')
    op.drop_index('idx_ps_stakeholders_user', table_name='ps_stakeholders')
    op.drop_index('idx_ps_stakeholders_company', table_name='ps_stakeholders')
    op.drop_table('ps_stakeholders')
    op.drop_index('idx_ps_plans_company', table_name='ps_plans')
    op.drop_table('ps_plans')
    op.drop_table('ps_companies')
