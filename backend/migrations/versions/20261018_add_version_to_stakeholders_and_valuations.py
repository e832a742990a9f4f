"""Add version counter to stakeholders and valuations

Revision ID: 8f13b6c2e7a4
Revises: 5c2e9a7d41b0
Create Date: 2026-10-18 15:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8f13b6c2e7a4'
down_revision: Union[str, None] = '5c2e9a7d41b0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Stakeholder names and profit entries can now be corrected in place
    op.add_column('ps_stakeholders', sa.Column('version', sa.Integer(), nullable=False, server_default='1'))
    op.add_column('ps_valuations', sa.Column('version', sa.Integer(), nullable=False, server_default='1'))


def downgrade() -> None:
    op.drop_column('ps_valuations', 'version')
    op.drop_column('ps_stakeholders', 'version')
