"""create_scan_results

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'scan_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_id', sa.String(255), nullable=False),
        sa.Column('original_job_id', sa.String(255), nullable=True),
        sa.Column('submitted_url', sa.Text(), nullable=False),
        sa.Column('actual_url', sa.Text(), nullable=True),
        sa.Column('scan_timestamp', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('page_title', sa.Text(), nullable=True),
        sa.Column('scan_success', sa.Boolean(), nullable=False),
        sa.Column('violations', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('page_screenshot', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_scan_results_job_id'), 'scan_results', ['job_id'], unique=True)
    op.create_index(op.f('ix_scan_results_original_job_id'), 'scan_results', ['original_job_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_scan_results_original_job_id'), table_name='scan_results')
    op.drop_index(op.f('ix_scan_results_job_id'), table_name='scan_results')
    op.drop_table('scan_results')
