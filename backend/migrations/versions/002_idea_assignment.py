"""Add ideas.assigned_to_id for ALLOCATION jars

Revision ID: 002_idea_assignment
Revises: 001_initial_schema
Create Date: 2026-10-26 10:15:00.000000

"""
from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

from backend.migrations.util import get_uuid_type

# revision identifiers, used by Alembic.
revision = '002_idea_assignment'
down_revision = '001_initial_schema'
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    uuid = get_uuid_type()

    # Batch mode for SQLite compatibility
    with op.batch_alter_table('ideas', schema=None) as batch_op:
        batch_op.add_column(sa.Column('assigned_to_id', uuid, nullable=True))
        batch_op.create_foreign_key(
            'fk_ideas_assigned_to_id',
            'users',
            ['assigned_to_id'],
            ['user_id'],
            ondelete='SET NULL'
        )
        batch_op.create_index('ix_ideas_assigned_to_id', ['assigned_to_id'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('ideas', schema=None) as batch_op:
        batch_op.drop_index('ix_ideas_assigned_to_id')
        batch_op.drop_constraint('fk_ideas_assigned_to_id', type_='foreignkey')
        batch_op.drop_column('assigned_to_id')
