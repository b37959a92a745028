"""Initial schema: users, jars, ideas, voting, notifications, achievements

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

from backend.migrations.util import get_uuid_type

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

ACTIVE_SESSION_PREDICATE = sa.text("status = 'ACTIVE'")


def upgrade() -> None:
    uuid = get_uuid_type()

    op.create_table(
        'jars',
        sa.Column('jar_id', uuid, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('reference_code', sa.String(16), nullable=False),
        sa.Column('topic', sa.String(50), nullable=False, server_default='General'),
        sa.Column('selection_mode', sa.String(20), nullable=False, server_default='RANDOM'),
        sa.Column('vote_candidates_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('default_idea_private', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('jar_id'),
        sa.UniqueConstraint('reference_code'),
    )

    op.create_table(
        'users',
        sa.Column('user_id', uuid, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('is_premium', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('active_jar_id', uuid, nullable=True),
        sa.Column('notify_voting', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_idea_added', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_jar_spun', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_achievements', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_level_up', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_login_date', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['active_jar_id'], ['jars.jar_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'jar_members',
        sa.Column('member_id', uuid, nullable=False),
        sa.Column('user_id', uuid, nullable=False),
        sa.Column('jar_id', uuid, nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='MEMBER'),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['jar_id'], ['jars.jar_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('member_id'),
        sa.UniqueConstraint('user_id', 'jar_id', name='uq_jar_members_user_jar'),
    )
    op.create_index('ix_jar_members_user_id', 'jar_members', ['user_id'])
    op.create_index('ix_jar_members_jar_id', 'jar_members', ['jar_id'])
    op.create_index('ix_jar_members_jar_role', 'jar_members', ['jar_id', 'role'])

    op.create_table(
        'ideas',
        sa.Column('idea_id', uuid, nullable=False),
        sa.Column('jar_id', uuid, nullable=False),
        sa.Column('created_by_id', uuid, nullable=True),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('category', sa.String(50), nullable=False, server_default='ACTIVITY'),
        sa.Column('cost', sa.String(10), nullable=False, server_default='FREE'),
        sa.Column('duration', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('activity_level', sa.String(10), nullable=False, server_default='LOW'),
        sa.Column('time_of_day', sa.String(10), nullable=False, server_default='ANY'),
        sa.Column('indoor', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_private', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_surprise', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(20), nullable=False, server_default='APPROVED'),
        sa.Column('selected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['jar_id'], ['jars.jar_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('idea_id'),
    )
    op.create_index('ix_ideas_jar_id', 'ideas', ['jar_id'])
    op.create_index('ix_ideas_created_by_id', 'ideas', ['created_by_id'])
    op.create_index('ix_ideas_jar_status_selected', 'ideas', ['jar_id', 'status', 'selected_at'])

    op.create_table(
        'vote_sessions',
        sa.Column('session_id', uuid, nullable=False),
        sa.Column('jar_id', uuid, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('tie_breaker_mode', sa.String(20), nullable=False, server_default='RANDOM_PICK'),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('round', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('eligible_idea_ids', sa.JSON(), nullable=False),
        sa.Column('winner_id', uuid, nullable=True),
        sa.Column('created_by_id', uuid, nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['jar_id'], ['jars.jar_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['winner_id'], ['ideas.idea_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('session_id'),
    )
    op.create_index('ix_vote_sessions_jar_id', 'vote_sessions', ['jar_id'])
    op.create_index('ix_vote_sessions_created_at', 'vote_sessions', ['created_at'])
    op.create_index('ix_vote_sessions_jar_status', 'vote_sessions', ['jar_id', 'status'])
    # At most one ACTIVE session per jar
    op.create_index(
        'uq_vote_sessions_one_active_per_jar',
        'vote_sessions',
        ['jar_id'],
        unique=True,
        sqlite_where=ACTIVE_SESSION_PREDICATE,
        postgresql_where=ACTIVE_SESSION_PREDICATE,
    )

    op.create_table(
        'votes',
        sa.Column('vote_id', uuid, nullable=False),
        sa.Column('session_id', uuid, nullable=False),
        sa.Column('user_id', uuid, nullable=False),
        sa.Column('idea_id', uuid, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['vote_sessions.session_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['idea_id'], ['ideas.idea_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('vote_id'),
        sa.UniqueConstraint('session_id', 'user_id', name='uq_votes_session_user'),
    )
    op.create_index('ix_votes_session_id', 'votes', ['session_id'])

    op.create_table(
        'notifications',
        sa.Column('notification_id', uuid, nullable=False),
        sa.Column('user_id', uuid, nullable=False),
        sa.Column('jar_id', uuid, nullable=True),
        sa.Column('title', sa.String(120), nullable=False),
        sa.Column('body', sa.String(500), nullable=False),
        sa.Column('url', sa.String(255), nullable=True),
        sa.Column('preference', sa.String(50), nullable=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['jar_id'], ['jars.jar_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('notification_id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_user_created', 'notifications', ['user_id', 'created_at'])

    op.create_table(
        'unlocked_achievements',
        sa.Column('unlock_id', uuid, nullable=False),
        sa.Column('jar_id', uuid, nullable=False),
        sa.Column('achievement_id', sa.String(50), nullable=False),
        sa.Column('unlocked_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['jar_id'], ['jars.jar_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('unlock_id'),
        sa.UniqueConstraint('jar_id', 'achievement_id', name='uq_unlocked_achievements_jar_achievement'),
    )
    op.create_index('ix_unlocked_achievements_jar_id', 'unlocked_achievements', ['jar_id'])


def downgrade() -> None:
    op.drop_index('ix_unlocked_achievements_jar_id', table_name='unlocked_achievements')
    op.drop_table('unlocked_achievements')

    op.drop_index('ix_notifications_user_created', table_name='notifications')
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('ix_votes_session_id', table_name='votes')
    op.drop_table('votes')

    op.drop_index('uq_vote_sessions_one_active_per_jar', table_name='vote_sessions')
    op.drop_index('ix_vote_sessions_jar_status', table_name='vote_sessions')
    op.drop_index('ix_vote_sessions_created_at', table_name='vote_sessions')
    op.drop_index('ix_vote_sessions_jar_id', table_name='vote_sessions')
    op.drop_table('vote_sessions')

    op.drop_index('ix_ideas_jar_status_selected', table_name='ideas')
    op.drop_index('ix_ideas_created_by_id', table_name='ideas')
    op.drop_index('ix_ideas_jar_id', table_name='ideas')
    op.drop_table('ideas')

    op.drop_index('ix_jar_members_jar_role', table_name='jar_members')
    op.drop_index('ix_jar_members_jar_id', table_name='jar_members')
    op.drop_index('ix_jar_members_user_id', table_name='jar_members')
    op.drop_table('jar_members')

    op.drop_table('users')
    op.drop_table('jars')
