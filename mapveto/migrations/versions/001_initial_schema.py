"""Initial map veto schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

from mapveto.migrations.util import get_uuid_type, get_timestamp_default

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    uuid_type = get_uuid_type()
    now = get_timestamp_default()

    # Registries
    op.create_table(
        'admins',
        sa.Column('admin_id', uuid_type, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('avatar_url', sa.String(2048), nullable=True),
        sa.Column('is_root_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.PrimaryKeyConstraint('admin_id'),
    )
    op.create_index('ix_admins_email', 'admins', ['email'], unique=True)

    op.create_table(
        'teams',
        sa.Column('team_id', uuid_type, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('logo_url', sa.String(2048), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.PrimaryKeyConstraint('team_id'),
    )
    op.create_index('ix_teams_name', 'teams', ['name'], unique=True)

    op.create_table(
        'maps',
        sa.Column('map_id', uuid_type, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('image_url', sa.String(2048), nullable=True),
        sa.Column('image_storage_id', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.PrimaryKeyConstraint('map_id'),
    )
    op.create_index('ix_maps_is_active', 'maps', ['is_active'])

    # Sessions
    op.create_table(
        'sessions',
        sa.Column('session_id', uuid_type, nullable=False),
        sa.Column('match_name', sa.String(100), nullable=False),
        sa.Column('format', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='DRAFT'),
        sa.Column('turn_timer_seconds', sa.Integer(), nullable=False),
        sa.Column('map_pool_size', sa.Integer(), nullable=False),
        sa.Column('player_count', sa.Integer(), nullable=False),
        sa.Column('current_turn', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_round', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('timer_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('timer_paused_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('winner_map_id', uuid_type, nullable=True),
        sa.Column('created_by', uuid_type, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['admins.admin_id']),
        sa.PrimaryKeyConstraint('session_id'),
    )
    op.create_index('ix_sessions_status', 'sessions', ['status'])
    op.create_index('ix_sessions_created_by', 'sessions', ['created_by'])
    op.create_index('ix_sessions_expires_at', 'sessions', ['expires_at'])

    op.create_table(
        'session_players',
        sa.Column('player_id', uuid_type, nullable=False),
        sa.Column('session_id', uuid_type, nullable=False),
        sa.Column('role', sa.String(100), nullable=False),
        sa.Column('team_name', sa.String(100), nullable=False),
        sa.Column('seat_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('token', sa.String(32), nullable=False),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('is_connected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_heartbeat', sa.DateTime(timezone=True), nullable=True),
        sa.Column('has_voted_this_round', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['session_id'], ['sessions.session_id']),
        sa.PrimaryKeyConstraint('player_id'),
        sa.UniqueConstraint('session_id', 'role', name='uq_session_players_session_role'),
    )
    op.create_index('ix_session_players_session_id', 'session_players', ['session_id'])
    op.create_index('ix_session_players_team_name', 'session_players', ['team_name'])
    op.create_index('ix_session_players_token', 'session_players', ['token'], unique=True)

    op.create_table(
        'session_maps',
        sa.Column('session_map_id', uuid_type, nullable=False),
        sa.Column('session_id', uuid_type, nullable=False),
        sa.Column('map_id', uuid_type, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('image_url', sa.String(2048), nullable=False, server_default=''),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('state', sa.String(20), nullable=False, server_default='AVAILABLE'),
        sa.Column('banned_by_player_id', uuid_type, nullable=True),
        sa.Column('banned_at_turn', sa.Integer(), nullable=True),
        sa.Column('banned_at_round', sa.Integer(), nullable=True),
        sa.Column('vote_count', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.ForeignKeyConstraint(['session_id'], ['sessions.session_id']),
        sa.PrimaryKeyConstraint('session_map_id'),
    )
    op.create_index('ix_session_maps_session_id', 'session_maps', ['session_id'])
    op.create_index('ix_session_maps_session_id_state', 'session_maps', ['session_id', 'state'])

    op.create_table(
        'votes',
        sa.Column('vote_id', uuid_type, nullable=False),
        sa.Column('session_id', uuid_type, nullable=False),
        sa.Column('round', sa.Integer(), nullable=False),
        sa.Column('player_id', uuid_type, nullable=False),
        sa.Column('session_map_id', uuid_type, nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.Column('submitted_by_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['session_id'], ['sessions.session_id']),
        sa.ForeignKeyConstraint(['player_id'], ['session_players.player_id']),
        sa.ForeignKeyConstraint(['session_map_id'], ['session_maps.session_map_id']),
        sa.PrimaryKeyConstraint('vote_id'),
        sa.UniqueConstraint('player_id', 'round', name='uq_votes_player_round'),
    )
    op.create_index('ix_votes_session_id_round', 'votes', ['session_id', 'round'])

    # Audit history has no foreign key so it outlives deleted sessions
    op.create_table(
        'audit_logs',
        sa.Column('log_id', uuid_type, nullable=False),
        sa.Column('session_id', uuid_type, nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('actor_type', sa.String(20), nullable=False),
        sa.Column('actor_id', sa.String(64), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, server_default=now),
        sa.PrimaryKeyConstraint('log_id'),
    )
    op.create_index('ix_audit_logs_session_id_timestamp', 'audit_logs', ['session_id', 'timestamp'])
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_timestamp', table_name='audit_logs')
    op.drop_index('ix_audit_logs_session_id_timestamp', table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('ix_votes_session_id_round', table_name='votes')
    op.drop_table('votes')

    op.drop_index('ix_session_maps_session_id_state', table_name='session_maps')
    op.drop_index('ix_session_maps_session_id', table_name='session_maps')
    op.drop_table('session_maps')

    op.drop_index('ix_session_players_token', table_name='session_players')
    op.drop_index('ix_session_players_team_name', table_name='session_players')
    op.drop_index('ix_session_players_session_id', table_name='session_players')
    op.drop_table('session_players')

    op.drop_index('ix_sessions_expires_at', table_name='sessions')
    op.drop_index('ix_sessions_created_by', table_name='sessions')
    op.drop_index('ix_sessions_status', table_name='sessions')
    op.drop_table('sessions')

    op.drop_index('ix_maps_is_active', table_name='maps')
    op.drop_table('maps')
    op.drop_index('ix_teams_name', table_name='teams')
    op.drop_table('teams')
    op.drop_index('ix_admins_email', table_name='admins')
    op.drop_table('admins')
