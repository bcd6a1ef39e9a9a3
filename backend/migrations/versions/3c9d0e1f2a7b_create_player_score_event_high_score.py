"""create player, score_event and high_score tables

Revision ID: 3c9d0e1f2a7b
Revises:
Create Date: 2026-10-17 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9d0e1f2a7b'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'player',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('high_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_play_time', sa.Float(), nullable=False, server_default='0'),
    )
    op.create_table(
        'score_event',
        sa.Column('seq', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('player_id', sa.String(length=32), sa.ForeignKey('player.id', ondelete='CASCADE'), nullable=False),
        sa.Column('game_id', sa.String(length=32), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('time_played', sa.Float(), nullable=False, server_default='0'),
        sa.Column('level_reached', sa.Integer(), nullable=True),
        sa.Column('idempotency_key', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('player_id', 'idempotency_key', name='uq_score_event_idempotency'),
    )
    op.create_index('ix_score_event_id', 'score_event', ['id'], unique=True)
    op.create_index('ix_score_event_player_id', 'score_event', ['player_id'])
    op.create_index('ix_score_event_game_id', 'score_event', ['game_id'])
    op.create_table(
        'high_score',
        sa.Column('seq', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('id', sa.String(length=32), nullable=False, unique=True),
        sa.Column('player_id', sa.String(length=32), sa.ForeignKey('player.id', ondelete='CASCADE'), nullable=False),
        sa.Column('game_id', sa.String(length=32), nullable=False),
        sa.Column('high_score', sa.Integer(), nullable=False),
        sa.Column('achieved_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('player_id', 'game_id', name='uq_high_score_player_game'),
    )
    op.create_index('ix_high_score_player_id', 'high_score', ['player_id'])
    op.create_index('ix_high_score_game_id', 'high_score', ['game_id'])


def downgrade():
    op.drop_table('high_score')
    op.drop_table('score_event')
    op.drop_table('player')
