"""create quiz and live game tables

Revision ID: 4c2a9e7d1b30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7d1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'quiz',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('time_limit', sa.Integer(), nullable=True),
        sa.Column('speed_scoring', sa.Boolean(), nullable=True),
        sa.Column('points_per_question', sa.Integer(), nullable=True),
        sa.Column('auto_advance', sa.Boolean(), nullable=True),
    )
    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quiz.id'), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('is_warmup', sa.Boolean(), nullable=False),
        sa.Column('time_limit_override', sa.Integer(), nullable=True),
        sa.UniqueConstraint('quiz_id', 'order_index', name='uq_question_quiz_order'),
    )
    op.create_index('ix_question_quiz_id', 'question', ['quiz_id'])
    op.create_table(
        'question_option',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('option_text', sa.String(length=500), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.UniqueConstraint('question_id', 'order_index', name='uq_option_question_order'),
    )
    op.create_index('ix_question_option_question_id', 'question_option', ['question_id'])
    op.create_table(
        'game_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quiz.id'), nullable=False),
        sa.Column('host_id', sa.String(length=64), nullable=True),
        sa.Column('pin', sa.String(length=6), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('current_question_index', sa.Integer(), nullable=False),
        sa.Column('question_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('time_limit', sa.Integer(), nullable=False),
        sa.Column('speed_scoring', sa.Boolean(), nullable=False),
        sa.Column('points_per_question', sa.Integer(), nullable=False),
        sa.Column('auto_advance', sa.Boolean(), nullable=False),
        sa.Column('winner_id', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_game_session_pin', 'game_session', ['pin'])
    op.create_index(
        'uq_game_session_active_pin', 'game_session', ['pin'], unique=True,
        sqlite_where=sa.text("status != 'finished'"),
        postgresql_where=sa.text("status != 'finished'"),
    )
    op.create_table(
        'game_participant',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('game_session.id'), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('nickname', sa.String(length=20), nullable=False),
        sa.Column('avatar_base', sa.String(length=32), nullable=False),
        sa.Column('avatar_accessory', sa.String(length=32), nullable=True),
        sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint('total_score >= 0', name='ck_participant_score_non_negative'),
        sa.CheckConstraint('current_streak >= 0', name='ck_participant_streak_non_negative'),
    )
    op.create_index('ix_game_participant_session_id', 'game_participant', ['session_id'])
    op.create_table(
        'question_response',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('game_session.id'), nullable=False),
        sa.Column('participant_id', sa.Integer(), sa.ForeignKey('game_participant.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('selected_option_id', sa.Integer(), sa.ForeignKey('question_option.id'), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('response_time_ms', sa.Integer(), nullable=False),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('participant_id', 'question_id', name='uq_response_participant_question'),
    )
    op.create_index('ix_question_response_session_id', 'question_response', ['session_id'])
    op.create_index('ix_question_response_question_id', 'question_response', ['question_id'])


def downgrade():
    op.drop_table('question_response')
    op.drop_table('game_participant')
    op.drop_index('uq_game_session_active_pin', table_name='game_session')
    op.drop_table('game_session')
    op.drop_table('question_option')
    op.drop_table('question')
    op.drop_table('quiz')
