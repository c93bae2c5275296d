"""create workouts, workout_tracks, workout_splits, best_efforts, user_settings

Revision ID: 1f3e9a7c5d20
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '1f3e9a7c5d20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'workouts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_s', sa.Float(), nullable=False),
        sa.Column('distance_m', sa.Float(), nullable=False),
        sa.Column('avg_pace_s', sa.Float(), nullable=False),
        sa.Column('elev_gain_m', sa.Float(), nullable=True),
        sa.Column('elev_loss_m', sa.Float(), nullable=True),
        sa.Column('min_elev_m', sa.Float(), nullable=True),
        sa.Column('max_elev_m', sa.Float(), nullable=True),
        sa.Column('avg_hr_bpm', sa.Integer(), nullable=True),
        sa.Column('max_hr_bpm', sa.Integer(), nullable=True),
        sa.Column('min_hr_bpm', sa.Integer(), nullable=True),
        sa.Column('avg_cadence_rpm', sa.Integer(), nullable=True),
        sa.Column('max_cadence_rpm', sa.Integer(), nullable=True),
        sa.Column('avg_power_w', sa.Integer(), nullable=True),
        sa.Column('max_power_w', sa.Integer(), nullable=True),
        sa.Column('relative_effort', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=True),
        sa.Column('run_type', sa.String(length=20), nullable=True),
        sa.Column('source', sa.String(length=20), server_default='api', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_workouts_id', 'workouts', ['id'])
    op.create_index('ix_workouts_started_at', 'workouts', ['started_at'])
    op.create_index('ix_workouts_distance_m', 'workouts', ['distance_m'])

    op.create_table(
        'workout_tracks',
        sa.Column('workout_id', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_distance_m', sa.Float(), nullable=False),
        sa.Column('total_duration_s', sa.Float(), nullable=False),
        sa.Column('points_count', sa.Integer(), nullable=False),
        sa.Column('points', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(['workout_id'], ['workouts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('workout_id')
    )

    op.create_table(
        'workout_splits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('workout_id', sa.Integer(), nullable=False),
        sa.Column('idx', sa.Integer(), nullable=False),
        sa.Column('distance_m', sa.Float(), nullable=False),
        sa.Column('duration_s', sa.Float(), nullable=False),
        sa.Column('pace_s', sa.Float(), nullable=False),
        sa.Column('unit', sa.String(length=10), nullable=False),
        sa.ForeignKeyConstraint(['workout_id'], ['workouts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_workout_splits_id', 'workout_splits', ['id'])
    op.create_index('ix_workout_splits_workout_id', 'workout_splits', ['workout_id'])

    op.create_table(
        'best_efforts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('distance', sa.String(length=50), nullable=False),
        sa.Column('distance_m', sa.Float(), nullable=False),
        sa.Column('time_s', sa.Float(), nullable=False),
        sa.Column('workout_id', sa.Integer(), nullable=False),
        sa.Column('workout_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('calculated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['workout_id'], ['workouts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_best_efforts_id', 'best_efforts', ['id'])
    op.create_index('ix_best_efforts_distance', 'best_efforts', ['distance'], unique=True)
    op.create_index('ix_best_efforts_workout_id', 'best_efforts', ['workout_id'])

    op.create_table(
        'user_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unit_preference', sa.String(length=20), server_default='metric', nullable=False),
        sa.Column('hr_zones', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('user_settings')
    op.drop_index('ix_best_efforts_workout_id', table_name='best_efforts')
    op.drop_index('ix_best_efforts_distance', table_name='best_efforts')
    op.drop_index('ix_best_efforts_id', table_name='best_efforts')
    op.drop_table('best_efforts')
    op.drop_index('ix_workout_splits_workout_id', table_name='workout_splits')
    op.drop_index('ix_workout_splits_id', table_name='workout_splits')
    op.drop_table('workout_splits')
    op.drop_table('workout_tracks')
    op.drop_index('ix_workouts_distance_m', table_name='workouts')
    op.drop_index('ix_workouts_started_at', table_name='workouts')
    op.drop_index('ix_workouts_id', table_name='workouts')
    op.drop_table('workouts')
