"""create training load tables

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = 'a1c2e3f4b5d6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('canonicalactivity',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('activity_type', sa.Enum('RUN', 'RIDE', 'SWIM', 'STRENGTH', 'OTHER', name='activitytype'), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('start_ts', sa.DateTime(), nullable=True),
        sa.Column('duration_s', sa.Integer(), nullable=False),
        sa.Column('distance_m', sa.Float(), nullable=False),
        sa.Column('avg_hr', sa.Float(), nullable=True),
        sa.Column('max_hr', sa.Float(), nullable=True),
        sa.Column('has_hr', sa.Boolean(), nullable=False),
        sa.Column('has_gps', sa.Boolean(), nullable=False),
        sa.Column('has_power', sa.Boolean(), nullable=False),
        sa.Column('has_device', sa.Boolean(), nullable=False),
        sa.Column('device_name', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('calories', sa.Float(), nullable=True),
        sa.Column('canonical_source', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('canonical_external_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('dedup_hash', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('zone_minutes', sa.JSON(), nullable=True),
        sa.Column('richness', sa.Float(), nullable=False),
        sa.Column('source_set', sa.JSON(), nullable=True),
        sa.Column('merged_from', sa.JSON(), nullable=True),
        sa.Column('is_excluded', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'dedup_hash', name='uq_canonical_activity_user_hash'),
    )
    op.create_index(op.f('ix_canonicalactivity_user_id'), 'canonicalactivity', ['user_id'])
    op.create_index(op.f('ix_canonicalactivity_start_ts'), 'canonicalactivity', ['start_ts'])
    op.create_index(op.f('ix_canonicalactivity_dedup_hash'), 'canonicalactivity', ['dedup_hash'])

    op.create_table('dailyaggregate',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('trimp', sa.Float(), nullable=False),
        sa.Column('tss', sa.Float(), nullable=False),
        sa.Column('load_score', sa.Float(), nullable=False),
        sa.Column('z1_min', sa.Float(), nullable=False),
        sa.Column('z2_min', sa.Float(), nullable=False),
        sa.Column('z3_min', sa.Float(), nullable=False),
        sa.Column('z4_min', sa.Float(), nullable=False),
        sa.Column('z5_min', sa.Float(), nullable=False),
        sa.Column('distance_m', sa.Float(), nullable=False),
        sa.Column('duration_s', sa.Integer(), nullable=False),
        sa.Column('run_count', sa.Integer(), nullable=False),
        sa.Column('ride_count', sa.Integer(), nullable=False),
        sa.Column('swim_count', sa.Integer(), nullable=False),
        sa.Column('strength_count', sa.Integer(), nullable=False),
        sa.Column('other_count', sa.Integer(), nullable=False),
        sa.Column('activity_count', sa.Integer(), nullable=False),
        sa.Column('is_stale', sa.Boolean(), nullable=False),
        sa.Column('last_recalc_ts', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'date', name='uq_daily_aggregate_user_date'),
    )
    op.create_index(op.f('ix_dailyaggregate_user_id'), 'dailyaggregate', ['user_id'])
    op.create_index(op.f('ix_dailyaggregate_date'), 'dailyaggregate', ['date'])

    op.create_table('rollingmetrics',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('as_of_date', sa.Date(), nullable=False),
        sa.Column('atl7', sa.Float(), nullable=False),
        sa.Column('ctl28', sa.Float(), nullable=False),
        sa.Column('monotony', sa.Float(), nullable=False),
        sa.Column('strain', sa.Float(), nullable=False),
        sa.Column('weekly_load', sa.Float(), nullable=False),
        sa.Column('affected_dates', sa.JSON(), nullable=True),
        sa.Column('computed_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'as_of_date', name='uq_rolling_metrics_user_date'),
    )
    op.create_index(op.f('ix_rollingmetrics_user_id'), 'rollingmetrics', ['user_id'])
    op.create_index(op.f('ix_rollingmetrics_as_of_date'), 'rollingmetrics', ['as_of_date'])

    op.create_table('ingestlog',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('provider', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('external_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('raw_sha256', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('status', sa.Enum('IMPORTED', 'MERGED', 'SKIPPED_DUP', 'ERROR', name='ingeststatus'), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_ingestlog_user_id'), 'ingestlog', ['user_id'])
    op.create_index(op.f('ix_ingestlog_provider'), 'ingestlog', ['provider'])
    op.create_index(op.f('ix_ingestlog_raw_sha256'), 'ingestlog', ['raw_sha256'])


def downgrade() -> None:
    op.drop_index(op.f('ix_ingestlog_raw_sha256'), table_name='ingestlog')
    op.drop_index(op.f('ix_ingestlog_provider'), table_name='ingestlog')
    op.drop_index(op.f('ix_ingestlog_user_id'), table_name='ingestlog')
    op.drop_table('ingestlog')
    op.drop_index(op.f('ix_rollingmetrics_as_of_date'), table_name='rollingmetrics')
    op.drop_index(op.f('ix_rollingmetrics_user_id'), table_name='rollingmetrics')
    op.drop_table('rollingmetrics')
    op.drop_index(op.f('ix_dailyaggregate_date'), table_name='dailyaggregate')
    op.drop_index(op.f('ix_dailyaggregate_user_id'), table_name='dailyaggregate')
    op.drop_table('dailyaggregate')
    op.drop_index(op.f('ix_canonicalactivity_dedup_hash'), table_name='canonicalactivity')
    op.drop_index(op.f('ix_canonicalactivity_start_ts'), table_name='canonicalactivity')
    op.drop_index(op.f('ix_canonicalactivity_user_id'), table_name='canonicalactivity')
    op.drop_table('canonicalactivity')
    sa.Enum(name='ingeststatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='activitytype').drop(op.get_bind(), checkfirst=True)
