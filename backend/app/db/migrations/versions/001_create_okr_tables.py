"""
Create OKR tables: users, metric registry, monthly targets/actuals,
initiatives, KR check-ins

Revision ID: 001
Revises:
Create Date: 2026-01-05
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _monthly_points_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('month', sa.Integer, nullable=False),
        sa.Column('metric_key', sa.String(100), nullable=False),
        sa.Column('dimension_key', sa.String(50), nullable=True),
        sa.Column('dimension_value', sa.String(100), nullable=True),
        sa.Column('value', sa.Numeric(20, 4), nullable=False),
        sa.Column('created', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('year', 'month', 'metric_key', 'dimension_key', 'dimension_value', name=f'uq_{name}_point'),
        sa.CheckConstraint('month >= 1 AND month <= 12', name=f'ck_{name}_month_range'),
    )
    op.create_index(f'ix_{name}_metric_period', name, ['metric_key', 'year', 'month'])


def upgrade() -> None:
    """Create OKR tables."""

    # Users
    op.create_table(
        'users',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(200), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('is_admin', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Metric registry
    op.create_table(
        'metric_definitions',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('metric_key', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('unit', sa.Enum('currency', 'percentage', 'count', name='metricunit'), nullable=False, server_default='currency'),
        sa.Column('direction', sa.Enum('higher_is_better', 'lower_is_better', 'target_band', name='metricdirection'), nullable=False, server_default='higher_is_better'),
        sa.Column('period_type', sa.Enum('flow', 'stock', 'average', name='metricperiodtype'), nullable=False, server_default='flow'),
        sa.Column('is_derived', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('formula', sa.String(500), nullable=True),
        sa.Column('dimension_key', sa.String(50), nullable=True),
        sa.Column('dimension_value', sa.String(100), nullable=True),
        sa.Column('sort_order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Monthly targets and actuals
    _monthly_points_table('metric_targets_monthly')
    _monthly_points_table('metric_actuals_monthly')

    # Initiatives
    op.create_table(
        'okr_initiatives',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('objective_id', sa.String(20), nullable=False, index=True),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('kr_ids', sa.JSON, nullable=False),
        sa.Column('status', sa.Enum('backlog', 'doing', 'done', 'blocked', name='initiativestatus'), nullable=False, server_default='backlog'),
        sa.Column('owner', sa.String(200), nullable=True),
        sa.Column('quarter', sa.String(2), nullable=True),
        sa.Column('business_unit', sa.String(50), nullable=True),
        sa.Column('due_date', sa.Date, nullable=True),
        sa.Column('confidence', sa.Integer, nullable=True),
        sa.Column('next_milestone', sa.String(300), nullable=True),
        sa.Column('created', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    # KR check-ins (append-only)
    op.create_table(
        'kr_checkins',
        sa.Column('id', sa.String(15), primary_key=True),
        sa.Column('kr_id', sa.String(20), nullable=False, index=True),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('period_type', sa.Enum('month', 'quarter', 'year', name='checkinperiodtype'), nullable=False),
        sa.Column('period_value', sa.String(10), nullable=False),
        sa.Column('confidence', sa.Integer, nullable=False),
        sa.Column('commentary', sa.Text, nullable=True),
        sa.Column('blockers', sa.Text, nullable=True),
        sa.Column('next_actions', sa.Text, nullable=True),
        sa.Column('created_by_id', sa.String(15), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
        sa.CheckConstraint('confidence >= 0 AND confidence <= 100', name='ck_kr_checkins_confidence_range'),
    )
    op.create_index('ix_kr_checkins_kr_year_created', 'kr_checkins', ['kr_id', 'year', 'created'])


def downgrade() -> None:
    """Drop OKR tables."""
    op.drop_index('ix_kr_checkins_kr_year_created', table_name='kr_checkins')
    op.drop_table('kr_checkins')
    op.drop_table('okr_initiatives')
    for name in ('metric_actuals_monthly', 'metric_targets_monthly'):
        op.drop_index(f'ix_{name}_metric_period', table_name=name)
        op.drop_table(name)
    op.drop_table('metric_definitions')
    op.drop_table('users')

    # Drop enums
    op.execute('DROP TYPE IF EXISTS checkinperiodtype')
    op.execute('DROP TYPE IF EXISTS initiativestatus')
    op.execute('DROP TYPE IF EXISTS metricperiodtype')
    op.execute('DROP TYPE IF EXISTS metricdirection')
    op.execute('DROP TYPE IF EXISTS metricunit')
