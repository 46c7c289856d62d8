"""
Create share pages, analytics aggregates and annotations

Revision ID: 20251019
Revises:
Create Date: 2025-10-19 09:00:00.000000

"""
revision = '20251019'  # create_share_page_analytics
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade():
    op.create_table(
        'share_pages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('slug', sa.String(32), nullable=False),
        sa.Column('password', sa.String(255), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('files', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_share_pages_slug', 'share_pages', ['slug'], unique=True)
    op.create_index('ix_share_pages_owner_id', 'share_pages', ['owner_id'])

    op.create_table(
        'page_stats',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('share_page_id', sa.Integer(), nullable=False),
        sa.Column('total_views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_unique_visitors', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_comments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('visit_duration_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('visit_duration_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_updated', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['share_page_id'], ['share_pages.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('share_page_id'),
        sa.CheckConstraint('total_comments >= 0', name='ck_page_stats_comments_non_negative'),
    )

    op.create_table(
        'page_stat_counters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('share_page_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(16), nullable=False),
        sa.Column('bucket', sa.String(255), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_seen_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['share_page_id'], ['share_pages.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('share_page_id', 'kind', 'bucket', name='uq_page_stat_counters_bucket'),
    )

    op.create_table(
        'page_daily_visitors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('share_page_id', sa.Integer(), nullable=False),
        sa.Column('day', sa.String(10), nullable=False),
        sa.Column('visitor_hash', sa.String(64), nullable=False),
        sa.Column('first_seen_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['share_page_id'], ['share_pages.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('share_page_id', 'day', 'visitor_hash', name='uq_page_daily_visitors_visitor'),
    )

    op.create_table(
        'page_visitors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('share_page_id', sa.Integer(), nullable=False),
        sa.Column('visitor_hash', sa.String(64), nullable=False),
        sa.Column('first_seen_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['share_page_id'], ['share_pages.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('share_page_id', 'visitor_hash', name='uq_page_visitors_visitor'),
    )

    op.create_table(
        'visit_durations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('share_page_id', sa.Integer(), nullable=False),
        sa.Column('day', sa.String(10), nullable=False),
        sa.Column('duration_seconds', sa.Float(), nullable=False),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.Column('location_key', sa.String(255), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('region', sa.String(100), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['share_page_id'], ['share_pages.id'], ondelete='CASCADE'),
    )
    op.create_index('idx_visit_durations_page_day', 'visit_durations', ['share_page_id', 'day'])

    op.create_table(
        'annotations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('share_page_id', sa.Integer(), nullable=False),
        sa.Column('file_index', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('guest_name', sa.String(100), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('position_x', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('position_y', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['share_page_id'], ['share_pages.id'], ondelete='CASCADE'),
        sa.CheckConstraint('(user_id IS NULL) <> (guest_name IS NULL)', name='ck_annotations_single_author'),
    )
    op.create_index('idx_annotations_page_file', 'annotations', ['share_page_id', 'file_index'])


def downgrade():
    op.drop_index('idx_annotations_page_file', 'annotations')
    op.drop_table('annotations')
    op.drop_index('idx_visit_durations_page_day', 'visit_durations')
    op.drop_table('visit_durations')
    op.drop_table('page_visitors')
    op.drop_table('page_daily_visitors')
    op.drop_table('page_stat_counters')
    op.drop_table('page_stats')
    op.drop_index('ix_share_pages_owner_id', 'share_pages')
    op.drop_index('ix_share_pages_slug', 'share_pages')
    op.drop_table('share_pages')
