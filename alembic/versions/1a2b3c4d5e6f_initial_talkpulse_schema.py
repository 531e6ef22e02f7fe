"""initial_talkpulse_schema

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-18

Adds:
- users and sessions tables for owner accounts
- registered_items table (speakers and decks share it, split by `kind`)
- feedback_responses table for anonymous ratings

Note: After running this migration, create an owner with:
    python -m app.cli create-user --email your@email.com
"""
from alembic import op
import sqlalchemy as sa

revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('user_agent', sa.String(512), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sessions_token'), 'sessions', ['token'], unique=True)

    op.create_table(
        'registered_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False, server_default='speaker'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('label', sa.String(255), nullable=False),
        sa.Column('category', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(300), nullable=False),
        sa.Column('rating_mode', sa.String(20), nullable=False, server_default='single'),
        sa.Column('code_image_url', sa.String(1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )
    op.create_index('idx_registered_items_user_id', 'registered_items', ['user_id'])
    op.create_index('idx_registered_items_created_at', 'registered_items', ['created_at'])

    op.create_table(
        'feedback_responses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('originality_rating', sa.Integer(), nullable=True),
        sa.Column('usefulness_rating', sa.Integer(), nullable=True),
        sa.Column('engagement_rating', sa.Integer(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['item_id'], ['registered_items.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_feedback_responses_id'), 'feedback_responses', ['id'])
    op.create_index('idx_feedback_responses_item', 'feedback_responses', ['item_id'])
    op.create_index('idx_feedback_responses_created_at', 'feedback_responses', ['created_at'])


def downgrade() -> None:
    op.drop_index('idx_feedback_responses_created_at', table_name='feedback_responses')
    op.drop_index('idx_feedback_responses_item', table_name='feedback_responses')
    op.drop_index(op.f('ix_feedback_responses_id'), table_name='feedback_responses')
    op.drop_table('feedback_responses')
    op.drop_index('idx_registered_items_created_at', table_name='registered_items')
    op.drop_index('idx_registered_items_user_id', table_name='registered_items')
    op.drop_table('registered_items')
    op.drop_index(op.f('ix_sessions_token'), table_name='sessions')
    op.drop_table('sessions')
    op.drop_table('users')
