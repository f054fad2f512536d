"""create daily_rank table

Revision ID: 5c2a9d7e1f30
Revises:
Create Date: 2025-09-14 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9d7e1f30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'daily_rank' in set(insp.get_table_names()):
        return

    op.create_table(
        'daily_rank',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.String(length=100), nullable=False),
        sa.Column('record_date', sa.String(length=10), nullable=False),
        sa.Column('player_name', sa.String(length=50), nullable=False),
        sa.Column('role_id', sa.Integer(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('player_id', 'record_date', name='uq_daily_rank_player_date'),
    )
    op.create_index(
        'ix_daily_rank_date_score',
        'daily_rank',
        ['record_date', sa.text('score DESC'), 'created_at'],
    )


def downgrade():
    op.drop_index('ix_daily_rank_date_score', table_name='daily_rank')
    op.drop_table('daily_rank')
