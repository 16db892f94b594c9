"""create leaderboard table

Revision ID: 4c2a9d1e7b30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9d1e7b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'leaderboard' in insp.get_table_names():
        return
    op.create_table(
        'leaderboard',
        sa.Column('identity_key', sa.String(length=64), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('best_accuracy_ms', sa.Integer(), nullable=True),
        sa.Column('games_played', sa.Integer(), nullable=False),
        sa.Column('last_played_at', sa.DateTime(timezone=True), nullable=False),
    )
    with op.batch_alter_table('leaderboard') as batch_op:
        batch_op.create_index('ix_leaderboard_best_accuracy_ms', ['best_accuracy_ms'], unique=False)


def downgrade():
    with op.batch_alter_table('leaderboard') as batch_op:
        batch_op.drop_index('ix_leaderboard_best_accuracy_ms')
    op.drop_table('leaderboard')
