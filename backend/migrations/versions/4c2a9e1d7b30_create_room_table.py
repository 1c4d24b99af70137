"""create room table

Revision ID: 4c2a9e1d7b30
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e1d7b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'room' in insp.get_table_names():
        return
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=5), nullable=False),
        sa.Column('host', sa.String(length=64), nullable=False),
        sa.Column('host_id', sa.String(length=36), nullable=False),
        sa.Column('opponent', sa.String(length=64), nullable=True),
        sa.Column('opponent_id', sa.String(length=36), nullable=True),
        sa.Column('players', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('max_players', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
        sa.Column('game_settings', sa.JSON(), nullable=True),
        sa.Column('created', sa.DateTime(), nullable=False),
        sa.Column('last_activity', sa.DateTime(), nullable=False),
        sa.Column('is_live', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    with op.batch_alter_table('room') as batch_op:
        batch_op.create_index('ix_room_code', ['code'], unique=True)
        batch_op.create_index('ix_room_status', ['status'])
        batch_op.create_index('ix_room_created', ['created'])


def downgrade():
    op.drop_table('room')
