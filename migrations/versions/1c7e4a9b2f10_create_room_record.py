"""create room_record key/value table

Revision ID: 1c7e4a9b2f10
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1c7e4a9b2f10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'room_record' in set(insp.get_table_names()):
        return
    op.create_table(
        'room_record',
        sa.Column('key', sa.String(length=128), primary_key=True),
        sa.Column('value', sa.LargeBinary(), nullable=False),
        sa.Column('expires_at', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.Float(), nullable=False),
    )
    op.create_index('ix_room_record_expires_at', 'room_record', ['expires_at'])


def downgrade():
    op.drop_index('ix_room_record_expires_at', table_name='room_record')
    op.drop_table('room_record')
