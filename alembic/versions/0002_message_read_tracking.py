"""message read tracking

Revision ID: 0002_message_read_tracking
Revises: 0001_initial_schema
Create Date: 2026-10-20 10:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_message_read_tracking'
down_revision: Union[str, None] = '0001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('messages', sa.Column('read_at', sa.DateTime(), nullable=True))
    op.create_index(op.f('ix_messages_phone_e164'), 'messages', ['phone_e164'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_messages_phone_e164'), table_name='messages')
    op.drop_column('messages', 'read_at')
