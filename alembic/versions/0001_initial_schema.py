"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'contacts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('phone_e164', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=50), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('opt_in_status', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('opt_in_timestamp', sa.DateTime(), nullable=True),
        sa.Column('opt_in_source', sa.String(length=50), nullable=True),
        sa.Column('last_purchase_at', sa.String(length=64), nullable=True),
        sa.Column('total_spend', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('interest_type', sa.String(length=50), nullable=True),
        sa.Column('dob', sa.String(length=10), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_contacts_phone_e164'), 'contacts', ['phone_e164'], unique=True)
    op.create_index(op.f('ix_contacts_source'), 'contacts', ['source'], unique=False)
    op.create_index(op.f('ix_contacts_opt_in_status'), 'contacts', ['opt_in_status'], unique=False)

    op.create_table(
        'scores',
        sa.Column('contact_id', sa.String(length=36), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('segment', sa.String(length=10), nullable=False),
        sa.Column('reasons', sa.JSON(), nullable=False),
        sa.Column('computed_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('contact_id'),
    )
    op.create_index(op.f('ix_scores_score'), 'scores', ['score'], unique=False)
    op.create_index(op.f('ix_scores_segment'), 'scores', ['segment'], unique=False)
    op.create_index(op.f('ix_scores_computed_at'), 'scores', ['computed_at'], unique=False)

    op.create_table(
        'events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('contact_id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_events_contact_id'), 'events', ['contact_id'], unique=False)
    op.create_index(op.f('ix_events_type'), 'events', ['type'], unique=False)
    op.create_index(op.f('ix_events_created_at'), 'events', ['created_at'], unique=False)

    op.create_table(
        'messages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('contact_id', sa.String(length=36), nullable=True),
        sa.Column('phone_e164', sa.String(length=20), nullable=True),
        sa.Column('direction', sa.String(length=3), nullable=False),
        sa.Column('template_name', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('provider_message_id', sa.String(length=255), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_message_id'),
    )
    op.create_index(op.f('ix_messages_contact_id'), 'messages', ['contact_id'], unique=False)
    op.create_index(op.f('ix_messages_direction'), 'messages', ['direction'], unique=False)
    op.create_index(op.f('ix_messages_status'), 'messages', ['status'], unique=False)
    op.create_index(op.f('ix_messages_created_at'), 'messages', ['created_at'], unique=False)

    op.create_table(
        'settings',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade() -> None:
    op.drop_table('settings')

    op.drop_index(op.f('ix_messages_created_at'), table_name='messages')
    op.drop_index(op.f('ix_messages_status'), table_name='messages')
    op.drop_index(op.f('ix_messages_direction'), table_name='messages')
    op.drop_index(op.f('ix_messages_contact_id'), table_name='messages')
    op.drop_table('messages')

    op.drop_index(op.f('ix_events_created_at'), table_name='events')
    op.drop_index(op.f('ix_events_type'), table_name='events')
    op.drop_index(op.f('ix_events_contact_id'), table_name='events')
    op.drop_table('events')

    op.drop_index(op.f('ix_scores_computed_at'), table_name='scores')
    op.drop_index(op.f('ix_scores_segment'), table_name='scores')
    op.drop_index(op.f('ix_scores_score'), table_name='scores')
    op.drop_table('scores')

    op.drop_index(op.f('ix_contacts_opt_in_status'), table_name='contacts')
    op.drop_index(op.f('ix_contacts_source'), table_name='contacts')
    op.drop_index(op.f('ix_contacts_phone_e164'), table_name='contacts')
    op.drop_table('contacts')
