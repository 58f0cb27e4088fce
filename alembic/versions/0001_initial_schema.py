"""Initial schema: users, conversations, messages, emergency reports

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('hashed_password', sa.String(length=1024), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_superuser', sa.Boolean(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('full_name', sa.Text(), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('blood_type', sa.Text(), nullable=True),
        sa.Column('seasonal_allergies', sa.Text(), nullable=True),
        sa.Column('medications', sa.Text(), nullable=True),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # last_message_id's foreign key is added once messages exists.
    op.create_table(
        'conversations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('participant_a_id', sa.Uuid(), nullable=False),
        sa.Column('participant_b_id', sa.Uuid(), nullable=False),
        sa.Column('last_message_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('participant_a_id < participant_b_id', name='ck_conversation_pair_order'),
        sa.ForeignKeyConstraint(['participant_a_id'], ['users.id']),
        sa.ForeignKeyConstraint(['participant_b_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('participant_a_id', 'participant_b_id', name='uq_conversation_pair'),
    )
    op.create_index('ix_conversations_participant_a_id', 'conversations', ['participant_a_id'])
    op.create_index('ix_conversations_participant_b_id', 'conversations', ['participant_b_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('conversation_id', sa.Uuid(), nullable=False),
        sa.Column('sender_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.Enum('SENT', 'DELIVERED', 'READ', name='messagestatus'), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id']),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'])

    with op.batch_alter_table('conversations', schema=None) as batch_op:
        batch_op.create_foreign_key('fk_conversations_last_message', 'messages', ['last_message_id'], ['id'])

    op.create_table(
        'emergency_reports',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'IN_PROGRESS', 'RESOLVED', 'CANCELLED', name='emergencystatus'), nullable=False),
        sa.Column('emergency_type', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('blood_type', sa.Text(), nullable=True),
        sa.Column('seasonal_allergies', sa.Text(), nullable=True),
        sa.Column('medications', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_emergency_reports_user_id', 'emergency_reports', ['user_id'])
    op.create_index('ix_emergency_reports_status', 'emergency_reports', ['status'])


def downgrade() -> None:
    op.drop_index('ix_emergency_reports_status', table_name='emergency_reports')
    op.drop_index('ix_emergency_reports_user_id', table_name='emergency_reports')
    op.drop_table('emergency_reports')
    with op.batch_alter_table('conversations', schema=None) as batch_op:
        batch_op.drop_constraint('fk_conversations_last_message', type_='foreignkey')
    op.drop_index('ix_messages_conversation_id', table_name='messages')
    op.drop_table('messages')
    op.drop_index('ix_conversations_participant_b_id', table_name='conversations')
    op.drop_index('ix_conversations_participant_a_id', table_name='conversations')
    op.drop_table('conversations')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
