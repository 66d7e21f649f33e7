"""initial_schema

Revision ID: 000000000001
Revises:
Create Date: 2026-03-01 00:00:00.000000

Portal schema: users, questionnaire, returns, documents, checklist,
signatures and messages.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '000000000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REFUND_STATUSES = ('not_filed', 'submitted', 'accepted', 'processing', 'approved', 'refund_sent', 'completed')


def upgrade() -> None:
    # Create enums
    op.execute("CREATE TYPE returntype AS ENUM ('personal', 'business')")
    op.execute("CREATE TYPE returnprepstatus AS ENUM ('not_started', 'documents_gathering', 'information_review', 'return_preparation', 'quality_review', 'client_review', 'signature_required', 'filing', 'filed')")
    op.execute(f"CREATE TYPE refundstatus AS ENUM {REFUND_STATUSES}")
    op.execute("CREATE TYPE documentstatus AS ENUM ('pending', 'processing', 'verified', 'rejected')")
    op.execute("CREATE TYPE messagetype AS ENUM ('text', 'file', 'system')")

    # Create users table
    op.create_table('users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False),
        sa.Column('has_completed_questionnaire', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    # Create questionnaire_responses table
    op.create_table('questionnaire_responses',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('question_id', sa.String(length=100), nullable=False),
        sa.Column('answer', sa.JSON(), nullable=True),
        sa.Column('tax_year', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'question_id', name='uq_questionnaire_user_question')
    )
    op.create_index('ix_questionnaire_responses_user_id', 'questionnaire_responses', ['user_id'])

    # Create businesses table
    op.create_table('businesses',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('tax_year', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_businesses_user_id', 'businesses', ['user_id'])

    # Create tax_returns table
    op.create_table('tax_returns',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('return_type', postgresql.ENUM('personal', 'business', name='returntype', create_type=False), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', postgresql.ENUM('not_started', 'documents_gathering', 'information_review', 'return_preparation', 'quality_review', 'client_review', 'signature_required', 'filing', 'filed', name='returnprepstatus', create_type=False), nullable=True),
        sa.Column('federal_status', postgresql.ENUM(*REFUND_STATUSES, name='refundstatus', create_type=False), nullable=False),
        sa.Column('federal_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('state_status', postgresql.ENUM(*REFUND_STATUSES, name='refundstatus', create_type=False), nullable=False),
        sa.Column('state_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('state_name', sa.String(length=100), nullable=True),
        sa.Column('tax_year', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tax_returns_user_id', 'tax_returns', ['user_id'])
    op.create_index('ix_tax_returns_status', 'tax_returns', ['status'])
    op.create_index(
        'uq_tax_returns_one_personal', 'tax_returns', ['user_id'],
        unique=True, postgresql_where=sa.text("return_type = 'personal'")
    )

    # Create documents table
    op.create_table('documents',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('original_name', sa.String(length=255), nullable=False),
        sa.Column('file_type', sa.String(length=100), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=50), nullable=False),
        sa.Column('status', postgresql.ENUM('pending', 'processing', 'verified', 'rejected', name='documentstatus', create_type=False), nullable=False),
        sa.Column('tax_year', sa.Integer(), nullable=False),
        sa.Column('ai_classification', sa.JSON(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_documents_user_id', 'documents', ['user_id'])
    op.create_index('ix_documents_document_type', 'documents', ['document_type'])
    op.create_index('ix_documents_status', 'documents', ['status'])

    # Create required_documents table
    op.create_table('required_documents',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('return_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('document_type', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('is_uploaded', sa.Boolean(), nullable=False),
        sa.Column('marked_not_applicable', sa.Boolean(), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('tax_year', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['return_id'], ['tax_returns.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'document_type', 'description', name='uq_required_document_key')
    )
    op.create_index('ix_required_documents_user_id', 'required_documents', ['user_id'])
    op.create_index('ix_required_documents_document_id', 'required_documents', ['document_id'])

    # Create signatures table
    op.create_table('signatures',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_type', sa.String(length=50), nullable=False),
        sa.Column('signature_data', sa.Text(), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('tax_year', sa.Integer(), nullable=False),
        sa.Column('signed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_signatures_user_id', 'signatures', ['user_id'])

    # Create messages table
    op.create_table('messages',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('message_type', postgresql.ENUM('text', 'file', 'system', name='messagetype', create_type=False), nullable=False),
        sa.Column('is_from_client', sa.Boolean(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_messages_user_id', 'messages', ['user_id'])


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table('messages')
    op.drop_table('signatures')
    op.drop_table('required_documents')
    op.drop_table('documents')
    op.drop_table('tax_returns')
    op.drop_table('businesses')
    op.drop_table('questionnaire_responses')
    op.drop_table('users')

    # Drop enums
    op.execute("DROP TYPE IF EXISTS messagetype")
    op.execute("DROP TYPE IF EXISTS documentstatus")
    op.execute("DROP TYPE IF EXISTS refundstatus")
    op.execute("DROP TYPE IF EXISTS returnprepstatus")
    op.execute("DROP TYPE IF EXISTS returntype")
