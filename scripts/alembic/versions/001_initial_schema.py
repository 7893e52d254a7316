"""Initial schema with users, business applications, locations, billing, support

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create initial database schema."""
    # Create enum types
    op.execute("CREATE TYPE userrole AS ENUM ('USER', 'SUPPORT', 'STAFF', 'ADMIN')")
    op.execute("CREATE TYPE applicationstatus AS ENUM ('PENDING', 'APPROVED', 'REJECTED', 'MORE_INFO_REQUESTED')")
    op.execute("CREATE TYPE contractstatus AS ENUM ('PENDING', 'PAID', 'EXPIRED')")
    op.execute("CREATE TYPE rentstatus AS ENUM ('PENDING', 'PAID', 'OVERDUE')")
    op.execute("CREATE TYPE paymentmethod AS ENUM ('CARD', 'MOBILE')")
    op.execute("CREATE TYPE ticketstatus AS ENUM ('PENDING', 'IN_PROGRESS', 'RESOLVED', 'ARCHIVED')")
    op.execute("CREATE TYPE reportstatus AS ENUM ('PENDING', 'UNDER_REVIEW', 'RESOLVED', 'ARCHIVED')")
    op.execute("CREATE TYPE notificationtype AS ENUM ('INFO', 'SUCCESS', 'WARNING', 'ERROR')")

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', postgresql.ENUM('USER', 'SUPPORT', 'STAFF', 'ADMIN', name='userrole', create_type=False), nullable=False),
        sa.Column('push_chat_id', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email')
    )
    op.create_index('ix_users_role', 'users', ['role'])

    # Create business_applications table
    op.create_table(
        'business_applications',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, primary_key=True),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('location', sa.String(length=100), nullable=True),
        sa.Column('justification_text', sa.Text(), nullable=False),
        sa.Column('status', postgresql.ENUM('PENDING', 'APPROVED', 'REJECTED', 'MORE_INFO_REQUESTED', name='applicationstatus', create_type=False), nullable=False),
        sa.Column('admin_feedback', sa.Text(), nullable=False, server_default=''),
        sa.Column('contract_fee', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('rent_fee', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('contract_fee > 0', name='check_positive_contract_fee'),
        sa.CheckConstraint('rent_fee >= 0', name='check_nonnegative_rent_fee'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id', name='uq_business_applications_owner'),
        sa.UniqueConstraint('location', name='uq_business_applications_location')
    )
    op.create_index('ix_business_applications_status', 'business_applications', ['status'])

    # Create locations table
    op.create_table(
        'locations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('available', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_index('ix_locations_available', 'locations', ['available'])

    # Create contracts table
    op.create_table(
        'contracts',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('status', postgresql.ENUM('PENDING', 'PAID', 'EXPIRED', name='contractstatus', create_type=False), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_date', sa.DateTime(), nullable=True),
        sa.Column('expiry', sa.DateTime(), nullable=True),
        sa.Column('order_reference', sa.String(length=100), nullable=True),
        sa.Column('transaction_id', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount > 0', name='check_positive_contract_amount'),
        sa.ForeignKeyConstraint(['business_id'], ['business_applications.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_contracts_business_created', 'contracts', ['business_id', sa.text('created_at DESC')])
    op.create_index('ix_contracts_status_expiry', 'contracts', ['status', 'expiry'])
    op.create_index('ix_contracts_order_reference', 'contracts', ['order_reference'])
    op.create_index('ix_contracts_transaction_id', 'contracts', ['transaction_id'])

    # Create rents table
    op.create_table(
        'rents',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('month', sa.Date(), nullable=False),
        sa.Column('status', postgresql.ENUM('PENDING', 'PAID', 'OVERDUE', name='rentstatus', create_type=False), nullable=False),
        sa.Column('payment_date', sa.DateTime(), nullable=True),
        sa.Column('order_reference', sa.String(length=100), nullable=True),
        sa.Column('transaction_id', sa.String(length=100), nullable=True),
        sa.Column('payment_method', postgresql.ENUM('CARD', 'MOBILE', name='paymentmethod', create_type=False), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount > 0', name='check_positive_rent_amount'),
        sa.ForeignKeyConstraint(['business_id'], ['business_applications.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'month', name='uq_rents_business_month')
    )
    op.create_index('ix_rents_status', 'rents', ['status'])
    op.create_index('ix_rents_order_reference', 'rents', ['order_reference'])
    op.create_index('ix_rents_transaction_id', 'rents', ['transaction_id'])

    # Create tickets table
    op.create_table(
        'tickets',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('subject', sa.String(length=200), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('attachments', postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column('status', postgresql.ENUM('PENDING', 'IN_PROGRESS', 'RESOLVED', 'ARCHIVED', name='ticketstatus', create_type=False), nullable=False),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('resolution_comment', sa.Text(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['resolved_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tickets_status_created', 'tickets', ['status', sa.text('created_at DESC')])
    op.create_index('ix_tickets_user_id', 'tickets', ['user_id'])

    # Create user_reports table
    op.create_table(
        'user_reports',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, primary_key=True),
        sa.Column('reported_user_id', sa.Integer(), nullable=False),
        sa.Column('reported_by', sa.Integer(), nullable=False),
        sa.Column('subject', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('attachments', postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column('status', postgresql.ENUM('PENDING', 'UNDER_REVIEW', 'RESOLVED', 'ARCHIVED', name='reportstatus', create_type=False), nullable=False),
        sa.Column('resolution_comment', sa.Text(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['reported_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reported_by'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resolved_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_user_reports_status_created', 'user_reports', ['status', sa.text('created_at DESC')])
    op.create_index('ix_user_reports_reported_by', 'user_reports', ['reported_by'])

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, primary_key=True),
        sa.Column('recipient_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', postgresql.ENUM('INFO', 'SUCCESS', 'WARNING', 'ERROR', name='notificationtype', create_type=False), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('link', sa.String(length=500), nullable=True),
        sa.Column('metadata', postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['recipient_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_recipient_created', 'notifications', ['recipient_id', sa.text('created_at DESC')])


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table('notifications')
    op.drop_table('user_reports')
    op.drop_table('tickets')
    op.drop_table('rents')
    op.drop_table('contracts')
    op.drop_table('locations')
    op.drop_table('business_applications')
    op.drop_table('users')

    op.execute('DROP TYPE IF EXISTS notificationtype')
    op.execute('DROP TYPE IF EXISTS reportstatus')
    op.execute('DROP TYPE IF EXISTS ticketstatus')
    op.execute('DROP TYPE IF EXISTS paymentmethod')
    op.execute('DROP TYPE IF EXISTS rentstatus')
    op.execute('DROP TYPE IF EXISTS contractstatus')
    op.execute('DROP TYPE IF EXISTS applicationstatus')
    op.execute('DROP TYPE IF EXISTS userrole')
