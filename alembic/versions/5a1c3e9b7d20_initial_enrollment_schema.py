"""initial enrollment schema

Revision ID: 5a1c3e9b7d20
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5a1c3e9b7d20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('ADMIN', 'TUTOR', 'STUDENT', 'EXECUTIVE', name='userrole')
section_status = sa.Enum('ACTIVE', 'FULL', 'CLOSED', name='sectionstatus')
waiting_list_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'EXPIRED', name='waitingliststatus')
enrollment_status = sa.Enum(
    'PENDING', 'PAID', 'ACTIVE', 'EXPIRED', 'SLOT_RELEASED', 'CANCELLED', name='enrollmentstatus'
)
payment_status = sa.Enum('PENDING', 'PAID', 'FAILED', 'EXPIRED', 'REFUNDED', name='paymentstatus')
invoice_status = sa.Enum('UNPAID', 'PAID', 'OVERDUE', 'CANCELLED', name='invoicestatus')
meeting_status = sa.Enum('SCHEDULED', 'ONGOING', 'COMPLETED', 'CANCELLED', name='meetingstatus')
attendance_status = sa.Enum('PENDING', 'PRESENT', 'ABSENT', 'EXCUSED', name='attendancestatus')
notification_type = sa.Enum('PAYMENT', 'SUBSCRIPTION', 'CLASS', 'SYSTEM', name='notificationtype')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'students',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_table(
        'tutors',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_table(
        'tutor_availability',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tutor_id', sa.Uuid(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.ForeignKeyConstraint(['tutor_id'], ['tutors.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tutor_availability_tutor_id', 'tutor_availability', ['tutor_id'])

    op.create_table(
        'class_templates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('subject', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_per_month', sa.Integer(), nullable=False),
        sa.Column('meetings_per_period', sa.Integer(), nullable=False),
        sa.Column('max_students_per_section', sa.Integer(), nullable=False),
        sa.Column('grace_period_days', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'class_sections',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('tutor_id', sa.Uuid(), nullable=False),
        sa.Column('section_label', sa.String(), nullable=False),
        sa.Column('current_enrollments', sa.Integer(), nullable=False),
        sa.Column('status', section_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['template_id'], ['class_templates.id']),
        sa.ForeignKeyConstraint(['tutor_id'], ['tutors.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'waiting_list',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('assigned_section_id', sa.Uuid(), nullable=True),
        sa.Column('status', waiting_list_status, nullable=False),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.ForeignKeyConstraint(['template_id'], ['class_templates.id']),
        sa.ForeignKeyConstraint(['assigned_section_id'], ['class_sections.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'template_id', name='uq_waiting_list_student_template'),
    )

    op.create_table(
        'enrollments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('section_id', sa.Uuid(), nullable=True),
        sa.Column('status', enrollment_status, nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('grace_expiry_date', sa.DateTime(), nullable=True),
        sa.Column('meetings_allowed', sa.Integer(), nullable=False),
        sa.Column('meetings_attended', sa.Integer(), nullable=False),
        sa.Column('total_meetings', sa.Integer(), nullable=False),
        sa.Column('meetings_remaining', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.ForeignKeyConstraint(['section_id'], ['class_sections.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_enrollments_student_id', 'enrollments', ['student_id'])
    op.create_index('ix_enrollments_section_id', 'enrollments', ['section_id'])
    op.create_index('ix_enrollments_status', 'enrollments', ['status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(), nullable=True),
        sa.Column('order_id', sa.String(), nullable=True),
        sa.Column('session_token', sa.String(), nullable=True),
        sa.Column('redirect_url', sa.String(), nullable=True),
        sa.Column('expired_at', sa.DateTime(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('status', payment_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['enrollments.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payments_enrollment_id', 'payments', ['enrollment_id'])
    op.create_index('ix_payments_order_id', 'payments', ['order_id'], unique=True)
    op.create_index('ix_payments_status', 'payments', ['status'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('invoice_number', sa.String(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('payment_id', sa.Uuid(), nullable=True),
        sa.Column('student_name', sa.String(), nullable=False),
        sa.Column('student_email', sa.String(), nullable=False),
        sa.Column('student_phone', sa.String(), nullable=True),
        sa.Column('program_name', sa.String(), nullable=False),
        sa.Column('section_label', sa.String(), nullable=True),
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('period_end', sa.DateTime(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('tax', sa.Integer(), nullable=False),
        sa.Column('discount', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=False),
        sa.Column('status', invoice_status, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['enrollments.id']),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_id'),
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_enrollment_id', 'invoices', ['enrollment_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])

    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('outcome', sa.String(), nullable=False),
        sa.Column('received_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'status', name='uq_webhook_events_order_status'),
    )
    op.create_index('ix_webhook_events_order_id', 'webhook_events', ['order_id'])

    op.create_table(
        'scheduled_meetings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('section_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('meeting_url', sa.String(), nullable=True),
        sa.Column('status', meeting_status, nullable=False),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['section_id'], ['class_sections.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_scheduled_meetings_section_id', 'scheduled_meetings', ['section_id'])
    op.create_index('ix_scheduled_meetings_scheduled_at', 'scheduled_meetings', ['scheduled_at'])

    op.create_table(
        'meeting_attendance',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('meeting_id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('status', attendance_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['meeting_id'], ['scheduled_meetings.id']),
        sa.ForeignKeyConstraint(['enrollment_id'], ['enrollments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('meeting_id', 'enrollment_id', name='uq_meeting_attendance'),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('link', sa.String(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('notifications')
    op.drop_table('meeting_attendance')
    op.drop_table('scheduled_meetings')
    op.drop_table('webhook_events')
    op.drop_table('invoices')
    op.drop_table('payments')
    op.drop_table('enrollments')
    op.drop_table('waiting_list')
    op.drop_table('class_sections')
    op.drop_table('class_templates')
    op.drop_table('tutor_availability')
    op.drop_table('tutors')
    op.drop_table('students')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (
        notification_type, attendance_status, meeting_status, invoice_status,
        payment_status, enrollment_status, waiting_list_status, section_status, user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
