"""initial portal schema

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-10-17 09:00:12.481230

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('phone_number', sa.String(length=20), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('password_changed', sa.Boolean(), nullable=False),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "role IN ('Student','Teacher','Principal','DeputyPrincipal','Secretary','Bursar','Librarian','Staff')",
            name='ck_users_role'
        ),
    )
    op.create_index('ix_users_phone_number', 'users', ['phone_number'], unique=True)

    op.create_table(
        'id_sequences',
        sa.Column('prefix', sa.String(length=32), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('prefix'),
    )

    op.create_table(
        'students',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('student_no', sa.String(length=32), nullable=False),
        sa.Column('admission_no', sa.String(length=32), nullable=False),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('form', sa.String(length=16), nullable=False),
        sa.Column('class_name', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('gender', sa.String(length=16), nullable=True),
        sa.Column('address', sa.String(length=256), nullable=True),
        sa.Column('parent_phone', sa.String(length=20), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('term', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('student_no'),
        sa.UniqueConstraint('admission_no'),
    )
    op.create_index('ix_students_form_class', 'students', ['form', 'class_name'])

    op.create_table(
        'teachers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('teacher_no', sa.String(length=32), nullable=False),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('employee_type', sa.String(length=8), nullable=False),
        sa.Column('tsc_number', sa.String(length=32), nullable=True),
        sa.Column('subjects_csv', sa.String(length=512), nullable=True),
        sa.Column('assigned_forms_csv', sa.String(length=128), nullable=True),
        sa.Column('qualification', sa.String(length=128), nullable=True),
        sa.Column('department', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone_number', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('teacher_no'),
        sa.CheckConstraint("employee_type IN ('BOM','NTSC')", name='ck_teachers_employee_type'),
    )

    op.create_table(
        'staff',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('staff_no', sa.String(length=32), nullable=False),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('position', sa.String(length=32), nullable=False),
        sa.Column('department', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone_number', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('staff_no'),
    )

    op.create_table(
        'fees_accounts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('student_id', sa.String(length=36), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('term', sa.Integer(), nullable=False),
        sa.Column('total_fees', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_reason', sa.String(length=1000), nullable=True),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('last_payment_date', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.UniqueConstraint('student_id', 'year', name='uix_fees_account_student_year'),
        sa.CheckConstraint("payment_status IN ('Pending','Partial','Paid')", name='ck_fees_account_status'),
        sa.CheckConstraint('total_fees >= 0', name='ck_fees_account_total_positive'),
        sa.CheckConstraint('discount_amount >= 0', name='ck_fees_account_discount_positive'),
        sa.CheckConstraint('paid_amount >= 0', name='ck_fees_account_paid_positive'),
    )
    op.create_index('ix_fees_accounts_student_id', 'fees_accounts', ['student_id'])

    op.create_table(
        'fees_payments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('fees_account_id', sa.String(length=36), nullable=False),
        sa.Column('student_id', sa.String(length=36), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('receipt_number', sa.String(length=32), nullable=False),
        sa.Column('transaction_id', sa.String(length=64), nullable=True),
        sa.Column('slip_image_url', sa.String(length=512), nullable=True),
        sa.Column('is_scanned', sa.Boolean(), nullable=False),
        sa.Column('bank_name', sa.String(length=64), nullable=True),
        sa.Column('account_number', sa.String(length=64), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=False),
        sa.Column('is_rejected', sa.Boolean(), nullable=False),
        sa.Column('balance_applied', sa.Boolean(), nullable=False),
        sa.Column('verified_by', sa.String(length=36), nullable=True),
        sa.Column('verification_date', sa.DateTime(), nullable=True),
        sa.Column('description', sa.String(length=1000), nullable=False),
        sa.Column('received_by', sa.String(length=128), nullable=False),
        sa.Column('payment_date', sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['fees_account_id'], ['fees_accounts.id']),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.UniqueConstraint('receipt_number'),
        sa.CheckConstraint('amount > 0', name='ck_fees_payment_amount_positive'),
        sa.CheckConstraint('NOT (is_approved AND is_rejected)', name='ck_fees_payment_single_outcome'),
    )
    op.create_index('ix_fees_payments_student_id', 'fees_payments', ['student_id'])
    op.create_index('ix_fees_payments_student_approved', 'fees_payments', ['student_id', 'is_approved'])

    op.create_table(
        'assignments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('assignment_no', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('subject', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(), nullable=False),
        sa.Column('max_marks', sa.Integer(), nullable=False),
        sa.Column('form', sa.String(length=16), nullable=False),
        sa.Column('target_classes_csv', sa.String(length=256), nullable=True),
        sa.Column('file_path', sa.String(length=512), nullable=True),
        sa.Column('assignment_type', sa.String(length=32), nullable=False),
        sa.Column('is_published', sa.Boolean(), nullable=False),
        sa.Column('allow_late_submission', sa.Boolean(), nullable=False),
        sa.Column('late_penalty_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('teacher_id', sa.String(length=36), nullable=True),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id']),
        sa.UniqueConstraint('assignment_no'),
        sa.CheckConstraint('max_marks > 0', name='ck_assignments_max_marks_positive'),
        sa.CheckConstraint(
            'late_penalty_percentage >= 0 AND late_penalty_percentage <= 100',
            name='ck_assignments_late_penalty_range'
        ),
    )
    op.create_index('ix_assignments_form_due', 'assignments', ['form', 'due_date'])

    op.create_table(
        'assignment_submissions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('assignment_id', sa.String(length=36), nullable=False),
        sa.Column('student_id', sa.String(length=36), nullable=False),
        sa.Column('submission_text', sa.Text(), nullable=True),
        sa.Column('submission_path', sa.String(length=512), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('submission_date', sa.DateTime(), nullable=False),
        sa.Column('is_late', sa.Boolean(), nullable=False),
        sa.Column('obtained_marks', sa.Numeric(6, 2), nullable=True),
        sa.Column('late_penalty_applied', sa.Numeric(6, 2), nullable=True),
        sa.Column('final_marks', sa.Numeric(6, 2), nullable=True),
        sa.Column('teacher_comments', sa.Text(), nullable=True),
        sa.Column('graded_by', sa.String(length=36), nullable=True),
        sa.Column('graded_date', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['assignment_id'], ['assignments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.UniqueConstraint('assignment_id', 'student_id', name='uix_submission_assignment_student'),
        sa.CheckConstraint("status IN ('Submitted','Graded')", name='ck_submission_status'),
    )
    op.create_index('ix_assignment_submissions_assignment_id', 'assignment_submissions', ['assignment_id'])
    op.create_index('ix_assignment_submissions_student_id', 'assignment_submissions', ['student_id'])

    op.create_table(
        'library_books',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('book_no', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=256), nullable=False),
        sa.Column('author', sa.String(length=128), nullable=False),
        sa.Column('isbn', sa.String(length=20), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('publisher', sa.String(length=128), nullable=True),
        sa.Column('publication_year', sa.Integer(), nullable=True),
        sa.Column('total_copies', sa.Integer(), nullable=False),
        sa.Column('available_copies', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('book_no'),
        sa.CheckConstraint('total_copies >= 0', name='ck_library_books_total_positive'),
        sa.CheckConstraint(
            'available_copies >= 0 AND available_copies <= total_copies',
            name='ck_library_books_available_range'
        ),
    )

    op.create_table(
        'book_issues',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('book_id', sa.String(length=36), nullable=False),
        sa.Column('student_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('return_date', sa.Date(), nullable=True),
        sa.Column('renewal_count', sa.Integer(), nullable=False),
        sa.Column('issued_by', sa.String(length=36), nullable=True),
        sa.Column('returned_to', sa.String(length=36), nullable=True),
        sa.Column('fine_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('fine_paid', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['book_id'], ['library_books.id']),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.CheckConstraint("status IN ('Requested','Issued','Returned')", name='ck_book_issues_status'),
    )
    op.create_index('ix_book_issues_student_status', 'book_issues', ['student_id', 'status'])

    op.create_table(
        'activities',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('activity_no', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('venue', sa.String(length=128), nullable=True),
        sa.Column('activity_type', sa.String(length=32), nullable=False),
        sa.Column('organizer', sa.String(length=128), nullable=True),
        sa.Column('target_forms_csv', sa.String(length=128), nullable=False),
        sa.Column('is_optional', sa.Boolean(), nullable=False),
        sa.Column('registration_deadline', sa.DateTime(), nullable=True),
        sa.Column('max_participants', sa.Integer(), nullable=True),
        sa.Column('current_participants', sa.Integer(), nullable=False),
        sa.Column('requirements', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('activity_no'),
    )
    op.create_index('ix_activities_date', 'activities', ['date'])

    op.create_table(
        'activity_registrations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('activity_id', sa.String(length=36), nullable=False),
        sa.Column('student_id', sa.String(length=36), nullable=False),
        sa.Column('registration_date', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('attendance_marked', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['activity_id'], ['activities.id']),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.UniqueConstraint('activity_id', 'student_id', name='uix_activity_registration'),
    )
    op.create_index('ix_activity_registrations_activity_id', 'activity_registrations', ['activity_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('recipient_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.String(length=2000), nullable=False),
        sa.Column('notification_type', sa.String(length=32), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('action_url', sa.String(length=256), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_recipient_id', 'notifications', ['recipient_id'])
    op.create_index('ix_notifications_recipient_read', 'notifications', ['recipient_id', 'is_read'])


def downgrade():
    op.drop_table('notifications')
    op.drop_table('activity_registrations')
    op.drop_table('activities')
    op.drop_table('book_issues')
    op.drop_table('library_books')
    op.drop_table('assignment_submissions')
    op.drop_table('assignments')
    op.drop_table('fees_payments')
    op.drop_table('fees_accounts')
    op.drop_table('staff')
    op.drop_table('teachers')
    op.drop_table('students')
    op.drop_table('id_sequences')
    op.drop_table('users')
