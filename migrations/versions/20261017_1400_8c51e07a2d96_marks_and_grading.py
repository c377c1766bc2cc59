"""marks and grading scale

Revision ID: 8c51e07a2d96
Revises: 3f2a9c1d7b40
Create Date: 2026-10-17 14:00:41.093552

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8c51e07a2d96'
down_revision: Union[str, Sequence[str], None] = '3f2a9c1d7b40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        'marks',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('student_id', sa.String(length=36), nullable=False),
        sa.Column('subject', sa.String(length=100), nullable=False),
        sa.Column('term', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('exam_type', sa.String(length=32), nullable=False),
        sa.Column('opening_marks', sa.Numeric(5, 2), nullable=True),
        sa.Column('midterm_marks', sa.Numeric(5, 2), nullable=True),
        sa.Column('final_exam_marks', sa.Numeric(5, 2), nullable=True),
        sa.Column('total_marks', sa.Numeric(5, 2), nullable=False),
        sa.Column('grade', sa.String(length=5), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('teacher_comments', sa.Text(), nullable=True),
        sa.Column('teacher_id', sa.String(length=36), nullable=True),
        sa.Column('entered_by', sa.String(length=36), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=False),
        sa.Column('approved_by', sa.String(length=36), nullable=True),
        sa.Column('approval_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id']),
        sa.UniqueConstraint(
            'student_id', 'subject', 'term', 'year', 'exam_type',
            name='uix_marks_student_subject_sitting'
        ),
        sa.CheckConstraint('term BETWEEN 1 AND 3', name='ck_marks_term'),
        sa.CheckConstraint('total_marks >= 0 AND total_marks <= 100', name='ck_marks_total_range'),
        sa.CheckConstraint(
            "exam_type IN ('CAT','Mid-Term','End of Term','Mock','KCSE')",
            name='ck_marks_exam_type'
        ),
    )
    op.create_index('ix_marks_student_id', 'marks', ['student_id'])
    op.create_index('ix_marks_year_term_subject', 'marks', ['year', 'term', 'subject'])

    op.create_table(
        'grading_schemes',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('grade', sa.String(length=5), nullable=False),
        sa.Column('min_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('max_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('grade'),
        sa.CheckConstraint(
            'min_percentage >= 0 AND max_percentage <= 100 AND min_percentage <= max_percentage',
            name='ck_grading_schemes_range'
        ),
        sa.CheckConstraint('points BETWEEN 0 AND 12', name='ck_grading_schemes_points'),
    )


def downgrade():
    op.drop_table('grading_schemes')
    op.drop_index('ix_marks_year_term_subject', table_name='marks')
    op.drop_index('ix_marks_student_id', table_name='marks')
    op.drop_table('marks')
