# app/models/assignment.py - Assignments set by teachers and student submissions
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    String, Integer, Boolean, Numeric, DateTime, ForeignKey, Text,
    CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, utcnow, new_id


class Assignment(Base):
    __tablename__ = "assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    assignment_no: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    subject: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    instructions: Mapped[str | None] = mapped_column(Text)
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    max_marks: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    form: Mapped[str] = mapped_column(String(16), nullable=False)
    target_classes_csv: Mapped[str | None] = mapped_column(String(256))
    file_path: Mapped[str | None] = mapped_column(String(512))
    assignment_type: Mapped[str] = mapped_column(String(32), nullable=False, default="Homework")
    is_published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allow_late_submission: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    late_penalty_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))

    teacher_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("teachers.id"))
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    submissions: Mapped[list["AssignmentSubmission"]] = relationship(
        "AssignmentSubmission",
        back_populates="assignment",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("max_marks > 0", name="ck_assignments_max_marks_positive"),
        CheckConstraint(
            "late_penalty_percentage >= 0 AND late_penalty_percentage <= 100",
            name="ck_assignments_late_penalty_range",
        ),
        Index("ix_assignments_form_due", "form", "due_date"),
    )


class AssignmentSubmission(Base):
    __tablename__ = "assignment_submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    assignment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    submission_text: Mapped[str | None] = mapped_column(Text)
    submission_path: Mapped[str | None] = mapped_column(String(512))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Submitted")  # Submitted|Graded
    submission_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    is_late: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    obtained_marks: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    late_penalty_applied: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    final_marks: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    teacher_comments: Mapped[str | None] = mapped_column(Text)
    graded_by: Mapped[str | None] = mapped_column(String(36))
    graded_date: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    assignment: Mapped["Assignment"] = relationship("Assignment", back_populates="submissions")

    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uix_submission_assignment_student"),
        CheckConstraint("status IN ('Submitted','Graded')", name="ck_submission_status"),
    )
