# app/models/marks.py - Subject marks per student and term, and the grading scale
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    String, Integer, Boolean, Numeric, DateTime, ForeignKey, Text,
    CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, utcnow, new_id


class MarkEntry(Base):
    """One subject score for a student in a term and exam sitting"""

    __tablename__ = "marks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    term: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    exam_type: Mapped[str] = mapped_column(String(32), nullable=False, default="End of Term")

    opening_marks: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    midterm_marks: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    final_exam_marks: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    total_marks: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    grade: Mapped[str] = mapped_column(String(5), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    teacher_comments: Mapped[str | None] = mapped_column(Text)

    teacher_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("teachers.id"))
    entered_by: Mapped[str | None] = mapped_column(String(36))
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    approved_by: Mapped[str | None] = mapped_column(String(36))
    approval_date: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    student: Mapped["Student"] = relationship("Student")

    __table_args__ = (
        UniqueConstraint("student_id", "subject", "term", "year", "exam_type", name="uix_marks_student_subject_sitting"),
        CheckConstraint("term BETWEEN 1 AND 3", name="ck_marks_term"),
        CheckConstraint("total_marks >= 0 AND total_marks <= 100", name="ck_marks_total_range"),
        CheckConstraint(
            "exam_type IN ('CAT','Mid-Term','End of Term','Mock','KCSE')",
            name="ck_marks_exam_type",
        ),
        Index("ix_marks_year_term_subject", "year", "term", "subject"),
    )


class GradingScheme(Base):
    """A grade band: scores from min_percentage up to max_percentage earn grade and points"""

    __tablename__ = "grading_schemes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    grade: Mapped[str] = mapped_column(String(5), unique=True, nullable=False)
    min_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    max_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "min_percentage >= 0 AND max_percentage <= 100 AND min_percentage <= max_percentage",
            name="ck_grading_schemes_range",
        ),
        CheckConstraint("points BETWEEN 0 AND 12", name="ck_grading_schemes_points"),
    )
