# app/models/library.py - Library catalogue and loans
from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import (
    String, Integer, Boolean, Numeric, Date, DateTime, ForeignKey, Text,
    CheckConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, utcnow, new_id
import enum


class IssueStatus(str, enum.Enum):
    REQUESTED = "Requested"
    ISSUED = "Issued"
    RETURNED = "Returned"


class LibraryBook(Base):
    __tablename__ = "library_books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    book_no: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    author: Mapped[str] = mapped_column(String(128), nullable=False)
    isbn: Mapped[str | None] = mapped_column(String(20))
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    publisher: Mapped[str | None] = mapped_column(String(128))
    publication_year: Mapped[int | None] = mapped_column(Integer)
    total_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("total_copies >= 0", name="ck_library_books_total_positive"),
        CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="ck_library_books_available_range",
        ),
    )


class BookIssue(Base):
    __tablename__ = "book_issues"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    book_id: Mapped[str] = mapped_column(String(36), ForeignKey("library_books.id"), nullable=False)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("students.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=IssueStatus.ISSUED.value)
    issue_date: Mapped[date | None] = mapped_column(Date)
    due_date: Mapped[date | None] = mapped_column(Date)
    return_date: Mapped[date | None] = mapped_column(Date)
    renewal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    issued_by: Mapped[str | None] = mapped_column(String(36))
    returned_to: Mapped[str | None] = mapped_column(String(36))
    fine_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    fine_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    book: Mapped["LibraryBook"] = relationship("LibraryBook")

    __table_args__ = (
        CheckConstraint("status IN ('Requested','Issued','Returned')", name="ck_book_issues_status"),
        Index("ix_book_issues_student_status", "student_id", "status"),
    )
