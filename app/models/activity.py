# app/models/activity.py - School activities and student registrations
from __future__ import annotations
from datetime import date as date_type, datetime, time
from sqlalchemy import (
    String, Integer, Boolean, Date, DateTime, Time, ForeignKey, Text,
    UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, utcnow, new_id
from app.models.staff import split_csv


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    activity_no: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time | None] = mapped_column(Time)
    end_time: Mapped[time | None] = mapped_column(Time)
    venue: Mapped[str | None] = mapped_column(String(128))
    activity_type: Mapped[str] = mapped_column(String(32), nullable=False, default="General")
    organizer: Mapped[str | None] = mapped_column(String(128))
    target_forms_csv: Mapped[str] = mapped_column(String(128), nullable=False, default="All")
    is_optional: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    registration_deadline: Mapped[datetime | None] = mapped_column(DateTime)
    max_participants: Mapped[int | None] = mapped_column(Integer)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requirements: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Scheduled")

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def target_forms(self) -> list[str]:
        return split_csv(self.target_forms_csv)


class ActivityRegistration(Base):
    __tablename__ = "activity_registrations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    activity_id: Mapped[str] = mapped_column(String(36), ForeignKey("activities.id"), nullable=False, index=True)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("students.id"), nullable=False)
    registration_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Registered")  # Registered|Cancelled
    attendance_marked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(String(500))

    __table_args__ = (
        UniqueConstraint("activity_id", "student_id", name="uix_activity_registration"),
    )
