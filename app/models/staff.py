# app/models/staff.py - Teacher and non-teaching staff profiles
from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, ForeignKey, DateTime, Boolean, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, utcnow, new_id


def split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    teacher_no: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)  # TCH/YYYY/NNN
    full_name: Mapped[str] = mapped_column(String(128), nullable=False)
    employee_type: Mapped[str] = mapped_column(String(8), nullable=False)  # BOM|NTSC
    tsc_number: Mapped[str | None] = mapped_column(String(32))
    subjects_csv: Mapped[str | None] = mapped_column(String(512))
    assigned_forms_csv: Mapped[str | None] = mapped_column(String(128))
    qualification: Mapped[str | None] = mapped_column(String(128))
    department: Mapped[str | None] = mapped_column(String(64))
    email: Mapped[str | None] = mapped_column(String(255))
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("employee_type IN ('BOM','NTSC')", name="ck_teachers_employee_type"),
    )

    @property
    def subjects(self) -> list[str]:
        return split_csv(self.subjects_csv)

    @property
    def assigned_forms(self) -> list[str]:
        return split_csv(self.assigned_forms_csv)


class Staff(Base):
    __tablename__ = "staff"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    staff_no: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)  # PRC|DPR|SEC|BUR|LIB|STF/YYYY/NNN
    full_name: Mapped[str] = mapped_column(String(128), nullable=False)
    position: Mapped[str] = mapped_column(String(32), nullable=False)
    department: Mapped[str | None] = mapped_column(String(64))
    email: Mapped[str | None] = mapped_column(String(255))
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
