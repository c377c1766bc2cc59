# app/models/fees.py - Fees ledger: one account per student per year, plus payments
from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import (
    String, Integer, Boolean, Numeric, Date, DateTime, ForeignKey,
    CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, utcnow, new_id
import enum


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"


class FeesAccount(Base):
    __tablename__ = "fees_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    term: Mapped[int] = mapped_column(Integer, nullable=False)

    total_fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    discount_reason: Mapped[str | None] = mapped_column(String(1000))
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    due_date: Mapped[date | None] = mapped_column(Date)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    last_payment_date: Mapped[datetime | None] = mapped_column(DateTime)

    # Optimistic lock; every UPDATE checks and bumps it
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    payments: Mapped[list["FeesPayment"]] = relationship("FeesPayment", back_populates="account")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("student_id", "year", name="uix_fees_account_student_year"),
        CheckConstraint("payment_status IN ('Pending','Partial','Paid')", name="ck_fees_account_status"),
        CheckConstraint("total_fees >= 0", name="ck_fees_account_total_positive"),
        CheckConstraint("discount_amount >= 0", name="ck_fees_account_discount_positive"),
        CheckConstraint("paid_amount >= 0", name="ck_fees_account_paid_positive"),
    )


class FeesPayment(Base):
    __tablename__ = "fees_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    fees_account_id: Mapped[str] = mapped_column(String(36), ForeignKey("fees_accounts.id"), nullable=False)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("students.id"), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    receipt_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(String(64))
    slip_image_url: Mapped[str | None] = mapped_column(String(512))
    is_scanned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(64))
    account_number: Mapped[str | None] = mapped_column(String(64))

    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_rejected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Set once the amount has been credited to the account
    balance_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_by: Mapped[str | None] = mapped_column(String(36))
    verification_date: Mapped[datetime | None] = mapped_column(DateTime)

    description: Mapped[str] = mapped_column(String(1000), nullable=False, default="Fees Payment")
    received_by: Mapped[str] = mapped_column(String(128), nullable=False, default="System")
    payment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    account: Mapped["FeesAccount"] = relationship("FeesAccount", back_populates="payments")

    @property
    def status(self) -> str:
        if self.is_approved:
            return "Approved"
        if self.is_rejected:
            return "Rejected"
        return "Pending"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_fees_payment_amount_positive"),
        CheckConstraint("NOT (is_approved AND is_rejected)", name="ck_fees_payment_single_outcome"),
        Index("ix_fees_payments_student_approved", "student_id", "is_approved"),
    )
