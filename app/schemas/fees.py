# app/schemas/fees.py - Fees ledger request/response models
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal


class PaymentRequest(BaseModel):
    student_id: str
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    payment_method: str
    transaction_id: Optional[str] = None
    slip_image_url: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    description: Optional[str] = None

    @field_validator("transaction_id", "slip_image_url", "bank_name", "account_number")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v


class PaymentOut(BaseModel):
    id: str
    student_id: str
    amount: Decimal
    payment_method: str
    receipt_number: str
    transaction_id: Optional[str]
    slip_image_url: Optional[str]
    is_scanned: bool
    is_approved: bool
    is_rejected: bool
    status: str
    verified_by: Optional[str]
    verification_date: Optional[datetime]
    description: str
    received_by: str
    payment_date: datetime

    class Config:
        from_attributes = True


class FeesAccountOut(BaseModel):
    id: str
    student_id: str
    year: int
    term: int
    total_fees: Decimal
    discount_amount: Decimal
    discount_reason: Optional[str]
    paid_amount: Decimal
    balance: Decimal
    due_date: Optional[date]
    payment_status: str
    last_payment_date: Optional[datetime]

    class Config:
        from_attributes = True


class FeesDetails(BaseModel):
    account: FeesAccountOut
    payment_history: List[PaymentOut]


class StudentFeesSummary(BaseModel):
    student_id: str
    student_no: str
    full_name: str
    form: str
    class_name: str
    year: int
    term: int
    total_fees: Decimal
    discount_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    payment_status: str
    due_date: Optional[date]
    is_overdue: bool
    days_overdue: int


class PendingPaymentOut(PaymentOut):
    student_no: Optional[str] = None
    student_name: Optional[str] = None
    form: Optional[str] = None
    class_name: Optional[str] = None


class RejectPaymentIn(BaseModel):
    reason: str


class SetFeesIn(BaseModel):
    total_fees: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    year: Optional[int] = Field(default=None, ge=2000, le=2100)
    term: Optional[int] = Field(default=None, ge=1, le=3)


class DiscountIn(BaseModel):
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    reason: str


class StatementStudent(BaseModel):
    id: str
    student_no: str
    full_name: str
    form: str
    class_name: str

    class Config:
        from_attributes = True


class FeesStatement(BaseModel):
    student: StatementStudent
    account: FeesAccountOut
    payments: List[PaymentOut]
    generated_date: datetime
