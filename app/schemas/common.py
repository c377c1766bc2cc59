# app/schemas/common.py - Result envelopes returned by mutating operations
from pydantic import BaseModel
from typing import Optional, Dict


class OperationResult(BaseModel):
    success: bool
    message: str
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, message: str, **extra):
        return cls(success=True, message=message, **extra)

    @classmethod
    def fail(cls, message: str, error_code: str, **extra):
        return cls(success=False, message=message, error_code=error_code, **extra)


class PaymentResult(OperationResult):
    receipt_number: Optional[str] = None
    requires_approval: bool = False
    payment_id: Optional[str] = None


class RegistrationResult(OperationResult):
    generated_id: Optional[str] = None
    user_id: Optional[str] = None
    login_credentials: Optional[Dict[str, str]] = None


class MessageOut(BaseModel):
    message: str
