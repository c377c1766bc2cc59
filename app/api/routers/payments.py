# app/api/routers/payments.py - Payment submission and bursar approval
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from app.core.db import get_db
from app.core.permissions import Principal
from app.api.deps.auth import get_current_principal
from app.api.responses import result_response
from app.schemas.common import OperationResult, PaymentResult
from app.schemas.fees import PaymentRequest, PendingPaymentOut, RejectPaymentIn
from app.services.fees_service import FeesService

router = APIRouter()


@router.post("/", response_model=PaymentResult, status_code=status.HTTP_201_CREATED)
def submit_payment(
    data: PaymentRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Record a payment; payments with proof are credited immediately"""
    result = FeesService(db).submit_payment(principal, data)
    return result_response(result, success_status=status.HTTP_201_CREATED)


@router.get("/pending", response_model=List[PendingPaymentOut])
def list_pending_payments(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return FeesService(db).list_pending_payments(principal)


@router.post("/{payment_id}/approve", response_model=OperationResult)
def approve_payment(
    payment_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return result_response(FeesService(db).approve_payment(principal, payment_id))


@router.post("/{payment_id}/reject", response_model=OperationResult)
def reject_payment(
    payment_id: str,
    data: RejectPaymentIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return result_response(FeesService(db).reject_payment(principal, payment_id, data.reason))
