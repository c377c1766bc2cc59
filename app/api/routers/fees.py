# app/api/routers/fees.py - Fees accounts, discounts and statements
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.db import get_db
from app.core.permissions import Principal
from app.api.deps.auth import get_current_principal
from app.api.responses import result_response
from app.schemas.common import OperationResult
from app.schemas.fees import (
    FeesDetails,
    StudentFeesSummary,
    FeesStatement,
    SetFeesIn,
    DiscountIn,
)
from app.services.fees_service import FeesService

router = APIRouter()


@router.get("/me", response_model=FeesDetails)
def get_my_fees(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    """Fees account and payment history of the logged-in student"""
    return FeesService(db).get_my_fees(principal)


@router.get("/", response_model=List[StudentFeesSummary])
def list_all_fees(
    year: Optional[int] = Query(default=None, ge=2000, le=2100),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Every student's account for a year, largest balance first"""
    return FeesService(db).list_all_fees(principal, year)


@router.get("/{student_id}", response_model=FeesDetails)
def get_student_fees(
    student_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return FeesService(db).get_fees(principal, student_id)


@router.get("/{student_id}/statement", response_model=FeesStatement)
def get_statement(
    student_id: str,
    year: Optional[int] = Query(default=None, ge=2000, le=2100),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return FeesService(db).generate_statement(principal, student_id, year)


@router.put("/{student_id}", response_model=OperationResult)
def set_student_fees(
    student_id: str,
    data: SetFeesIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    result = FeesService(db).set_student_fees(principal, student_id, data.total_fees, data.year, data.term)
    return result_response(result)


@router.post("/{student_id}/discount", response_model=OperationResult)
def apply_discount(
    student_id: str,
    data: DiscountIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    result = FeesService(db).apply_discount(principal, student_id, data.amount, data.reason)
    return result_response(result)
