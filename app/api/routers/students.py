# app/api/routers/students.py - Student records
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.core.db import get_db
from app.core.permissions import Principal
from app.api.deps.auth import get_current_principal
from app.schemas.registration import StudentOut, StudentList, StudentUpdate
from app.services.registration_service import RegistrationService

router = APIRouter()


@router.get("/", response_model=StudentList)
def list_students(
    form: Optional[str] = Query(default=None),
    class_name: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return RegistrationService(db).list_students(principal, form, class_name, limit, offset)


@router.get("/{student_id}", response_model=StudentOut)
def get_student(
    student_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return RegistrationService(db).get_student(principal, student_id)


# Student numbers contain slashes (GRS/2026/001)
@router.patch("/{student_no:path}", response_model=StudentOut)
def update_student(
    student_no: str,
    patch: StudentUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return RegistrationService(db).update_student(principal, student_no, patch)
