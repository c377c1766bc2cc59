# app/api/routers/registration.py - Secretary registration of students, teachers and staff
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.permissions import Principal
from app.api.deps.auth import get_current_principal
from app.api.responses import result_response
from app.schemas.common import RegistrationResult
from app.schemas.registration import StudentRegistrationIn, TeacherRegistrationIn, StaffRegistrationIn
from app.services.registration_service import RegistrationService

router = APIRouter()


@router.post("/students", response_model=RegistrationResult, status_code=status.HTTP_201_CREATED)
def register_student(
    data: StudentRegistrationIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    result = RegistrationService(db).register_student(principal, data)
    return result_response(result, success_status=status.HTTP_201_CREATED)


@router.post("/teachers", response_model=RegistrationResult, status_code=status.HTTP_201_CREATED)
def register_teacher(
    data: TeacherRegistrationIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    result = RegistrationService(db).register_teacher(principal, data)
    return result_response(result, success_status=status.HTTP_201_CREATED)


@router.post("/staff", response_model=RegistrationResult, status_code=status.HTTP_201_CREATED)
def register_staff(
    data: StaffRegistrationIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    result = RegistrationService(db).register_staff(principal, data)
    return result_response(result, success_status=status.HTTP_201_CREATED)
