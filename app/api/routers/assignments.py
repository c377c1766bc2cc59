# app/api/routers/assignments.py - Assignments, submissions and grading
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.db import get_db
from app.core.permissions import Principal
from app.api.deps.auth import get_current_principal
from app.schemas.assignment import (
    AssignmentCreate,
    AssignmentUpdate,
    AssignmentOut,
    SubmissionIn,
    SubmissionOut,
    GradeIn,
)
from app.services.assignment_service import AssignmentService

router = APIRouter()


@router.get("/", response_model=List[AssignmentOut])
def list_assignments(
    form: Optional[str] = Query(default=None),
    subject: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return AssignmentService(db).list_assignments(principal, form, subject, limit, offset)


@router.post("/", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def create_assignment(
    data: AssignmentCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return AssignmentService(db).create_assignment(principal, data)


@router.get("/{assignment_id}", response_model=AssignmentOut)
def get_assignment(
    assignment_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return AssignmentService(db).get_assignment(principal, assignment_id)


@router.patch("/{assignment_id}", response_model=AssignmentOut)
def update_assignment(
    assignment_id: str,
    patch: AssignmentUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return AssignmentService(db).update_assignment(principal, assignment_id, patch)


@router.post("/{assignment_id}/submit", response_model=SubmissionOut)
def submit_assignment(
    assignment_id: str,
    data: SubmissionIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return AssignmentService(db).submit_assignment(
        principal, assignment_id, data.submission_text, data.submission_path
    )


@router.get("/{assignment_id}/submissions", response_model=List[SubmissionOut])
def list_submissions(
    assignment_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return AssignmentService(db).list_submissions(principal, assignment_id)


@router.post("/submissions/{submission_id}/grade", response_model=SubmissionOut)
def grade_submission(
    submission_id: str,
    data: GradeIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return AssignmentService(db).grade_submission(principal, submission_id, data.marks, data.comments)
