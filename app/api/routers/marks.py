# app/api/routers/marks.py - Marks entry, approval, class performance and report cards
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.db import get_db
from app.core.permissions import Principal
from app.api.deps.auth import get_current_principal
from app.schemas.marks import (
    MarkEntryRequest,
    MarkOut,
    ClassMarkRow,
    GradeBandIn,
    GradeBandOut,
    ClassPerformance,
    PerformanceTrend,
    ReportCard,
)
from app.services.grading import DEFAULT_EXAM_TYPE
from app.services.marks_service import MarksService

router = APIRouter()


@router.post("/", response_model=MarkOut, status_code=status.HTTP_201_CREATED)
def enter_marks(
    data: MarkEntryRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return MarksService(db).enter_marks(principal, data)


@router.get("/me", response_model=List[MarkOut])
def my_marks(
    year: Optional[int] = Query(default=None),
    term: Optional[int] = Query(default=None, ge=1, le=3),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    student_id = principal.require_student()
    return MarksService(db).get_student_marks(principal, student_id, year, term)


@router.get("/class", response_model=List[ClassMarkRow])
def class_marks(
    form: str = Query(...),
    class_name: str = Query(...),
    subject: str = Query(...),
    term: int = Query(..., ge=1, le=3),
    year: Optional[int] = Query(default=None),
    exam_type: str = Query(default=DEFAULT_EXAM_TYPE),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return MarksService(db).get_class_marks(principal, form, class_name, subject, term, year, exam_type)


@router.post("/class/approve")
def approve_class_marks(
    form: str = Query(...),
    class_name: str = Query(...),
    subject: str = Query(...),
    term: int = Query(..., ge=1, le=3),
    year: Optional[int] = Query(default=None),
    exam_type: str = Query(default=DEFAULT_EXAM_TYPE),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    approved = MarksService(db).approve_class_marks(
        principal, form, class_name, subject, term, year, exam_type
    )
    return {"approved": approved}


@router.get("/performance/class", response_model=ClassPerformance)
def class_performance(
    form: str = Query(...),
    class_name: str = Query(...),
    term: int = Query(..., ge=1, le=3),
    year: Optional[int] = Query(default=None),
    exam_type: str = Query(default=DEFAULT_EXAM_TYPE),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return MarksService(db).class_performance(principal, form, class_name, term, year, exam_type)


@router.get("/grading-scheme", response_model=List[GradeBandOut])
def get_grading_scheme(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return MarksService(db).get_grading_scheme()


@router.put("/grading-scheme", response_model=List[GradeBandOut])
def update_grading_scheme(
    bands: List[GradeBandIn],
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return MarksService(db).update_grading_scheme(principal, bands)


@router.get("/students/{student_id}", response_model=List[MarkOut])
def student_marks(
    student_id: str,
    year: Optional[int] = Query(default=None),
    term: Optional[int] = Query(default=None, ge=1, le=3),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return MarksService(db).get_student_marks(principal, student_id, year, term)


@router.get("/students/{student_id}/trend", response_model=PerformanceTrend)
def performance_trend(
    student_id: str,
    year: Optional[int] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return MarksService(db).performance_trend(principal, student_id, year)


@router.get("/students/{student_id}/report-card", response_model=ReportCard)
def report_card(
    student_id: str,
    term: int = Query(..., ge=1, le=3),
    year: Optional[int] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return MarksService(db).report_card(principal, student_id, term, year)


@router.post("/{mark_id}/approve", response_model=MarkOut)
def approve_marks(
    mark_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return MarksService(db).approve_marks(principal, mark_id)
