# app/schemas/marks.py - Mark entry, class results, trends and report cards
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal

Score = Optional[Decimal]


class MarkEntryRequest(BaseModel):
    student_id: str
    subject: str
    term: int = Field(..., ge=1, le=3)
    year: int
    opening_marks: Score = Field(default=None, ge=0, le=100)
    midterm_marks: Score = Field(default=None, ge=0, le=100)
    final_exam_marks: Score = Field(default=None, ge=0, le=100)
    exam_type: str = "End of Term"
    comments: Optional[str] = Field(default=None, max_length=500)


class MarkOut(BaseModel):
    id: str
    student_id: str
    subject: str
    term: int
    year: int
    exam_type: str
    opening_marks: Score
    midterm_marks: Score
    final_exam_marks: Score
    total_marks: Decimal
    grade: str
    points: int
    teacher_comments: Optional[str]
    teacher_id: Optional[str]
    is_approved: bool
    approved_by: Optional[str]
    approval_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClassMarkRow(BaseModel):
    """A student of the class with their mark, or no mark yet"""
    student_id: str
    student_name: str
    admission_no: str
    mark: Optional[MarkOut] = None


class GradeBandIn(BaseModel):
    grade: str = Field(..., min_length=1, max_length=5)
    min_percentage: Decimal = Field(..., ge=0, le=100)
    max_percentage: Decimal = Field(..., ge=0, le=100)
    points: int = Field(..., ge=0, le=12)
    description: Optional[str] = Field(default=None, max_length=500)


class GradeBandOut(BaseModel):
    grade: str
    min_percentage: Decimal
    max_percentage: Decimal
    points: int
    description: Optional[str] = None

    class Config:
        from_attributes = True


class SubjectScore(BaseModel):
    subject: str
    total_marks: Decimal
    grade: str
    points: int
    position: Optional[int] = None


class StudentRanking(BaseModel):
    student_id: str
    student_name: str
    admission_no: str
    total_marks: Decimal
    mean_score: Decimal
    overall_grade: str
    position: int
    subjects: List[SubjectScore]


class ClassPerformance(BaseModel):
    form: str
    class_name: str
    term: int
    year: int
    total_students: int
    class_mean: Decimal
    subject_means: Dict[str, Decimal]
    rankings: List[StudentRanking]
    generated_at: datetime


class TermPerformance(BaseModel):
    term: int
    mean_score: Decimal
    subject_count: int
    subjects: List[SubjectScore]


class PerformanceTrend(BaseModel):
    student_id: str
    year: int
    overall_trend: Optional[str] = None
    improvement_percentage: Optional[Decimal] = None
    terms: List[TermPerformance]


class SubjectResult(BaseModel):
    subject: str
    opening_marks: Decimal
    midterm_marks: Decimal
    final_exam_marks: Decimal
    total_marks: Decimal
    grade: str
    points: int
    teacher_comments: str = ""


class ReportCard(BaseModel):
    student_id: str
    student_no: str
    student_name: str
    admission_no: str
    form: str
    class_name: str
    term: int
    year: int
    subjects: List[SubjectResult]
    mean_score: Decimal
    total_points: int
    overall_grade: Optional[str] = None
    class_position: Optional[int] = None
    class_size: int
    generated_at: datetime
