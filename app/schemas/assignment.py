# app/schemas/assignment.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


class AssignmentCreate(BaseModel):
    title: str
    subject: str
    form: str
    due_date: datetime
    description: Optional[str] = None
    instructions: Optional[str] = None
    max_marks: int = Field(default=100, gt=0)
    target_classes: List[str] = []
    file_path: Optional[str] = None
    assignment_type: str = "Homework"
    allow_late_submission: bool = False
    late_penalty_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class AssignmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    due_date: Optional[datetime] = None
    max_marks: Optional[int] = Field(default=None, gt=0)
    is_published: Optional[bool] = None
    allow_late_submission: Optional[bool] = None
    late_penalty_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)


class AssignmentOut(BaseModel):
    id: str
    assignment_no: str
    title: str
    subject: str
    form: str
    description: Optional[str]
    instructions: Optional[str]
    due_date: datetime
    max_marks: int
    file_path: Optional[str]
    assignment_type: str
    is_published: bool
    allow_late_submission: bool
    late_penalty_percentage: Decimal
    teacher_id: Optional[str]
    teacher_name: Optional[str] = None
    submission_status: Optional[str] = None

    class Config:
        from_attributes = True


class SubmissionIn(BaseModel):
    submission_text: Optional[str] = None
    submission_path: Optional[str] = None


class SubmissionOut(BaseModel):
    id: str
    assignment_id: str
    student_id: str
    submission_text: Optional[str]
    submission_path: Optional[str]
    status: str
    submission_date: datetime
    is_late: bool
    obtained_marks: Optional[Decimal]
    late_penalty_applied: Optional[Decimal]
    final_marks: Optional[Decimal]
    teacher_comments: Optional[str]
    graded_date: Optional[datetime]

    class Config:
        from_attributes = True


class GradeIn(BaseModel):
    marks: Decimal = Field(..., ge=0)
    comments: Optional[str] = None
