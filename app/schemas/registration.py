# app/schemas/registration.py - Registration requests and student profile schemas
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime


class StudentRegistrationIn(BaseModel):
    full_name: str
    admission_no: str
    form: str
    class_name: str
    parent_phone: str
    email: Optional[EmailStr] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None


class TeacherRegistrationIn(BaseModel):
    full_name: str
    phone_number: str
    employee_type: str  # BOM or NTSC
    tsc_number: Optional[str] = None
    subjects: List[str] = []
    assigned_forms: List[str] = []
    qualification: Optional[str] = None
    department: Optional[str] = None
    email: Optional[EmailStr] = None


class StaffRegistrationIn(BaseModel):
    full_name: str
    phone_number: str
    position: str
    department: Optional[str] = None
    email: Optional[EmailStr] = None


class StudentOut(BaseModel):
    id: str
    user_id: str
    student_no: str
    admission_no: str
    full_name: str
    form: str
    class_name: str
    email: Optional[str]
    date_of_birth: Optional[date]
    gender: Optional[str]
    address: Optional[str]
    parent_phone: str
    year: int
    term: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class StudentUpdate(BaseModel):
    full_name: Optional[str] = None
    form: Optional[str] = None
    class_name: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None


class StudentList(BaseModel):
    students: List[StudentOut]
    total: int
    limit: int
    offset: int
    has_next: bool


class StudentQuery(BaseModel):
    form: Optional[str] = None
    class_name: Optional[str] = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)
