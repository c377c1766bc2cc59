# app/schemas/library.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
from decimal import Decimal


class BookCreate(BaseModel):
    title: str
    author: str
    category: str
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    publication_year: Optional[int] = None
    total_copies: int = Field(default=1, ge=1)
    description: Optional[str] = None


class BookOut(BaseModel):
    id: str
    book_no: str
    title: str
    author: str
    isbn: Optional[str]
    category: str
    publisher: Optional[str]
    publication_year: Optional[int]
    total_copies: int
    available_copies: int

    class Config:
        from_attributes = True


class IssueBookIn(BaseModel):
    book_id: str
    student_id: str


class BookIssueOut(BaseModel):
    id: str
    book_id: str
    student_id: str
    status: str
    issue_date: Optional[date]
    due_date: Optional[date]
    return_date: Optional[date]
    renewal_count: int
    fine_amount: Decimal
    book_title: Optional[str] = None
    book_author: Optional[str] = None
    is_overdue: bool = False
