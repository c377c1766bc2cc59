# app/api/routers/library.py - Catalogue search, loans, renewals and returns
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.db import get_db
from app.core.permissions import Principal
from app.api.deps.auth import get_current_principal
from app.schemas.library import BookCreate, BookOut, BookIssueOut, IssueBookIn
from app.services.library_service import LibraryService, SEARCH_LIMIT

router = APIRouter()


def _issue_out(issue) -> BookIssueOut:
    return BookIssueOut.model_validate(issue, from_attributes=True)


@router.get("/books", response_model=List[BookOut])
def search_books(
    q: Optional[str] = Query(default=None, description="Title, author or category"),
    limit: int = Query(default=SEARCH_LIMIT, ge=1, le=SEARCH_LIMIT),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return LibraryService(db).search_books(q, limit)


@router.post("/books", response_model=BookOut, status_code=status.HTTP_201_CREATED)
def add_book(
    data: BookCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return LibraryService(db).add_book(principal, data)


@router.post("/books/{book_id}/request", response_model=BookIssueOut, status_code=status.HTTP_201_CREATED)
def request_book(
    book_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return _issue_out(LibraryService(db).request_book(principal, book_id))


@router.get("/my-books", response_model=List[BookIssueOut])
def my_books(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return LibraryService(db).list_issued_books(principal, principal.require_student())


@router.get("/students/{student_id}/issued", response_model=List[BookIssueOut])
def list_issued_books(
    student_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return LibraryService(db).list_issued_books(principal, student_id)


@router.post("/issues", response_model=BookIssueOut, status_code=status.HTTP_201_CREATED)
def issue_book(
    data: IssueBookIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return _issue_out(LibraryService(db).issue_book(principal, data.book_id, data.student_id))


@router.post("/issues/{issue_id}/renew", response_model=BookIssueOut)
def renew_book(
    issue_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return _issue_out(LibraryService(db).renew_book(principal, issue_id))


@router.post("/issues/{issue_id}/return", response_model=BookIssueOut)
def return_book(
    issue_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return _issue_out(LibraryService(db).return_book(principal, issue_id))


@router.post("/reminders/overdue")
def send_overdue_reminders(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    sent = LibraryService(db).send_overdue_reminders(principal)
    return {"message": f"Sent {sent} overdue reminders", "sent": sent}
