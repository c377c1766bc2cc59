# app/services/library_service.py - Library catalogue, loans, renewals and returns
from sqlalchemy.orm import Session
from sqlalchemy import select, or_, func
from datetime import date, timedelta
from typing import Optional, List
import logging

from app.core.config import settings
from app.core.db import add_unique
from app.core.exceptions import ValidationError, NotFoundError, ConflictError
from app.core.permissions import Capability, Principal
from app.models.base import utcnow, reference_number
from app.models.library import LibraryBook, BookIssue, IssueStatus
from app.models.student import Student
from app.schemas.library import BookCreate, BookIssueOut
from app.services.ledger import to_money
from app.services.notification_service import NotificationService, NotificationTemplates

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def _today() -> date:
    return utcnow().date()


def loan_is_overdue(issue: BookIssue, today: Optional[date] = None) -> bool:
    return (
        issue.status == IssueStatus.ISSUED.value
        and issue.due_date is not None
        and issue.due_date < (today or _today())
    )


class LibraryService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    def _book(self, book_id: str) -> LibraryBook:
        book = self.db.get(LibraryBook, book_id)
        if not book:
            raise NotFoundError("Book not found")
        return book

    def _issue(self, issue_id: str) -> BookIssue:
        issue = self.db.get(BookIssue, issue_id)
        if not issue:
            raise NotFoundError("Book issue record not found")
        return issue

    def _notify(self, student_id: str, event: str, book: LibraryBook, due_date=None) -> None:
        student = self.db.get(Student, student_id)
        if student:
            self.notifications.send_template(
                student.user_id, NotificationTemplates.library(event, book.title, due_date)
            )

    def search_books(self, query: Optional[str] = None, limit: int = SEARCH_LIMIT) -> List[LibraryBook]:
        """Case-insensitive match on title, author or category"""
        statement = select(LibraryBook)
        if query and query.strip():
            pattern = f"%{query.strip().lower()}%"
            statement = statement.where(or_(
                func.lower(LibraryBook.title).like(pattern),
                func.lower(LibraryBook.author).like(pattern),
                func.lower(LibraryBook.category).like(pattern),
            ))
        limit = min(max(limit, 1), SEARCH_LIMIT)
        return list(self.db.execute(statement.order_by(LibraryBook.title).limit(limit)).scalars().all())

    def add_book(self, principal: Principal, request: BookCreate) -> LibraryBook:
        principal.require(Capability.MANAGE_LIBRARY, "Only the librarian can add books")
        for value, label in ((request.title, "Title"), (request.author, "Author"), (request.category, "Category")):
            if not value or not value.strip():
                raise ValidationError(f"{label} is required")

        def build() -> LibraryBook:
            return LibraryBook(
                book_no=reference_number("BK"),
                title=request.title.strip(),
                author=request.author.strip(),
                category=request.category.strip(),
                isbn=request.isbn,
                publisher=request.publisher,
                publication_year=request.publication_year,
                total_copies=request.total_copies,
                available_copies=request.total_copies,
                description=request.description,
            )

        book = add_unique(self.db, build, "Book")
        logger.info(f"Book {book.book_no} '{book.title}' added with {book.total_copies} copies")
        return book

    def list_issued_books(self, principal: Principal, student_id: str) -> List[BookIssueOut]:
        principal.require_student_access(student_id, Capability.MANAGE_LIBRARY)
        rows = self.db.execute(
            select(BookIssue, LibraryBook)
            .join(LibraryBook, BookIssue.book_id == LibraryBook.id)
            .where(
                BookIssue.student_id == student_id,
                BookIssue.status == IssueStatus.ISSUED.value,
            )
            .order_by(BookIssue.issue_date.desc(), BookIssue.created_at.desc())
        ).all()

        today = _today()
        issued = []
        for issue, book in rows:
            out = BookIssueOut.model_validate(issue, from_attributes=True)
            out.book_title = book.title
            out.book_author = book.author
            out.is_overdue = loan_is_overdue(issue, today)
            issued.append(out)
        return issued

    def issue_book(self, principal: Principal, book_id: str, student_id: str) -> BookIssue:
        principal.require(Capability.MANAGE_LIBRARY, "Only the librarian can issue books")
        book = self._book(book_id)
        if not self.db.get(Student, student_id):
            raise NotFoundError("Student not found")
        if book.available_copies <= 0:
            raise ConflictError("No copies of this book are available")

        # A pending request by the same student is fulfilled instead of duplicated
        issue = self.db.execute(
            select(BookIssue).where(
                BookIssue.book_id == book.id,
                BookIssue.student_id == student_id,
                BookIssue.status == IssueStatus.REQUESTED.value,
            )
        ).scalars().first()
        if issue is None:
            issue = BookIssue(book_id=book.id, student_id=student_id)
            self.db.add(issue)

        today = _today()
        issue.status = IssueStatus.ISSUED.value
        issue.issue_date = today
        issue.due_date = today + timedelta(days=settings.LIBRARY_LOAN_DAYS)
        issue.issued_by = principal.user_id
        book.available_copies -= 1
        self.db.commit()

        logger.info(f"Book {book.book_no} issued to student {student_id}, due {issue.due_date}")
        self._notify(student_id, "BookIssued", book, issue.due_date)
        return issue

    def request_book(self, principal: Principal, book_id: str) -> BookIssue:
        student_id = principal.require_student()
        book = self._book(book_id)
        if book.available_copies <= 0:
            raise ConflictError("No copies of this book are available")

        existing = self.db.execute(
            select(BookIssue).where(
                BookIssue.book_id == book.id,
                BookIssue.student_id == student_id,
                BookIssue.status.in_([IssueStatus.REQUESTED.value, IssueStatus.ISSUED.value]),
            )
        ).scalars().first()
        if existing:
            raise ConflictError("You have already requested or borrowed this book")

        issue = BookIssue(book_id=book.id, student_id=student_id, status=IssueStatus.REQUESTED.value)
        self.db.add(issue)
        self.db.commit()
        logger.info(f"Student {student_id} requested book {book.book_no}")
        return issue

    def renew_book(self, principal: Principal, issue_id: str) -> BookIssue:
        issue = self._issue(issue_id)
        principal.require_student_access(issue.student_id, Capability.MANAGE_LIBRARY)

        if issue.status != IssueStatus.ISSUED.value:
            raise ValidationError("Only issued books can be renewed")
        today = _today()
        if loan_is_overdue(issue, today):
            raise ValidationError("Overdue books must be returned before renewal")
        if issue.renewal_count >= settings.LIBRARY_MAX_RENEWALS:
            raise ValidationError(f"Maximum of {settings.LIBRARY_MAX_RENEWALS} renewals reached")

        issue.due_date = today + timedelta(days=settings.LIBRARY_LOAN_DAYS)
        issue.renewal_count += 1
        self.db.commit()
        logger.info(f"Book issue {issue.id} renewed until {issue.due_date}")
        return issue

    def return_book(self, principal: Principal, issue_id: str) -> BookIssue:
        principal.require(Capability.MANAGE_LIBRARY, "Only the librarian can record returns")
        issue = self._issue(issue_id)
        if issue.status != IssueStatus.ISSUED.value:
            raise ValidationError("This book is not currently issued")

        book = self._book(issue.book_id)
        today = _today()
        overdue_days = max((today - issue.due_date).days, 0) if issue.due_date else 0

        issue.status = IssueStatus.RETURNED.value
        issue.return_date = today
        issue.returned_to = principal.user_id
        issue.fine_amount = to_money(overdue_days * settings.LIBRARY_DAILY_FINE)
        book.available_copies = min(book.available_copies + 1, book.total_copies)
        self.db.commit()

        logger.info(f"Book {book.book_no} returned by student {issue.student_id}, fine {issue.fine_amount}")
        self._notify(issue.student_id, "BookReturned", book)
        return issue

    def send_overdue_reminders(self, principal: Principal) -> int:
        """High priority reminder for every loan past its due date"""
        principal.require(Capability.MANAGE_LIBRARY)
        rows = self.db.execute(
            select(BookIssue, LibraryBook)
            .join(LibraryBook, BookIssue.book_id == LibraryBook.id)
            .where(
                BookIssue.status == IssueStatus.ISSUED.value,
                BookIssue.due_date < _today(),
            )
        ).all()
        for issue, book in rows:
            self._notify(issue.student_id, "BookOverdue", book, issue.due_date)
        return len(rows)
