# app/models/__init__.py - Import all models so SQLAlchemy can discover them

from app.models.base import Base

from app.models.user import User, UserRole
from app.models.student import Student
from app.models.staff import Teacher, Staff
from app.models.sequence import IdSequence
from app.models.fees import FeesAccount, FeesPayment, PaymentStatus
from app.models.assignment import Assignment, AssignmentSubmission
from app.models.library import LibraryBook, BookIssue, IssueStatus
from app.models.activity import Activity, ActivityRegistration
from app.models.marks import MarkEntry, GradingScheme
from app.models.notification import Notification

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Student",
    "Teacher",
    "Staff",
    "IdSequence",
    "FeesAccount",
    "FeesPayment",
    "PaymentStatus",
    "Assignment",
    "AssignmentSubmission",
    "LibraryBook",
    "BookIssue",
    "IssueStatus",
    "Activity",
    "ActivityRegistration",
    "MarkEntry",
    "GradingScheme",
    "Notification",
]
