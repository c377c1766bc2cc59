# app/services/notification_service.py - In-app notifications with optional push delivery
from sqlalchemy.orm import Session
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, List, Iterable, Tuple
import logging

import httpx

from app.core.config import settings
from app.core.exceptions import ValidationError, NotFoundError
from app.core.permissions import Capability, Principal
from app.models.base import utcnow
from app.models.notification import Notification
from app.models.student import Student
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = {
    "General", "Payment", "Assignment", "Library", "Activity", "Academic", "Registration",
}
PRIORITIES = {"Low", "Normal", "High", "Urgent"}


class PushService:
    """Push gateway client; delivery is best effort and never raises"""

    def __init__(self):
        self.url = settings.NOTIFICATION_PUSH_URL
        self.api_key = settings.NOTIFICATION_PUSH_API_KEY
        self.timeout = settings.NOTIFICATION_PUSH_TIMEOUT

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def send_push(self, notification: Notification) -> bool:
        if not self.enabled:
            logger.debug(f"Push disabled, stored notification {notification.id} only")
            return False

        payload = {
            "recipient": notification.recipient_id,
            "title": notification.title,
            "body": notification.message,
            "category": notification.notification_type,
            "priority": notification.priority,
            "link": notification.action_url,
            "expiry": notification.expiry_date.isoformat() if notification.expiry_date else None,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.url, json=payload, headers=headers)
                response.raise_for_status()
            logger.info(f"Push sent for notification {notification.id}")
            return True
        except httpx.HTTPError as e:
            logger.warning(f"Push delivery failed for notification {notification.id}: {e}")
            return False


def _fmt_date(value) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime("%b %d, %Y") if isinstance(value, date) else ""


def _fmt_money(amount) -> str:
    return f"{settings.CURRENCY} {Decimal(str(amount)):,.2f}"


class NotificationTemplates:
    """Titles and messages for notifications raised by other services.

    Each template returns (title, message, notification_type, priority, action_url).
    """

    @staticmethod
    def payment_received(amount, receipt_number: str, payment_method: str) -> Tuple[str, str, str, str, str]:
        message = (
            f"Your payment of {_fmt_money(amount)} has been received successfully. "
            f"Receipt Number: {receipt_number}. Payment Method: {payment_method}"
        )
        return "Payment Received", message, "Payment", "Normal", "/fees"

    @staticmethod
    def payment_approved(amount, receipt_number: str) -> Tuple[str, str, str, str, str]:
        message = f"Your payment of {_fmt_money(amount)} (Receipt {receipt_number}) has been approved"
        return "Payment Approved", message, "Payment", "Normal", "/fees"

    @staticmethod
    def payment_rejected(amount, receipt_number: str, reason: str) -> Tuple[str, str, str, str, str]:
        message = f"Your payment of {_fmt_money(amount)} (Receipt {receipt_number}) was rejected: {reason}"
        return "Payment Rejected", message, "Payment", "High", "/fees"

    @staticmethod
    def new_assignment(title: str, subject: str, due_date) -> Tuple[str, str, str, str, str]:
        message = f"New assignment '{title}' for {subject} is due on {_fmt_date(due_date)}"
        return "New Assignment", message, "Assignment", "Normal", "/assignments"

    @staticmethod
    def marks_entered(subject: str, term: int, total) -> Tuple[str, str, str, str, str]:
        message = f"Your marks for {subject} in Term {term} have been entered: {total}%"
        return "Marks Entered", message, "Academic", "Normal", "/performance"

    @staticmethod
    def library(event: str, book_title: str, due_date=None) -> Tuple[str, str, str, str, str]:
        titles = {
            "BookIssued": "Book Issued",
            "BookDue": "Book Due Soon",
            "BookOverdue": "Book Overdue",
            "BookReturned": "Book Returned",
        }
        messages = {
            "BookIssued": f"You have successfully borrowed '{book_title}'. Due date: {_fmt_date(due_date)}",
            "BookDue": f"Book '{book_title}' is due on {_fmt_date(due_date)}",
            "BookOverdue": f"Book '{book_title}' was due on {_fmt_date(due_date)} and is now overdue",
            "BookReturned": f"You have successfully returned '{book_title}'",
        }
        priority = "High" if event == "BookOverdue" else "Normal"
        return (
            titles.get(event, "Library Notification"),
            messages.get(event, f"Library notification for '{book_title}'"),
            "Library",
            priority,
            "/library",
        )

    @staticmethod
    def activity(title: str, activity_date, venue: Optional[str]) -> Tuple[str, str, str, str, str]:
        message = f"'{title}' scheduled for {_fmt_date(activity_date)} at {venue or 'School'}"
        return "School Activity", message, "Activity", "Normal", "/activities"

    @staticmethod
    def registration_complete(welcome_message: str) -> Tuple[str, str, str, str, str]:
        message = f"Welcome to {settings.SCHOOL_NAME}! {welcome_message}"
        return "Registration Complete", message, "Registration", "Normal", "/profile"


class NotificationService:
    """Stores notifications and hands them to the push gateway"""

    def __init__(self, db: Session, push: Optional[PushService] = None):
        self.db = db
        self.push = push or push_service

    def send(
        self,
        recipient_id: str,
        title: str,
        message: str,
        notification_type: str = "General",
        priority: str = "Normal",
        action_url: Optional[str] = None,
        expiry_date: Optional[datetime] = None,
        created_by: Optional[str] = None,
    ) -> Notification:
        if not recipient_id or not title or not title.strip() or not message or not message.strip():
            raise ValidationError("Recipient, title and message are required")
        if notification_type not in NOTIFICATION_TYPES:
            raise ValidationError(f"Unknown notification type: {notification_type}")
        if priority not in PRIORITIES:
            raise ValidationError(f"Unknown priority: {priority}")

        notification = Notification(
            recipient_id=recipient_id,
            title=title.strip(),
            message=message.strip(),
            notification_type=notification_type,
            priority=priority,
            action_url=action_url,
            expiry_date=expiry_date or utcnow() + timedelta(days=settings.NOTIFICATION_DEFAULT_TTL_DAYS),
            created_by=created_by or "System",
        )
        self.db.add(notification)
        self.db.commit()

        self.push.send_push(notification)
        return notification

    def send_template(self, recipient_id: str, template: Tuple[str, str, str, str, str],
                      created_by: Optional[str] = None) -> Optional[Notification]:
        """Fire-and-forget send used by other services; failures are logged only"""
        title, message, notification_type, priority, action_url = template
        try:
            return self.send(
                recipient_id, title, message,
                notification_type=notification_type,
                priority=priority,
                action_url=action_url,
                created_by=created_by,
            )
        except (SQLAlchemyError, ValidationError) as e:
            self.db.rollback()
            logger.error(f"Failed to store '{title}' notification for {recipient_id}: {e}", exc_info=True)
            return None

    def send_template_bulk(self, recipient_ids: Iterable[str], template: Tuple[str, str, str, str, str],
                           created_by: Optional[str] = None) -> int:
        sent = 0
        for recipient_id in recipient_ids:
            if self.send_template(recipient_id, template, created_by=created_by) is not None:
                sent += 1
        return sent

    # Broadcasts

    def send_bulk(
        self,
        principal: Principal,
        recipient_ids: List[str],
        title: str,
        message: str,
        notification_type: str = "General",
        priority: str = "Normal",
        action_url: Optional[str] = None,
        expiry_days: Optional[int] = None,
    ) -> int:
        principal.require(Capability.BROADCAST_NOTIFICATIONS)
        recipients = list(dict.fromkeys(r for r in recipient_ids if r))
        if not recipients:
            raise ValidationError("At least one recipient is required")

        expiry = utcnow() + timedelta(days=expiry_days) if expiry_days else None
        for recipient_id in recipients:
            self.send(
                recipient_id, title, message,
                notification_type=notification_type,
                priority=priority,
                action_url=action_url,
                expiry_date=expiry,
                created_by=principal.user_id,
            )

        logger.info(f"{principal.user_id} sent '{title}' to {len(recipients)} recipients")
        return len(recipients)

    def send_to_role(self, principal: Principal, role: str, title: str, message: str, **kwargs) -> int:
        try:
            user_role = UserRole(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role}")
        recipient_ids = self.db.execute(
            select(User.id).where(User.role == user_role.value, User.is_active.is_(True))
        ).scalars().all()
        return self._send_if_any(principal, list(recipient_ids), title, message, **kwargs)

    def send_to_form(self, principal: Principal, form: str, title: str, message: str, **kwargs) -> int:
        return self._send_if_any(principal, self.student_user_ids(form=form), title, message, **kwargs)

    def send_to_class(self, principal: Principal, form: str, class_name: str,
                      title: str, message: str, **kwargs) -> int:
        return self._send_if_any(
            principal, self.student_user_ids(form=form, class_name=class_name), title, message, **kwargs
        )

    def _send_if_any(self, principal: Principal, recipient_ids: List[str], title: str, message: str, **kwargs) -> int:
        principal.require(Capability.BROADCAST_NOTIFICATIONS)
        if not recipient_ids:
            return 0
        return self.send_bulk(principal, recipient_ids, title, message, **kwargs)

    def student_user_ids(self, form: Optional[str] = None, class_name: Optional[str] = None) -> List[str]:
        query = select(Student.user_id).where(Student.is_active.is_(True))
        if form:
            query = query.where(Student.form == form)
        if class_name:
            query = query.where(Student.class_name == class_name)
        return list(self.db.execute(query).scalars().all())

    # Inbox

    def _own_active(self, principal: Principal):
        now = utcnow()
        return (
            Notification.recipient_id == principal.user_id,
            (Notification.expiry_date.is_(None)) | (Notification.expiry_date > now),
        )

    def list_notifications(self, principal: Principal, page: int = 1, page_size: int = 20) -> dict:
        page = max(page, 1)
        page_size = min(max(page_size, 1), 100)
        filters = self._own_active(principal)

        total = self.db.execute(select(func.count(Notification.id)).where(*filters)).scalar_one()
        rows = self.db.execute(
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()

        return {
            "notifications": list(rows),
            "total": total,
            "unread": self.unread_count(principal),
            "page": page,
            "page_size": page_size,
            "has_next": page * page_size < total,
        }

    def unread_count(self, principal: Principal) -> int:
        return self.db.execute(
            select(func.count(Notification.id)).where(
                *self._own_active(principal), Notification.is_read.is_(False)
            )
        ).scalar_one()

    def _get_own(self, principal: Principal, notification_id: str) -> Notification:
        notification = self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == principal.user_id,
            )
        ).scalar_one_or_none()
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    def mark_read(self, principal: Principal, notification_id: str) -> Notification:
        notification = self._get_own(principal, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            self.db.commit()
        return notification

    def mark_all_read(self, principal: Principal) -> int:
        result = self.db.execute(
            update(Notification)
            .where(Notification.recipient_id == principal.user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
        )
        self.db.commit()
        return result.rowcount

    def delete(self, principal: Principal, notification_id: str) -> None:
        notification = self._get_own(principal, notification_id)
        self.db.delete(notification)
        self.db.commit()

    def delete_all(self, principal: Principal) -> int:
        result = self.db.execute(
            delete(Notification).where(Notification.recipient_id == principal.user_id)
        )
        self.db.commit()
        return result.rowcount

    def cleanup_expired(self) -> int:
        result = self.db.execute(
            delete(Notification).where(
                Notification.expiry_date.is_not(None),
                Notification.expiry_date < utcnow(),
            )
        )
        self.db.commit()
        if result.rowcount:
            logger.info(f"Removed {result.rowcount} expired notifications")
        return result.rowcount


push_service = PushService()
