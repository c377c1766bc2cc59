# app/api/routers/notifications.py - Inbox and staff broadcasts
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
import logging

from app.core.db import get_db
from app.core.exceptions import ValidationError
from app.core.permissions import Capability, Principal
from app.api.deps.auth import get_current_principal, require_capability
from app.schemas.common import MessageOut
from app.schemas.notification import NotificationOut, NotificationPage, BroadcastIn, BroadcastOut
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=NotificationPage)
def list_notifications(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return NotificationService(db).list_notifications(principal, page, page_size)


@router.get("/unread-count")
def unread_count(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return {"unread": NotificationService(db).unread_count(principal)}


@router.post("/read-all", response_model=MessageOut)
def mark_all_read(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    count = NotificationService(db).mark_all_read(principal)
    return MessageOut(message=f"Marked {count} notifications as read")


@router.post("/broadcast", response_model=BroadcastOut, status_code=status.HTTP_201_CREATED)
def broadcast(
    data: BroadcastIn,
    principal: Principal = Depends(require_capability(Capability.BROADCAST_NOTIFICATIONS)),
    db: Session = Depends(get_db)
):
    """Send to explicit recipients, a role, a form or a class"""
    service = NotificationService(db)
    options = {
        "notification_type": data.notification_type,
        "priority": data.priority,
        "action_url": data.action_url,
        "expiry_days": data.expiry_days,
    }

    if data.recipient_ids:
        sent = service.send_bulk(principal, data.recipient_ids, data.title, data.message, **options)
    elif data.role:
        sent = service.send_to_role(principal, data.role, data.title, data.message, **options)
    elif data.form and data.class_name:
        sent = service.send_to_class(principal, data.form, data.class_name, data.title, data.message, **options)
    elif data.form:
        sent = service.send_to_form(principal, data.form, data.title, data.message, **options)
    else:
        raise ValidationError("Specify recipient_ids, role, form or class_name")

    return BroadcastOut(sent=sent, recipients=sent)


@router.post("/cleanup", response_model=MessageOut)
def cleanup_expired(
    principal: Principal = Depends(require_capability(Capability.BROADCAST_NOTIFICATIONS)),
    db: Session = Depends(get_db)
):
    removed = NotificationService(db).cleanup_expired()
    return MessageOut(message=f"Removed {removed} expired notifications")


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return NotificationService(db).mark_read(principal, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    NotificationService(db).delete(principal, notification_id)


@router.delete("/", response_model=MessageOut)
def delete_all_notifications(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    count = NotificationService(db).delete_all(principal)
    return MessageOut(message=f"Deleted {count} notifications")
