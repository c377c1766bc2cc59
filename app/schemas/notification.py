# app/schemas/notification.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class NotificationOut(BaseModel):
    id: str
    title: str
    message: str
    notification_type: str
    priority: str
    action_url: Optional[str]
    is_read: bool
    read_at: Optional[datetime]
    expiry_date: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationPage(BaseModel):
    notifications: List[NotificationOut]
    total: int
    unread: int
    page: int
    page_size: int
    has_next: bool


class BroadcastIn(BaseModel):
    title: str
    message: str
    notification_type: str = "General"
    priority: str = "Normal"
    action_url: Optional[str] = None
    recipient_ids: List[str] = []
    role: Optional[str] = None
    form: Optional[str] = None
    class_name: Optional[str] = None
    expiry_days: Optional[int] = Field(default=None, ge=1, le=365)


class BroadcastOut(BaseModel):
    sent: int
    recipients: int
