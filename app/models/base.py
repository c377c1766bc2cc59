# app/models/base.py - Declarative base shared by all models
import random
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime from a request to the stored naive UTC form"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def reference_number(prefix: str, now: datetime | None = None) -> str:
    """Human-facing number such as BK20261017093000123: prefix, timestamp, random suffix"""
    now = now or utcnow()
    return f"{prefix}{now.strftime('%Y%m%d%H%M%S')}{random.randint(100, 999)}"
