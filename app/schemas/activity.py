# app/schemas/activity.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime, time


class ActivityCreate(BaseModel):
    title: str
    date: date
    description: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    venue: Optional[str] = None
    activity_type: str = "General"
    organizer: Optional[str] = None
    target_forms: List[str] = ["All"]
    is_optional: bool = True
    registration_deadline: Optional[datetime] = None
    max_participants: Optional[int] = Field(default=None, gt=0)
    requirements: Optional[str] = None


class ActivityOut(BaseModel):
    id: str
    activity_no: str
    title: str
    description: Optional[str]
    date: date
    start_time: Optional[time]
    end_time: Optional[time]
    venue: Optional[str]
    activity_type: str
    organizer: Optional[str]
    target_forms: List[str]
    is_optional: bool
    registration_deadline: Optional[datetime]
    max_participants: Optional[int]
    current_participants: int
    status: str

    class Config:
        from_attributes = True
