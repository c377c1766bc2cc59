# app/api/routers/activities.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.db import get_db
from app.core.permissions import Principal
from app.api.deps.auth import get_current_principal
from app.schemas.activity import ActivityCreate, ActivityOut
from app.schemas.common import MessageOut
from app.services.activity_service import ActivityService

router = APIRouter()


@router.get("/", response_model=List[ActivityOut])
def list_activities(
    form: Optional[str] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return ActivityService(db).list_activities(principal, form)


@router.post("/", response_model=ActivityOut, status_code=status.HTTP_201_CREATED)
def create_activity(
    data: ActivityCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return ActivityService(db).create_activity(principal, data)


@router.post("/{activity_id}/join", response_model=MessageOut)
def join_activity(
    activity_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    ActivityService(db).join_activity(principal, activity_id)
    return MessageOut(message="Registered for activity")


@router.post("/{activity_id}/leave", response_model=MessageOut)
def leave_activity(
    activity_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    ActivityService(db).leave_activity(principal, activity_id)
    return MessageOut(message="Registration cancelled")
