# app/api/routers/auth.py - Phone/password login, token refresh and profile
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from app.core.db import get_db
from app.core.permissions import Principal
from app.api.deps.auth import get_current_principal
from app.schemas.auth import LoginIn, LoginOut, RefreshIn, TokenOut, ChangePasswordIn, ProfileOut
from app.schemas.common import MessageOut
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/login", response_model=LoginOut)
def login(credentials: LoginIn, db: Session = Depends(get_db)):
    """Authenticate with phone number and password"""
    return AuthService(db).login(credentials.phone_number, credentials.password)


@router.post("/refresh", response_model=TokenOut)
def refresh(data: RefreshIn, db: Session = Depends(get_db)):
    return AuthService(db).refresh(data.refresh_token)


@router.get("/me", response_model=ProfileOut)
def me(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return AuthService(db).me(principal)


@router.post("/change-password", response_model=MessageOut)
def change_password(
    data: ChangePasswordIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    AuthService(db).change_password(principal, data.old_password, data.new_password)
    return MessageOut(message="Password changed successfully")
