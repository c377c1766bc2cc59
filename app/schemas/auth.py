# app/schemas/auth.py - Phone/password login and token schemas
from pydantic import BaseModel
from typing import Optional, Dict, Any


class LoginIn(BaseModel):
    phone_number: str
    password: str

    class Config:
        json_schema_extra = {
            "example": {
                "phone_number": "0712345678",
                "password": "GRS/2026/001"
            }
        }


class ProfileOut(BaseModel):
    user_id: str
    role: str
    full_name: str
    profile_id: str
    registration_number: str
    phone_number: str
    email: Optional[str] = None
    extra: Dict[str, Any] = {}


class LoginOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    role: str
    user_id: str
    profile: ProfileOut


class RefreshIn(BaseModel):
    refresh_token: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ChangePasswordIn(BaseModel):
    old_password: str
    new_password: str
