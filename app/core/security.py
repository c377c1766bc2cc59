# app/core/security.py - Authentication utilities (JWT, password hashing, phone numbers)
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Union
import secrets
import re

import jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status

from app.core.config import settings

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
    bcrypt__ident="2b"
)


class SecurityError(Exception):
    """Custom exception for security-related errors"""
    pass


class TokenManager:
    """Manages JWT token creation, validation, and refresh"""

    RESERVED_CLAIMS = {"sub", "iat", "exp", "iss", "aud", "type", "jti"}

    def __init__(self):
        self.secret_key = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.issuer = settings.JWT_ISSUER
        self.audience = settings.JWT_AUDIENCE
        self.access_token_expire_minutes = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        self.refresh_token_expire_days = settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS

    def _encode(self, subject: Union[str, Any], token_type: str, expire: datetime,
                additional_claims: Optional[Dict[str, Any]] = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(subject),
            "iat": now,
            "exp": expire,
            "iss": self.issuer,
            "aud": self.audience,
            "type": token_type,
            "jti": secrets.token_hex(16),
        }

        if additional_claims:
            for claim in additional_claims:
                if claim in self.RESERVED_CLAIMS:
                    raise SecurityError(f"Cannot override reserved JWT claim: {claim}")
            payload.update(additional_claims)

        try:
            return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except jwt.PyJWTError as e:
            raise SecurityError(f"Failed to create {token_type} token: {e}")

    def create_access_token(
        self,
        subject: Union[str, Any],
        expires_delta: Optional[timedelta] = None,
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Create a JWT access token.

        Args:
            subject: Token subject (user ID)
            expires_delta: Custom expiration time
            additional_claims: Additional JWT claims (role, student_id, name)

        Returns:
            Encoded JWT token string

        Raises:
            SecurityError: If token creation fails
        """
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(minutes=self.access_token_expire_minutes)
        )
        return self._encode(subject, "access", expire, additional_claims)

    def create_refresh_token(
        self,
        subject: Union[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create a JWT refresh token with longer expiration."""
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(days=self.refresh_token_expire_days)
        )
        return self._encode(subject, "refresh", expire)

    def decode_token(
        self,
        token: str,
        expected_type: str = "access",
    ) -> Dict[str, Any]:
        """
        Decode and validate a JWT token.

        Raises:
            HTTPException: If token is invalid, expired or of the wrong type
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            )
        except jwt.InvalidTokenError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token: {e}",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if payload.get("type") != expected_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token type. Expected {expected_type}",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return payload

    def refresh_access_token(self, refresh_token: str, additional_claims: Optional[Dict[str, Any]] = None) -> str:
        """Create a new access token from a valid refresh token."""
        payload = self.decode_token(refresh_token, expected_type="refresh")
        return self.create_access_token(subject=payload["sub"], additional_claims=additional_claims)


class PasswordManager:
    """Manages password hashing and verification"""

    @staticmethod
    def hash_password(password: str) -> str:
        if not password:
            raise SecurityError("Password cannot be empty")
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        if not plain_password or not hashed_password:
            return False
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError):
            return False

    @staticmethod
    def validate_password_strength(password: str) -> Dict[str, Any]:
        """
        Minimal strength rules for user-chosen passwords.

        Generated default passwords (registration numbers) are exempt; this
        only applies when a user changes their password.
        """
        feedback = []
        if not password or len(password) < 8:
            feedback.append("Password must be at least 8 characters long")
        if password and not re.search(r'\d', password):
            feedback.append("Password must contain at least one digit")
        if password and not re.search(r'[A-Za-z]', password):
            feedback.append("Password must contain at least one letter")
        return {"valid": not feedback, "feedback": feedback}


class PhoneNumbers:
    """Kenyan phone number helpers"""

    COUNTRY_CODE = "254"

    @staticmethod
    def clean(phone_number: str) -> str:
        return "".join(c for c in (phone_number or "") if c.isdigit() or c == "+")

    @classmethod
    def is_valid(cls, phone_number: str) -> bool:
        if not phone_number or not phone_number.strip():
            return False
        cleaned = cls.clean(phone_number)
        if len(cleaned) == 9 and cleaned.isdigit():
            return True
        return len(cleaned) >= 10 and (
            cleaned.startswith("+254") or cleaned.startswith("254") or cleaned.startswith("0")
        )

    @classmethod
    def normalize(cls, phone_number: str) -> str:
        """Normalize to +254XXXXXXXXX; unknown shapes are returned cleaned"""
        cleaned = cls.clean(phone_number)
        if cleaned.startswith("+"):
            return cleaned
        if cleaned.startswith(cls.COUNTRY_CODE):
            return f"+{cleaned}"
        if cleaned.startswith("0"):
            return f"+{cls.COUNTRY_CODE}{cleaned[1:]}"
        if len(cleaned) == 9:
            return f"+{cls.COUNTRY_CODE}{cleaned}"
        return cleaned


# Global instances
token_manager = TokenManager()
password_manager = PasswordManager()


def hash_password(password: str) -> str:
    return password_manager.hash_password(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return password_manager.verify_password(plain_password, hashed_password)


def create_access_token(subject: Union[str, Any], additional_claims: Optional[Dict[str, Any]] = None) -> str:
    return token_manager.create_access_token(subject=subject, additional_claims=additional_claims)


def decode_token(token: str, expected_type: str = "access") -> Dict[str, Any]:
    return token_manager.decode_token(token, expected_type=expected_type)


__all__ = [
    "SecurityError",
    "TokenManager",
    "PasswordManager",
    "PhoneNumbers",
    "token_manager",
    "password_manager",
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_token",
]
