# app/core/permissions.py - Authenticated principal and role → capability policy
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from app.core.exceptions import AuthorizationError
from app.models.user import UserRole


class Capability(str, enum.Enum):
    VIEW_ALL_FEES = "VIEW_ALL_FEES"
    MANAGE_FEES = "MANAGE_FEES"
    APPROVE_PAYMENTS = "APPROVE_PAYMENTS"
    REGISTER_USERS = "REGISTER_USERS"
    MANAGE_STUDENTS = "MANAGE_STUDENTS"
    MANAGE_ASSIGNMENTS = "MANAGE_ASSIGNMENTS"
    GRADE_ASSIGNMENTS = "GRADE_ASSIGNMENTS"
    ENTER_MARKS = "ENTER_MARKS"
    APPROVE_MARKS = "APPROVE_MARKS"
    VIEW_ALL_MARKS = "VIEW_ALL_MARKS"
    MANAGE_GRADING = "MANAGE_GRADING"
    MANAGE_LIBRARY = "MANAGE_LIBRARY"
    MANAGE_ACTIVITIES = "MANAGE_ACTIVITIES"
    BROADCAST_NOTIFICATIONS = "BROADCAST_NOTIFICATIONS"


_BURSARY = {UserRole.BURSAR, UserRole.PRINCIPAL, UserRole.SECRETARY}
_REGISTRY = {UserRole.SECRETARY, UserRole.PRINCIPAL}
_ACADEMIC = {UserRole.TEACHER, UserRole.PRINCIPAL, UserRole.DEPUTY_PRINCIPAL}
_HEADS = {UserRole.PRINCIPAL, UserRole.DEPUTY_PRINCIPAL}

POLICY: dict[Capability, frozenset[UserRole]] = {
    Capability.VIEW_ALL_FEES: frozenset(_BURSARY),
    Capability.MANAGE_FEES: frozenset(_BURSARY),
    Capability.APPROVE_PAYMENTS: frozenset(_BURSARY),
    Capability.REGISTER_USERS: frozenset(_REGISTRY),
    Capability.MANAGE_STUDENTS: frozenset(_REGISTRY | {UserRole.DEPUTY_PRINCIPAL}),
    Capability.MANAGE_ASSIGNMENTS: frozenset(_ACADEMIC),
    Capability.GRADE_ASSIGNMENTS: frozenset(_ACADEMIC),
    Capability.ENTER_MARKS: frozenset(_ACADEMIC),
    Capability.APPROVE_MARKS: frozenset(_HEADS),
    Capability.VIEW_ALL_MARKS: frozenset(_ACADEMIC),
    Capability.MANAGE_GRADING: frozenset(_HEADS),
    Capability.MANAGE_LIBRARY: frozenset({UserRole.LIBRARIAN, UserRole.PRINCIPAL}),
    Capability.MANAGE_ACTIVITIES: frozenset(_ACADEMIC | {UserRole.SECRETARY}),
    Capability.BROADCAST_NOTIFICATIONS: frozenset(_ACADEMIC | _BURSARY),
}


def role_has(role: UserRole, capability: Capability) -> bool:
    return role in POLICY.get(capability, frozenset())


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, built once per request and passed to services"""

    user_id: str
    role: UserRole
    display_name: str = "System"
    student_id: Optional[str] = None

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    def can(self, capability: Capability) -> bool:
        return role_has(self.role, capability)

    def require(self, capability: Capability, message: Optional[str] = None) -> None:
        if not self.can(capability):
            raise AuthorizationError(
                message or f"{self.role.value} is not allowed to perform {capability.value}"
            )

    def require_student(self) -> str:
        """Return the caller's student profile id, or raise for non-students"""
        if not self.is_student or not self.student_id:
            raise AuthorizationError("No authenticated student found")
        return self.student_id

    def require_student_access(self, student_id: str, capability: Capability = Capability.VIEW_ALL_FEES) -> None:
        """Students may read their own records; others need the capability"""
        if self.is_student and self.student_id == student_id:
            return
        self.require(capability, "You can only access your own records")


__all__ = ["Capability", "POLICY", "Principal", "role_has"]
