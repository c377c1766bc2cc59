# tests/conftest.py - Shared fixtures: in-memory database, users of each role, auth headers
import os

# Settings are read at import time, so the environment is fixed before the app loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["ENV"] = "dev"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("NOTIFICATION_PUSH_URL", None)

import pytest
from fastapi.testclient import TestClient

from app.core.db import get_db, get_engine, get_session_maker
from app.core.permissions import Principal
from app.core.security import hash_password, token_manager
from app.main import app
from app.models import Base, User, UserRole, Student, Teacher, Staff

DEFAULT_PASSWORD = "Passw0rd!"


@pytest.fixture()
def db():
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    session = get_session_maker()()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class UserFactory:
    """Creates users with their profile rows directly, bypassing registration"""

    def __init__(self, db):
        self.db = db
        self.count = 0

    def _phone(self) -> str:
        self.count += 1
        return f"+2547000{self.count:05d}"

    def _user(self, role: UserRole, phone: str = None) -> User:
        user = User(
            phone_number=phone or self._phone(),
            password_hash=hash_password(DEFAULT_PASSWORD),
            role=role.value,
            is_active=True,
        )
        self.db.add(user)
        self.db.flush()
        return user

    def student(self, form: str = "Form 1", class_name: str = "East", full_name: str = "Jane Wanjiku",
                student_no: str = None) -> Student:
        user = self._user(UserRole.STUDENT)
        student = Student(
            user_id=user.id,
            student_no=student_no or f"GRS/2020/{self.count:03d}",
            admission_no=f"ADM{self.count:04d}",
            full_name=full_name,
            form=form,
            class_name=class_name,
            parent_phone=user.phone_number,
            year=2026,
            term=1,
        )
        self.db.add(student)
        self.db.commit()
        return student

    def teacher(self, full_name: str = "John Otieno") -> Teacher:
        user = self._user(UserRole.TEACHER)
        teacher = Teacher(
            user_id=user.id,
            teacher_no=f"TCH/2020/{self.count:03d}",
            full_name=full_name,
            employee_type="BOM",
            phone_number=user.phone_number,
        )
        self.db.add(teacher)
        self.db.commit()
        return teacher

    def staff(self, role: UserRole, full_name: str = None) -> Staff:
        user = self._user(role)
        staff = Staff(
            user_id=user.id,
            staff_no=f"STF/2020/{self.count:03d}",
            full_name=full_name or role.value,
            position=role.value,
            phone_number=user.phone_number,
        )
        self.db.add(staff)
        self.db.commit()
        return staff


@pytest.fixture()
def factory(db):
    return UserFactory(db)


def principal_for(profile, role: UserRole) -> Principal:
    return Principal(
        user_id=profile.user_id,
        role=role,
        display_name=profile.full_name,
        student_id=profile.id if role == UserRole.STUDENT else None,
    )


def auth_headers(profile, role: UserRole) -> dict:
    claims = {"role": role.value, "name": profile.full_name}
    if role == UserRole.STUDENT:
        claims["student_id"] = profile.id
    token = token_manager.create_access_token(subject=profile.user_id, additional_claims=claims)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def student(factory):
    return factory.student()


@pytest.fixture()
def student_principal(student):
    return principal_for(student, UserRole.STUDENT)


@pytest.fixture()
def bursar_principal(factory):
    return principal_for(factory.staff(UserRole.BURSAR, "Mary Bursar"), UserRole.BURSAR)


@pytest.fixture()
def secretary_principal(factory):
    return principal_for(factory.staff(UserRole.SECRETARY, "Sam Secretary"), UserRole.SECRETARY)


@pytest.fixture()
def librarian_principal(factory):
    return principal_for(factory.staff(UserRole.LIBRARIAN, "Lucy Librarian"), UserRole.LIBRARIAN)


@pytest.fixture()
def teacher(factory):
    return factory.teacher()


@pytest.fixture()
def teacher_principal(teacher):
    return principal_for(teacher, UserRole.TEACHER)
