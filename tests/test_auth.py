# tests/test_auth.py - Phone login, refresh, profile and password change
import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.models import User, UserRole
from app.core.security import hash_password
from app.services.auth_service import AuthService, AuthenticationError
from tests.conftest import DEFAULT_PASSWORD, auth_headers


class TestAuthService:
    def test_login_with_local_phone_format(self, db, student):
        phone = db.get(User, student.user_id).phone_number  # +2547000NNNNN
        result = AuthService(db).login("0" + phone[4:], DEFAULT_PASSWORD)

        assert result.role == "Student"
        assert result.profile.profile_id == student.id
        assert result.profile.registration_number == student.student_no
        assert result.profile.extra["form"] == student.form
        assert db.get(User, student.user_id).last_login is not None

    def test_wrong_password(self, db, student):
        phone = db.get(User, student.user_id).phone_number
        with pytest.raises(AuthenticationError):
            AuthService(db).login(phone, "nope")

    def test_unknown_phone(self, db):
        with pytest.raises(AuthenticationError):
            AuthService(db).login("0799999999", DEFAULT_PASSWORD)

    def test_inactive_account(self, db, student):
        user = db.get(User, student.user_id)
        user.is_active = False
        db.commit()
        with pytest.raises(AuthenticationError):
            AuthService(db).login(user.phone_number, DEFAULT_PASSWORD)

    def test_missing_credentials(self, db):
        with pytest.raises(ValidationError):
            AuthService(db).login(" ", "")

    def test_user_without_profile(self, db):
        user = User(phone_number="+254799000000", password_hash=hash_password(DEFAULT_PASSWORD),
                    role=UserRole.TEACHER.value)
        db.add(user)
        db.commit()
        with pytest.raises(NotFoundError) as exc:
            AuthService(db).login(user.phone_number, DEFAULT_PASSWORD)
        assert exc.value.error_code == "PROFILE_NOT_FOUND"


class TestAuthApi:
    def test_login_and_me(self, client, db, teacher):
        phone = db.get(User, teacher.user_id).phone_number
        response = client.post("/api/auth/login", json={"phone_number": phone, "password": DEFAULT_PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "Teacher"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["registration_number"] == teacher.teacher_no

    def test_bad_login_is_401(self, client, student):
        response = client.post("/api/auth/login", json={"phone_number": "0799999999", "password": "x"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_INVALID_CREDENTIALS"

    def test_refresh(self, client, db, student):
        phone = db.get(User, student.user_id).phone_number
        tokens = client.post("/api/auth/login", json={"phone_number": phone, "password": DEFAULT_PASSWORD}).json()

        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["access_token"]

        wrong_type = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert wrong_type.status_code == 401

    def test_requests_without_token_are_rejected(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_change_password(self, client, db, student):
        headers = auth_headers(student, UserRole.STUDENT)
        weak = client.post("/api/auth/change-password", headers=headers,
                           json={"old_password": DEFAULT_PASSWORD, "new_password": "short"})
        assert weak.status_code == 400

        response = client.post("/api/auth/change-password", headers=headers,
                               json={"old_password": DEFAULT_PASSWORD, "new_password": "NewPassw0rd"})
        assert response.status_code == 200

        db.expire_all()
        user = db.get(User, student.user_id)
        assert user.password_changed is True
        login = client.post("/api/auth/login", json={"phone_number": user.phone_number, "password": "NewPassw0rd"})
        assert login.status_code == 200
