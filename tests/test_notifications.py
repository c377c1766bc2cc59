# tests/test_notifications.py - Inbox paging, read state, broadcasts, expiry and push delivery
import json
from datetime import timedelta

import httpx
import pytest

from app.core.exceptions import AuthorizationError, ValidationError
from app.models import Notification, UserRole
from app.models.base import utcnow
from app.services.notification_service import NotificationService, NotificationTemplates, PushService
from tests.conftest import auth_headers


class TestInbox:
    def test_paging_newest_first(self, db, student, student_principal):
        service = NotificationService(db)
        for n in range(3):
            service.send(student.user_id, f"Note {n}", "Body")

        page = service.list_notifications(student_principal, page=1, page_size=2)
        assert page["total"] == 3
        assert page["unread"] == 3
        assert page["has_next"] is True
        assert [n.title for n in page["notifications"]] == ["Note 2", "Note 1"]

    def test_read_state(self, db, student, student_principal):
        service = NotificationService(db)
        first = service.send(student.user_id, "One", "Body")
        service.send(student.user_id, "Two", "Body")

        service.mark_read(student_principal, first.id)
        assert service.unread_count(student_principal) == 1
        assert service.mark_all_read(student_principal) == 1
        assert service.unread_count(student_principal) == 0

    def test_expired_notifications_are_hidden_and_cleaned(self, db, student, student_principal):
        service = NotificationService(db)
        service.send(student.user_id, "Old", "Body", expiry_date=utcnow() - timedelta(days=1))
        service.send(student.user_id, "Fresh", "Body")

        assert [n.title for n in service.list_notifications(student_principal)["notifications"]] == ["Fresh"]
        assert service.cleanup_expired() == 1

    def test_validation(self, db, student):
        service = NotificationService(db)
        with pytest.raises(ValidationError):
            service.send(student.user_id, "", "Body")
        with pytest.raises(ValidationError):
            service.send(student.user_id, "Title", "Body", priority="Whenever")

    def test_template_failures_are_swallowed(self, db, student):
        service = NotificationService(db)
        template = ("Title", "Body", "NotAType", "Normal", None)
        assert service.send_template(student.user_id, template) is None

    def test_cannot_touch_other_users_notifications(self, db, factory, student, student_principal):
        from app.core.exceptions import NotFoundError

        other = factory.student(full_name="Other")
        note = NotificationService(db).send(other.user_id, "Private", "Body")
        with pytest.raises(NotFoundError):
            NotificationService(db).mark_read(student_principal, note.id)


class TestBroadcast:
    def test_send_to_form(self, db, factory, teacher_principal):
        in_form = factory.student(form="Form 2")
        factory.student(form="Form 3")
        sent = NotificationService(db).send_to_form(teacher_principal, "Form 2", "Trip", "Bring lunch")
        assert sent == 1
        assert db.query(Notification).filter_by(recipient_id=in_form.user_id).count() == 1

    def test_students_cannot_broadcast(self, db, student, student_principal):
        with pytest.raises(AuthorizationError):
            NotificationService(db).send_bulk(student_principal, [student.user_id], "Hi", "There")

    def test_broadcast_api_by_role(self, client, factory, teacher):
        factory.staff(UserRole.BURSAR)
        factory.staff(UserRole.BURSAR)
        response = client.post("/api/notifications/broadcast", headers=auth_headers(teacher, UserRole.TEACHER),
                               json={"title": "Meeting", "message": "3pm", "role": "Bursar"})
        assert response.status_code == 201
        assert response.json()["sent"] == 2

    def test_broadcast_api_requires_capability(self, client, student):
        response = client.post("/api/notifications/broadcast", headers=auth_headers(student, UserRole.STUDENT),
                               json={"title": "Hi", "message": "All", "role": "Student"})
        assert response.status_code == 403


class TestInboxApi:
    def test_list_read_and_delete(self, client, db, student):
        headers = auth_headers(student, UserRole.STUDENT)
        note = NotificationService(db).send(student.user_id, "Hello", "World")

        assert client.get("/api/notifications/unread-count", headers=headers).json() == {"unread": 1}
        read = client.post(f"/api/notifications/{note.id}/read", headers=headers)
        assert read.json()["is_read"] is True

        assert client.delete(f"/api/notifications/{note.id}", headers=headers).status_code == 204
        assert client.get("/api/notifications/", headers=headers).json()["total"] == 0


class TestPushService:
    def test_disabled_without_url(self, db, student):
        note = NotificationService(db).send(student.user_id, "Hello", "World")
        assert PushService().send_push(note) is False

    def test_posts_payload_to_gateway(self, db, student, monkeypatch):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["json"] = json.loads(request.read())
            captured["auth"] = request.headers.get("Authorization")
            return httpx.Response(200)

        transport = httpx.MockTransport(handler)
        real_client = httpx.Client
        monkeypatch.setattr(httpx, "Client", lambda **kwargs: real_client(transport=transport, **kwargs))

        push = PushService()
        push.url = "https://push.example/send"
        push.api_key = "key-1"
        note = NotificationService(db, push=push).send(
            student.user_id, *NotificationTemplates.payment_approved(1500, "RCP1")[:2]
        )

        assert captured["json"]["title"] == "Payment Approved"
        assert captured["json"]["recipient"] == student.user_id
        assert captured["json"]["category"] == "General"
        assert captured["auth"] == "Bearer key-1"
        assert note.id

    def test_gateway_errors_are_not_raised(self, db, student, monkeypatch):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        transport = httpx.MockTransport(handler)
        real_client = httpx.Client
        monkeypatch.setattr(httpx, "Client", lambda **kwargs: real_client(transport=transport, **kwargs))

        push = PushService()
        push.url = "https://push.example/send"
        note = NotificationService(db).send(student.user_id, "Hello", "World")
        assert push.send_push(note) is False
