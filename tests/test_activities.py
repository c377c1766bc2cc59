# tests/test_activities.py - Activity listing by form and participation limits
from datetime import date, timedelta

import pytest

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import UserRole
from app.models.base import utcnow
from app.schemas.activity import ActivityCreate
from app.services.activity_service import ActivityService
from tests.conftest import auth_headers, principal_for


def create(service, principal, **overrides):
    data = {"title": "Science Fair", "date": date.today() + timedelta(days=7), "venue": "Main Hall"}
    data.update(overrides)
    return service.create_activity(principal, ActivityCreate(**data))


class TestActivities:
    def test_colliding_activity_number_is_regenerated(self, db, teacher_principal, monkeypatch):
        numbers = iter(["ACT1", "ACT1", "ACT2"])
        monkeypatch.setattr("app.services.activity_service.reference_number", lambda prefix: next(numbers))
        service = ActivityService(db)

        assert create(service, teacher_principal).activity_no == "ACT1"
        assert create(service, teacher_principal, title="Music Festival").activity_no == "ACT2"

    def test_listing_filters_by_student_form(self, db, student, student_principal, teacher_principal):
        service = ActivityService(db)
        create(service, teacher_principal, title="Everyone")
        create(service, teacher_principal, title="Form 1 only", target_forms=["Form 1"])
        create(service, teacher_principal, title="Form 4 only", target_forms=["Form 4"])

        titles = [a.title for a in service.list_activities(student_principal)]
        assert sorted(titles) == ["Everyone", "Form 1 only"]

    def test_join_and_leave(self, db, student, student_principal, teacher_principal):
        service = ActivityService(db)
        activity = create(service, teacher_principal)

        service.join_activity(student_principal, activity.id)
        assert activity.current_participants == 1
        with pytest.raises(ConflictError):
            service.join_activity(student_principal, activity.id)

        service.leave_activity(student_principal, activity.id)
        assert activity.current_participants == 0
        with pytest.raises(NotFoundError):
            service.leave_activity(student_principal, activity.id)

        service.join_activity(student_principal, activity.id)
        assert activity.current_participants == 1

    def test_full_activity(self, db, factory, teacher_principal):
        service = ActivityService(db)
        activity = create(service, teacher_principal, max_participants=1)
        first = principal_for(factory.student(), UserRole.STUDENT)
        second = principal_for(factory.student(), UserRole.STUDENT)

        service.join_activity(first, activity.id)
        with pytest.raises(ConflictError):
            service.join_activity(second, activity.id)

    def test_deadline_passed(self, db, student_principal, teacher_principal):
        service = ActivityService(db)
        activity = create(service, teacher_principal, registration_deadline=utcnow() - timedelta(hours=1))
        with pytest.raises(ValidationError):
            service.join_activity(student_principal, activity.id)

    def test_end_time_after_start(self, db, teacher_principal):
        from datetime import time

        with pytest.raises(ValidationError):
            create(ActivityService(db), teacher_principal, start_time=time(14, 0), end_time=time(13, 0))


class TestActivitiesApi:
    def test_create_and_join(self, client, student, teacher):
        created = client.post("/api/activities/", headers=auth_headers(teacher, UserRole.TEACHER), json={
            "title": "Drama Club", "date": (date.today() + timedelta(days=3)).isoformat(),
        })
        assert created.status_code == 201
        assert created.json()["target_forms"] == ["All"]

        joined = client.post(f"/api/activities/{created.json()['id']}/join",
                             headers=auth_headers(student, UserRole.STUDENT))
        assert joined.status_code == 200

        again = client.post(f"/api/activities/{created.json()['id']}/join",
                            headers=auth_headers(student, UserRole.STUDENT))
        assert again.status_code == 409
