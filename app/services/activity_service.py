# app/services/activity_service.py - School activities and student participation
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Optional, List
import logging

from app.core.db import add_unique
from app.core.exceptions import ValidationError, NotFoundError, ConflictError
from app.core.permissions import Capability, Principal
from app.models.activity import Activity, ActivityRegistration
from app.models.base import utcnow, to_naive_utc, reference_number
from app.models.student import Student
from app.schemas.activity import ActivityCreate
from app.services.notification_service import NotificationService, NotificationTemplates

logger = logging.getLogger(__name__)

ALL_FORMS = "All"
REGISTERED = "Registered"
CANCELLED = "Cancelled"


def targets_form(activity: Activity, form: Optional[str]) -> bool:
    forms = activity.target_forms or [ALL_FORMS]
    return ALL_FORMS in forms or (form is not None and form in forms)


class ActivityService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    def _get(self, activity_id: str) -> Activity:
        activity = self.db.get(Activity, activity_id)
        if not activity:
            raise NotFoundError("Activity not found")
        return activity

    def _student(self, principal: Principal) -> Student:
        student = self.db.get(Student, principal.require_student())
        if not student:
            raise NotFoundError("Student not found")
        return student

    def _registration(self, activity_id: str, student_id: str) -> Optional[ActivityRegistration]:
        return self.db.execute(
            select(ActivityRegistration).where(
                ActivityRegistration.activity_id == activity_id,
                ActivityRegistration.student_id == student_id,
            )
        ).scalar_one_or_none()

    def list_activities(self, principal: Principal, form: Optional[str] = None) -> List[Activity]:
        """Activities for a form (or open to all), earliest first"""
        if principal.is_student:
            form = self._student(principal).form

        activities = self.db.execute(
            select(Activity)
            .where(Activity.status != CANCELLED)
            .order_by(Activity.date.asc(), Activity.start_time.asc())
        ).scalars().all()

        if not form:
            return list(activities)
        return [a for a in activities if targets_form(a, form)]

    def create_activity(self, principal: Principal, request: ActivityCreate) -> Activity:
        principal.require(Capability.MANAGE_ACTIVITIES, "You are not allowed to create activities")
        if not request.title or not request.title.strip():
            raise ValidationError("Title is required")
        if request.start_time and request.end_time and request.end_time <= request.start_time:
            raise ValidationError("End time must be after start time")

        target_forms = [f.strip() for f in request.target_forms if f and f.strip()] or [ALL_FORMS]

        def build() -> Activity:
            return Activity(
                activity_no=reference_number("ACT"),
                title=request.title.strip(),
                description=request.description,
                date=request.date,
                start_time=request.start_time,
                end_time=request.end_time,
                venue=request.venue,
                activity_type=request.activity_type,
                organizer=request.organizer or principal.display_name,
                target_forms_csv=",".join(target_forms),
                is_optional=request.is_optional,
                registration_deadline=to_naive_utc(request.registration_deadline),
                max_participants=request.max_participants,
                requirements=request.requirements,
                created_by=principal.user_id,
            )

        activity = add_unique(self.db, build, "Activity")
        logger.info(f"Activity {activity.activity_no} '{activity.title}' created for {target_forms}")

        if ALL_FORMS in target_forms:
            recipients = self.notifications.student_user_ids()
        else:
            recipients = []
            for form in target_forms:
                recipients.extend(self.notifications.student_user_ids(form=form))
        self.notifications.send_template_bulk(
            recipients,
            NotificationTemplates.activity(activity.title, activity.date, activity.venue),
            created_by=principal.user_id,
        )
        return activity

    def join_activity(self, principal: Principal, activity_id: str) -> ActivityRegistration:
        student = self._student(principal)
        activity = self._get(activity_id)

        if activity.status == CANCELLED:
            raise ValidationError("This activity has been cancelled")
        if not targets_form(activity, student.form):
            raise ValidationError("This activity is not open to your form")
        if activity.registration_deadline and utcnow() > activity.registration_deadline:
            raise ValidationError("Registration deadline has passed")

        registration = self._registration(activity.id, student.id)
        if registration and registration.status == REGISTERED:
            raise ConflictError("You are already registered for this activity")
        if activity.max_participants and activity.current_participants >= activity.max_participants:
            raise ConflictError("This activity is full")

        if registration is None:
            registration = ActivityRegistration(activity_id=activity.id, student_id=student.id)
            self.db.add(registration)
        registration.status = REGISTERED
        registration.registration_date = utcnow()
        activity.current_participants += 1
        self.db.commit()

        logger.info(f"Student {student.student_no} joined activity {activity.activity_no}")
        return registration

    def leave_activity(self, principal: Principal, activity_id: str) -> ActivityRegistration:
        student = self._student(principal)
        activity = self._get(activity_id)

        registration = self._registration(activity.id, student.id)
        if registration is None or registration.status != REGISTERED:
            raise NotFoundError("You are not registered for this activity")

        registration.status = CANCELLED
        activity.current_participants = max(activity.current_participants - 1, 0)
        self.db.commit()

        logger.info(f"Student {student.student_no} left activity {activity.activity_no}")
        return registration
