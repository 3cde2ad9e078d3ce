from typing import Any, Dict, List, Union

import structlog

from ..db.models import InternshipStatus, WeeklyUpdate
from ..errors import AuthorizationError, InvalidStateError, NotFoundError
from ..notifications import NotificationType
from .base import Component
from .models import ReviewWeeklyUpdateRequest, SubmitWeeklyUpdateRequest, parse_request

logger = structlog.get_logger(__name__)


class WeeklyUpdateTrack(Component):
    """Progress reporting for freelancers, who have no company tasks."""

    def submit(self, student_id: str, payload: Union[SubmitWeeklyUpdateRequest, Dict[str, Any]]) -> WeeklyUpdate:
        """
        Create or overwrite the update for one week.

        An overwrite resets the update to `submitted` and discards any
        faculty review of the previous version.
        """
        request = parse_request(SubmitWeeklyUpdateRequest, payload)

        with self.store.transaction():
            student = self._require_student(student_id)
            if not student.is_freelancer:
                raise AuthorizationError("Only freelancers submit weekly updates", {"student_id": student_id})
            if student.internship_status != InternshipStatus.INTERNSHIP_ASSIGNED:
                raise InvalidStateError("Weekly updates start once the internship is assigned",
                                        {"student_id": student_id, "status": student.internship_status.value})
            update = self.store.upsert_weekly_update(
                student_id, request.week_number, request.model_dump(exclude={'week_number'})
            )

        logger.info("Weekly update submitted", student_id=student_id, week_number=update.week_number)
        self._notify(NotificationType.WEEKLY_UPDATE_SUBMITTED, student_id=student_id,
                     recipient_id=student.supervisor_id, update_id=update.id, week_number=update.week_number)
        return update

    def review(self, update_id: str, remarks: str, acting_admin_id: str) -> WeeklyUpdate:
        request = parse_request(ReviewWeeklyUpdateRequest, remarks=remarks)

        with self.store.transaction():
            update = self.store.get_weekly_update(update_id)
            if update is None:
                raise NotFoundError("Weekly update not found", {"update_id": update_id})
            student = self._require_student(update.student_id)
            if not student.supervisor_id or student.supervisor_id != acting_admin_id:
                raise AuthorizationError("Only the student's faculty supervisor can review updates",
                                         {"update_id": update_id, "admin_id": acting_admin_id})
            self.store.review_weekly_update(update_id, request.remarks, acting_admin_id)
            update = self.store.get_weekly_update(update_id)

        logger.info("Weekly update reviewed", update_id=update_id, student_id=update.student_id)
        self._notify(NotificationType.WEEKLY_UPDATE_REVIEWED, student_id=update.student_id,
                     update_id=update_id, week_number=update.week_number)
        return update

    def list_for_student(self, student_id: str) -> List[WeeklyUpdate]:
        self._require_student(student_id)
        return self.store.list_weekly_updates(student_id)
