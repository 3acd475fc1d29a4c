"""
Activity Feed

Writes notification rows for events a therapist should see. Entries are added
to the caller's transaction so they only appear when the triggering change
commits.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from therapy_practice.common.db.session import transaction
from therapy_practice.common.error_handling import NotFoundError
from therapy_practice.common.logger import app_logger
from therapy_practice.assessments.database_models import (
    Assessment,
    AssessmentSubmission,
    Client,
    Notification,
)

logger = app_logger.getChild("assessments.notifications")

SUBMISSION_COMPLETED = "assessment_completed"
ASSESSMENT_ASSIGNED = "assessment_assigned"


class ActivityFeed:
    """Notification writer and reader."""

    def __init__(self, session: Session):
        self.session = session

    def notify(
        self,
        therapist_id: str,
        type: str,
        title: str,
        message: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> Notification:
        notification = Notification(
            therapist_id=therapist_id,
            type=type,
            title=title,
            message=message,
            data=data,
            is_read=False
        )
        self.session.add(notification)
        logger.debug(f"Queued {type} notification for therapist {therapist_id}")
        return notification

    def on_submission_completed(
        self,
        assessment: Assessment,
        client: Client,
        submission: AssessmentSubmission
    ) -> Notification:
        return self.notify(
            therapist_id=assessment.therapist_id,
            type=SUBMISSION_COMPLETED,
            title="Assessment completed",
            message=f"{client.full_name} completed {assessment.title}",
            data={
                "assessment_id": assessment.id,
                "client_id": client.id,
                "submission_id": submission.id,
                "raw_score": submission.raw_score,
            }
        )

    def on_assignment_created(self, assessment: Assessment, clients: List[Client]) -> Optional[Notification]:
        if not clients:
            return None
        names = ", ".join(client.full_name for client in clients)
        return self.notify(
            therapist_id=assessment.therapist_id,
            type=ASSESSMENT_ASSIGNED,
            title="Assessment assigned",
            message=f"{assessment.title} assigned to {names}",
            data={
                "assessment_id": assessment.id,
                "client_ids": [client.id for client in clients],
            }
        )

    def list_notifications(self, therapist_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = self.session.query(Notification).filter(Notification.therapist_id == therapist_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc()).limit(limit).all()

    def mark_read(self, therapist_id: str, notification_id: str) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if notification is None or notification.therapist_id != therapist_id:
            raise NotFoundError("Notification", notification_id)
        with transaction(self.session):
            notification.is_read = True
        return notification
