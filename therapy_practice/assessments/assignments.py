"""
Assignment Tracker

Tracks which clients were asked to complete which assessment. There is at
most one assignment per (assessment, client); assigning again refreshes an
open assignment or re-issues a finished one instead of adding a row.

``expired`` is derived when read: an open assignment whose due date has
passed is reported as expired without a background job rewriting rows.
"""

import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from therapy_practice.common.db.session import insert_ignore_conflict, transaction
from therapy_practice.common.error_handling import AuthorizationError, NotFoundError, ValidationError
from therapy_practice.common.logger import app_logger
from therapy_practice.database.base import generate_uuid, to_naive_utc, utcnow
from therapy_practice.assessments import repositories
from therapy_practice.assessments.clients import ClientDirectory
from therapy_practice.assessments.database_models import AssessmentAssignment, AssessmentSubmission
from therapy_practice.assessments.models import AssignmentStatus, SubmissionStatus
from therapy_practice.assessments.notifications import ActivityFeed
from therapy_practice.assessments.schemas import AssignmentUpdate

logger = app_logger.getChild("assessments.assignments")


def effective_status(
    assignment: AssessmentAssignment,
    now: Optional[datetime.datetime] = None
) -> AssignmentStatus:
    """
    Status as it should be reported.

    Open assignments past their due date are expired.
    """
    status = AssignmentStatus(assignment.status)
    if status.is_active and assignment.due_date is not None:
        if assignment.due_date < (now or utcnow()):
            return AssignmentStatus.EXPIRED
    return status


def find_open_assignment(session: Session, assessment_id: str, client_id: str) -> Optional[AssessmentAssignment]:
    assignment = (
        session.query(AssessmentAssignment)
        .filter(
            AssessmentAssignment.assessment_id == assessment_id,
            AssessmentAssignment.client_id == client_id
        )
        .one_or_none()
    )
    if assignment is None or not AssignmentStatus(assignment.status).is_active:
        return None
    return assignment


def complete_assignment(assignment: AssessmentAssignment, submission_id: str) -> bool:
    """
    Mark an assignment completed without committing.

    Returns:
        False if it was already completed (the call is a no-op)
    """
    if assignment.status == AssignmentStatus.COMPLETED.value:
        return False
    assignment.status = AssignmentStatus.COMPLETED.value
    assignment.completed_at = utcnow()
    assignment.submission_id = submission_id
    return True


class AssignmentTracker:
    """Service for assessment assignments."""

    def __init__(self, session: Session):
        self.session = session
        self.clients = ClientDirectory(session)
        self.feed = ActivityFeed(session)

    def _get_assignment(self, therapist_id: str, assignment_id: str) -> AssessmentAssignment:
        assignment = self.session.get(AssessmentAssignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        if assignment.therapist_id != therapist_id:
            raise AuthorizationError(
                "You do not have access to this assignment",
                resource="assignment",
                action="access"
            )
        return assignment

    def assign_clients_to_assessment(
        self,
        therapist_id: str,
        assessment_id: str,
        client_ids: List[str],
        due_date: Optional[datetime.datetime] = None,
        notes: Optional[str] = None
    ) -> List[AssessmentAssignment]:
        """
        Assign an assessment to clients.

        New pairs are inserted with ``ON CONFLICT DO NOTHING`` so concurrent
        calls cannot create duplicates. For pairs that already existed, open
        assignments get the new due date and notes, and completed or expired
        ones are re-issued as pending.

        Args:
            therapist_id: The caller, who must own the assessment and clients
            assessment_id: Assessment to assign
            client_ids: Clients to assign it to
            due_date: Optional due date
            notes: Optional notes for the client

        Returns:
            One assignment per client, in the order given

        Raises:
            NotFoundError: If a client is not one of the therapist's clients
        """
        client_ids = list(dict.fromkeys(client_ids))
        due_date = to_naive_utc(due_date)
        assessment = repositories.get_assessment(self.session, therapist_id, assessment_id)
        clients = self.clients.get_clients(therapist_id, client_ids)
        if not clients:
            return []

        now = utcnow()
        rows = [
            {
                "id": generate_uuid(),
                "assessment_id": assessment.id,
                "client_id": client.id,
                "therapist_id": therapist_id,
                "assigned_at": now,
                "due_date": due_date,
                "notes": notes,
                "status": AssignmentStatus.PENDING.value,
            }
            for client in clients
        ]
        new_ids = {row["id"] for row in rows}

        with transaction(self.session):
            insert_ignore_conflict(
                self.session,
                AssessmentAssignment,
                rows,
                index_elements=("assessment_id", "client_id")
            )

            assignments = {
                assignment.client_id: assignment
                for assignment in self.session.query(AssessmentAssignment)
                .filter(
                    AssessmentAssignment.assessment_id == assessment.id,
                    AssessmentAssignment.client_id.in_(client_ids)
                )
                .populate_existing()
            }

            issued = []
            for client in clients:
                assignment = assignments[client.id]
                if assignment.id in new_ids:
                    issued.append(client)
                elif effective_status(assignment, now).is_active:
                    if due_date is not None:
                        assignment.due_date = due_date
                    if notes is not None:
                        assignment.notes = notes
                else:
                    assignment.status = AssignmentStatus.PENDING.value
                    assignment.assigned_at = now
                    assignment.due_date = due_date
                    assignment.notes = notes
                    assignment.completed_at = None
                    assignment.submission_id = None
                    issued.append(client)

            self.feed.on_assignment_created(assessment, issued)

        logger.info(
            f"Assigned assessment {assessment.id} to {len(clients)} clients "
            f"({len(issued)} new or re-issued)"
        )
        return [assignments[client.id] for client in clients]

    def mark_assignment_completed(
        self,
        therapist_id: str,
        assignment_id: str,
        submission_id: str
    ) -> AssessmentAssignment:
        """
        Mark an assignment completed by one of its client's submissions.

        Repeated calls change nothing; the first submission stays recorded.

        Raises:
            NotFoundError: If the assignment or the submission does not exist
            AuthorizationError: If the caller does not own the assignment
            ValidationError: If the submission belongs to another assessment
                or client, or is still a draft
        """
        assignment = self._get_assignment(therapist_id, assignment_id)
        submission = self.session.get(AssessmentSubmission, submission_id) if submission_id else None
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        if (
            submission.assessment_id != assignment.assessment_id
            or submission.client_id != assignment.client_id
        ):
            raise ValidationError(
                "Submission does not match this assignment",
                details={"submission_id": "must be the assigned client's submission of the assigned assessment"}
            )
        if submission.status == SubmissionStatus.DRAFT.value:
            raise ValidationError(
                "Drafts cannot complete an assignment",
                details={"submission_id": "is a draft"}
            )

        with transaction(self.session):
            changed = complete_assignment(assignment, submission_id)

        if changed:
            logger.info(f"Assignment {assignment.id} completed by submission {submission_id}")
        return assignment

    def mark_in_progress(self, assignment_id: str, therapist_id: Optional[str] = None) -> AssessmentAssignment:
        """Move a pending assignment to in_progress when the client opens it."""
        if therapist_id is not None:
            assignment = self._get_assignment(therapist_id, assignment_id)
        else:
            assignment = self.session.get(AssessmentAssignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)

        if assignment.status == AssignmentStatus.PENDING.value:
            with transaction(self.session):
                assignment.status = AssignmentStatus.IN_PROGRESS.value
            logger.info(f"Assignment {assignment.id} in progress")
        return assignment

    def list_for_assessment(self, therapist_id: str, assessment_id: str) -> List[AssessmentAssignment]:
        repositories.get_assessment(self.session, therapist_id, assessment_id)
        return (
            self.session.query(AssessmentAssignment)
            .filter(AssessmentAssignment.assessment_id == assessment_id)
            .order_by(AssessmentAssignment.assigned_at.desc())
            .all()
        )

    def list_for_client(self, therapist_id: str, client_id: str) -> List[AssessmentAssignment]:
        self.clients.get_client(therapist_id, client_id)
        return (
            self.session.query(AssessmentAssignment)
            .filter(
                AssessmentAssignment.client_id == client_id,
                AssessmentAssignment.therapist_id == therapist_id
            )
            .order_by(AssessmentAssignment.assigned_at.desc())
            .all()
        )

    def update_assignment(self, therapist_id: str, assignment_id: str, patch: AssignmentUpdate) -> AssessmentAssignment:
        assignment = self._get_assignment(therapist_id, assignment_id)
        values = patch.model_dump(exclude_unset=True)
        if "due_date" in values:
            values["due_date"] = to_naive_utc(values["due_date"])
        with transaction(self.session):
            assignment.update(values)
        return assignment

    def remove_assignment(self, therapist_id: str, assignment_id: str) -> None:
        assignment = self._get_assignment(therapist_id, assignment_id)
        with transaction(self.session):
            self.session.delete(assignment)
        logger.info(f"Removed assignment {assignment_id}")

    def assignment_counts(self, therapist_id: str, assessment_id: str) -> Dict[str, int]:
        """
        Count assignments by reported status.

        ``pending`` includes assignments in progress.
        """
        counts = {"total": 0, "pending": 0, "completed": 0, "expired": 0}
        now = utcnow()
        for assignment in self.list_for_assessment(therapist_id, assessment_id):
            status = effective_status(assignment, now)
            counts["total"] += 1
            if status.is_active:
                counts["pending"] += 1
            elif status == AssignmentStatus.COMPLETED:
                counts["completed"] += 1
            elif status == AssignmentStatus.EXPIRED:
                counts["expired"] += 1
        return counts
