"""
Submission Engine

Validates answers, scores them and stores the submission with one response
per answered question, all in one transaction. A completed submission also
completes the client's open assignment and posts to the therapist's activity
feed.

When an assessment allows a single submission per client, a prior completed
submission is rejected up front, and the unique ``single_submission_key``
rejects the second of two racing submissions.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from therapy_practice.common.db.session import transaction
from therapy_practice.common.error_handling import (
    AssessmentNotFoundError,
    AuthorizationError,
    DuplicateSubmissionError,
    NotFoundError,
    ValidationError,
)
from therapy_practice.common.logger import app_logger, log_execution_time
from therapy_practice.common.pagination import Page, paginate
from therapy_practice.database.base import generate_uuid, utcnow
from therapy_practice.assessments import repositories
from therapy_practice.assessments.assignments import complete_assignment, find_open_assignment
from therapy_practice.assessments.clients import ClientDirectory
from therapy_practice.assessments.database_models import (
    Assessment,
    AssessmentAssignment,
    AssessmentResponse,
    AssessmentSubmission,
    Client,
)
from therapy_practice.assessments.models import (
    Answer,
    AssignmentStatus,
    ScoreResult,
    SubmissionStatus,
    effective_question,
    parse_scoring_ranges,
)
from therapy_practice.assessments.notifications import ActivityFeed
from therapy_practice.assessments.scoring import score_submission
from therapy_practice.assessments.sharing import find_shared_assessment

logger = app_logger.getChild("assessments.submissions")

FINAL_STATUSES = (SubmissionStatus.COMPLETED.value, SubmissionStatus.REVIEWED.value)


def single_submission_key(assessment_id: str, client_id: str) -> str:
    return f"{assessment_id}:{client_id}"


@dataclass
class ResponseDetail:
    """A stored response with the question text then and now."""
    response: AssessmentResponse
    question_text: Optional[str]
    question_type: Optional[str]
    current_question_text: Optional[str]
    question_order: Optional[int]


@dataclass
class SubmissionDetail:
    submission: AssessmentSubmission
    responses: List[ResponseDetail] = field(default_factory=list)


class SubmissionService:
    """Service for submitting and reviewing assessment answers."""

    def __init__(self, session: Session):
        self.session = session
        self.clients = ClientDirectory(session)
        self.feed = ActivityFeed(session)

    # Lookups

    def _load_assessment(self, assessment_id: str, therapist_id: Optional[str]) -> Assessment:
        if therapist_id is not None:
            return repositories.get_assessment(self.session, therapist_id, assessment_id)
        assessment = self.session.get(Assessment, assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        return assessment

    def _get_submission(self, therapist_id: str, submission_id: str) -> AssessmentSubmission:
        submission = self.session.get(AssessmentSubmission, submission_id)
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        if submission.therapist_id != therapist_id:
            raise AuthorizationError(
                "You do not have access to this submission",
                resource="submission",
                action="access"
            )
        return submission

    def _check_prior_submission(self, assessment: Assessment, client_id: str) -> None:
        if assessment.allow_multiple_submissions:
            return
        prior = (
            self.session.query(AssessmentSubmission.id)
            .filter(
                AssessmentSubmission.assessment_id == assessment.id,
                AssessmentSubmission.client_id == client_id,
                AssessmentSubmission.status.in_(FINAL_STATUSES)
            )
            .first()
        )
        if prior is not None:
            raise DuplicateSubmissionError(assessment.id, client_id)

    def _find_draft(self, assessment_id: str, client_id: str) -> Optional[AssessmentSubmission]:
        return (
            self.session.query(AssessmentSubmission)
            .filter(
                AssessmentSubmission.assessment_id == assessment_id,
                AssessmentSubmission.client_id == client_id,
                AssessmentSubmission.status == SubmissionStatus.DRAFT.value
            )
            .first()
        )

    # Scoring

    def _score(
        self,
        assessment: Assessment,
        answers: List[Answer],
        completion_time_seconds: Optional[int],
        enforce_required: bool = True
    ) -> ScoreResult:
        if not assessment.is_active:
            raise ValidationError(
                "This assessment is not accepting submissions",
                details={"assessment": "inactive"}
            )
        if completion_time_seconds is not None and completion_time_seconds < 0:
            raise ValidationError(
                "Completion time must not be negative",
                details={"completion_time_seconds": "must be 0 or greater"}
            )

        questions = repositories.resolve_questions(self.session, assessment.id)
        ranges = parse_scoring_ranges(assessment.scoring_ranges)
        return score_submission(questions, answers, ranges, enforce_required=enforce_required)

    def _add_responses(self, submission: AssessmentSubmission, result: ScoreResult) -> None:
        for answer in result.answers:
            submission.responses.append(AssessmentResponse(
                assessment_question_id=answer.question.binding_id,
                question_id=answer.question.question_id,
                response_value=answer.response_value,
                numeric_value=answer.numeric_value,
                points_earned=answer.points_earned,
                question_text_snapshot=answer.question.question_text,
                question_type_snapshot=answer.question.question_type.value
            ))

    def _record(
        self,
        assessment: Assessment,
        client: Client,
        result: ScoreResult,
        completion_time_seconds: Optional[int],
        assignment_id: Optional[str]
    ) -> AssessmentSubmission:
        """Store a completed submission and its side effects; caller commits."""
        for draft in self.session.query(AssessmentSubmission).filter(
            AssessmentSubmission.assessment_id == assessment.id,
            AssessmentSubmission.client_id == client.id,
            AssessmentSubmission.status == SubmissionStatus.DRAFT.value
        ):
            self.session.delete(draft)

        submission = AssessmentSubmission(
            id=generate_uuid(),
            assessment_id=assessment.id,
            client_id=client.id,
            therapist_id=assessment.therapist_id,
            submitted_at=utcnow(),
            completion_time_seconds=completion_time_seconds,
            raw_score=result.raw_score,
            calculated_score=result.calculated_score,
            score_interpretation=result.score_interpretation,
            status=SubmissionStatus.COMPLETED.value,
            single_submission_key=(
                None if assessment.allow_multiple_submissions
                else single_submission_key(assessment.id, client.id)
            )
        )
        self.session.add(submission)
        self._add_responses(submission, result)
        self.session.flush()

        if assignment_id is not None:
            assignment = self.session.get(AssessmentAssignment, assignment_id)
            if (
                assignment is None
                or assignment.assessment_id != assessment.id
                or assignment.client_id != client.id
            ):
                raise ValidationError(
                    "Assignment does not match this assessment and client",
                    details={"assignment_id": assignment_id}
                )
        else:
            assignment = find_open_assignment(self.session, assessment.id, client.id)

        if assignment is not None:
            complete_assignment(assignment, submission.id)

        self.feed.on_submission_completed(assessment, client, submission)
        return submission

    def _duplicate_error(self, assessment_id: str, client_id: str):
        def to_error(error):
            return DuplicateSubmissionError(assessment_id, client_id, cause=error)
        return to_error

    # Submitting

    @log_execution_time(logger)
    def submit(
        self,
        assessment_id: str,
        client_id: str,
        answers: List[Answer],
        therapist_id: Optional[str] = None,
        completion_time_seconds: Optional[int] = None,
        assignment_id: Optional[str] = None
    ) -> AssessmentSubmission:
        """
        Validate, score and store a completed submission.

        Args:
            assessment_id: Assessment being answered
            client_id: The responding client, who must belong to the
                assessment's therapist
            answers: One answer per answered binding
            therapist_id: When given, the caller must own the assessment
            completion_time_seconds: Time the client spent, if known
            assignment_id: Assignment to complete; defaults to the client's
                open assignment for this assessment

        Returns:
            The stored submission

        Raises:
            ValidationError: If the answers do not fit the assessment
            DuplicateSubmissionError: If the client already submitted an
                assessment that allows a single submission
        """
        assessment = self._load_assessment(assessment_id, therapist_id)
        client = self.clients.get_client(assessment.therapist_id, client_id)

        result = self._score(assessment, answers, completion_time_seconds)
        self._check_prior_submission(assessment, client.id)

        with transaction(self.session, on_integrity_error=self._duplicate_error(assessment.id, client.id)):
            submission = self._record(assessment, client, result, completion_time_seconds, assignment_id)

        logger.info(
            f"Submission {submission.id} for assessment {assessment.id} by client {client.id}: "
            f"raw_score={submission.raw_score} responses={len(result.answers)}"
        )
        return submission

    def submit_public(
        self,
        token: str,
        client_name: str,
        client_email: Optional[str],
        answers: List[Answer],
        completion_time_seconds: Optional[int] = None
    ) -> AssessmentSubmission:
        """
        Submit answers through a share link.

        The respondent is matched to the therapist's client with the same
        email, or registered as a new client in the same transaction.

        Raises:
            ShareLinkNotFoundError: If the token does not resolve
            ValidationError: If the answers or the respondent are invalid
            DuplicateSubmissionError: As for ``submit``
        """
        assessment = find_shared_assessment(self.session, token)
        if not (client_name or "").strip():
            raise ValidationError("Your name is required", details={"client_name": "must not be empty"})

        result = self._score(assessment, answers, completion_time_seconds)

        email = (client_email or "").strip().lower() or None
        existing = self.clients.find_by_email(assessment.therapist_id, email)
        if existing is not None:
            self._check_prior_submission(assessment, existing.id)

        client = existing

        def to_error(error):
            return DuplicateSubmissionError(assessment.id, client.id if client else None, cause=error)

        with transaction(self.session, on_integrity_error=to_error):
            if client is None:
                client = self.clients.create_client(assessment.therapist_id, client_name, email)
            submission = self._record(assessment, client, result, completion_time_seconds, None)

        logger.info(f"Public submission {submission.id} for assessment {assessment.id}")
        return submission

    def save_draft(
        self,
        assessment_id: str,
        client_id: str,
        answers: List[Answer],
        therapist_id: Optional[str] = None,
        completion_time_seconds: Optional[int] = None
    ) -> AssessmentSubmission:
        """
        Store partial answers as the client's draft.

        Answers are type checked, but required questions may be missing and
        the single submission rule does not apply. A client has at most one
        draft per assessment; saving again replaces its answers.
        """
        assessment = self._load_assessment(assessment_id, therapist_id)
        client = self.clients.get_client(assessment.therapist_id, client_id)
        result = self._score(assessment, answers, completion_time_seconds, enforce_required=False)

        with transaction(self.session):
            draft = self._find_draft(assessment.id, client.id)
            if draft is None:
                draft = AssessmentSubmission(
                    id=generate_uuid(),
                    assessment_id=assessment.id,
                    client_id=client.id,
                    therapist_id=assessment.therapist_id,
                    status=SubmissionStatus.DRAFT.value
                )
                self.session.add(draft)
            else:
                draft.responses.clear()
            self.session.flush()

            draft.completion_time_seconds = completion_time_seconds
            draft.raw_score = result.raw_score
            draft.calculated_score = result.calculated_score
            draft.score_interpretation = result.score_interpretation
            self._add_responses(draft, result)

            assignment = find_open_assignment(self.session, assessment.id, client.id)
            if assignment is not None and assignment.status == AssignmentStatus.PENDING.value:
                assignment.status = AssignmentStatus.IN_PROGRESS.value

        logger.info(f"Saved draft {draft.id} with {len(result.answers)} answers")
        return draft

    # Review

    def review_submission(self, therapist_id: str, submission_id: str, notes: Optional[str] = None) -> AssessmentSubmission:
        """
        Mark a completed submission as reviewed.

        Raises:
            ValidationError: If the submission is still a draft
        """
        submission = self._get_submission(therapist_id, submission_id)
        if submission.status == SubmissionStatus.DRAFT.value:
            raise ValidationError(
                "Drafts cannot be reviewed",
                details={"status": submission.status}
            )

        with transaction(self.session):
            submission.status = SubmissionStatus.REVIEWED.value
            if notes is not None:
                submission.notes = notes

        logger.info(f"Submission {submission.id} reviewed")
        return submission

    def update_notes(self, therapist_id: str, submission_id: str, notes: Optional[str]) -> AssessmentSubmission:
        submission = self._get_submission(therapist_id, submission_id)
        with transaction(self.session):
            submission.notes = notes
        return submission

    def delete_submission(self, therapist_id: str, submission_id: str) -> None:
        submission = self._get_submission(therapist_id, submission_id)
        with transaction(self.session):
            self.session.delete(submission)
        logger.info(f"Deleted submission {submission_id}")

    # Retrieval

    def get_submissions_by_assessment(
        self,
        therapist_id: str,
        assessment_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
        include_drafts: bool = False
    ) -> Page:
        """
        Submissions of one assessment, newest first, with their clients loaded.

        Returns:
            Page of AssessmentSubmission
        """
        repositories.get_assessment(self.session, therapist_id, assessment_id)
        query = self.session.query(AssessmentSubmission).filter(
            AssessmentSubmission.assessment_id == assessment_id
        )
        if not include_drafts:
            query = query.filter(AssessmentSubmission.status.in_(FINAL_STATUSES))
        query = query.order_by(AssessmentSubmission.submitted_at.desc(), AssessmentSubmission.created_at.desc())
        return paginate(query, page, page_size)

    def get_submissions_by_client(
        self,
        therapist_id: str,
        client_id: str,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Page:
        self.clients.get_client(therapist_id, client_id)
        query = (
            self.session.query(AssessmentSubmission)
            .filter(
                AssessmentSubmission.client_id == client_id,
                AssessmentSubmission.therapist_id == therapist_id,
                AssessmentSubmission.status.in_(FINAL_STATUSES)
            )
            .order_by(AssessmentSubmission.submitted_at.desc())
        )
        return paginate(query, page, page_size)

    def get_submission_detail(self, therapist_id: str, submission_id: str) -> SubmissionDetail:
        """
        A submission with its responses in question order.

        Each response carries the question text shown when it was answered
        and, while the question is still bound, the current effective text.
        Responses whose binding was removed come last.
        """
        submission = self._get_submission(therapist_id, submission_id)

        details = []
        for response in submission.responses:
            binding = response.binding
            current_text = None
            order = None
            if binding is not None:
                current_text = effective_question(binding, binding.question).question_text
                order = binding.question_order
            details.append(ResponseDetail(
                response=response,
                question_text=response.question_text_snapshot,
                question_type=response.question_type_snapshot,
                current_question_text=current_text,
                question_order=order
            ))

        details.sort(key=lambda d: (d.question_order is None, d.question_order or 0))
        return SubmissionDetail(submission=submission, responses=details)
