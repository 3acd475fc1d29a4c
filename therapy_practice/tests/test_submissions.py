"""
Tests for the submission engine.
"""

import pytest

from conftest import OTHER_THERAPIST_ID, THERAPIST_ID
from therapy_practice.common.error_handling import (
    AuthorizationError,
    ConflictError,
    DuplicateSubmissionError,
    NotFoundError,
    ShareLinkNotFoundError,
    ValidationError,
)
from therapy_practice.assessments.assignments import AssignmentTracker
from therapy_practice.assessments.database_models import (
    AssessmentResponse,
    AssessmentSubmission,
    Client,
    Notification,
)
from therapy_practice.assessments.definitions import AssessmentDefinitions
from therapy_practice.assessments.models import Answer, AssignmentStatus, SubmissionStatus
from therapy_practice.assessments.notifications import SUBMISSION_COMPLETED
from therapy_practice.assessments.schemas import AssessmentUpdate
from therapy_practice.assessments.sharing import ShareService
from therapy_practice.assessments.submissions import SubmissionService


@pytest.fixture
def service(db_session):
    return SubmissionService(db_session)


@pytest.fixture
def screening(build_assessment, mc_question, rating_question):
    """Two multiple choice items and one rating item."""
    return build_assessment(
        [mc_question, dict(mc_question, question_text="How often did you worry?"), rating_question],
        title="Mood screening",
        scoring_ranges=[{"min": 0, "max": 4, "label": "Low"}, {"min": 5, "max": 20, "label": "Elevated"}],
    )


def answers_for(bindings, *values):
    return [Answer(binding.id, value) for binding, value in zip(bindings, values)]


def test_submit_scores_and_stores_responses(service, screening, clients, db_session):
    assessment, bindings = screening

    submission = service.submit(
        assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4),
        therapist_id=THERAPIST_ID, completion_time_seconds=95
    )

    assert submission.status == SubmissionStatus.COMPLETED.value
    assert submission.raw_score == 7
    assert submission.calculated_score == 7
    assert submission.score_interpretation == "Elevated"
    assert submission.completion_time_seconds == 95
    assert submission.submitted_at is not None

    responses = db_session.query(AssessmentResponse).filter_by(submission_id=submission.id).all()
    assert len(responses) == 3
    by_binding = {r.assessment_question_id: r for r in responses}
    assert by_binding[bindings[2].id].numeric_value == 4
    assert by_binding[bindings[0].id].question_text_snapshot == "How often did you feel low?"


def test_invalid_rating_writes_nothing(service, screening, clients, db_session):
    assessment, bindings = screening

    with pytest.raises(ValidationError) as exc_info:
        service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 6))

    assert bindings[2].id in exc_info.value.details
    assert db_session.query(AssessmentSubmission).count() == 0
    assert db_session.query(AssessmentResponse).count() == 0
    assert db_session.query(Notification).count() == 0


def test_missing_required_answer(service, screening, clients):
    assessment, bindings = screening

    with pytest.raises(ValidationError) as exc_info:
        service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B"))

    assert set(exc_info.value.details) == {bindings[1].id, bindings[2].id}


def test_answer_for_another_assessment(service, screening, build_assessment, mc_question, clients):
    assessment, bindings = screening
    _, foreign = build_assessment([mc_question], title="Other")

    with pytest.raises(ValidationError) as exc_info:
        service.submit(
            assessment.id, clients["alice"].id,
            answers_for(bindings, "B", "C", 4) + [Answer(foreign[0].id, "A")]
        )
    assert foreign[0].id in exc_info.value.details


def test_empty_assessment_rejected(service, build_assessment, clients):
    assessment, _ = build_assessment([])

    with pytest.raises(ValidationError):
        service.submit(assessment.id, clients["alice"].id, [])


def test_inactive_assessment_rejected(service, screening, clients, db_session):
    assessment, bindings = screening
    AssessmentDefinitions(db_session).set_active(THERAPIST_ID, assessment.id, False)

    with pytest.raises(ValidationError):
        service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))


def test_client_must_belong_to_therapist(service, screening, clients):
    assessment, bindings = screening

    with pytest.raises(NotFoundError):
        service.submit(assessment.id, clients["carol"].id, answers_for(bindings, "B", "C", 4))


def test_caller_must_own_assessment(service, screening, clients):
    assessment, bindings = screening

    with pytest.raises(AuthorizationError):
        service.submit(
            assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4),
            therapist_id=OTHER_THERAPIST_ID
        )


def test_second_submission_rejected(service, screening, clients, db_session):
    assessment, bindings = screening
    service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))

    with pytest.raises(ConflictError):
        service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "A", "A", 1))

    assert db_session.query(AssessmentSubmission).count() == 1
    # Other clients are unaffected
    service.submit(assessment.id, clients["bob"].id, answers_for(bindings, "A", "A", 1))


def test_racing_submission_rejected_by_unique_key(service, screening, clients, db_session, monkeypatch):
    assessment, bindings = screening
    # Both requests pass the up-front check before either commits
    monkeypatch.setattr(SubmissionService, "_check_prior_submission", lambda self, assessment, client_id: None)

    service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))
    with pytest.raises(DuplicateSubmissionError) as exc_info:
        service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "A", "A", 1))

    assert isinstance(exc_info.value, ConflictError)
    completed = db_session.query(AssessmentSubmission).filter(
        AssessmentSubmission.status == SubmissionStatus.COMPLETED.value
    ).all()
    assert len(completed) == 1
    assert completed[0].raw_score == 7
    assert db_session.query(AssessmentResponse).count() == 3


def test_multiple_submissions_when_allowed(service, screening, clients, db_session):
    assessment, bindings = screening
    AssessmentDefinitions(db_session).update_assessment(
        THERAPIST_ID, assessment.id, AssessmentUpdate(allow_multiple_submissions=True)
    )

    service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))
    service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "A", "A", 1))

    assert db_session.query(AssessmentSubmission).count() == 2


def test_submission_completes_open_assignment(service, screening, clients, db_session):
    assessment, bindings = screening
    tracker = AssignmentTracker(db_session)
    assignment = tracker.assign_clients_to_assessment(THERAPIST_ID, assessment.id, [clients["alice"].id])[0]

    submission = service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))

    db_session.refresh(assignment)
    assert assignment.status == AssignmentStatus.COMPLETED.value
    assert assignment.submission_id == submission.id
    assert assignment.completed_at is not None


def test_mismatched_assignment_rejected(service, screening, build_assessment, mc_question, clients, db_session):
    assessment, bindings = screening
    other, _ = build_assessment([mc_question], title="Other")
    foreign = AssignmentTracker(db_session).assign_clients_to_assessment(
        THERAPIST_ID, other.id, [clients["alice"].id]
    )[0]

    with pytest.raises(ValidationError):
        service.submit(
            assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4), assignment_id=foreign.id
        )
    assert db_session.query(AssessmentSubmission).count() == 0


def test_submission_notifies_therapist(service, screening, clients, db_session):
    assessment, bindings = screening

    submission = service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))

    notification = db_session.query(Notification).filter_by(type=SUBMISSION_COMPLETED).one()
    assert notification.therapist_id == THERAPIST_ID
    assert notification.data["submission_id"] == submission.id
    assert "Alice Moreau" in notification.message


class TestPublicSubmission:
    def test_creates_client_and_scores(self, service, screening, db_session):
        assessment, bindings = screening
        token = ShareService(db_session).generate_share_token(THERAPIST_ID, assessment.id)

        submission = service.submit_public(
            token, "Dana Reyes", "Dana@Example.com", answers_for(bindings, "A", "B", 2)
        )

        client = db_session.get(Client, submission.client_id)
        assert client.therapist_id == THERAPIST_ID
        assert client.email == "dana@example.com"
        assert submission.raw_score == 3
        assert submission.score_interpretation == "Low"

    def test_matches_existing_client_by_email(self, service, screening, clients, db_session):
        assessment, bindings = screening
        token = ShareService(db_session).generate_share_token(THERAPIST_ID, assessment.id)

        submission = service.submit_public(token, "Alice", "ALICE@example.com", answers_for(bindings, "A", "B", 2))

        assert submission.client_id == clients["alice"].id
        with pytest.raises(ConflictError):
            service.submit_public(token, "Alice", "alice@example.com", answers_for(bindings, "A", "B", 2))

    def test_validates_like_the_authenticated_path(self, service, screening, db_session):
        assessment, bindings = screening
        token = ShareService(db_session).generate_share_token(THERAPIST_ID, assessment.id)

        with pytest.raises(ValidationError):
            service.submit_public(token, "Eve", None, answers_for(bindings, "B", "C", 9))
        with pytest.raises(ValidationError):
            service.submit_public(token, "  ", None, answers_for(bindings, "B", "C", 4))

        assert db_session.query(Client).count() == 0
        assert db_session.query(AssessmentSubmission).count() == 0

    def test_revoked_token(self, service, screening, db_session):
        assessment, bindings = screening
        share = ShareService(db_session)
        token = share.generate_share_token(THERAPIST_ID, assessment.id)
        share.revoke_share_token(THERAPIST_ID, assessment.id)

        with pytest.raises(ShareLinkNotFoundError):
            service.submit_public(token, "Eve", None, answers_for(bindings, "B", "C", 4))


class TestDrafts:
    def test_draft_skips_required_and_is_replaced(self, service, screening, clients, db_session):
        assessment, bindings = screening
        alice = clients["alice"].id
        assignment = AssignmentTracker(db_session).assign_clients_to_assessment(
            THERAPIST_ID, assessment.id, [alice]
        )[0]

        draft = service.save_draft(assessment.id, alice, answers_for(bindings, "B"))
        assert draft.status == SubmissionStatus.DRAFT.value
        assert len(draft.responses) == 1
        db_session.refresh(assignment)
        assert assignment.status == AssignmentStatus.IN_PROGRESS.value

        again = service.save_draft(assessment.id, alice, answers_for(bindings, "B", "C"))
        assert again.id == draft.id
        assert db_session.query(AssessmentResponse).filter_by(submission_id=draft.id).count() == 2

    def test_draft_still_type_checks(self, service, screening, clients):
        assessment, bindings = screening

        with pytest.raises(ValidationError):
            service.save_draft(assessment.id, clients["alice"].id, answers_for(bindings, "Z"))

    def test_submit_replaces_draft(self, service, screening, clients, db_session):
        assessment, bindings = screening
        alice = clients["alice"].id
        draft = service.save_draft(assessment.id, alice, answers_for(bindings, "B"))

        submission = service.submit(assessment.id, alice, answers_for(bindings, "B", "C", 4))

        assert db_session.get(AssessmentSubmission, draft.id) is None
        assert db_session.query(AssessmentSubmission).one().id == submission.id

    def test_drafts_hidden_from_listing_and_not_reviewable(self, service, screening, clients):
        assessment, bindings = screening
        draft = service.save_draft(assessment.id, clients["alice"].id, answers_for(bindings, "B"))

        assert service.get_submissions_by_assessment(THERAPIST_ID, assessment.id).total == 0
        assert service.get_submissions_by_assessment(THERAPIST_ID, assessment.id, include_drafts=True).total == 1
        with pytest.raises(ValidationError):
            service.review_submission(THERAPIST_ID, draft.id)


class TestReview:
    def test_review_and_notes(self, service, screening, clients):
        assessment, bindings = screening
        submission = service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))

        reviewed = service.review_submission(THERAPIST_ID, submission.id, notes="Discuss sleep")
        assert reviewed.status == SubmissionStatus.REVIEWED.value
        assert reviewed.notes == "Discuss sleep"

        assert service.update_notes(THERAPIST_ID, submission.id, "Follow up").notes == "Follow up"
        with pytest.raises(AuthorizationError):
            service.update_notes(OTHER_THERAPIST_ID, submission.id, "Not mine")

    def test_reviewed_submission_still_blocks_resubmission(self, service, screening, clients):
        assessment, bindings = screening
        submission = service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))
        service.review_submission(THERAPIST_ID, submission.id)

        with pytest.raises(ConflictError):
            service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))

    def test_delete_submission(self, service, screening, clients, db_session):
        assessment, bindings = screening
        submission = service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))

        service.delete_submission(THERAPIST_ID, submission.id)

        assert db_session.query(AssessmentSubmission).count() == 0
        assert db_session.query(AssessmentResponse).count() == 0


class TestRetrieval:
    def test_listing_by_assessment_and_client(self, service, screening, clients):
        assessment, bindings = screening
        service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))
        service.submit(assessment.id, clients["bob"].id, answers_for(bindings, "A", "A", 1))

        page = service.get_submissions_by_assessment(THERAPIST_ID, assessment.id, page=1, page_size=1)
        assert page.total == 2
        assert len(page.items) == 1
        assert page.items[0].client.full_name in ("Alice Moreau", "Bob Lindqvist")

        by_client = service.get_submissions_by_client(THERAPIST_ID, clients["bob"].id)
        assert [s.raw_score for s in by_client.items] == [1]

    def test_detail_keeps_snapshot_after_edits(self, service, screening, clients, db_session):
        assessment, bindings = screening
        submission = service.submit(assessment.id, clients["alice"].id, answers_for(bindings, "B", "C", 4))

        definitions = AssessmentDefinitions(db_session)
        definitions.reorder_questions(THERAPIST_ID, assessment.id, [bindings[2].id, bindings[0].id, bindings[1].id])
        definitions.remove_question_from_assessment(THERAPIST_ID, bindings[1].id)

        detail = service.get_submission_detail(THERAPIST_ID, submission.id)

        assert [item.question_order for item in detail.responses] == [1, 2, None]
        orphan = detail.responses[-1]
        assert orphan.question_text == "How often did you worry?"
        assert orphan.current_question_text is None
        assert detail.responses[0].question_text == "Rate your sleep quality"
