"""
Tests for share tokens and the public assessment view.
"""

import json

import pytest

from conftest import OTHER_THERAPIST_ID, THERAPIST_ID
from therapy_practice.common.error_handling import AuthorizationError, ShareLinkNotFoundError
from therapy_practice.assessments.definitions import AssessmentDefinitions
from therapy_practice.assessments.sharing import ShareService


@pytest.fixture
def share(db_session):
    return ShareService(db_session)


@pytest.fixture
def shared_assessment(build_assessment, mc_question, rating_question):
    assessment, bindings = build_assessment(
        [
            dict(mc_question, help_text="Think about the last two weeks"),
            dict(rating_question, binding={"points": 3.0}),
            {"question_text": "Anything else?", "question_type": "text", "binding": {"is_required": False}},
        ],
        title="Mood screening",
        description="Short weekly screening",
        category="Stress/Mood",
        scoring_ranges=[{"min": 0, "max": 5, "label": "Mild"}],
    )
    return assessment, bindings


def test_token_lifecycle(share, shared_assessment):
    assessment, _ = shared_assessment

    token = share.generate_share_token(THERAPIST_ID, assessment.id)
    assert len(token) >= 40
    assert share.resolve_public_assessment(token).title == "Mood screening"

    rotated = share.generate_share_token(THERAPIST_ID, assessment.id)
    assert rotated != token
    with pytest.raises(ShareLinkNotFoundError):
        share.resolve_public_assessment(token)
    assert share.resolve_public_assessment(rotated).title == "Mood screening"

    share.revoke_share_token(THERAPIST_ID, assessment.id)
    assert assessment.share_token is None
    with pytest.raises(ShareLinkNotFoundError):
        share.resolve_public_assessment(rotated)


def test_unknown_and_empty_tokens(share):
    with pytest.raises(ShareLinkNotFoundError):
        share.resolve_public_assessment("does-not-exist")
    with pytest.raises(ShareLinkNotFoundError):
        share.resolve_public_assessment("")


def test_inactive_assessment_is_not_found(share, shared_assessment, db_session):
    assessment, _ = shared_assessment
    token = share.generate_share_token(THERAPIST_ID, assessment.id)

    AssessmentDefinitions(db_session).set_active(THERAPIST_ID, assessment.id, False)

    with pytest.raises(ShareLinkNotFoundError):
        share.resolve_public_assessment(token)


def test_only_owner_can_manage_token(share, shared_assessment):
    assessment, _ = shared_assessment

    with pytest.raises(AuthorizationError):
        share.generate_share_token(OTHER_THERAPIST_ID, assessment.id)
    with pytest.raises(AuthorizationError):
        share.revoke_share_token(OTHER_THERAPIST_ID, assessment.id)


def test_public_view_contains_only_allowed_fields(share, shared_assessment):
    assessment, bindings = shared_assessment
    token = share.generate_share_token(THERAPIST_ID, assessment.id)

    view = share.resolve_public_assessment(token).to_dict()

    assert set(view) == {"title", "description", "category", "allow_multiple_submissions", "questions"}
    assert [q["assessment_question_id"] for q in view["questions"]] == [b.id for b in bindings]
    assert [q["question_order"] for q in view["questions"]] == [1, 2, 3]
    for question in view["questions"]:
        assert set(question) == {
            "assessment_question_id", "question_order", "question_text",
            "question_type", "options", "help_text", "is_required",
        }

    serialized = json.dumps(view)
    for leaked in ("points", "therapist_id", THERAPIST_ID, "scoring_ranges", "Mild", "share_token"):
        assert leaked not in serialized


def test_public_view_uses_effective_values(share, db_session, build_assessment):
    assessment, bindings = build_assessment([{
        "question_text": "Catalog text",
        "question_type": "yes_no",
        "binding": {"override_question_text": "Adapted text", "override_help_text": "Adapted help"},
    }])
    token = share.generate_share_token(THERAPIST_ID, assessment.id)

    question = share.resolve_public_assessment(token).to_dict()["questions"][0]

    assert question["question_text"] == "Adapted text"
    assert question["help_text"] == "Adapted help"
    assert question["options"] == [{"label": "Yes", "value": "yes"}, {"label": "No", "value": "no"}]
