"""
Tests for the question catalog.
"""

import pytest

from conftest import MC_OPTIONS, OTHER_THERAPIST_ID, THERAPIST_ID
from therapy_practice.common.error_handling import (
    AuthorizationError,
    ConflictError,
    QuestionNotFoundError,
    ValidationError,
)
from therapy_practice.assessments.catalog import QuestionCatalog
from therapy_practice.assessments.database_models import Question
from therapy_practice.assessments.definitions import AssessmentDefinitions
from therapy_practice.assessments.schemas import (
    AssessmentCreate,
    BindingOptions,
    QuestionCreate,
    QuestionUpdate,
)


@pytest.fixture
def catalog(db_session):
    return QuestionCatalog(db_session)


def test_create_question_normalizes_options(catalog):
    question = catalog.create_question(THERAPIST_ID, QuestionCreate(
        question_text="  Do you sleep well?  ",
        question_type="yes_no"
    ))

    assert question.id
    assert question.question_text == "Do you sleep well?"
    assert question.options == [
        {"label": "Yes", "value": "yes", "points": 1},
        {"label": "No", "value": "no", "points": 0},
    ]
    assert question.is_global is False


def test_create_question_rejects_bad_options(catalog, db_session):
    with pytest.raises(ValidationError):
        catalog.create_question(THERAPIST_ID, QuestionCreate(
            question_text="Pick one",
            question_type="multiple_choice",
            options=[{"label": "Only"}]
        ))
    assert db_session.query(Question).count() == 0


def test_create_question_requires_text(catalog):
    with pytest.raises(ValidationError):
        catalog.create_question(THERAPIST_ID, QuestionCreate(question_text="   ", question_type="text"))


def test_update_by_non_owner_is_rejected(catalog):
    question = catalog.create_question(THERAPIST_ID, QuestionCreate(question_text="Mine", question_type="text"))

    with pytest.raises(AuthorizationError):
        catalog.update_question(OTHER_THERAPIST_ID, question.id, QuestionUpdate(question_text="Theirs"))


def test_library_question_without_owner_is_read_only(catalog, db_session):
    question = Question(
        therapist_id=None,
        question_text="Shared question",
        question_type="text",
        is_global=True
    )
    db_session.add(question)
    db_session.commit()

    assert catalog.get_question(THERAPIST_ID, question.id).id == question.id
    with pytest.raises(AuthorizationError):
        catalog.update_question(THERAPIST_ID, question.id, QuestionUpdate(question_text="Edited"))
    with pytest.raises(AuthorizationError):
        catalog.delete_question(THERAPIST_ID, question.id)


def test_update_unknown_question(catalog):
    with pytest.raises(QuestionNotFoundError):
        catalog.update_question(THERAPIST_ID, "missing", QuestionUpdate(question_text="x"))


def test_private_question_is_not_readable_by_others(catalog):
    question = catalog.create_question(THERAPIST_ID, QuestionCreate(question_text="Private", question_type="text"))

    with pytest.raises(AuthorizationError):
        catalog.get_question(OTHER_THERAPIST_ID, question.id)


def test_change_type_validates_new_options(catalog):
    question = catalog.create_question(THERAPIST_ID, QuestionCreate(question_text="Mood", question_type="text"))

    with pytest.raises(ValidationError):
        catalog.update_question(THERAPIST_ID, question.id, QuestionUpdate(question_type="rating"))

    updated = catalog.update_question(THERAPIST_ID, question.id, QuestionUpdate(
        question_type="rating",
        options={"min": 0, "max": 10}
    ))
    assert updated.question_type == "rating"
    assert updated.options["max"] == 10


def test_failed_update_leaves_question_unchanged(catalog, db_session):
    question = catalog.create_question(THERAPIST_ID, QuestionCreate(question_text="Mood", question_type="text"))

    with pytest.raises(ValidationError):
        catalog.update_question(THERAPIST_ID, question.id, QuestionUpdate(
            question_text="New text",
            question_type="multiple_choice",
            options=[{"label": "One"}]
        ))

    db_session.refresh(question)
    assert question.question_text == "Mood"
    assert question.question_type == "text"


def test_change_type_rejected_when_options_overridden(catalog, db_session):
    definitions = AssessmentDefinitions(db_session)
    assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Screening"))
    question, _ = definitions.add_question_to_assessment(
        THERAPIST_ID,
        assessment.id,
        QuestionCreate(question_text="Pick", question_type="multiple_choice", options=MC_OPTIONS),
        BindingOptions(override_options=[{"label": "X"}, {"label": "Y"}])
    )

    with pytest.raises(ValidationError):
        catalog.update_question(THERAPIST_ID, question.id, QuestionUpdate(question_type="yes_no"))


def test_change_type_rejected_while_binding_is_weighted(catalog, db_session):
    definitions = AssessmentDefinitions(db_session)
    assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Screening"))
    question, _ = definitions.add_question_to_assessment(
        THERAPIST_ID,
        assessment.id,
        QuestionCreate(question_text="Rate your sleep", question_type="rating", options={"min": 1, "max": 5}),
        BindingOptions(points=2.0)
    )

    with pytest.raises(ValidationError) as exc_info:
        catalog.update_question(THERAPIST_ID, question.id, QuestionUpdate(question_type="yes_no"))
    assert "question_type" in exc_info.value.details

    db_session.refresh(question)
    assert question.question_type == "rating"

    # Another scale keeps the weight meaningful
    updated = catalog.update_question(THERAPIST_ID, question.id, QuestionUpdate(options={"min": 0, "max": 10}))
    assert updated.options["max"] == 10


def test_list_library_returns_global_and_own(catalog):
    catalog.create_question(THERAPIST_ID, QuestionCreate(question_text="My anxiety item", question_type="text"))
    catalog.create_question(OTHER_THERAPIST_ID, QuestionCreate(
        question_text="Shared anxiety item", question_type="text", is_global=True
    ))
    catalog.create_question(OTHER_THERAPIST_ID, QuestionCreate(question_text="Hidden item", question_type="text"))

    texts = {q.question_text for q in catalog.list_library(THERAPIST_ID)}
    assert texts == {"My anxiety item", "Shared anxiety item"}

    found = catalog.list_library(THERAPIST_ID, search="SHARED")
    assert [q.question_text for q in found] == ["Shared anxiety item"]


def test_save_and_remove_from_library(catalog):
    question = catalog.create_question(THERAPIST_ID, QuestionCreate(question_text="Share me", question_type="text"))

    assert catalog.save_to_library(THERAPIST_ID, question.id).is_global is True
    assert catalog.get_question(OTHER_THERAPIST_ID, question.id).id == question.id
    assert catalog.remove_from_library(THERAPIST_ID, question.id).is_global is False

    with pytest.raises(AuthorizationError):
        catalog.save_to_library(OTHER_THERAPIST_ID, question.id)


def test_delete_question_refused_while_bound(catalog, db_session):
    definitions = AssessmentDefinitions(db_session)
    assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Intake"))
    question, _ = definitions.add_question_to_assessment(
        THERAPIST_ID, assessment.id, QuestionCreate(question_text="Name?", question_type="text")
    )

    with pytest.raises(ConflictError):
        catalog.delete_question(THERAPIST_ID, question.id)

    unbound = catalog.create_question(THERAPIST_ID, QuestionCreate(question_text="Spare", question_type="text"))
    catalog.delete_question(THERAPIST_ID, unbound.id)
    assert db_session.get(Question, unbound.id) is None
