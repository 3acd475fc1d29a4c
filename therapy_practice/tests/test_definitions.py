"""
Tests for assessment definitions and question bindings.
"""

import pytest

from conftest import MC_OPTIONS, OTHER_THERAPIST_ID, THERAPIST_ID
from therapy_practice.common.error_handling import (
    AssessmentNotFoundError,
    AuthorizationError,
    ConflictError,
    ValidationError,
)
from therapy_practice.assessments.catalog import QuestionCatalog
from therapy_practice.assessments.database_models import (
    Assessment,
    AssessmentQuestion,
    Question,
)
from therapy_practice.assessments.definitions import AssessmentDefinitions
from therapy_practice.assessments.models import effective_question
from therapy_practice.assessments.schemas import (
    AssessmentCreate,
    AssessmentUpdate,
    BindingOptions,
    BindingUpdate,
    QuestionCreate,
    QuestionUpdate,
)


def text_question(text):
    return {"question_text": text, "question_type": "text"}


def orders(db_session, assessment_id):
    return [
        (binding.question.question_text, binding.question_order)
        for binding in db_session.query(AssessmentQuestion)
        .filter(AssessmentQuestion.assessment_id == assessment_id)
        .order_by(AssessmentQuestion.question_order)
    ]


@pytest.fixture
def definitions(db_session):
    return AssessmentDefinitions(db_session)


class TestAssessmentMetadata:
    def test_create_defaults(self, definitions):
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title=" PHQ-9 "))

        assert assessment.title == "PHQ-9"
        assert assessment.is_active is True
        assert assessment.allow_multiple_submissions is False
        assert assessment.show_scores_to_client is False
        assert assessment.share_token is None

    @pytest.mark.parametrize("meta", [
        {"title": ""},
        {"title": "x" * 101},
        {"title": "Ok", "description": "d" * 501},
        {"title": "Ok", "category": "Astrology"},
        {"title": "Ok", "scoring_ranges": [{"min": 0, "max": 5}]},
    ])
    def test_create_rejects_invalid_metadata(self, definitions, db_session, meta):
        with pytest.raises(ValidationError):
            definitions.create_assessment(THERAPIST_ID, AssessmentCreate(**meta))
        assert db_session.query(Assessment).count() == 0

    def test_update_and_set_active(self, definitions):
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="GAD-7"))

        updated = definitions.update_assessment(THERAPIST_ID, assessment.id, AssessmentUpdate(
            description="Anxiety screening",
            category="Clinical"
        ))
        assert updated.title == "GAD-7"
        assert updated.category == "Clinical"

        assert definitions.set_active(THERAPIST_ID, assessment.id, False).is_active is False

    def test_other_therapist_cannot_access(self, definitions):
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Private"))

        with pytest.raises(AuthorizationError):
            definitions.get_assessment(OTHER_THERAPIST_ID, assessment.id)
        with pytest.raises(AssessmentNotFoundError):
            definitions.get_assessment(THERAPIST_ID, "missing")

    def test_list_assessments_with_counts_and_filters(self, definitions, build_assessment):
        build_assessment([text_question("a"), text_question("b")], title="Sleep diary", category="Personal")
        build_assessment([], title="Mood check", category="Stress/Mood")
        build_assessment([], title="Other therapist's", therapist_id=OTHER_THERAPIST_ID)

        page = definitions.list_assessments(THERAPIST_ID)
        assert page.total == 2
        counts = {summary.assessment.title: summary.question_count for summary in page.items}
        assert counts == {"Sleep diary": 2, "Mood check": 0}

        filtered = definitions.list_assessments(THERAPIST_ID, category="Personal")
        assert [s.assessment.title for s in filtered.items] == ["Sleep diary"]

        searched = definitions.list_assessments(THERAPIST_ID, search="mood")
        assert [s.assessment.title for s in searched.items] == ["Mood check"]

        first_page = definitions.list_assessments(THERAPIST_ID, page=1, page_size=1)
        assert len(first_page.items) == 1
        assert first_page.total_pages == 2

    def test_delete_assessment_keeps_catalog_questions(self, definitions, build_assessment, db_session):
        assessment, bindings = build_assessment([text_question("kept")])
        question_id = bindings[0].question_id

        definitions.delete_assessment(THERAPIST_ID, assessment.id)

        assert db_session.get(Assessment, assessment.id) is None
        assert db_session.query(AssessmentQuestion).count() == 0
        assert db_session.get(Question, question_id) is not None


class TestAddQuestion:
    def test_new_question_appended(self, build_assessment, db_session):
        assessment, bindings = build_assessment([text_question("one"), text_question("two")])

        assert [b.question_order for b in bindings] == [1, 2]
        assert orders(db_session, assessment.id) == [("one", 1), ("two", 2)]

    def test_new_question_can_be_global(self, definitions, db_session):
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Intake"))
        question, _ = definitions.add_question_to_assessment(
            THERAPIST_ID, assessment.id,
            QuestionCreate(question_text="Shared", question_type="text", is_global=True)
        )
        assert question.is_global is True

    def test_bind_existing_library_question(self, definitions, db_session):
        shared = QuestionCatalog(db_session).create_question(OTHER_THERAPIST_ID, QuestionCreate(
            question_text="Library item", question_type="yes_no", is_global=True
        ))
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Intake"))

        question, binding = definitions.add_question_to_assessment(THERAPIST_ID, assessment.id, shared.id)

        assert question.id == shared.id
        assert binding.question_order == 1
        assert binding.is_required is True

        with pytest.raises(ConflictError):
            definitions.add_question_to_assessment(THERAPIST_ID, assessment.id, shared.id)

    def test_bind_private_question_of_other_therapist(self, definitions, db_session):
        private = QuestionCatalog(db_session).create_question(OTHER_THERAPIST_ID, QuestionCreate(
            question_text="Not yours", question_type="text"
        ))
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Intake"))

        with pytest.raises(AuthorizationError):
            definitions.add_question_to_assessment(THERAPIST_ID, assessment.id, private.id)

    def test_invalid_question_creates_nothing(self, definitions, db_session):
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Intake"))

        with pytest.raises(ValidationError):
            definitions.add_question_to_assessment(
                THERAPIST_ID, assessment.id,
                QuestionCreate(question_text="Pick", question_type="multiple_choice", options=[{"label": "A"}])
            )

        assert db_session.query(Question).count() == 0
        assert db_session.query(AssessmentQuestion).count() == 0

    def test_invalid_override_rolls_back_new_question(self, definitions, db_session):
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Intake"))

        with pytest.raises(ValidationError):
            definitions.add_question_to_assessment(
                THERAPIST_ID, assessment.id,
                QuestionCreate(question_text="Sleep", question_type="rating", options={"min": 1, "max": 5}),
                BindingOptions(override_options={"min": 5, "max": 1})
            )

        assert db_session.query(Question).count() == 0


class TestReorder:
    def test_reorder_is_dense_and_follows_input(self, definitions, build_assessment, db_session):
        assessment, bindings = build_assessment([text_question("a"), text_question("b"), text_question("c")])
        a, b, c = bindings

        definitions.reorder_questions(THERAPIST_ID, assessment.id, [c.id, a.id, b.id])

        assert orders(db_session, assessment.id) == [("c", 1), ("a", 2), ("b", 3)]

    @pytest.mark.parametrize("pick", [
        lambda a, b, c: [a.id, b.id],
        lambda a, b, c: [a.id, b.id, c.id, "stranger"],
        lambda a, b, c: [a.id, a.id, b.id],
    ])
    def test_reorder_requires_exact_permutation(self, definitions, build_assessment, db_session, pick):
        assessment, bindings = build_assessment([text_question("a"), text_question("b"), text_question("c")])

        with pytest.raises(ValidationError):
            definitions.reorder_questions(THERAPIST_ID, assessment.id, pick(*bindings))

        assert orders(db_session, assessment.id) == [("a", 1), ("b", 2), ("c", 3)]

    def test_reorder_rejects_binding_of_other_assessment(self, definitions, build_assessment):
        assessment, bindings = build_assessment([text_question("a"), text_question("b")])
        _, foreign = build_assessment([text_question("x")], title="Other")

        with pytest.raises(ValidationError):
            definitions.reorder_questions(THERAPIST_ID, assessment.id, [bindings[0].id, foreign[0].id])


class TestDuplicate:
    def test_copy_is_independent_and_placed_after_source(self, definitions, build_assessment, db_session):
        assessment, bindings = build_assessment([
            text_question("first"),
            {
                "question_text": "Pick one",
                "question_type": "multiple_choice",
                "options": MC_OPTIONS,
                "binding": {
                    "override_question_text": "Pick one (adapted)",
                    "override_options": [{"label": "Low"}, {"label": "High"}],
                    "is_required": False,
                },
            },
            text_question("last"),
        ])
        source = bindings[1]

        copy, new_binding = definitions.duplicate_question_binding(THERAPIST_ID, source.id)

        assert copy.id != source.question_id
        assert copy.question_text == "Pick one (adapted)"
        assert [o["label"] for o in copy.options] == ["Low", "High"]
        assert copy.is_global is False
        assert copy.therapist_id == THERAPIST_ID
        assert new_binding.override_question_text is None
        assert new_binding.override_options is None
        assert new_binding.points is None
        assert new_binding.is_required is False
        assert [text for text, _ in orders(db_session, assessment.id)] == [
            "first", "Pick one", "Pick one (adapted)", "last"
        ]
        assert [order for _, order in orders(db_session, assessment.id)] == [1, 2, 3, 4]

        QuestionCatalog(db_session).update_question(
            THERAPIST_ID, copy.id, QuestionUpdate(question_text="Changed copy")
        )
        db_session.refresh(source)
        assert effective_question(source, source.question).question_text == "Pick one (adapted)"
        assert db_session.get(Question, source.question_id).question_text == "Pick one"

    def test_duplicate_of_library_question_is_private(self, definitions, db_session):
        shared = QuestionCatalog(db_session).create_question(OTHER_THERAPIST_ID, QuestionCreate(
            question_text="Library", question_type="text", is_global=True
        ))
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Intake"))
        _, binding = definitions.add_question_to_assessment(THERAPIST_ID, assessment.id, shared.id)

        copy, _ = definitions.duplicate_question_binding(THERAPIST_ID, binding.id)

        assert copy.is_global is False
        assert copy.therapist_id == THERAPIST_ID


class TestUpdateBinding:
    def test_override_validated_against_question_type(self, definitions, build_assessment, rating_question):
        _, bindings = build_assessment([rating_question])

        with pytest.raises(ValidationError):
            definitions.update_binding(THERAPIST_ID, bindings[0].id, BindingUpdate(
                override_options=[{"label": "A"}, {"label": "B"}]
            ))

        updated = definitions.update_binding(THERAPIST_ID, bindings[0].id, BindingUpdate(
            override_options={"min": 0, "max": 10},
            section_name="Sleep",
            points=0.5
        ))
        assert updated.override_options["max"] == 10
        assert updated.section_name == "Sleep"
        assert updated.points == 0.5

    @pytest.mark.parametrize("question_type", ["multiple_choice", "yes_no", "text"])
    def test_weight_only_on_rating_questions(self, definitions, build_assessment, question_type):
        question = {"question_text": "Item", "question_type": question_type}
        if question_type == "multiple_choice":
            question["options"] = MC_OPTIONS
        assessment, bindings = build_assessment([question])

        with pytest.raises(ValidationError) as exc_info:
            definitions.update_binding(THERAPIST_ID, bindings[0].id, BindingUpdate(points=5.0))
        assert "points" in exc_info.value.details

        with pytest.raises(ValidationError):
            definitions.add_question_to_assessment(
                THERAPIST_ID, assessment.id, QuestionCreate(**dict(question, question_text="Weighted")),
                BindingOptions(points=5.0)
            )
        assert [text for text, _ in orders(definitions.session, assessment.id)] == ["Item"]
        assert bindings[0].points is None

    @pytest.mark.parametrize("points", [0, -3.0])
    def test_weight_must_be_positive(self, definitions, build_assessment, rating_question, points):
        _, bindings = build_assessment([rating_question])

        with pytest.raises(ValidationError) as exc_info:
            definitions.update_binding(THERAPIST_ID, bindings[0].id, BindingUpdate(points=points))
        assert "points" in exc_info.value.details
        assert bindings[0].points is None

    def test_weight_can_be_cleared(self, definitions, build_assessment, rating_question):
        _, bindings = build_assessment([dict(rating_question, binding={"points": 2.0})])

        updated = definitions.update_binding(THERAPIST_ID, bindings[0].id, BindingUpdate(points=None))

        assert updated.points is None

    def test_text_questions_reject_override_options(self, definitions, build_assessment):
        _, bindings = build_assessment([text_question("Notes")])

        with pytest.raises(ValidationError):
            definitions.update_binding(THERAPIST_ID, bindings[0].id, BindingUpdate(
                override_options=[{"label": "A"}, {"label": "B"}]
            ))


class TestRemove:
    def test_remove_closes_gap(self, definitions, build_assessment, db_session):
        assessment, bindings = build_assessment([text_question("a"), text_question("b"), text_question("c")])

        result = definitions.remove_question_from_assessment(THERAPIST_ID, bindings[1].id)

        assert result.question_deleted is False
        assert result.reason is None
        assert orders(db_session, assessment.id) == [("a", 1), ("c", 2)]
        assert db_session.get(Question, bindings[1].question_id) is not None

    def test_delete_owned_unshared_question(self, definitions, build_assessment, db_session):
        _, bindings = build_assessment([text_question("a")])
        question_id = bindings[0].question_id

        result = definitions.remove_question_from_assessment(
            THERAPIST_ID, bindings[0].id, delete_question_record=True
        )

        assert result.question_deleted is True
        assert db_session.get(Question, question_id) is None

    def test_keeps_question_bound_elsewhere(self, definitions, build_assessment, db_session):
        _, bindings = build_assessment([text_question("shared use")])
        other = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Second"))
        definitions.add_question_to_assessment(THERAPIST_ID, other.id, bindings[0].question_id)

        result = definitions.remove_question_from_assessment(
            THERAPIST_ID, bindings[0].id, delete_question_record=True
        )

        assert result.question_deleted is False
        assert result.reason == "question is used by another assessment"
        assert db_session.get(Question, bindings[0].question_id) is not None

    def test_global_question_needs_confirmation(self, definitions, build_assessment, db_session):
        _, bindings = build_assessment([dict(text_question("global"), is_global=True)])

        result = definitions.remove_question_from_assessment(
            THERAPIST_ID, bindings[0].id, delete_question_record=True
        )
        assert result.question_deleted is False
        assert "not confirmed" in result.reason

        again, _ = build_assessment([], title="Again")
        rebound = definitions.add_question_to_assessment(THERAPIST_ID, again.id, result.question_id)[1]
        confirmed = definitions.remove_question_from_assessment(
            THERAPIST_ID, rebound.id, delete_question_record=True, confirm_global=True
        )
        assert confirmed.question_deleted is True

    def test_keeps_question_owned_by_someone_else(self, definitions, db_session):
        shared = QuestionCatalog(db_session).create_question(OTHER_THERAPIST_ID, QuestionCreate(
            question_text="Library", question_type="text", is_global=True
        ))
        assessment = definitions.create_assessment(THERAPIST_ID, AssessmentCreate(title="Intake"))
        _, binding = definitions.add_question_to_assessment(THERAPIST_ID, assessment.id, shared.id)

        result = definitions.remove_question_from_assessment(
            THERAPIST_ID, binding.id, delete_question_record=True, confirm_global=True
        )

        assert result.question_deleted is False
        assert result.reason == "question is not owned by the caller"
