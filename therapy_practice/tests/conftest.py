"""
Shared fixtures for the assessment tests.

Every test gets a fresh in-memory SQLite database with foreign keys switched
on, two therapists and a few seeded clients.
"""

import pytest
from fastapi.testclient import TestClient

from therapy_practice import create_app
from therapy_practice.database.init_db import (
    build_engine,
    create_schema,
    create_session_factory,
    get_db,
)
from therapy_practice.assessments.clients import ClientDirectory
from therapy_practice.assessments.definitions import AssessmentDefinitions
from therapy_practice.assessments.schemas import AssessmentCreate, BindingOptions, QuestionCreate

THERAPIST_ID = "therapist-1"
OTHER_THERAPIST_ID = "therapist-2"

MC_OPTIONS = [
    {"label": "A", "value": "A", "points": 0},
    {"label": "B", "value": "B", "points": 1},
    {"label": "C", "value": "C", "points": 2},
]
RATING_SCALE = {"min": 1, "max": 5, "minLabel": "Never", "maxLabel": "Always"}


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://")
    create_schema(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    session = create_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def clients(db_session):
    """Seeded clients keyed by first name."""
    directory = ClientDirectory(db_session)
    return {
        "alice": directory.register_client(THERAPIST_ID, "Alice Moreau", "alice@example.com"),
        "bob": directory.register_client(THERAPIST_ID, "Bob Lindqvist", "bob@example.com"),
        "carol": directory.register_client(OTHER_THERAPIST_ID, "Carol Okafor", "carol@example.com"),
    }


@pytest.fixture
def build_assessment(db_session):
    """
    Factory creating an assessment with bound questions.

    Each question is a QuestionCreate-style dict; an optional ``binding`` key
    holds the binding options.
    """
    def build(questions=(), therapist_id=THERAPIST_ID, **meta):
        definitions = AssessmentDefinitions(db_session)
        meta.setdefault("title", "Weekly check-in")
        assessment = definitions.create_assessment(therapist_id, AssessmentCreate(**meta))

        bindings = []
        for question in questions:
            question = dict(question)
            binding_options = BindingOptions(**question.pop("binding", {}))
            _, binding = definitions.add_question_to_assessment(
                therapist_id, assessment.id, QuestionCreate(**question), binding_options
            )
            bindings.append(binding)
        return assessment, bindings

    return build


@pytest.fixture
def mc_question():
    return {
        "question_text": "How often did you feel low?",
        "question_type": "multiple_choice",
        "options": MC_OPTIONS,
    }


@pytest.fixture
def rating_question():
    return {
        "question_text": "Rate your sleep quality",
        "question_type": "rating",
        "options": RATING_SCALE,
    }


@pytest.fixture
def app(db_session):
    application = create_app()

    def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def api_client(app):
    # Used without a context manager so the lifespan does not open the
    # configured database
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {THERAPIST_ID}"}


@pytest.fixture
def other_auth_headers():
    return {"Authorization": f"Bearer {OTHER_THERAPIST_ID}"}
