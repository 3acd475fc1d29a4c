"""
Assessment Repositories

Lookup and ordering helpers shared by the assessment services. Every lookup
raises the matching domain error instead of returning None, and every helper
works inside the caller's transaction without committing.
"""

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from therapy_practice.common.error_handling import (
    AssessmentNotFoundError,
    AuthorizationError,
    NotFoundError,
    QuestionNotFoundError,
)
from therapy_practice.assessments.database_models import (
    Assessment,
    AssessmentQuestion,
    Question,
)
from therapy_practice.assessments.models import ResolvedQuestion, effective_question


def get_question(session: Session, question_id: str) -> Question:
    question = session.get(Question, question_id)
    if question is None:
        raise QuestionNotFoundError(question_id)
    return question


def get_assessment(
    session: Session,
    therapist_id: str,
    assessment_id: str,
    for_update: bool = False
) -> Assessment:
    """
    Load an assessment owned by ``therapist_id``.

    Args:
        session: Active session
        therapist_id: The caller
        assessment_id: Assessment to load
        for_update: Lock the row until the transaction ends (PostgreSQL)

    Raises:
        AssessmentNotFoundError: If the assessment does not exist
        AuthorizationError: If it belongs to another therapist
    """
    query = session.query(Assessment).filter(Assessment.id == assessment_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    assessment = query.one_or_none()

    if assessment is None:
        raise AssessmentNotFoundError(assessment_id)
    if assessment.therapist_id != therapist_id:
        raise AuthorizationError(
            "You do not have access to this assessment",
            resource="assessment",
            action="access"
        )
    return assessment


def get_binding(
    session: Session,
    therapist_id: str,
    binding_id: str,
    for_update: bool = False
) -> AssessmentQuestion:
    """
    Load a binding and check that its assessment belongs to ``therapist_id``.

    With ``for_update`` the owning assessment row is locked first, which
    serializes every ordering change of that assessment.
    """
    binding = session.get(AssessmentQuestion, binding_id)
    if binding is None:
        raise NotFoundError("Assessment question", binding_id)
    get_assessment(session, therapist_id, binding.assessment_id, for_update=for_update)
    return binding


def list_bindings(session: Session, assessment_id: str) -> List[AssessmentQuestion]:
    return (
        session.query(AssessmentQuestion)
        .filter(AssessmentQuestion.assessment_id == assessment_id)
        .order_by(AssessmentQuestion.question_order)
        .all()
    )


def resolve_questions(session: Session, assessment_id: str) -> List[ResolvedQuestion]:
    """Effective questions of an assessment in presentation order."""
    return [
        effective_question(binding, binding.question)
        for binding in list_bindings(session, assessment_id)
    ]


def next_question_order(session: Session, assessment_id: str) -> int:
    current = (
        session.query(func.max(AssessmentQuestion.question_order))
        .filter(AssessmentQuestion.assessment_id == assessment_id)
        .scalar()
    )
    return (current or 0) + 1


def count_bindings_for_question(
    session: Session,
    question_id: str,
    exclude_binding_id: Optional[str] = None
) -> int:
    query = session.query(func.count(AssessmentQuestion.id)).filter(
        AssessmentQuestion.question_id == question_id
    )
    if exclude_binding_id is not None:
        query = query.filter(AssessmentQuestion.id != exclude_binding_id)
    return query.scalar() or 0


def apply_order(session: Session, bindings: List[AssessmentQuestion]) -> None:
    """
    Rewrite ``question_order`` to 1..n following the list order.

    Orders are first moved to negative placeholders and flushed so that no
    intermediate state collides with the unique (assessment, order)
    constraint. New bindings in the list are assigned their final order in
    the second phase.
    """
    existing = [binding for binding in bindings if binding.question_order is not None]
    for index, binding in enumerate(existing, start=1):
        binding.question_order = -index
    session.flush()

    for index, binding in enumerate(bindings, start=1):
        binding.question_order = index
    session.add_all(bindings)
    session.flush()
