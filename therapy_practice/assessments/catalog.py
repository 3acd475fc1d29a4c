"""
Question Catalog

Reusable question definitions, private to one therapist or shared in the
library. Library questions are readable by everyone; only the owner may
change them, and questions without an owner are read-only.
"""

from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from therapy_practice.common.db.session import transaction
from therapy_practice.common.error_handling import (
    AuthorizationError,
    ConflictError,
    ValidationError,
)
from therapy_practice.common.logger import app_logger
from therapy_practice.assessments import repositories
from therapy_practice.assessments.database_models import AssessmentQuestion, Question
from therapy_practice.assessments.models import QuestionType, parse_options
from therapy_practice.assessments.schemas import QuestionCreate, QuestionUpdate

logger = app_logger.getChild("assessments.catalog")

DEFAULT_LIBRARY_LIMIT = 50


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_question(therapist_id: Optional[str], definition: QuestionCreate) -> Question:
    """
    Validate a question definition and build an unsaved Question row.

    Raises:
        ValidationError: If the text is empty, the type is unknown or the
            options do not fit the type
    """
    question_text = _clean_text(definition.question_text)
    if not question_text:
        raise ValidationError(
            "Question text is required",
            details={"question_text": "must not be empty"}
        )

    question_type = QuestionType.parse(definition.question_type)
    options = parse_options(question_type, definition.options)

    return Question(
        therapist_id=therapist_id,
        question_text=question_text,
        question_type=question_type.value,
        options=options.to_json(),
        help_text=_clean_text(definition.help_text),
        placeholder_text=_clean_text(definition.placeholder_text),
        is_global=definition.is_global
    )


def can_read(question: Question, therapist_id: str) -> bool:
    return question.is_global or question.therapist_id == therapist_id


def ensure_owner(question: Question, therapist_id: str, action: str) -> None:
    """Raise AuthorizationError unless ``therapist_id`` owns the question."""
    if question.therapist_id is None or question.therapist_id != therapist_id:
        raise AuthorizationError(
            "Only the owner can modify this question",
            resource="question",
            action=action
        )


class QuestionCatalog:
    """Service for catalog questions."""

    def __init__(self, session: Session):
        self.session = session

    def create_question(self, therapist_id: str, definition: QuestionCreate) -> Question:
        """
        Create a catalog question owned by ``therapist_id``.

        Args:
            therapist_id: Owner of the new question
            definition: Text, type, options and library flag

        Returns:
            The stored question

        Raises:
            ValidationError: If the definition is malformed
        """
        question = build_question(therapist_id, definition)
        with transaction(self.session):
            self.session.add(question)

        logger.info(f"Created {question.question_type} question {question.id} (global={question.is_global})")
        return question

    def get_question(self, therapist_id: str, question_id: str) -> Question:
        question = repositories.get_question(self.session, question_id)
        if not can_read(question, therapist_id):
            raise AuthorizationError(
                "You do not have access to this question",
                resource="question",
                action="read"
            )
        return question

    def update_question(self, therapist_id: str, question_id: str, patch: QuestionUpdate) -> Question:
        """
        Apply a partial update to a question.

        When the type changes, the options are validated against the new type;
        without new options the type's defaults apply (yes/no and text only).
        A type change is refused while any binding overrides the options,
        because those overrides could no longer be read.

        Raises:
            QuestionNotFoundError: If the question does not exist
            AuthorizationError: If the caller does not own the question
            ValidationError: If the new values are malformed
        """
        question = repositories.get_question(self.session, question_id)
        ensure_owner(question, therapist_id, "update")

        changes = patch.model_dump(exclude_unset=True)
        updates = {}

        if "question_text" in changes:
            question_text = _clean_text(changes["question_text"])
            if not question_text:
                raise ValidationError(
                    "Question text is required",
                    details={"question_text": "must not be empty"}
                )
            updates["question_text"] = question_text

        new_type = QuestionType.parse(changes.get("question_type") or question.question_type)
        type_changed = new_type.value != question.question_type

        if type_changed:
            overridden = (
                self.session.query(AssessmentQuestion.id)
                .filter(
                    AssessmentQuestion.question_id == question.id,
                    AssessmentQuestion.override_options.isnot(None)
                )
                .first()
            )
            if overridden is not None:
                raise ValidationError(
                    "Cannot change the type of a question whose options are overridden in an assessment",
                    details={"question_type": "remove the option overrides first"}
                )

            if new_type != QuestionType.RATING:
                weighted = (
                    self.session.query(AssessmentQuestion.id)
                    .filter(
                        AssessmentQuestion.question_id == question.id,
                        AssessmentQuestion.points.isnot(None)
                    )
                    .first()
                )
                if weighted is not None:
                    raise ValidationError(
                        "Cannot change a weighted rating question to another type",
                        details={"question_type": "remove the binding weights first"}
                    )

        if type_changed or "options" in changes:
            raw_options = changes.get("options")
            updates["options"] = parse_options(new_type, raw_options).to_json()
            updates["question_type"] = new_type.value

        for field_name in ("help_text", "placeholder_text"):
            if field_name in changes:
                updates[field_name] = _clean_text(changes[field_name])

        with transaction(self.session):
            question.update(updates)

        logger.info(f"Updated question {question.id} fields={sorted(updates)}")
        return question

    def list_library(
        self,
        therapist_id: str,
        search: Optional[str] = None,
        limit: int = DEFAULT_LIBRARY_LIMIT
    ) -> List[Question]:
        """
        Global questions plus the caller's own, newest first.

        Args:
            therapist_id: The caller
            search: Optional case-insensitive substring of the question text
            limit: Maximum number of rows
        """
        query = self.session.query(Question).filter(
            or_(Question.is_global.is_(True), Question.therapist_id == therapist_id)
        )
        if search and search.strip():
            query = query.filter(Question.question_text.ilike(f"%{search.strip()}%"))

        return query.order_by(Question.created_at.desc()).limit(limit).all()

    def set_global(self, therapist_id: str, question_id: str, is_global: bool) -> Question:
        """Save a question to, or remove it from, the shared library."""
        question = repositories.get_question(self.session, question_id)
        ensure_owner(question, therapist_id, "share" if is_global else "unshare")

        with transaction(self.session):
            question.is_global = is_global

        logger.info(f"Question {question.id} library flag set to {is_global}")
        return question

    def save_to_library(self, therapist_id: str, question_id: str) -> Question:
        return self.set_global(therapist_id, question_id, True)

    def remove_from_library(self, therapist_id: str, question_id: str) -> Question:
        return self.set_global(therapist_id, question_id, False)

    def delete_question(self, therapist_id: str, question_id: str) -> None:
        """
        Delete a question that is not bound to any assessment.

        Raises:
            AuthorizationError: If the caller does not own the question
            ConflictError: While the question is still bound somewhere
        """
        question = repositories.get_question(self.session, question_id)
        ensure_owner(question, therapist_id, "delete")

        if repositories.count_bindings_for_question(self.session, question.id):
            raise ConflictError(
                "Question is still used by an assessment",
                details={"question_id": question.id}
            )

        with transaction(self.session):
            self.session.delete(question)

        logger.info(f"Deleted question {question_id}")
