"""
Assessment Definition

Assessments are ordered collections of question bindings. Each binding points
at one catalog question and may override its text, options and help text for
that assessment only.

Every change to the set or order of bindings runs in one transaction with the
assessment row locked, and leaves ``question_order`` dense from 1.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from therapy_practice.common.db.session import transaction
from therapy_practice.common.error_handling import (
    AuthorizationError,
    ConflictError,
    ValidationError,
)
from therapy_practice.common.logger import app_logger, log_execution_time
from therapy_practice.common.pagination import Page, paginate
from therapy_practice.assessments import repositories
from therapy_practice.assessments.catalog import build_question, can_read
from therapy_practice.assessments.database_models import (
    Assessment,
    AssessmentQuestion,
    Question,
)
from therapy_practice.assessments.models import (
    AssessmentCategory,
    QuestionType,
    effective_question,
    parse_options,
    parse_scoring_ranges,
)
from therapy_practice.assessments.schemas import (
    AssessmentCreate,
    AssessmentUpdate,
    BindingOptions,
    BindingUpdate,
    QuestionCreate,
)

logger = app_logger.getChild("assessments.definitions")

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def _order_conflict(error: IntegrityError) -> ConflictError:
    return ConflictError(
        "The assessment was modified concurrently, please retry",
        cause=error
    )


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _validate_meta(values: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and normalize assessment fields present in ``values``."""
    cleaned = dict(values)

    if "title" in values:
        title = _clean(values["title"])
        if not title:
            raise ValidationError("Title is required", details={"title": "must not be empty"})
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(
                "Title is too long",
                details={"title": f"must be at most {TITLE_MAX_LENGTH} characters"}
            )
        cleaned["title"] = title

    if "description" in values:
        description = _clean(values["description"])
        if description and len(description) > DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                "Description is too long",
                details={"description": f"must be at most {DESCRIPTION_MAX_LENGTH} characters"}
            )
        cleaned["description"] = description

    if "category" in values:
        category = _clean(values["category"])
        if category is not None:
            try:
                category = AssessmentCategory(category).value
            except ValueError:
                allowed = ", ".join(c.value for c in AssessmentCategory)
                raise ValidationError(
                    f"Invalid category: {category}",
                    details={"category": f"must be one of: {allowed}"}
                )
        cleaned["category"] = category

    if "scoring_ranges" in values:
        ranges = parse_scoring_ranges(values["scoring_ranges"])
        cleaned["scoring_ranges"] = [r.to_dict() for r in ranges] or None

    for flag in ("is_active", "allow_multiple_submissions", "show_scores_to_client"):
        if flag in values and values[flag] is None:
            raise ValidationError(f"{flag} must be true or false", details={flag: "must not be null"})

    return cleaned


def _validate_binding(values: Dict[str, Any], question_type: QuestionType) -> Dict[str, Any]:
    """Validate and normalize binding fields present in ``values``."""
    cleaned = dict(values)

    for field_name in ("override_question_text", "override_help_text", "section_name"):
        if field_name in values:
            cleaned[field_name] = _clean(values[field_name])

    if "override_options" in values:
        raw = values["override_options"]
        if raw in (None, []):
            cleaned["override_options"] = None
        else:
            if question_type == QuestionType.TEXT:
                raise ValidationError(
                    "Text questions do not take options",
                    details={"override_options": "text questions must not have options"}
                )
            cleaned["override_options"] = parse_options(question_type, raw, "override_options").to_json()

    if values.get("points") is not None:
        if question_type != QuestionType.RATING:
            raise ValidationError(
                "Only rating questions take a weight",
                details={"points": f"{question_type.value} questions are scored by their options"}
            )
        if values["points"] <= 0:
            raise ValidationError(
                "Weight must be greater than 0",
                details={"points": "must be greater than 0"}
            )

    if "is_required" in values and values["is_required"] is None:
        raise ValidationError("is_required must be true or false", details={"is_required": "must not be null"})

    return cleaned


@dataclass
class AssessmentSummary:
    """An assessment with its number of bound questions."""
    assessment: Assessment
    question_count: int


@dataclass
class RemovalResult:
    """Outcome of removing a binding."""
    binding_id: str
    question_id: str
    question_deleted: bool
    reason: Optional[str] = None


class AssessmentDefinitions:
    """Service for assessments and their question bindings."""

    def __init__(self, session: Session):
        self.session = session

    # Assessments

    def create_assessment(self, therapist_id: str, meta: AssessmentCreate) -> Assessment:
        """
        Create an assessment owned by ``therapist_id``.

        Raises:
            ValidationError: If the title is missing or a field is too long
        """
        values = _validate_meta(meta.model_dump())
        assessment = Assessment(therapist_id=therapist_id, **values)

        with transaction(self.session):
            self.session.add(assessment)

        logger.info(f"Created assessment {assessment.id} for therapist {therapist_id}")
        return assessment

    def get_assessment(self, therapist_id: str, assessment_id: str) -> Assessment:
        return repositories.get_assessment(self.session, therapist_id, assessment_id)

    def update_assessment(self, therapist_id: str, assessment_id: str, patch: AssessmentUpdate) -> Assessment:
        """Apply a partial update to an assessment's metadata."""
        assessment = repositories.get_assessment(self.session, therapist_id, assessment_id)
        values = _validate_meta(patch.model_dump(exclude_unset=True))

        with transaction(self.session):
            assessment.update(values)

        logger.info(f"Updated assessment {assessment.id} fields={sorted(values)}")
        return assessment

    def set_active(self, therapist_id: str, assessment_id: str, is_active: bool) -> Assessment:
        assessment = repositories.get_assessment(self.session, therapist_id, assessment_id)
        with transaction(self.session):
            assessment.is_active = is_active
        logger.info(f"Assessment {assessment.id} active={is_active}")
        return assessment

    def delete_assessment(self, therapist_id: str, assessment_id: str) -> None:
        """Delete an assessment with its bindings, assignments and submissions."""
        assessment = repositories.get_assessment(self.session, therapist_id, assessment_id)
        with transaction(self.session):
            self.session.delete(assessment)
        logger.info(f"Deleted assessment {assessment_id}")

    def list_assessments(
        self,
        therapist_id: str,
        category: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Page:
        """
        List the caller's assessments, newest first.

        Args:
            therapist_id: The caller
            category: Only this category
            is_active: Only active or only inactive assessments
            search: Case-insensitive substring of title or description
            page: 1-based page number
            page_size: Rows per page

        Returns:
            Page of AssessmentSummary
        """
        query = self.session.query(Assessment).filter(Assessment.therapist_id == therapist_id)
        if category:
            query = query.filter(Assessment.category == category)
        if is_active is not None:
            query = query.filter(Assessment.is_active.is_(is_active))
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Assessment.title.ilike(pattern), Assessment.description.ilike(pattern)))

        result = paginate(query.order_by(Assessment.created_at.desc()), page, page_size)

        counts = {}
        ids = [assessment.id for assessment in result.items]
        if ids:
            counts = dict(
                self.session.query(AssessmentQuestion.assessment_id, func.count(AssessmentQuestion.id))
                .filter(AssessmentQuestion.assessment_id.in_(ids))
                .group_by(AssessmentQuestion.assessment_id)
                .all()
            )

        result.items = [
            AssessmentSummary(assessment=assessment, question_count=counts.get(assessment.id, 0))
            for assessment in result.items
        ]
        return result

    # Bindings

    def list_bindings(self, therapist_id: str, assessment_id: str) -> List[AssessmentQuestion]:
        repositories.get_assessment(self.session, therapist_id, assessment_id)
        return repositories.list_bindings(self.session, assessment_id)

    @log_execution_time(logger)
    def add_question_to_assessment(
        self,
        therapist_id: str,
        assessment_id: str,
        question: Union[QuestionCreate, str],
        binding_options: Optional[BindingOptions] = None
    ) -> Tuple[Question, AssessmentQuestion]:
        """
        Bind a question at the end of an assessment.

        Args:
            therapist_id: The caller, who must own the assessment
            assessment_id: Target assessment
            question: A new question definition (created in the same
                transaction, optionally as a library question) or the id of
                an existing question readable by the caller
            binding_options: Required flag, weight, overrides and section

        Returns:
            The question and the new binding

        Raises:
            ValidationError: If the question or the overrides are malformed
            AuthorizationError: If the existing question is not readable
            ConflictError: If the question is already bound to the assessment
        """
        binding_options = binding_options or BindingOptions()

        with transaction(self.session, on_integrity_error=_order_conflict):
            assessment = repositories.get_assessment(
                self.session, therapist_id, assessment_id, for_update=True
            )

            if isinstance(question, QuestionCreate):
                catalog_question = build_question(therapist_id, question)
                self.session.add(catalog_question)
                self.session.flush()
            else:
                catalog_question = repositories.get_question(self.session, question)
                if not can_read(catalog_question, therapist_id):
                    raise AuthorizationError(
                        "You do not have access to this question",
                        resource="question",
                        action="bind"
                    )
                already_bound = (
                    self.session.query(AssessmentQuestion.id)
                    .filter(
                        AssessmentQuestion.assessment_id == assessment.id,
                        AssessmentQuestion.question_id == catalog_question.id
                    )
                    .first()
                )
                if already_bound is not None:
                    raise ConflictError(
                        "This question is already part of the assessment",
                        details={"question_id": catalog_question.id}
                    )

            values = _validate_binding(
                binding_options.model_dump(),
                QuestionType.parse(catalog_question.question_type)
            )
            binding = AssessmentQuestion(
                assessment_id=assessment.id,
                question_id=catalog_question.id,
                question_order=repositories.next_question_order(self.session, assessment.id),
                **values
            )
            self.session.add(binding)
            self.session.flush()

        logger.info(
            f"Bound question {catalog_question.id} to assessment {assessment_id} "
            f"at position {binding.question_order}"
        )
        return catalog_question, binding

    def update_binding(self, therapist_id: str, binding_id: str, patch: BindingUpdate) -> AssessmentQuestion:
        """Change the required flag, weight, overrides or section of a binding."""
        binding = repositories.get_binding(self.session, therapist_id, binding_id)
        values = _validate_binding(
            patch.model_dump(exclude_unset=True),
            QuestionType.parse(binding.question.question_type)
        )

        with transaction(self.session):
            binding.update(values)

        logger.info(f"Updated binding {binding.id} fields={sorted(values)}")
        return binding

    @log_execution_time(logger)
    def reorder_questions(
        self,
        therapist_id: str,
        assessment_id: str,
        ordered_binding_ids: List[str]
    ) -> List[AssessmentQuestion]:
        """
        Put the bindings of an assessment in the given order.

        Args:
            therapist_id: The caller, who must own the assessment
            assessment_id: Assessment to reorder
            ordered_binding_ids: Every binding id of the assessment, each once

        Returns:
            The bindings in their new order

        Raises:
            ValidationError: If the ids are not exactly the assessment's bindings
            ConflictError: If a concurrent change collides with the rewrite
        """
        with transaction(self.session, on_integrity_error=_order_conflict):
            repositories.get_assessment(self.session, therapist_id, assessment_id, for_update=True)
            bindings = {b.id: b for b in repositories.list_bindings(self.session, assessment_id)}

            if len(ordered_binding_ids) != len(set(ordered_binding_ids)):
                raise ValidationError(
                    "Each question may appear only once",
                    details={"ordered_binding_ids": "contains duplicates"}
                )
            if set(ordered_binding_ids) != set(bindings):
                missing = sorted(set(bindings) - set(ordered_binding_ids))
                unknown = sorted(set(ordered_binding_ids) - set(bindings))
                raise ValidationError(
                    "The new order must list every question of the assessment exactly once",
                    details={"missing": missing, "unknown": unknown}
                )

            ordered = [bindings[binding_id] for binding_id in ordered_binding_ids]
            repositories.apply_order(self.session, ordered)

        logger.info(f"Reordered {len(ordered)} questions of assessment {assessment_id}")
        return ordered

    def duplicate_question_binding(self, therapist_id: str, binding_id: str) -> Tuple[Question, AssessmentQuestion]:
        """
        Copy a binding into a new catalog question placed right after it.

        The copy takes the binding's effective text, options and help text,
        is private to the caller and has no overrides, so later edits to
        either side never reach the other.

        Returns:
            The new question and its binding
        """
        with transaction(self.session, on_integrity_error=_order_conflict):
            source = repositories.get_binding(self.session, therapist_id, binding_id, for_update=True)
            resolved = effective_question(source, source.question)

            copy = Question(
                therapist_id=therapist_id,
                question_text=resolved.question_text,
                question_type=resolved.question_type.value,
                options=resolved.options.to_json(),
                help_text=resolved.help_text,
                placeholder_text=resolved.placeholder_text,
                is_global=False
            )
            self.session.add(copy)
            self.session.flush()

            new_binding = AssessmentQuestion(
                assessment_id=source.assessment_id,
                question_id=copy.id,
                is_required=source.is_required,
                points=source.points,
                section_name=source.section_name,
                conditional_logic=source.conditional_logic
            )

            ordered = repositories.list_bindings(self.session, source.assessment_id)
            ordered.insert(ordered.index(source) + 1, new_binding)
            repositories.apply_order(self.session, ordered)

        logger.info(f"Duplicated binding {binding_id} as {new_binding.id} (question {copy.id})")
        return copy, new_binding

    def remove_question_from_assessment(
        self,
        therapist_id: str,
        binding_id: str,
        delete_question_record: bool = False,
        confirm_global: bool = False
    ) -> RemovalResult:
        """
        Remove a binding and close the gap in the order.

        The catalog question is deleted as well only when requested, owned by
        the caller, not bound to any other assessment and, for library
        questions, explicitly confirmed. Otherwise it is kept and the result
        says why.

        Args:
            therapist_id: The caller, who must own the assessment
            binding_id: Binding to remove
            delete_question_record: Also delete the catalog question
            confirm_global: Confirms deleting a library question

        Returns:
            RemovalResult
        """
        with transaction(self.session, on_integrity_error=_order_conflict):
            binding = repositories.get_binding(self.session, therapist_id, binding_id, for_update=True)
            assessment_id = binding.assessment_id
            question = binding.question

            reason = None
            if delete_question_record:
                if question.therapist_id != therapist_id:
                    reason = "question is not owned by the caller"
                elif repositories.count_bindings_for_question(self.session, question.id, exclude_binding_id=binding.id):
                    reason = "question is used by another assessment"
                elif question.is_global and not confirm_global:
                    reason = "question is in the shared library and deletion was not confirmed"

            self.session.delete(binding)
            self.session.flush()

            question_deleted = delete_question_record and reason is None
            if question_deleted:
                self.session.delete(question)

            remaining = repositories.list_bindings(self.session, assessment_id)
            repositories.apply_order(self.session, remaining)

        logger.info(
            f"Removed binding {binding_id} from assessment {assessment_id} "
            f"(question deleted={question_deleted}{', ' + reason if reason else ''})"
        )
        return RemovalResult(
            binding_id=binding_id,
            question_id=question.id,
            question_deleted=question_deleted,
            reason=reason
        )
