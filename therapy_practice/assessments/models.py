"""
Assessment Domain Models

This module defines the domain types shared by the assessment services:
enumerations, the typed question options, the effective (override-resolved)
view of a bound question, and the answer/score value objects.

Options are stored as JSON, but nothing outside this module handles them as
raw data: ``parse_options`` narrows a payload to one of the option classes
and rejects anything malformed with a ``ValidationError``.
"""

import enum
import numbers
from typing import Dict, List, Any, Optional, Union
from dataclasses import dataclass, field

from therapy_practice.common.error_handling import ValidationError


class QuestionType(enum.Enum):
    """Supported question types."""
    MULTIPLE_CHOICE = "multiple_choice"
    YES_NO = "yes_no"
    TEXT = "text"
    RATING = "rating"

    @classmethod
    def parse(cls, value: Union[str, 'QuestionType']) -> 'QuestionType':
        """Convert a raw value to a QuestionType, raising ValidationError if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValidationError(
                f"Invalid question type: {value}",
                details={"question_type": f"must be one of: {allowed}"}
            )


class AssessmentCategory(enum.Enum):
    """Categories an author can file an assessment under."""
    CLINICAL = "Clinical"
    STRESS_MOOD = "Stress/Mood"
    PERSONAL = "Personal"
    BEHAVIORAL = "Behavioral"
    OTHER = "Other"


class AssignmentStatus(enum.Enum):
    """Lifecycle of an assessment assignment."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"

    @property
    def is_active(self) -> bool:
        return self in (AssignmentStatus.PENDING, AssignmentStatus.IN_PROGRESS)


class SubmissionStatus(enum.Enum):
    """Lifecycle of a submission."""
    DRAFT = "draft"
    COMPLETED = "completed"
    REVIEWED = "reviewed"


class ClientStatus(enum.Enum):
    """Status of a client record."""
    ACTIVE = "active"
    INACTIVE = "inactive"


def is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def format_number(value: float) -> str:
    """Render 4.0 as "4" and 2.5 as "2.5"."""
    return str(int(value)) if float(value).is_integer() else str(value)


@dataclass(frozen=True)
class ChoiceOption:
    """One selectable option of a multiple choice or yes/no question."""
    label: str
    value: str
    points: float

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "value": self.value, "points": self.points}

    def to_public_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "value": self.value}


@dataclass(frozen=True)
class MultipleChoiceOptions:
    """Ordered list of at least two options with unique values."""
    choices: List[ChoiceOption]

    question_type = QuestionType.MULTIPLE_CHOICE

    def find(self, value: Any) -> Optional[ChoiceOption]:
        key = format_number(value) if is_number(value) else str(value)
        for choice in self.choices:
            if choice.value == key:
                return choice
        return None

    def to_json(self) -> List[Dict[str, Any]]:
        return [choice.to_dict() for choice in self.choices]

    def to_public_json(self) -> List[Dict[str, Any]]:
        return [choice.to_public_dict() for choice in self.choices]


@dataclass(frozen=True)
class RatingScale:
    """Integer scale ``min..max`` with optional end labels."""
    min: int
    max: int
    min_label: Optional[str] = None
    max_label: Optional[str] = None

    question_type = QuestionType.RATING

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def to_json(self) -> Dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "minLabel": self.min_label,
            "maxLabel": self.max_label
        }

    def to_public_json(self) -> Dict[str, Any]:
        return self.to_json()


YES = "yes"
NO = "no"


@dataclass(frozen=True)
class YesNoOptions:
    """
    The two fixed yes/no options.

    Labels and points may be customised (e.g. reverse scored items), but the
    values are always exactly ``yes`` and ``no``.
    """
    choices: List[ChoiceOption] = field(default_factory=lambda: [
        ChoiceOption(label="Yes", value=YES, points=1),
        ChoiceOption(label="No", value=NO, points=0),
    ])

    question_type = QuestionType.YES_NO

    def find(self, value: Any) -> Optional[ChoiceOption]:
        normalized = str(value).strip().lower()
        for choice in self.choices:
            if choice.value == normalized:
                return choice
        return None

    def to_json(self) -> List[Dict[str, Any]]:
        return [choice.to_dict() for choice in self.choices]

    def to_public_json(self) -> List[Dict[str, Any]]:
        return [choice.to_public_dict() for choice in self.choices]


@dataclass(frozen=True)
class TextOptions:
    """Free text questions carry no options."""

    question_type = QuestionType.TEXT

    def to_json(self) -> None:
        return None

    def to_public_json(self) -> None:
        return None


QuestionOptions = Union[MultipleChoiceOptions, RatingScale, YesNoOptions, TextOptions]


def _parse_choice(raw: Any, index: int, field_name: str) -> ChoiceOption:
    if not isinstance(raw, dict):
        raise ValidationError(
            "Each option must be an object with a label",
            details={field_name: f"option {index + 1} is not an object"}
        )

    label = raw.get("label")
    if not isinstance(label, str) or not label.strip():
        raise ValidationError(
            "Option labels must not be empty",
            details={field_name: f"option {index + 1} has an empty label"}
        )

    value = raw.get("value")
    if value is None or (isinstance(value, str) and not value.strip()):
        value = f"option_{index + 1}"

    points = raw.get("points")
    if points is None:
        points = index
    elif not is_number(points):
        raise ValidationError(
            "Option points must be numeric",
            details={field_name: f"option {index + 1} has non-numeric points"}
        )

    value = format_number(value) if is_number(value) else str(value).strip()
    return ChoiceOption(label=label.strip(), value=value, points=points)


def _parse_multiple_choice(raw: Any, field_name: str) -> MultipleChoiceOptions:
    if not isinstance(raw, list) or len(raw) < 2:
        raise ValidationError(
            "Multiple choice questions need at least 2 options",
            details={field_name: "at least 2 options are required"}
        )

    choices = [_parse_choice(item, index, field_name) for index, item in enumerate(raw)]

    values = [choice.value for choice in choices]
    if len(set(values)) != len(values):
        raise ValidationError(
            "Option values must be unique",
            details={field_name: "duplicate option values"}
        )

    return MultipleChoiceOptions(choices=choices)


def _parse_rating(raw: Any, field_name: str) -> RatingScale:
    if not isinstance(raw, dict):
        raise ValidationError(
            "Rating questions need a scale with min and max",
            details={field_name: "expected an object with min and max"}
        )

    low, high = raw.get("min"), raw.get("max")
    for name, bound in (("min", low), ("max", high)):
        if not is_number(bound) or int(bound) != bound:
            raise ValidationError(
                f"Rating {name} must be an integer",
                details={field_name: f"{name} must be an integer"}
            )

    low, high = int(low), int(high)
    if low < 0:
        raise ValidationError(
            "Rating min must not be negative",
            details={field_name: "min must be 0 or greater"}
        )
    if low >= high:
        raise ValidationError(
            "Rating min must be less than max",
            details={field_name: "min must be less than max"}
        )

    return RatingScale(
        min=low,
        max=high,
        min_label=raw.get("minLabel") or None,
        max_label=raw.get("maxLabel") or None
    )


def _parse_yes_no(raw: Any, field_name: str) -> YesNoOptions:
    if raw is None or raw == []:
        return YesNoOptions()

    if not isinstance(raw, list) or len(raw) != 2:
        raise ValidationError(
            "Yes/no questions have exactly two options",
            details={field_name: "expected the yes and no options"}
        )

    choices = []
    for index, item in enumerate(raw):
        choice = _parse_choice(item, index, field_name)
        choices.append(ChoiceOption(label=choice.label, value=choice.value.lower(), points=choice.points))

    if {choice.value for choice in choices} != {YES, NO}:
        raise ValidationError(
            "Yes/no option values must be 'yes' and 'no'",
            details={field_name: "option values must be 'yes' and 'no'"}
        )

    return YesNoOptions(choices=choices)


def _parse_text(raw: Any, field_name: str) -> TextOptions:
    if raw in (None, [], {}):
        return TextOptions()
    raise ValidationError(
        "Text questions do not take options",
        details={field_name: "text questions must not have options"}
    )


_PARSERS = {
    QuestionType.MULTIPLE_CHOICE: _parse_multiple_choice,
    QuestionType.RATING: _parse_rating,
    QuestionType.YES_NO: _parse_yes_no,
    QuestionType.TEXT: _parse_text,
}


def parse_options(
    question_type: Union[str, QuestionType],
    raw: Any,
    field_name: str = "options"
) -> QuestionOptions:
    """
    Narrow a raw options payload to the typed options for ``question_type``.

    Args:
        question_type: Question type or its string value
        raw: Options as stored or submitted (JSON compatible)
        field_name: Name used as the key of the error details

    Returns:
        One of MultipleChoiceOptions, RatingScale, YesNoOptions, TextOptions

    Raises:
        ValidationError: If the type is unknown or the payload is malformed
    """
    question_type = QuestionType.parse(question_type)
    return _PARSERS[question_type](raw, field_name)


@dataclass(frozen=True)
class ResolvedQuestion:
    """
    A bound question as a client sees it.

    Text, options and help text are the binding overrides when present,
    otherwise the catalog values.
    """
    binding_id: str
    question_id: Optional[str]
    question_order: int
    question_text: str
    question_type: QuestionType
    options: QuestionOptions
    help_text: Optional[str]
    placeholder_text: Optional[str]
    is_required: bool
    weight: Optional[float]
    section_name: Optional[str] = None

    def to_public_dict(self) -> Dict[str, Any]:
        """Client-facing fields only; scoring data is never included."""
        return {
            "assessment_question_id": self.binding_id,
            "question_order": self.question_order,
            "question_text": self.question_text,
            "question_type": self.question_type.value,
            "options": self.options.to_public_json(),
            "help_text": self.help_text,
            "is_required": self.is_required,
        }


def effective_question(binding: Any, question: Any) -> ResolvedQuestion:
    """
    Resolve a binding against its catalog question.

    Args:
        binding: AssessmentQuestion row
        question: The bound Question row

    Returns:
        The override-resolved question
    """
    question_type = QuestionType.parse(question.question_type)

    if binding.override_options not in (None, []):
        options = parse_options(question_type, binding.override_options, "override_options")
    else:
        options = parse_options(question_type, question.options)

    return ResolvedQuestion(
        binding_id=binding.id,
        question_id=question.id,
        question_order=binding.question_order,
        question_text=binding.override_question_text or question.question_text,
        question_type=question_type,
        options=options,
        help_text=binding.override_help_text or question.help_text,
        placeholder_text=question.placeholder_text,
        is_required=bool(binding.is_required),
        weight=binding.points,
        section_name=binding.section_name
    )


@dataclass(frozen=True)
class Answer:
    """A client's answer to one binding."""
    binding_id: str
    value: Any


@dataclass(frozen=True)
class ScoredAnswer:
    """A validated answer with its stored representation and score."""
    question: ResolvedQuestion
    response_value: Optional[str]
    numeric_value: Optional[float]
    points_earned: Optional[float]


@dataclass
class ScoreResult:
    """Outcome of scoring one set of answers."""
    answers: List[ScoredAnswer] = field(default_factory=list)
    raw_score: float = 0
    calculated_score: float = 0
    score_interpretation: Optional[str] = None

    @property
    def scored_count(self) -> int:
        return sum(1 for answer in self.answers if answer.points_earned is not None)


@dataclass(frozen=True)
class ScoringRange:
    """Author supplied label for scores in ``[min, max]``."""
    min: float
    max: float
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"min": self.min, "max": self.max, "label": self.label}


def parse_scoring_ranges(raw: Any) -> List[ScoringRange]:
    """
    Validate an assessment's interpretation ranges.

    Raises:
        ValidationError: If a range is malformed
    """
    if raw in (None, []):
        return []
    if not isinstance(raw, list):
        raise ValidationError(
            "Scoring ranges must be a list",
            details={"scoring_ranges": "expected a list of {min, max, label}"}
        )

    ranges = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(
                "Scoring ranges must be objects",
                details={"scoring_ranges": f"range {index + 1} is not an object"}
            )
        low, high, label = item.get("min"), item.get("max"), item.get("label")
        if not is_number(low) or not is_number(high) or low > high:
            raise ValidationError(
                "Scoring range bounds are invalid",
                details={"scoring_ranges": f"range {index + 1} needs numeric min <= max"}
            )
        if not isinstance(label, str) or not label.strip():
            raise ValidationError(
                "Scoring range labels must not be empty",
                details={"scoring_ranges": f"range {index + 1} has an empty label"}
            )
        ranges.append(ScoringRange(min=low, max=high, label=label.strip()))
    return ranges
