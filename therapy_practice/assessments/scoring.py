"""
Answer Validation and Scoring

Pure functions over resolved questions and answers; nothing here touches the
database. ``score_submission`` either returns a complete ScoreResult or raises
a ValidationError whose details map each offending binding id to a message.

Scoring rules:
- multiple choice and yes/no answers earn the chosen option's points
- rating answers earn the selected value, multiplied by the binding weight
  when the binding has one
- text answers are not scored
"""

from typing import Any, Dict, List, Optional, Sequence

from therapy_practice.common.error_handling import ValidationError
from therapy_practice.common.logger import app_logger
from therapy_practice.assessments.models import (
    Answer,
    MultipleChoiceOptions,
    QuestionType,
    RatingScale,
    ResolvedQuestion,
    ScoredAnswer,
    ScoreResult,
    ScoringRange,
    YesNoOptions,
    format_number,
    is_number,
)

logger = app_logger.getChild("assessments.scoring")


class AnswerError(ValueError):
    """Raised by the per-type checks; collected into one ValidationError."""


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _choice_answer(question: ResolvedQuestion, value: Any) -> ScoredAnswer:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise AnswerError("must be one of the option values")

    options = question.options
    if not isinstance(options, (MultipleChoiceOptions, YesNoOptions)):
        raise AnswerError("question has no options")

    choice = options.find(value)
    if choice is None:
        if question.question_type == QuestionType.YES_NO:
            raise AnswerError("must be 'yes' or 'no'")
        raise AnswerError("must be one of the option values")

    return ScoredAnswer(
        question=question,
        response_value=choice.value,
        numeric_value=None,
        points_earned=choice.points
    )


def _rating_answer(question: ResolvedQuestion, value: Any) -> ScoredAnswer:
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise AnswerError("must be a number")
    if not is_number(value):
        raise AnswerError("must be a number")

    scale = question.options
    if not isinstance(scale, RatingScale):
        raise AnswerError("question has no rating scale")
    if not scale.contains(value):
        raise AnswerError(f"must be between {scale.min} and {scale.max}")

    numeric_value = float(value)
    points = numeric_value if question.weight is None else numeric_value * question.weight

    return ScoredAnswer(
        question=question,
        response_value=format_number(numeric_value),
        numeric_value=numeric_value,
        points_earned=points
    )


def _text_answer(question: ResolvedQuestion, value: Any) -> ScoredAnswer:
    if not isinstance(value, str):
        raise AnswerError("must be text")
    return ScoredAnswer(
        question=question,
        response_value=value,
        numeric_value=None,
        points_earned=None
    )


_CHECKS = {
    QuestionType.MULTIPLE_CHOICE: _choice_answer,
    QuestionType.YES_NO: _choice_answer,
    QuestionType.RATING: _rating_answer,
    QuestionType.TEXT: _text_answer,
}


def validate_answers(
    questions: Sequence[ResolvedQuestion],
    answers: Sequence[Answer],
    enforce_required: bool = True
) -> List[ScoredAnswer]:
    """
    Check answers against the assessment's questions.

    Blank answers count as unanswered and produce no response. Answers are
    returned in question order.

    Args:
        questions: The assessment's resolved questions
        answers: Submitted answers
        enforce_required: Whether required questions must be answered
            (drafts skip this)

    Returns:
        The scored answers

    Raises:
        ValidationError: If the assessment has no questions, an answer is for
            an unknown binding, is duplicated, does not fit its question, or a
            required question is unanswered
    """
    if not questions:
        raise ValidationError(
            "This assessment has no questions",
            details={"assessment": "add questions before collecting answers"}
        )

    by_binding = {question.binding_id: question for question in questions}
    errors: Dict[str, str] = {}
    scored: Dict[str, ScoredAnswer] = {}
    seen = set()

    for answer in answers:
        binding_id = answer.binding_id
        if binding_id in seen:
            errors[binding_id] = "answered more than once"
            continue
        seen.add(binding_id)

        question = by_binding.get(binding_id)
        if question is None:
            errors[binding_id] = "is not a question of this assessment"
            continue
        if _is_blank(answer.value):
            continue

        try:
            scored[binding_id] = _CHECKS[question.question_type](question, answer.value)
        except AnswerError as e:
            errors[binding_id] = str(e)

    if enforce_required:
        for question in questions:
            if question.is_required and question.binding_id not in scored and question.binding_id not in errors:
                errors[question.binding_id] = "an answer is required"

    if errors:
        raise ValidationError("Some answers are invalid", details=errors)

    return [scored[q.binding_id] for q in questions if q.binding_id in scored]


def interpret(score: float, ranges: Sequence[ScoringRange]) -> Optional[str]:
    """Label of the first range containing ``score``, if any."""
    for scoring_range in ranges:
        if scoring_range.min <= score <= scoring_range.max:
            return scoring_range.label
    return None


def score_submission(
    questions: Sequence[ResolvedQuestion],
    answers: Sequence[Answer],
    scoring_ranges: Sequence[ScoringRange] = (),
    enforce_required: bool = True
) -> ScoreResult:
    """
    Validate and score a set of answers.

    Args:
        questions: The assessment's resolved questions
        answers: Submitted answers
        scoring_ranges: The assessment's interpretation ranges
        enforce_required: Whether required questions must be answered

    Returns:
        ScoreResult with the scored answers, raw and calculated score and the
        interpretation label
    """
    scored = validate_answers(questions, answers, enforce_required=enforce_required)
    raw_score = sum(answer.points_earned for answer in scored if answer.points_earned is not None)

    result = ScoreResult(
        answers=scored,
        raw_score=raw_score,
        calculated_score=raw_score,
        score_interpretation=interpret(raw_score, scoring_ranges)
    )
    logger.debug(
        f"Scored {result.scored_count} of {len(scored)} answers: raw={raw_score} "
        f"interpretation={result.score_interpretation}"
    )
    return result
