"""
Response payloads for the assessment API.

Rows are turned into plain dictionaries here so the controllers stay thin and
FastAPI's encoder only sees JSON-friendly values.
"""

from typing import Any, Callable, Dict, List, Optional

from therapy_practice.common.pagination import Page, PaginationInfo
from therapy_practice.assessments.assignments import effective_status
from therapy_practice.assessments.database_models import (
    Assessment,
    AssessmentAssignment,
    AssessmentQuestion,
    AssessmentSubmission,
    Client,
    Notification,
    Question,
)
from therapy_practice.assessments.models import effective_question


def question_to_dict(question: Question) -> Dict[str, Any]:
    return {
        "id": question.id,
        "therapist_id": question.therapist_id,
        "question_text": question.question_text,
        "question_type": question.question_type,
        "options": question.options,
        "help_text": question.help_text,
        "placeholder_text": question.placeholder_text,
        "is_global": question.is_global,
        "created_at": question.created_at,
        "updated_at": question.updated_at,
    }


def assessment_to_dict(assessment: Assessment, question_count: Optional[int] = None) -> Dict[str, Any]:
    data = {
        "id": assessment.id,
        "therapist_id": assessment.therapist_id,
        "title": assessment.title,
        "description": assessment.description,
        "category": assessment.category,
        "is_active": assessment.is_active,
        "allow_multiple_submissions": assessment.allow_multiple_submissions,
        "show_scores_to_client": assessment.show_scores_to_client,
        "share_token": assessment.share_token,
        "scoring_ranges": assessment.scoring_ranges or [],
        "created_at": assessment.created_at,
        "updated_at": assessment.updated_at,
    }
    if question_count is not None:
        data["question_count"] = question_count
    return data


def binding_to_dict(binding: AssessmentQuestion) -> Dict[str, Any]:
    """
    A binding with its stored overrides, the catalog question and the
    effective values a client would see.
    """
    resolved = effective_question(binding, binding.question)
    return {
        "id": binding.id,
        "assessment_id": binding.assessment_id,
        "question_id": binding.question_id,
        "question_order": binding.question_order,
        "is_required": binding.is_required,
        "points": binding.points,
        "override_question_text": binding.override_question_text,
        "override_options": binding.override_options,
        "override_help_text": binding.override_help_text,
        "section_name": binding.section_name,
        "conditional_logic": binding.conditional_logic,
        "question": question_to_dict(binding.question),
        "effective": {
            "question_text": resolved.question_text,
            "question_type": resolved.question_type.value,
            "options": resolved.options.to_json(),
            "help_text": resolved.help_text,
        },
    }


def client_to_dict(client: Client) -> Dict[str, Any]:
    return {
        "id": client.id,
        "full_name": client.full_name,
        "email": client.email,
        "status": client.status,
        "created_at": client.created_at,
    }


def assignment_to_dict(assignment: AssessmentAssignment) -> Dict[str, Any]:
    return {
        "id": assignment.id,
        "assessment_id": assignment.assessment_id,
        "client_id": assignment.client_id,
        "client_name": assignment.client.full_name,
        "assigned_at": assignment.assigned_at,
        "due_date": assignment.due_date,
        "completed_at": assignment.completed_at,
        "status": effective_status(assignment).value,
        "submission_id": assignment.submission_id,
        "notes": assignment.notes,
    }


def submission_to_dict(submission: AssessmentSubmission) -> Dict[str, Any]:
    return {
        "id": submission.id,
        "assessment_id": submission.assessment_id,
        "client_id": submission.client_id,
        "client_name": submission.client.full_name,
        "status": submission.status,
        "submitted_at": submission.submitted_at,
        "completion_time_seconds": submission.completion_time_seconds,
        "raw_score": submission.raw_score,
        "calculated_score": submission.calculated_score,
        "score_interpretation": submission.score_interpretation,
        "notes": submission.notes,
        "created_at": submission.created_at,
    }


def submission_detail_to_dict(detail) -> Dict[str, Any]:
    data = submission_to_dict(detail.submission)
    data["responses"] = [
        {
            "id": item.response.id,
            "assessment_question_id": item.response.assessment_question_id,
            "question_id": item.response.question_id,
            "question_order": item.question_order,
            "question_text": item.question_text,
            "current_question_text": item.current_question_text,
            "question_type": item.question_type,
            "response_value": item.response.response_value,
            "numeric_value": item.response.numeric_value,
            "points_earned": item.response.points_earned,
        }
        for item in detail.responses
    ]
    return data


def notification_to_dict(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "is_read": notification.is_read,
        "created_at": notification.created_at,
    }


def page_to_dict(page: Page, serialize: Callable[[Any], Dict[str, Any]]) -> Dict[str, Any]:
    items: List[Dict[str, Any]] = [serialize(item) for item in page.items]
    return {
        "items": items,
        "pagination": PaginationInfo.from_page(page).model_dump(),
    }
