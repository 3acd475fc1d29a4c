"""
Assessment API Controllers

Endpoints for therapists authoring assessments and working with the results.
Every endpoint identifies the caller with ``get_current_therapist_id`` and
delegates to one service; domain errors are turned into responses by the
application's exception handlers.

Routers exported here:
- questions_router: the question catalog and shared library
- assessments_router: assessments, their questions, share links,
  assignments and submissions
- assignments_router: single assignments
- submissions_router: single submissions and review
- clients_router: the therapist's clients
- notifications_router: the activity feed
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from therapy_practice.api import APIResponse
from therapy_practice.common.auth.dependencies import get_current_therapist_id
from therapy_practice.common.logger import app_logger
from therapy_practice.database.init_db import get_db
from therapy_practice.assessments.assignments import AssignmentTracker
from therapy_practice.assessments.catalog import QuestionCatalog
from therapy_practice.assessments.clients import ClientDirectory
from therapy_practice.assessments.definitions import AssessmentDefinitions
from therapy_practice.assessments.models import Answer
from therapy_practice.assessments.notifications import ActivityFeed
from therapy_practice.assessments.schemas import (
    AddQuestionRequest,
    AnswerIn,
    AssessmentCreate,
    AssessmentUpdate,
    AssignmentUpdate,
    AssignRequest,
    BindingUpdate,
    ClientCreate,
    DraftCreate,
    NotesUpdate,
    QuestionCreate,
    QuestionUpdate,
    ReorderRequest,
    SubmissionCreate,
)
from therapy_practice.assessments.serializers import (
    assessment_to_dict,
    assignment_to_dict,
    binding_to_dict,
    client_to_dict,
    notification_to_dict,
    page_to_dict,
    question_to_dict,
    submission_detail_to_dict,
    submission_to_dict,
)
from therapy_practice.assessments.sharing import ShareService
from therapy_practice.assessments.submissions import SubmissionService

logger = app_logger.getChild("assessments.controllers")

questions_router = APIRouter()
assessments_router = APIRouter()
assignments_router = APIRouter()
submissions_router = APIRouter()
clients_router = APIRouter()
notifications_router = APIRouter()


def to_answers(answers: List[AnswerIn]) -> List[Answer]:
    return [Answer(binding_id=answer.assessment_question_id, value=answer.value) for answer in answers]


# Question catalog

@questions_router.get("")
def list_questions(
    search: Optional[str] = Query(None, description="Substring of the question text"),
    limit: int = Query(50, ge=1, le=200),
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Library questions plus the caller's own."""
    questions = QuestionCatalog(db).list_library(therapist_id, search=search, limit=limit)
    return APIResponse.success([question_to_dict(q) for q in questions])


@questions_router.post("", status_code=status.HTTP_201_CREATED)
def create_question(
    request: QuestionCreate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    question = QuestionCatalog(db).create_question(therapist_id, request)
    return APIResponse.success(question_to_dict(question), "Question created")


@questions_router.get("/{question_id}")
def get_question(
    question_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    question = QuestionCatalog(db).get_question(therapist_id, question_id)
    return APIResponse.success(question_to_dict(question))


@questions_router.patch("/{question_id}")
def update_question(
    question_id: str,
    request: QuestionUpdate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    question = QuestionCatalog(db).update_question(therapist_id, question_id, request)
    return APIResponse.success(question_to_dict(question), "Question updated")


@questions_router.delete("/{question_id}")
def delete_question(
    question_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    QuestionCatalog(db).delete_question(therapist_id, question_id)
    return APIResponse.success(None, "Question deleted")


@questions_router.post("/{question_id}/library")
def save_question_to_library(
    question_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    question = QuestionCatalog(db).save_to_library(therapist_id, question_id)
    return APIResponse.success(question_to_dict(question), "Question saved to library")


@questions_router.delete("/{question_id}/library")
def remove_question_from_library(
    question_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    question = QuestionCatalog(db).remove_from_library(therapist_id, question_id)
    return APIResponse.success(question_to_dict(question), "Question removed from library")


# Bindings are addressed by their own id; declared before the
# /{assessment_id} routes so the literal segment wins.

@assessments_router.patch("/bindings/{binding_id}")
def update_binding(
    binding_id: str,
    request: BindingUpdate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    binding = AssessmentDefinitions(db).update_binding(therapist_id, binding_id, request)
    return APIResponse.success(binding_to_dict(binding), "Question settings updated")


@assessments_router.delete("/bindings/{binding_id}")
def remove_binding(
    binding_id: str,
    delete_question: bool = Query(False, description="Also delete the catalog question"),
    confirm_global: bool = Query(False, description="Confirm deleting a library question"),
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    result = AssessmentDefinitions(db).remove_question_from_assessment(
        therapist_id,
        binding_id,
        delete_question_record=delete_question,
        confirm_global=confirm_global
    )
    return APIResponse.success(
        {
            "binding_id": result.binding_id,
            "question_id": result.question_id,
            "question_deleted": result.question_deleted,
            "reason": result.reason,
        },
        "Question removed from assessment"
    )


@assessments_router.post("/bindings/{binding_id}/duplicate", status_code=status.HTTP_201_CREATED)
def duplicate_binding(
    binding_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    _, binding = AssessmentDefinitions(db).duplicate_question_binding(therapist_id, binding_id)
    return APIResponse.success(binding_to_dict(binding), "Question duplicated")


# Assessments

@assessments_router.get("")
def list_assessments(
    category: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    result = AssessmentDefinitions(db).list_assessments(
        therapist_id,
        category=category,
        is_active=is_active,
        search=search,
        page=page,
        page_size=page_size
    )
    return APIResponse.success(page_to_dict(
        result,
        lambda summary: assessment_to_dict(summary.assessment, summary.question_count)
    ))


@assessments_router.post("", status_code=status.HTTP_201_CREATED)
def create_assessment(
    request: AssessmentCreate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    assessment = AssessmentDefinitions(db).create_assessment(therapist_id, request)
    return APIResponse.success(assessment_to_dict(assessment, 0), "Assessment created")


@assessments_router.get("/{assessment_id}")
def get_assessment(
    assessment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """An assessment with its questions in order."""
    definitions = AssessmentDefinitions(db)
    assessment = definitions.get_assessment(therapist_id, assessment_id)
    bindings = definitions.list_bindings(therapist_id, assessment_id)

    data = assessment_to_dict(assessment, len(bindings))
    data["questions"] = [binding_to_dict(binding) for binding in bindings]
    return APIResponse.success(data)


@assessments_router.patch("/{assessment_id}")
def update_assessment(
    assessment_id: str,
    request: AssessmentUpdate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    assessment = AssessmentDefinitions(db).update_assessment(therapist_id, assessment_id, request)
    return APIResponse.success(assessment_to_dict(assessment), "Assessment updated")


@assessments_router.post("/{assessment_id}/activate")
def activate_assessment(
    assessment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    assessment = AssessmentDefinitions(db).set_active(therapist_id, assessment_id, True)
    return APIResponse.success(assessment_to_dict(assessment), "Assessment activated")


@assessments_router.post("/{assessment_id}/deactivate")
def deactivate_assessment(
    assessment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    assessment = AssessmentDefinitions(db).set_active(therapist_id, assessment_id, False)
    return APIResponse.success(assessment_to_dict(assessment), "Assessment deactivated")


@assessments_router.delete("/{assessment_id}")
def delete_assessment(
    assessment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    AssessmentDefinitions(db).delete_assessment(therapist_id, assessment_id)
    return APIResponse.success(None, "Assessment deleted")


# Questions of an assessment

@assessments_router.get("/{assessment_id}/questions")
def list_assessment_questions(
    assessment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    bindings = AssessmentDefinitions(db).list_bindings(therapist_id, assessment_id)
    return APIResponse.success([binding_to_dict(binding) for binding in bindings])


@assessments_router.post("/{assessment_id}/questions", status_code=status.HTTP_201_CREATED)
def add_question(
    assessment_id: str,
    request: AddQuestionRequest,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Bind a new question, or an existing one by id, at the end of the assessment."""
    _, binding = AssessmentDefinitions(db).add_question_to_assessment(
        therapist_id,
        assessment_id,
        request.question if request.question is not None else request.question_id,
        request.binding
    )
    return APIResponse.success(binding_to_dict(binding), "Question added")


@assessments_router.put("/{assessment_id}/questions/order")
def reorder_questions(
    assessment_id: str,
    request: ReorderRequest,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    bindings = AssessmentDefinitions(db).reorder_questions(
        therapist_id, assessment_id, request.ordered_binding_ids
    )
    return APIResponse.success([binding_to_dict(binding) for binding in bindings], "Questions reordered")


# Share link

@assessments_router.post("/{assessment_id}/share-token")
def generate_share_token(
    assessment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    token = ShareService(db).generate_share_token(therapist_id, assessment_id)
    return APIResponse.success({"share_token": token}, "Share link created")


@assessments_router.delete("/{assessment_id}/share-token")
def revoke_share_token(
    assessment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    ShareService(db).revoke_share_token(therapist_id, assessment_id)
    return APIResponse.success(None, "Share link revoked")


# Assignments of an assessment

@assessments_router.post("/{assessment_id}/assignments")
def assign_clients(
    assessment_id: str,
    request: AssignRequest,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    assignments = AssignmentTracker(db).assign_clients_to_assessment(
        therapist_id,
        assessment_id,
        request.client_ids,
        due_date=request.due_date,
        notes=request.notes
    )
    return APIResponse.success([assignment_to_dict(a) for a in assignments], "Assessment assigned")


@assessments_router.get("/{assessment_id}/assignments")
def list_assignments(
    assessment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    assignments = AssignmentTracker(db).list_for_assessment(therapist_id, assessment_id)
    return APIResponse.success([assignment_to_dict(a) for a in assignments])


@assessments_router.get("/{assessment_id}/assignments/counts")
def assignment_counts(
    assessment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return APIResponse.success(AssignmentTracker(db).assignment_counts(therapist_id, assessment_id))


# Submissions of an assessment

@assessments_router.post("/{assessment_id}/submissions", status_code=status.HTTP_201_CREATED)
def submit_answers(
    assessment_id: str,
    request: SubmissionCreate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Record a client's completed answers, e.g. filled in during a session."""
    submission = SubmissionService(db).submit(
        assessment_id,
        request.client_id,
        to_answers(request.answers),
        therapist_id=therapist_id,
        completion_time_seconds=request.completion_time_seconds,
        assignment_id=request.assignment_id
    )
    return APIResponse.success(submission_to_dict(submission), "Assessment submitted")


@assessments_router.put("/{assessment_id}/drafts")
def save_draft(
    assessment_id: str,
    request: DraftCreate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    draft = SubmissionService(db).save_draft(
        assessment_id,
        request.client_id,
        to_answers(request.answers),
        therapist_id=therapist_id,
        completion_time_seconds=request.completion_time_seconds
    )
    return APIResponse.success(submission_to_dict(draft), "Draft saved")


@assessments_router.get("/{assessment_id}/submissions")
def list_submissions(
    assessment_id: str,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    include_drafts: bool = Query(False),
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    result = SubmissionService(db).get_submissions_by_assessment(
        therapist_id, assessment_id, page=page, page_size=page_size, include_drafts=include_drafts
    )
    return APIResponse.success(page_to_dict(result, submission_to_dict))


# Single assignments

@assignments_router.patch("/{assignment_id}")
def update_assignment(
    assignment_id: str,
    request: AssignmentUpdate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    assignment = AssignmentTracker(db).update_assignment(therapist_id, assignment_id, request)
    return APIResponse.success(assignment_to_dict(assignment), "Assignment updated")


@assignments_router.post("/{assignment_id}/start")
def start_assignment(
    assignment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    assignment = AssignmentTracker(db).mark_in_progress(assignment_id, therapist_id=therapist_id)
    return APIResponse.success(assignment_to_dict(assignment))


@assignments_router.delete("/{assignment_id}")
def remove_assignment(
    assignment_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    AssignmentTracker(db).remove_assignment(therapist_id, assignment_id)
    return APIResponse.success(None, "Assignment removed")


# Single submissions

@submissions_router.get("/{submission_id}")
def get_submission(
    submission_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    detail = SubmissionService(db).get_submission_detail(therapist_id, submission_id)
    return APIResponse.success(submission_detail_to_dict(detail))


@submissions_router.post("/{submission_id}/review")
def review_submission(
    submission_id: str,
    request: NotesUpdate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    submission = SubmissionService(db).review_submission(therapist_id, submission_id, request.notes)
    return APIResponse.success(submission_to_dict(submission), "Submission reviewed")


@submissions_router.put("/{submission_id}/notes")
def update_submission_notes(
    submission_id: str,
    request: NotesUpdate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    submission = SubmissionService(db).update_notes(therapist_id, submission_id, request.notes)
    return APIResponse.success(submission_to_dict(submission), "Notes saved")


@submissions_router.delete("/{submission_id}")
def delete_submission(
    submission_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    SubmissionService(db).delete_submission(therapist_id, submission_id)
    return APIResponse.success(None, "Submission deleted")


# Clients

@clients_router.get("")
def list_clients(
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    clients = ClientDirectory(db).list_clients(therapist_id)
    return APIResponse.success([client_to_dict(client) for client in clients])


@clients_router.post("", status_code=status.HTTP_201_CREATED)
def create_client(
    request: ClientCreate,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    client = ClientDirectory(db).register_client(therapist_id, request.full_name, request.email)
    return APIResponse.success(client_to_dict(client), "Client created")


@clients_router.get("/{client_id}/submissions")
def list_client_submissions(
    client_id: str,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    result = SubmissionService(db).get_submissions_by_client(
        therapist_id, client_id, page=page, page_size=page_size
    )
    return APIResponse.success(page_to_dict(result, submission_to_dict))


@clients_router.get("/{client_id}/assignments")
def list_client_assignments(
    client_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    assignments = AssignmentTracker(db).list_for_client(therapist_id, client_id)
    return APIResponse.success([assignment_to_dict(a) for a in assignments])


# Activity feed

@notifications_router.get("")
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    notifications = ActivityFeed(db).list_notifications(therapist_id, unread_only=unread_only, limit=limit)
    return APIResponse.success([notification_to_dict(n) for n in notifications])


@notifications_router.post("/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    therapist_id: str = Depends(get_current_therapist_id),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    notification = ActivityFeed(db).mark_read(therapist_id, notification_id)
    return APIResponse.success(notification_to_dict(notification))


logger.info(
    f"Assessment routers loaded: {len(assessments_router.routes)} assessment routes, "
    f"{len(questions_router.routes)} question routes"
)
