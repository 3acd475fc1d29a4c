"""
Public Assessment Controller

Endpoints reached through a share link, without signing in. Responses never
reveal whether a token once existed or who owns the assessment: unknown,
revoked and inactive links all answer 404, and unexpected failures answer
with a generic message.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from therapy_practice.api import APIResponse
from therapy_practice.common.error_handling import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    log_error,
)
from therapy_practice.common.logger import app_logger
from therapy_practice.database.init_db import get_db
from therapy_practice.assessments.controllers import to_answers
from therapy_practice.assessments.schemas import PublicSubmissionCreate
from therapy_practice.assessments.sharing import ShareService
from therapy_practice.assessments.submissions import SubmissionService

logger = app_logger.getChild("assessments.public")

router = APIRouter()

LINK_UNAVAILABLE = "This assessment link is not available"


def _public_error(error: Exception) -> JSONResponse:
    if isinstance(error, (NotFoundError, AuthorizationError)):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=APIResponse.error(LINK_UNAVAILABLE)
        )
    if isinstance(error, ValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=APIResponse.error(error.message, details=error.details)
        )
    if isinstance(error, ConflictError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=APIResponse.error("This assessment has already been submitted")
        )

    log_error(error, context={"endpoint": "public_assessment"})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=APIResponse.error("Something went wrong, please try again later")
    )


@router.get("/assessments/{token}")
def get_public_assessment(token: str, db: Session = Depends(get_db)) -> Any:
    """The client-facing view of a shared assessment."""
    try:
        view = ShareService(db).resolve_public_assessment(token)
    except Exception as e:
        return _public_error(e)
    return APIResponse.success(view.to_dict())


@router.post("/assessments/{token}/submissions", status_code=status.HTTP_201_CREATED)
def submit_public_assessment(
    token: str,
    request: PublicSubmissionCreate,
    db: Session = Depends(get_db)
) -> Any:
    """
    Submit answers through a share link.

    Only the confirmation and, when the author allows it, the score are
    returned to the respondent.
    """
    try:
        submission = SubmissionService(db).submit_public(
            token,
            request.client_name,
            request.client_email,
            to_answers(request.answers),
            completion_time_seconds=request.completion_time_seconds
        )
    except Exception as e:
        return _public_error(e)

    data: Dict[str, Any] = {
        "submission_id": submission.id,
        "submitted_at": submission.submitted_at,
    }
    if submission.assessment.show_scores_to_client:
        data["raw_score"] = submission.raw_score
        data["score_interpretation"] = submission.score_interpretation
    return APIResponse.success(data, "Thank you, your answers were submitted")
