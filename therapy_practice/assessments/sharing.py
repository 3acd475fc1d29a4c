"""
Share/Access Layer

Public links to an assessment. An assessment has at most one active token;
generating a new one rotates it and revoking clears it. The public view is
built from an allow-list of fields, so scoring data and the author's identity
never reach a client.
"""

import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from therapy_practice.config import settings
from therapy_practice.common.db.session import transaction
from therapy_practice.common.error_handling import ShareLinkNotFoundError
from therapy_practice.common.logger import app_logger
from therapy_practice.assessments import repositories
from therapy_practice.assessments.database_models import Assessment
from therapy_practice.assessments.models import ResolvedQuestion

logger = app_logger.getChild("assessments.sharing")


def new_share_token() -> str:
    return secrets.token_urlsafe(settings.SHARE_TOKEN_BYTES)


@dataclass
class PublicAssessmentView:
    """What an anonymous client may see of a shared assessment."""
    title: str
    description: Optional[str]
    category: Optional[str]
    allow_multiple_submissions: bool
    questions: List[ResolvedQuestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "allow_multiple_submissions": self.allow_multiple_submissions,
            "questions": [question.to_public_dict() for question in self.questions],
        }


def find_shared_assessment(session: Session, token: str) -> Assessment:
    """
    Look up the active assessment behind a share token.

    Raises:
        ShareLinkNotFoundError: For unknown, revoked or rotated tokens and for
            inactive assessments
    """
    if not token:
        raise ShareLinkNotFoundError()

    assessment = (
        session.query(Assessment)
        .filter(Assessment.share_token == token)
        .one_or_none()
    )
    if assessment is None or not assessment.is_active:
        raise ShareLinkNotFoundError()
    return assessment


class ShareService:
    """Service for share tokens and the public assessment view."""

    def __init__(self, session: Session):
        self.session = session

    def generate_share_token(self, therapist_id: str, assessment_id: str) -> str:
        """
        Issue a new share token, replacing any previous one.

        Returns:
            The new token
        """
        assessment = repositories.get_assessment(self.session, therapist_id, assessment_id)
        rotated = assessment.share_token is not None

        with transaction(self.session):
            assessment.share_token = new_share_token()

        logger.info(f"{'Rotated' if rotated else 'Issued'} share token for assessment {assessment.id}")
        return assessment.share_token

    def revoke_share_token(self, therapist_id: str, assessment_id: str) -> None:
        assessment = repositories.get_assessment(self.session, therapist_id, assessment_id)
        with transaction(self.session):
            assessment.share_token = None
        logger.info(f"Revoked share token for assessment {assessment.id}")

    def resolve_public_assessment(self, token: str) -> PublicAssessmentView:
        """
        Resolve a share token to the public view of its assessment.

        Raises:
            ShareLinkNotFoundError: If the token does not resolve
        """
        assessment = find_shared_assessment(self.session, token)
        return PublicAssessmentView(
            title=assessment.title,
            description=assessment.description,
            category=assessment.category,
            allow_multiple_submissions=assessment.allow_multiple_submissions,
            questions=repositories.resolve_questions(self.session, assessment.id)
        )
