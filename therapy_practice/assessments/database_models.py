"""
SQLAlchemy ORM models for assessments.

This module defines the database models for the assessment engine, including:
- Client: A therapist's client (directory collaborator table)
- Question: Reusable catalog question, private or shared in the library
- Assessment: An instrument authored by a therapist
- AssessmentQuestion: Binding of a catalog question into an assessment
- AssessmentAssignment: An assessment assigned to a client
- AssessmentSubmission: One attempt at answering an assessment
- AssessmentResponse: One answer within a submission
- Notification: Activity feed entry for the therapist
"""

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime,
    Text, Float, ForeignKey, JSON, Index
)
# Import JSONB for PostgreSQL
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.schema import UniqueConstraint

from therapy_practice.database.base import ModelBase, generate_uuid, utcnow
from therapy_practice.assessments.models import (
    AssignmentStatus,
    ClientStatus,
    SubmissionStatus,
)

JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class Client(ModelBase):
    """Minimal client record; the full directory lives elsewhere."""
    __tablename__ = 'clients'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    therapist_id = Column(String(255), nullable=False, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=ClientStatus.ACTIVE.value)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_clients_therapist_email', therapist_id, email),
    )

    def __repr__(self) -> str:
        return f"<Client(id='{self.id}', full_name='{self.full_name}')>"


class Question(ModelBase):
    """
    Catalog question.

    A null ``therapist_id`` marks a shared library entry that nobody may
    mutate through the API.
    """
    __tablename__ = 'questions'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    therapist_id = Column(String(255), nullable=True, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False)
    options = Column(JSONType, nullable=True)
    help_text = Column(Text, nullable=True)
    placeholder_text = Column(Text, nullable=True)
    is_global = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    bindings = relationship("AssessmentQuestion", back_populates="question")

    def __repr__(self) -> str:
        return f"<Question(id='{self.id}', type='{self.question_type}')>"


class Assessment(ModelBase):
    """Assessment definition owned by one therapist."""
    __tablename__ = 'assessments'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    therapist_id = Column(String(255), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    category = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    allow_multiple_submissions = Column(Boolean, nullable=False, default=False)
    show_scores_to_client = Column(Boolean, nullable=False, default=False)
    share_token = Column(String(128), nullable=True, unique=True)
    scoring_ranges = Column(JSONType, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    bindings = relationship(
        "AssessmentQuestion",
        back_populates="assessment",
        order_by="AssessmentQuestion.question_order",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    assignments = relationship(
        "AssessmentAssignment",
        back_populates="assessment",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    submissions = relationship(
        "AssessmentSubmission",
        back_populates="assessment",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Assessment(id='{self.id}', title='{self.title}')>"


class AssessmentQuestion(ModelBase):
    """Binding of a catalog question into an assessment, with overrides."""
    __tablename__ = 'assessment_questions'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    assessment_id = Column(
        String(36), ForeignKey('assessments.id', ondelete='CASCADE'), nullable=False
    )
    question_id = Column(String(36), ForeignKey('questions.id'), nullable=False, index=True)
    question_order = Column(Integer, nullable=False)
    is_required = Column(Boolean, nullable=False, default=True)
    points = Column(Float, nullable=True)
    override_question_text = Column(Text, nullable=True)
    override_options = Column(JSONType, nullable=True)
    override_help_text = Column(Text, nullable=True)
    section_name = Column(String(100), nullable=True)
    conditional_logic = Column(JSONType, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    assessment = relationship("Assessment", back_populates="bindings")
    question = relationship("Question", back_populates="bindings", lazy="joined", innerjoin=True)

    __table_args__ = (
        UniqueConstraint('assessment_id', 'question_order', name='uq_assessment_questions_order'),
        UniqueConstraint('assessment_id', 'question_id', name='uq_assessment_questions_question'),
    )

    def __repr__(self) -> str:
        return f"<AssessmentQuestion(id='{self.id}', order={self.question_order})>"


class AssessmentSubmission(ModelBase):
    """
    One attempt at an assessment.

    ``single_submission_key`` is only set on non-draft submissions of
    assessments that allow a single submission per client; its unique
    constraint rejects a second one even when two requests race.
    """
    __tablename__ = 'assessment_submissions'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    assessment_id = Column(
        String(36), ForeignKey('assessments.id', ondelete='CASCADE'), nullable=False, index=True
    )
    client_id = Column(
        String(36), ForeignKey('clients.id', ondelete='CASCADE'), nullable=False, index=True
    )
    therapist_id = Column(String(255), nullable=False, index=True)
    submitted_at = Column(DateTime, nullable=True)
    completion_time_seconds = Column(Integer, nullable=True)
    raw_score = Column(Float, nullable=True)
    calculated_score = Column(Float, nullable=True)
    score_interpretation = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=SubmissionStatus.COMPLETED.value)
    single_submission_key = Column(String(80), nullable=True, unique=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    assessment = relationship("Assessment", back_populates="submissions")
    client = relationship("Client", lazy="joined", innerjoin=True)
    responses = relationship(
        "AssessmentResponse",
        back_populates="submission",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        Index('idx_submissions_assessment_client', assessment_id, client_id),
    )

    def __repr__(self) -> str:
        return f"<AssessmentSubmission(id='{self.id}', status='{self.status}')>"


class AssessmentAssignment(ModelBase):
    """An assessment assigned to one client; unique per pair."""
    __tablename__ = 'assessment_assignments'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    assessment_id = Column(
        String(36), ForeignKey('assessments.id', ondelete='CASCADE'), nullable=False
    )
    client_id = Column(
        String(36), ForeignKey('clients.id', ondelete='CASCADE'), nullable=False, index=True
    )
    therapist_id = Column(String(255), nullable=False, index=True)
    assigned_at = Column(DateTime, default=utcnow, nullable=False)
    due_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default=AssignmentStatus.PENDING.value)
    submission_id = Column(
        String(36), ForeignKey('assessment_submissions.id', ondelete='SET NULL'), nullable=True
    )
    notes = Column(Text, nullable=True)

    assessment = relationship("Assessment", back_populates="assignments")
    client = relationship("Client", lazy="joined", innerjoin=True)

    __table_args__ = (
        UniqueConstraint('assessment_id', 'client_id', name='uq_assessment_assignments_pair'),
    )

    def __repr__(self) -> str:
        return f"<AssessmentAssignment(id='{self.id}', status='{self.status}')>"


class AssessmentResponse(ModelBase):
    """
    One answer within a submission.

    The question text and type are copied at submission time so that the
    answer can still be displayed after its binding or question is gone.
    """
    __tablename__ = 'assessment_responses'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    submission_id = Column(
        String(36), ForeignKey('assessment_submissions.id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    assessment_question_id = Column(
        String(36), ForeignKey('assessment_questions.id', ondelete='SET NULL'), nullable=True
    )
    question_id = Column(
        String(36), ForeignKey('questions.id', ondelete='SET NULL'), nullable=True
    )
    response_value = Column(Text, nullable=True)
    response_values = Column(JSONType, nullable=True)
    numeric_value = Column(Float, nullable=True)
    points_earned = Column(Float, nullable=True)
    question_text_snapshot = Column(Text, nullable=True)
    question_type_snapshot = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    submission = relationship("AssessmentSubmission", back_populates="responses")
    binding = relationship("AssessmentQuestion")

    def __repr__(self) -> str:
        return f"<AssessmentResponse(id='{self.id}', points={self.points_earned})>"


class Notification(ModelBase):
    """Activity feed entry shown to a therapist."""
    __tablename__ = 'notifications'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    therapist_id = Column(String(255), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=True)
    data = Column(JSONType, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification(id='{self.id}', type='{self.type}')>"
