"""
Request models for the assessment API.

The services accept these models directly, so the same payload shape is used
over HTTP and from Python callers. Domain rules (lengths, option shapes,
answer values) are enforced by the services, not here.
"""

import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class QuestionCreate(BaseModel):
    question_text: str
    question_type: str
    options: Optional[Any] = None
    help_text: Optional[str] = None
    placeholder_text: Optional[str] = None
    is_global: bool = False


class QuestionUpdate(BaseModel):
    """Partial update; only fields that were set are applied."""
    question_text: Optional[str] = None
    question_type: Optional[str] = None
    options: Optional[Any] = None
    help_text: Optional[str] = None
    placeholder_text: Optional[str] = None


class AssessmentCreate(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: bool = True
    allow_multiple_submissions: bool = False
    show_scores_to_client: bool = False
    scoring_ranges: Optional[List[Dict[str, Any]]] = None


class AssessmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: Optional[bool] = None
    allow_multiple_submissions: Optional[bool] = None
    show_scores_to_client: Optional[bool] = None
    scoring_ranges: Optional[List[Dict[str, Any]]] = None


class BindingOptions(BaseModel):
    """Per-assessment settings of a bound question."""
    is_required: bool = True
    points: Optional[float] = Field(None, description="Weight multiplier for rating answers")
    override_question_text: Optional[str] = None
    override_options: Optional[Any] = None
    override_help_text: Optional[str] = None
    section_name: Optional[str] = None
    conditional_logic: Optional[Dict[str, Any]] = None


class BindingUpdate(BaseModel):
    is_required: Optional[bool] = None
    points: Optional[float] = None
    override_question_text: Optional[str] = None
    override_options: Optional[Any] = None
    override_help_text: Optional[str] = None
    section_name: Optional[str] = None
    conditional_logic: Optional[Dict[str, Any]] = None


class AddQuestionRequest(BaseModel):
    """
    Either a new question definition or the id of an existing library
    question, plus the binding settings.
    """
    question: Optional[QuestionCreate] = None
    question_id: Optional[str] = None
    binding: BindingOptions = Field(default_factory=BindingOptions)

    @model_validator(mode='after')
    def check_exactly_one_source(self):
        if (self.question is None) == (self.question_id is None):
            raise ValueError("Provide exactly one of 'question' or 'question_id'")
        return self


class ReorderRequest(BaseModel):
    ordered_binding_ids: List[str]


class AssignRequest(BaseModel):
    client_ids: List[str]
    due_date: Optional[datetime.datetime] = None
    notes: Optional[str] = None


class AssignmentUpdate(BaseModel):
    due_date: Optional[datetime.datetime] = None
    notes: Optional[str] = None


class AnswerIn(BaseModel):
    assessment_question_id: str
    value: Any = None


class SubmissionCreate(BaseModel):
    client_id: str
    answers: List[AnswerIn] = Field(default_factory=list)
    completion_time_seconds: Optional[int] = None
    assignment_id: Optional[str] = None


class DraftCreate(BaseModel):
    client_id: str
    answers: List[AnswerIn] = Field(default_factory=list)
    completion_time_seconds: Optional[int] = None


class PublicSubmissionCreate(BaseModel):
    client_name: str
    client_email: Optional[str] = None
    answers: List[AnswerIn] = Field(default_factory=list)
    completion_time_seconds: Optional[int] = None


class NotesUpdate(BaseModel):
    notes: Optional[str] = None


class ClientCreate(BaseModel):
    full_name: str
    email: Optional[str] = None
