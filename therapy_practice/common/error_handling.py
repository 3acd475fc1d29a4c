"""
Error Handling for the Practice Backend

This module provides the exception hierarchy shared by all services:
1. Error codes and severities used in logs and API payloads
2. A base exception carrying structured details and context
3. Helpers to convert, log and render errors for API responses
"""

import logging
import traceback
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from therapy_practice.common.logger import app_logger

logger = app_logger.getChild("errors")


class ErrorSeverity(Enum):
    """Severity levels for errors"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(Enum):
    """Standard error codes"""
    UNKNOWN_ERROR = "unknown_error"
    VALIDATION_ERROR = "validation_error"
    AUTHORIZATION_ERROR = "authorization_error"
    NOT_FOUND_ERROR = "not_found_error"
    CONFLICT_ERROR = "conflict_error"

    ASSESSMENT_NOT_FOUND = "assessment_not_found"
    QUESTION_NOT_FOUND = "question_not_found"
    SHARE_LINK_NOT_FOUND = "share_link_not_found"
    DUPLICATE_SUBMISSION = "duplicate_submission"

    DATABASE_ERROR = "database_error"


class ErrorInfo(BaseModel):
    """Structured information about an error"""
    model_config = ConfigDict(use_enum_values=True)

    code: ErrorCode
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    exception_type: Optional[str] = None
    stack_trace: Optional[List[str]] = None
    context: Optional[Dict[str, Any]] = None

    @field_validator('stack_trace', mode='before')
    @classmethod
    def validate_stack_trace(cls, v):
        """Split a string stack trace into lines"""
        if isinstance(v, str):
            return v.splitlines()
        return v


class PracticeError(Exception):
    """Base exception class for all practice backend errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.severity = severity
        self.details = details or {}
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now()

    def to_error_info(self, include_stack_trace: bool = False) -> ErrorInfo:
        """Convert the exception to an ErrorInfo object"""
        stack_trace = None
        if include_stack_trace:
            stack_trace = traceback.format_exc().splitlines()

        details = dict(self.details)
        if self.cause is not None:
            details["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }

        return ErrorInfo(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            severity=self.severity,
            details=details,
            exception_type=type(self).__name__,
            stack_trace=stack_trace,
            context=self.context
        )

    def to_dict(self, include_stack_trace: bool = False) -> Dict[str, Any]:
        """Convert the exception to a dictionary"""
        return self.to_error_info(include_stack_trace).model_dump(mode="json")

    def __str__(self) -> str:
        base_str = f"{self.code.value}: {self.message}"
        if self.details:
            base_str += f" (details: {self.details})"
        if self.cause:
            base_str += f" caused by {type(self.cause).__name__}: {self.cause}"
        return base_str


class ValidationError(PracticeError):
    """
    Raised when input is malformed.

    ``details`` maps a field name or binding id to a human readable message so
    that clients can render field-level errors.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause,
            context=context
        )


class AuthorizationError(PracticeError):
    """Raised when a caller mutates a resource it does not own"""

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        action: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        if resource is not None:
            details["resource"] = resource
        if action is not None:
            details["action"] = action

        super().__init__(
            message=message,
            code=ErrorCode.AUTHORIZATION_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details,
            context=context
        )


class NotFoundError(PracticeError):
    """Raised when a requested resource does not exist"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        code: ErrorCode = ErrorCode.NOT_FOUND_ERROR,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["resource_type"] = resource_type
        details["resource_id"] = resource_id
        self.resource_type = resource_type
        self.resource_id = resource_id

        super().__init__(
            message=f"{resource_type} with ID {resource_id} not found",
            code=code,
            severity=ErrorSeverity.WARNING,
            details=details,
            context=context
        )


class AssessmentNotFoundError(NotFoundError):
    """Raised when an assessment is not found"""

    def __init__(self, assessment_id: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            "Assessment",
            assessment_id,
            code=ErrorCode.ASSESSMENT_NOT_FOUND,
            context=context
        )


class QuestionNotFoundError(NotFoundError):
    """Raised when a catalog question is not found"""

    def __init__(self, question_id: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            "Question",
            question_id,
            code=ErrorCode.QUESTION_NOT_FOUND,
            context=context
        )


class ShareLinkNotFoundError(NotFoundError):
    """Raised when a share token does not resolve to an active assessment"""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        # The token itself is never echoed back.
        super().__init__(
            "Shared assessment",
            "<redacted>",
            code=ErrorCode.SHARE_LINK_NOT_FOUND,
            context=context
        )


class ConflictError(PracticeError):
    """Raised when an operation collides with existing state"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFLICT_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=code,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause,
            context=context
        )


class DuplicateSubmissionError(ConflictError):
    """Raised when a client submits twice to a single-submission assessment"""

    def __init__(
        self,
        assessment_id: str,
        client_id: str,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            message="This assessment has already been submitted",
            code=ErrorCode.DUPLICATE_SUBMISSION,
            details={"assessment_id": assessment_id, "client_id": client_id},
            cause=cause
        )


class DatabaseError(PracticeError):
    """Raised when the store fails in a way callers cannot act on"""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(
            message=message,
            code=ErrorCode.DATABASE_ERROR,
            severity=ErrorSeverity.CRITICAL,
            cause=cause
        )


def convert_exception(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    context: Optional[Dict[str, Any]] = None
) -> PracticeError:
    """
    Convert any exception to a PracticeError.

    Args:
        exception: The exception to convert
        default_message: Message used when the exception has none
        context: Optional additional context

    Returns:
        The original error if it already is a PracticeError, otherwise a wrapper
    """
    if isinstance(exception, PracticeError):
        if context:
            exception.context.update(context)
        return exception

    return PracticeError(
        message=str(exception) or default_message,
        cause=exception,
        context=context
    )


def error_response(
    error: Union[PracticeError, Exception],
    include_details: bool = True
) -> Dict[str, Any]:
    """
    Generate a standardized API error payload.

    Args:
        error: The error to render
        include_details: Whether to include error details

    Returns:
        Dictionary with ``status``, ``code``, ``message`` and optional ``details``
    """
    if not isinstance(error, PracticeError):
        error = convert_exception(error)

    response = {
        "status": "error",
        "code": error.code.value,
        "message": error.message
    }

    if include_details and error.details:
        response["details"] = error.details

    return response


def log_error(
    error: Union[PracticeError, Exception],
    level: int = logging.ERROR,
    include_stack_trace: bool = True,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log an error with standardized format.

    Args:
        error: The error to log
        level: Logging level
        include_stack_trace: Whether to include the active traceback
        context: Additional context to include
    """
    if not isinstance(error, PracticeError):
        error = convert_exception(error, context=context)
    elif context:
        error.context.update(context)

    message = f"ERROR [{error.code.value}]: {error.message}"

    if error.context:
        context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
        message += f" (context: {context_str})"

    if error.cause:
        message += f" caused by {type(error.cause).__name__}: {error.cause}"

    logger.log(level, message, exc_info=include_stack_trace, extra={"data": {"error": error.to_dict()}})
