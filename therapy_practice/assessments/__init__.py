"""
Assessment Definition & Scoring Engine

Therapists build assessments from catalog questions, share them with clients
through public links or assignments, and review scored submissions.

Services:
- QuestionCatalog: reusable questions and the shared library
- AssessmentDefinitions: assessments and their ordered question bindings
- ShareService: share tokens and the public view
- AssignmentTracker: assignments of assessments to clients
- SubmissionService: answer validation, scoring and storage
"""

from therapy_practice.assessments.assignments import AssignmentTracker
from therapy_practice.assessments.catalog import QuestionCatalog
from therapy_practice.assessments.definitions import AssessmentDefinitions
from therapy_practice.assessments.sharing import ShareService
from therapy_practice.assessments.submissions import SubmissionService

__all__ = [
    'AssignmentTracker',
    'QuestionCatalog',
    'AssessmentDefinitions',
    'ShareService',
    'SubmissionService',
]
