"""
Common Components for the Practice Backend

This package contains infrastructure shared by every feature module:
1. Logging - Centralized logging configuration
2. Error Handling - Exception hierarchy and API error payloads
3. Database - Transaction scope and upsert helpers
4. Pagination - Paged result envelopes
"""

# Initialize logging
from therapy_practice.common.logger import app_logger

__all__ = [
    'app_logger',
]
