"""
Database helpers

Transaction scope and portable upsert helpers used by the services.
"""

from therapy_practice.common.db.session import (
    transaction,
    insert_ignore_conflict
)

__all__ = [
    'transaction',
    'insert_ignore_conflict',
]
