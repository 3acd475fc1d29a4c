"""
Authentication dependencies

Session handling lives outside this service; requests carry the therapist id
as a bearer token.
"""

from .dependencies import get_current_therapist_id

__all__ = [
    'get_current_therapist_id',
]
