"""
Task Ordering Error Taxonomy

Stable error kinds surfaced by the board ordering service. Caller errors
(not found, access denied, validation) are never retried; storage failures
are retried once by the service and then surfaced as OrderingStoreError.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorKind(str, Enum):
    """Error kinds exposed to the HTTP layer."""
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    VALIDATION = "validation_error"
    INTERNAL = "internal_error"


class TaskOrderingError(Exception):
    """Base exception for task ordering failures."""
    kind = ErrorKind.INTERNAL
    http_status = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': False,
            'error': self.kind.value,
            'message': self.message,
            'context': self.context,
        }


class NotFoundError(TaskOrderingError):
    """Board or task does not exist."""
    kind = ErrorKind.NOT_FOUND
    http_status = 404


class AccessDeniedError(TaskOrderingError):
    """Authenticated user does not own the board."""
    kind = ErrorKind.ACCESS_DENIED
    http_status = 403


class ValidationError(TaskOrderingError):
    """Malformed status, position, patch or non-dense batch."""
    kind = ErrorKind.VALIDATION
    http_status = 400


class OrderingStoreError(TaskOrderingError):
    """The store rejected the operation twice; nothing was written."""
    kind = ErrorKind.INTERNAL
    http_status = 500


class ConcurrentMoveError(TaskOrderingError):
    """A task left the column it was read from before that column was locked."""
    kind = ErrorKind.INTERNAL
    http_status = 500
