"""Error taxonomy for the workforce services.

Every error carries a stable ``code`` and a human-readable ``message`` that is
safe to show to callers. Driver and store specific text never ends up in a
message; it is logged server-side instead.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class WorkforceError(Exception):
    """Base class for all service errors."""

    code = "ERROR"
    retriable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(WorkforceError):
    """Referenced site, worker, assignment or snapshot does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class AuthorizationError(WorkforceError):
    """Caller is not allowed to touch the target organization."""

    code = "FORBIDDEN"


class ValidationError(WorkforceError):
    """Malformed input at the service boundary."""

    code = "VALIDATION_ERROR"


class ConflictError(WorkforceError):
    """The operation collided with existing state."""

    code = "CONFLICT"


class StorageError(WorkforceError):
    """Underlying store failure. Safe for the caller to retry with backoff."""

    code = "STORAGE_ERROR"
    retriable = True

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Storage failure during {operation}")


@asynccontextmanager
async def storage_errors(operation: str) -> AsyncGenerator[None, None]:
    """Translate SQLAlchemy failures into StorageError.

    The underlying exception is logged with its traceback and chained, but its
    text is not copied into the StorageError message.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Store failure during %s", operation)
        raise StorageError(operation) from exc
