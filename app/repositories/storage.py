"""Translate driver exceptions into application errors."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError

from app.errors import StorageError

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise SQLAlchemy / pymongo failures as ``StorageError``.

    Application errors raised inside the block pass through untouched.
    """

    try:
        yield
    except (SQLAlchemyError, PyMongoError) as exc:
        logger.warning("Storage failure during %s: %s", operation, exc)
        raise StorageError(message=f"Storage failure during {operation}") from exc
