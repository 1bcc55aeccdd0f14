"""Centralized error handlers."""

from __future__ import annotations

import logging

from flask import Flask
from marshmallow import ValidationError as MarshmallowValidationError
from werkzeug.exceptions import HTTPException

from app.db import rollback_request_session
from app.errors import AppError, StorageError, ValidationError
from app.utils.responses import fail

logger = logging.getLogger(__name__)


def register_error_handlers(app: Flask) -> None:
    """Register error handlers for the Flask app.

    Handled errors never reach teardown as exceptions, so each handler rolls
    the request session back itself.
    """

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        rollback_request_session()
        if isinstance(exc, StorageError) and exc.status_code >= 500:
            logger.error("Storage error: %s", exc.message, exc_info=exc.__cause__ or exc)
        return fail(exc.code, exc.message, exc.status_code, exc.details)

    @app.errorhandler(MarshmallowValidationError)
    def _handle_schema_error(exc: MarshmallowValidationError):
        rollback_request_session()
        # exc.messages is a dict of field -> list[str]
        wrapped = ValidationError(details=exc.messages)
        return fail(wrapped.code, wrapped.message, wrapped.status_code, wrapped.details)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        rollback_request_session()
        status = int(getattr(exc, "code", 500) or 500)
        if status == 404:
            return fail("not_found", "Not found", 404)

        return fail(
            "http_error",
            getattr(exc, "description", "HTTP error"),
            status,
            details={"name": getattr(exc, "name", "HTTPException")},
        )

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        rollback_request_session()
        logger.exception("Unhandled exception")
        return fail("internal_error", "Internal server error", 500)
