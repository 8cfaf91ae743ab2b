# backend/passthrough/errors.py
"""Passthrough exceptions and the Flask handlers that render them as JSON."""

import logging

from flask import Flask, jsonify
from requests.exceptions import RequestException
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class PassthroughError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class UnknownUpstreamError(PassthroughError):
    def __init__(self, name: str, known):
        super().__init__(
            f"Unknown upstream: {name}. Known: {sorted(known)}",
            status_code=404,
        )


class ForbiddenPathError(PassthroughError):
    def __init__(self, reason: str):
        super().__init__(f"Path not allowed: {reason}", status_code=400)


class UpstreamError(RequestException):
    """The upstream API could not be reached, or timed out."""


def register_error_handlers(app: Flask) -> None:
    """Register centralized exception handlers on the Flask app."""

    @app.errorhandler(PassthroughError)
    def handle_passthrough_error(exc: PassthroughError):
        return jsonify({"error": str(exc)}), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return jsonify({"error": "Internal server error"}), 500
