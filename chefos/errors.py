"""JSON error handlers.

Every failure leaves the API as `{"status": "error", "error": <kind>,
"message": ...}`; the kinds are the small set clients branch on.
"""

from __future__ import annotations

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger("chefos.errors")

ERROR_KINDS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


def _payload(status: int, message: str):
    kind = ERROR_KINDS.get(status, "internal_error" if status >= 500 else "bad_request")
    return jsonify({"status": "error", "error": kind, "message": message}), status


def register_error_handlers(app) -> None:
    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return _payload(exc.code or 500, exc.description or exc.name)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):  # pragma: no cover - depende de falha real
        from . import db

        db.session.rollback()
        logger.exception("Unhandled error: %s", exc)
        return _payload(500, "Internal error")
