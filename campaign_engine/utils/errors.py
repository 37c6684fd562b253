"""Standardised API error responses.

Usage
-----
    from campaign_engine.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Campaign not found")
    return api_error(E.VALIDATION_REQUIRED, "playbook_id is required")

Blueprints call :func:`register_error_handlers` once to translate the
service-layer exception hierarchy into the same envelope.
"""

from __future__ import annotations

import logging

from flask import jsonify, request

from campaign_engine.core.exceptions import (
    BlockedError,
    CampaignEngineError,
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401
    UNAUTHORIZED = "ERR_UNAUTHORIZED"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    INVALID_STATE = "ERR_INVALID_STATE"
    BLOCKED = "ERR_BLOCKED"

    # Rate limit – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.UNAUTHORIZED: 401,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.INVALID_TRANSITION: 409,
    E.INVALID_STATE: 409,
    E.BLOCKED: 409,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}

# Exception type → error code. Checked in order; subclasses first.
_EXCEPTION_CODES: tuple[tuple[type[CampaignEngineError], str], ...] = (
    (NotFoundError, E.NOT_FOUND),
    (ValidationError, E.VALIDATION_INVALID),
    (ConflictError, E.CONFLICT_DUPLICATE),
    (InvalidTransitionError, E.INVALID_TRANSITION),
    (InvalidStateError, E.INVALID_STATE),
    (BlockedError, E.BLOCKED),
    (PersistenceError, E.DATABASE),
)


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    kind: str | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    kind : str, optional
        Stable error kind of the originating exception.
    details : dict, optional
        Extra structured payload (field errors, blocking task id, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if kind:
        body["kind"] = kind
    if details:
        body["details"] = details

    return jsonify(body), http_status


def error_response(exc: CampaignEngineError):
    """Build the envelope for a service-layer exception."""
    code = E.INTERNAL
    for exc_type, exc_code in _EXCEPTION_CODES:
        if isinstance(exc, exc_type):
            code = exc_code
            break

    details = None
    if isinstance(exc, ValidationError):
        details = exc.details
    elif isinstance(exc, BlockedError):
        details = {"blocking_task_id": exc.blocking_id, "blocking_task_title": exc.blocking_title}
    elif isinstance(exc, InvalidTransitionError) and exc.current_status:
        details = {"current_status": exc.current_status}

    message = str(exc)
    if isinstance(exc, PersistenceError):
        message = "Database error"

    return api_error(code, message, kind=exc.kind, details=details)


def register_error_handlers(bp) -> None:
    """Attach one handler per service exception type to blueprint *bp*."""

    def _handle(exc: CampaignEngineError):
        if isinstance(exc, PersistenceError):
            logger.error("Persistence failure endpoint=%s: %s", request.endpoint, exc)
        return error_response(exc)

    for exc_type, _code in _EXCEPTION_CODES:
        bp.register_error_handler(exc_type, _handle)
