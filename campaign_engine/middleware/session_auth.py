"""
Session auth middleware: verifies the session JWT and sets g.session_*.

Token sources, first match wins:
  1. Authorization: Bearer <token>
  2. the ``campaign-engine-session`` cookie

Payload (HS256, signed with SESSION_SECRET):
{
    "userId": <user id>,
    "email":  <operator email>,
    "exp":    <expires_at>
}

With API_AUTH_ENABLED=true a missing or invalid token on /api/v1/* answers
401. Otherwise the request proceeds and g.session_email is None.
Issuing tokens (login/logout) happens elsewhere.
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from campaign_engine.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_COOKIE_NAME = "campaign-engine-session"

# Paths that never require a session
SKIP_PREFIXES = (
    "/api/v1/health",
)


def _auth_enabled(app) -> bool:
    return str(app.config.get("API_AUTH_ENABLED", "false")).lower() in ("1", "true", "yes")


def decode_session_token(token: str) -> dict:
    """
    Verify signature and expiry, returning the payload.

    Raises:
        jwt.InvalidTokenError (or a subclass such as ExpiredSignatureError).
    """
    payload = pyjwt.decode(
        token,
        current_app.config["SESSION_SECRET"],
        algorithms=[ALGORITHM],
        options={"require": ["exp"]},
    )
    if not payload.get("email"):
        raise pyjwt.InvalidTokenError("session token carries no email")
    return payload


def _extract_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    cookie_name = current_app.config.get("SESSION_COOKIE_NAME_JWT", DEFAULT_COOKIE_NAME)
    return request.cookies.get(cookie_name)


def init_session_auth(app):
    """Register session verification as a before_request hook."""

    @app.before_request
    def _session_auth():
        g.session_user_id = None
        g.session_email = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return None
        if any(path.startswith(prefix) for prefix in SKIP_PREFIXES):
            return None

        token = _extract_token()
        if token:
            try:
                payload = decode_session_token(token)
                g.session_user_id = payload.get("userId")
                g.session_email = payload["email"]
                return None
            except pyjwt.ExpiredSignatureError:
                reason = "Session expired"
            except pyjwt.InvalidTokenError as exc:
                logger.info("Rejected session token path=%s: %s", path, exc)
                reason = "Invalid session token"
        else:
            reason = "Authentication required"

        if _auth_enabled(current_app):
            return api_error(E.UNAUTHORIZED, reason, status=401)
        return None
