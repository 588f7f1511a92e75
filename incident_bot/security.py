"""Authorisation helpers for the HTTP endpoints Slack does not sign."""

from __future__ import annotations

import hmac

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "Bearer "


def extract_bearer_token(header_value: str | None) -> str | None:
    if not header_value or not header_value.startswith(BEARER_PREFIX):
        return None
    token = header_value[len(BEARER_PREFIX):].strip()
    return token or None


def is_authorized_cron_request(header_value: str | None, secret: str | None) -> bool:
    """Validate ``Authorization: Bearer <secret>`` in constant time.

    Always false when no secret is configured.
    """

    if not secret:
        return False
    token = extract_bearer_token(header_value)
    if token is None:
        return False
    return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))
