"""Exception types shared across the incident bot."""

from __future__ import annotations

from typing import Mapping


class IncidentBotError(Exception):
    """Base class for errors raised by the incident bot."""


class ExternalCallTimeout(IncidentBotError):
    """Raised when a Slack or Notion call exceeds its configured deadline."""

    def __init__(self, service: str, operation: str) -> None:
        super().__init__(f"{service} call '{operation}' timed out")
        self.service = service
        self.operation = operation


class SubmissionValidationError(IncidentBotError):
    """Raised when a modal submission is missing or has invalid required fields.

    ``errors`` maps modal block ids to messages so it can be returned verbatim
    as a ``response_action: errors`` acknowledgement.
    """

    def __init__(self, errors: Mapping[str, str]) -> None:
        super().__init__("; ".join(f"{block}: {message}" for block, message in errors.items()))
        self.errors = dict(errors)


def describe_error(exc: BaseException) -> str:
    """Return a short, loggable description of *exc*."""

    response = getattr(exc, "response", None)
    if response is not None:
        try:
            code = response.get("error")
        except AttributeError:
            code = None
        if code:
            return str(code)
    code = getattr(exc, "code", None)
    if code:
        return str(getattr(code, "value", code))
    return str(exc) or exc.__class__.__name__
