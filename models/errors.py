"""Typed exceptions for the record extraction workflow."""

from __future__ import annotations

from typing import Optional

from models.record import ErrorKind


class AgentError(Exception):
    """Base exception for a workflow step that failed with a known reason."""

    kind: ErrorKind = ErrorKind.UNCLASSIFIED_ERROR

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class NoSessionError(AgentError):
    """No usable cookie set for the portal account."""

    kind = ErrorKind.NO_SESSION


class NavigationError(AgentError):
    """The entry page, or the form submission, could not be navigated."""

    kind = ErrorKind.NAVIGATION_ERROR


class FormFillError(AgentError):
    """The identity / date / terms controls could not be populated."""

    kind = ErrorKind.FORM_FILL_ERROR


class CaptchaError(AgentError):
    """The CAPTCHA step produced no usable answer."""

    kind = ErrorKind.CAPTCHA_ERROR

    ELEMENT_MISSING = "element_missing"
    UNSOLVED = "unsolved"
    SERVICE_UNAVAILABLE = "service_unavailable"

    def __init__(self, sub_reason: str, detail: Optional[str] = None):
        self.sub_reason = sub_reason
        super().__init__(f"{sub_reason}: {detail}" if detail else sub_reason)


class ResultPageTimeout(AgentError):
    """The portal accepted the submission but never showed the results view."""

    kind = ErrorKind.RESULT_PAGE_TIMEOUT


class ExtractionError(AgentError):
    """The export link or its results table could not be read."""

    kind = ErrorKind.EXTRACTION_ERROR


class CaptchaServiceUnavailable(Exception):
    """The solver answered with a non-2xx status or could not be reached."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"CAPTCHA service unavailable at {url}: {reason}")


class BrowserError(Exception):
    """A page operation failed inside the browser."""


class BrowserTimeout(BrowserError, TimeoutError):
    """A page operation exceeded its timeout."""
