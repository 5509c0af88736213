"""Pydantic models for portal record lookups."""

from __future__ import annotations

from datetime import date
from enum import Enum, IntEnum
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class UserQuery(BaseModel):
    """Immutable input to one workflow run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject_id: str = Field(
        ...,
        validation_alias=AliasChoices("subject_id", "subjectId", "id"),
        description="National id number typed into the identity field",
    )
    birth_date: date = Field(
        ..., validation_alias=AliasChoices("birth_date", "birthDate", "bod")
    )
    issue_date: date = Field(
        ...,
        validation_alias=AliasChoices("issue_date", "issueDate", "iis"),
        description="Issue date of the identity card",
    )
    requester_id: int = Field(
        ..., validation_alias=AliasChoices("requester_id", "requesterId", "userid")
    )

    @field_validator("subject_id", mode="before")
    @classmethod
    def _strip_subject_id(cls, value: Any) -> str:
        text = str(value).strip()
        if not text:
            raise ValueError("subject_id must not be empty")
        return text


class DateParts(BaseModel):
    """Day / month / year as the portal dropdowns label them (no zero padding)."""

    model_config = ConfigDict(frozen=True)

    day: str
    month: str
    year: str


class Session(BaseModel):
    """Opaque serialized cookie set, written by the out-of-band login job."""

    model_config = ConfigDict(frozen=True)

    key: str
    raw: str

    def cookies(self) -> List[Dict[str, Any]]:
        """Parse the stored blob into Playwright cookie dicts.

        Raises ValueError when the blob is not a non-empty JSON list of
        cookie objects carrying at least ``name`` and ``value``.
        """
        try:
            parsed = json.loads(self.raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"session {self.key!r} is not valid JSON: {exc}") from exc
        if not isinstance(parsed, list) or not parsed:
            raise ValueError(f"session {self.key!r} holds no cookies")
        for cookie in parsed:
            if not isinstance(cookie, dict) or "name" not in cookie or "value" not in cookie:
                raise ValueError(f"session {self.key!r} contains a malformed cookie")
        return parsed


class CaptchaStatus(str, Enum):
    """Solver-side state of one challenge."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, raw: Any) -> "CaptchaStatus":
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.FAILED


class CaptchaResolution(BaseModel):
    """What the solver reported for a challenge id."""

    model_config = ConfigDict(frozen=True)

    status: CaptchaStatus
    text: Optional[str] = None

    @property
    def is_solved(self) -> bool:
        return self.status == CaptchaStatus.COMPLETED and bool(self.text)


class CaptchaChallenge(BaseModel):
    """One CAPTCHA image / response cycle."""

    id: str
    image: bytes = Field(default=b"", repr=False)
    status: CaptchaStatus = CaptchaStatus.PENDING
    solved_text: Optional[str] = None

    @property
    def is_solved(self) -> bool:
        return self.status == CaptchaStatus.COMPLETED and bool(self.solved_text)


class RequestContext(BaseModel):
    """Correlation ids of one inbound call. Observability only."""

    model_config = ConfigDict(frozen=True)

    user_id: str = "unknown"
    client_id: str = "unknown"
    request_id: str = "unknown"

    def log_extra(self) -> Dict[str, str]:
        return {
            "user_id": self.user_id,
            "client_id": self.client_id,
            "request_id": self.request_id,
        }


class ExtractionResult(BaseModel):
    """Rows of the rendered results table, in document order."""

    model_config = ConfigDict(frozen=True)

    rows: Tuple[Tuple[str, ...], ...] = ()

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[str]]) -> "ExtractionResult":
        return cls(rows=tuple(tuple(row) for row in rows))

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def as_lists(self) -> List[List[str]]:
        return [list(row) for row in self.rows]

    def to_records(self, headers: Optional[Sequence[str]] = None) -> List[Dict[str, str]]:
        """Map each data row onto a header vocabulary.

        Without explicit ``headers`` the first row is taken as the header row.
        Short rows are padded with empty strings; cells beyond the header
        vocabulary are dropped.
        """
        data = self.rows
        if headers is None:
            if not data:
                return []
            headers, data = data[0], data[1:]
        return [
            {name: (row[i] if i < len(row) else "") for i, name in enumerate(headers)}
            for row in data
        ]


class ErrorKind(str, Enum):
    """Why a workflow run failed. Logged, never shown to callers."""

    NO_SESSION = "no_session"
    NAVIGATION_ERROR = "navigation_error"
    FORM_FILL_ERROR = "form_fill_error"
    CAPTCHA_ERROR = "captcha_error"
    RESULT_PAGE_TIMEOUT = "result_page_timeout"
    EXTRACTION_ERROR = "extraction_error"
    UNCLASSIFIED_ERROR = "unclassified_error"


class WorkflowOutcome(BaseModel):
    """Tagged result of one run: success with data, or failure with a reason."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Optional[ExtractionResult] = None
    reason: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @classmethod
    def ok(cls, data: ExtractionResult) -> "WorkflowOutcome":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, reason: ErrorKind, detail: Optional[str] = None) -> "WorkflowOutcome":
        return cls(success=False, reason=reason, detail=detail)


class StatusCode(IntEnum):
    """Caller-visible status taxonomy. Stable contract."""

    SUCCESS = 0
    NO_SESSION = 1
    PROCESSING_FAILED = 2
    SUCCESS_EMPTY = 3
    UNEXPECTED = 99


class AgentReply(BaseModel):
    """Outbound envelope returned to the HTTP layer."""

    model_config = ConfigDict(populate_by_name=True)

    is_success: bool = Field(..., alias="isSuccess")
    message: str
    status_code: StatusCode = Field(..., alias="statusCode")
    data: Optional[List[List[str]]] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
