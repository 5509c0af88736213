from .record import (
    AgentReply,
    CaptchaChallenge,
    CaptchaResolution,
    CaptchaStatus,
    DateParts,
    ErrorKind,
    ExtractionResult,
    RequestContext,
    Session,
    StatusCode,
    UserQuery,
    WorkflowOutcome,
)

__all__ = [
    "AgentReply",
    "CaptchaChallenge",
    "CaptchaResolution",
    "CaptchaStatus",
    "DateParts",
    "ErrorKind",
    "ExtractionResult",
    "RequestContext",
    "Session",
    "StatusCode",
    "UserQuery",
    "WorkflowOutcome",
]
