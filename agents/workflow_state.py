"""Step states of one form workflow run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from models.record import ErrorKind


class WorkflowState(str, Enum):
    """Ordered states of the portal page flow; FAILED absorbs from any state."""

    INIT = "init"
    NAVIGATED = "navigated"
    JOINED = "joined"  # fields filled and CAPTCHA solved
    SUBMITTED = "submitted"
    RESULT_PAGE_REACHED = "result_page_reached"
    EXPORT_TRIGGERED = "export_triggered"
    DONE = "done"
    FAILED = "failed"


_ORDER = [
    WorkflowState.INIT,
    WorkflowState.NAVIGATED,
    WorkflowState.JOINED,
    WorkflowState.SUBMITTED,
    WorkflowState.RESULT_PAGE_REACHED,
    WorkflowState.EXPORT_TRIGGERED,
    WorkflowState.DONE,
]


@dataclass
class WorkflowRun:
    """Mutable record of how far one run got."""

    state: WorkflowState = WorkflowState.INIT
    history: List[WorkflowState] = field(default_factory=lambda: [WorkflowState.INIT])
    failure: Optional[ErrorKind] = None
    captcha_text: Optional[str] = None

    def advance(self, target: WorkflowState) -> None:
        """Move to the next state in order; anything else is a programming error."""
        if self.finished:
            raise RuntimeError(f"run already {self.state.value}")
        expected = _ORDER[_ORDER.index(self.state) + 1]
        if target != expected:
            raise RuntimeError(f"illegal transition {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    def fail(self, reason: ErrorKind) -> None:
        self.state = WorkflowState.FAILED
        self.failure = reason
        self.history.append(WorkflowState.FAILED)

    @property
    def finished(self) -> bool:
        return self.state in (WorkflowState.DONE, WorkflowState.FAILED)
