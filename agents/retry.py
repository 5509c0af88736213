"""Caller-side retry around whole workflow runs.

Steps never retry on their own; a caller that wants another attempt re-runs
the orchestrator with a fresh browser.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from agents.orchestrator import Orchestrator
from models.record import ErrorKind, RequestContext, UserQuery, WorkflowOutcome

RETRYABLE = frozenset(
    {
        ErrorKind.CAPTCHA_ERROR,
        ErrorKind.NAVIGATION_ERROR,
        ErrorKind.RESULT_PAGE_TIMEOUT,
    }
)


async def run_with_retries(
    orchestrator: Orchestrator,
    query: UserQuery,
    ctx: Optional[RequestContext] = None,
    attempts: int = 1,
    delay_seconds: float = 0.0,
) -> WorkflowOutcome:
    """Re-run ``orchestrator`` while the outcome failed for a retryable reason."""
    log = logger.bind(**(ctx or RequestContext()).log_extra())
    outcome = await orchestrator.run(query, ctx)
    for attempt in range(2, max(attempts, 1) + 1):
        if outcome.success or outcome.reason not in RETRYABLE:
            break
        log.warning(
            f"[attempt {attempt}/{attempts}] retrying after {outcome.reason.value}"
        )
        await asyncio.sleep((attempt - 1) * delay_seconds)
        outcome = await orchestrator.run(query, ctx)
    return outcome
