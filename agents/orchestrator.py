"""Orchestrator.

Coordinates one record lookup end to end:
session → browser → form workflow → table extraction → reply.
"""

from __future__ import annotations

from typing import Callable, Optional

from loguru import logger

from agents.form_workflow import FormWorkflow
from agents.table_extractor import TableExtractor
from agents.workflow_state import WorkflowRun, WorkflowState
from clients.browser import BrowserDriver, PlaywrightBrowserDriver
from clients.captcha_client import CaptchaSolverClient
from config.settings import Settings, settings as default_settings
from models.errors import AgentError, NoSessionError
from models.record import (
    AgentReply,
    ErrorKind,
    RequestContext,
    StatusCode,
    UserQuery,
    WorkflowOutcome,
)
from storage.blob_store import build_blob_store
from storage.session_store import SessionStore

DriverFactory = Callable[[RequestContext], BrowserDriver]
CaptchaClientFactory = Callable[[RequestContext], CaptchaSolverClient]

_PROCESSING_FAILURES = {ErrorKind.FORM_FILL_ERROR, ErrorKind.CAPTCHA_ERROR}


def status_for(outcome: WorkflowOutcome) -> StatusCode:
    """Collapse an outcome onto the caller-visible status taxonomy."""
    if outcome.success:
        if outcome.data is None or outcome.data.is_empty:
            return StatusCode.SUCCESS_EMPTY
        return StatusCode.SUCCESS
    if outcome.reason == ErrorKind.NO_SESSION:
        return StatusCode.NO_SESSION
    if outcome.reason in _PROCESSING_FAILURES:
        return StatusCode.PROCESSING_FAILED
    return StatusCode.UNEXPECTED


_MESSAGES = {
    StatusCode.SUCCESS: "Page accessed successfully.",
    StatusCode.SUCCESS_EMPTY: "Page accessed successfully, no records found.",
    StatusCode.NO_SESSION: "No cookies found.",
    StatusCode.PROCESSING_FAILED: "Failed to process user data.",
    StatusCode.UNEXPECTED: "Failed to access the page.",
}


def reply_for(outcome: WorkflowOutcome) -> AgentReply:
    status = status_for(outcome)
    return AgentReply(
        isSuccess=outcome.success,
        message=_MESSAGES[status],
        statusCode=status,
        data=outcome.data.as_lists() if outcome.success and outcome.data is not None else None,
    )


class Orchestrator:
    """
    Request entry point consumed by the HTTP layer and the CLI.

    Each run gets its own driver (one browser, one context) from
    ``driver_factory`` and its own solver client; nothing but the session
    store is shared between runs.  The driver is entered as an async
    context manager, so it is closed exactly once whichever step fails.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        session_store: Optional[SessionStore] = None,
        driver_factory: Optional[DriverFactory] = None,
        captcha_client_factory: Optional[CaptchaClientFactory] = None,
    ) -> None:
        self._config = config or default_settings
        self._sessions = session_store or SessionStore(
            build_blob_store(self._config), key=self._config.session_key
        )
        self._driver_factory = driver_factory or (
            lambda ctx: PlaywrightBrowserDriver(self._config, ctx)
        )
        self._captcha_client_factory = captcha_client_factory or (
            lambda ctx: CaptchaSolverClient(self._config, ctx)
        )

    async def run(
        self, query: UserQuery, ctx: Optional[RequestContext] = None
    ) -> WorkflowOutcome:
        """Execute one workflow run. Never raises."""
        ctx = ctx or RequestContext()
        log = logger.bind(**ctx.log_extra())
        log.info("Starting user data retrieval...")
        try:
            return await self._run(query, ctx)
        except AgentError as exc:
            log.error(f"Run failed ({exc.kind.value}): {exc.detail}")
            return WorkflowOutcome.failed(exc.kind, exc.detail)
        except Exception as exc:
            log.exception(f"Error during user data retrieval: {exc}")
            return WorkflowOutcome.failed(ErrorKind.UNCLASSIFIED_ERROR, str(exc))

    async def handle(
        self, query: UserQuery, ctx: Optional[RequestContext] = None
    ) -> AgentReply:
        """Run and wrap the outcome in the outbound envelope."""
        outcome = await self.run(query, ctx)
        reply = reply_for(outcome)
        logger.bind(**(ctx or RequestContext()).log_extra()).info(
            f"Reply: status={int(reply.status_code)} success={reply.is_success}"
        )
        return reply

    async def aclose(self) -> None:
        """Release the session store. Call once, when the process shuts down."""
        await self._sessions.close()

    async def _run(self, query: UserQuery, ctx: RequestContext) -> WorkflowOutcome:
        log = logger.bind(**ctx.log_extra())

        session = await self._sessions.for_request(ctx).load()
        if session is None:
            raise NoSessionError("no session stored")

        async with self._driver_factory(ctx) as driver:
            context = await driver.open(session)
            if context is None:
                raise NoSessionError("stored session unusable")
            page = await driver.new_page(context)

            async with self._captcha_client_factory(ctx) as captcha:
                workflow = FormWorkflow(driver, captcha, self._config, ctx)
                run = await workflow.run(page, query)

            data = await self._extract(TableExtractor(driver, self._config, ctx), page, run)

        log.info(f"Page accessed and {data.row_count} rows retrieved.")
        return WorkflowOutcome.ok(data)

    @staticmethod
    async def _extract(extractor: TableExtractor, page, run: WorkflowRun):
        try:
            data = await extractor.extract(page)
        except AgentError as exc:
            run.fail(exc.kind)
            raise
        run.advance(WorkflowState.DONE)
        return data
