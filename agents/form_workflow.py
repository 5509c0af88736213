"""Form workflow.

Drives the portal lookup page from the entry URL to the point where the
printable results document is available:

    navigate → {fill identity/date fields ‖ solve CAPTCHA} → submit
    → wait for results view → trigger export

Each step maps its failures onto the :mod:`models.errors` taxonomy so the
orchestrator can report a status code without knowing about pages.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, List, Optional

from loguru import logger

from agents.workflow_state import WorkflowRun, WorkflowState
from clients.browser import BrowserDriver
from clients.captcha_client import CaptchaSolverClient
from config.settings import Settings, settings as default_settings
from models.errors import (
    AgentError,
    BrowserError,
    BrowserTimeout,
    CaptchaError,
    CaptchaServiceUnavailable,
    FormFillError,
    NavigationError,
    ResultPageTimeout,
)
from models.record import RequestContext, UserQuery
from utils.helpers import DropdownField, build_date_fields

# Returns the raw labels of the `.k-item` options of the index-th list with
# the given id, or null when the page has fewer lists than that.
LIST_ITEMS_SCRIPT = """({ id, index }) => {
    const lists = document.querySelectorAll(`[id="${id}"]`);
    if (lists.length <= index) return null;
    return Array.from(lists[index].querySelectorAll('.k-item'))
        .map((item) => item.textContent || '');
}"""

CLICK_ITEM_SCRIPT = """({ id, index, position }) => {
    const lists = document.querySelectorAll(`[id="${id}"]`);
    if (lists.length <= index) return false;
    const items = lists[index].querySelectorAll('.k-item');
    if (items.length <= position) return false;
    items[position].click();
    return true;
}"""


class FormWorkflow:
    """
    Step-ordered state machine over one page of the lookup portal.

    The page, the driver and the solver client are owned by the caller;
    the workflow only sequences operations on them.
    """

    ID_INPUT = "#txtId"
    TERMS_CHECKBOX = "#cbAproveTerm"
    CAPTCHA_IMAGE = "#LocateBeneficiariesCaptcha_CaptchaImage"
    CAPTCHA_INPUT = "#CaptchaCode"
    SUBMIT_BUTTON = "#butIdent"
    RESULTS_MARKER = "#butInsuranceOf"

    def __init__(
        self,
        driver: BrowserDriver,
        captcha_client: CaptchaSolverClient,
        config: Optional[Settings] = None,
        ctx: Optional[RequestContext] = None,
    ) -> None:
        self._driver = driver
        self._captcha = captcha_client
        self._config = config or default_settings
        self._log = logger.bind(**(ctx or RequestContext()).log_extra())

    # ── Public API ────────────────────────────────────────────────────────────

    async def run(self, page: Any, query: UserQuery) -> WorkflowRun:
        """
        Execute steps 1-5 on ``page``.

        Returns the run record in state EXPORT_TRIGGERED.  On failure the
        record is moved to FAILED and the step's AgentError is raised.
        """
        run = WorkflowRun()
        try:
            await self.navigate(page)
            self._advance(run, WorkflowState.NAVIGATED)

            run.captcha_text = await self.run_parallel_tasks(page, query)
            self._advance(run, WorkflowState.JOINED)

            await self.submit_form(page, run.captcha_text)
            self._advance(run, WorkflowState.SUBMITTED)

            await self.wait_for_results(page)
            self._advance(run, WorkflowState.RESULT_PAGE_REACHED)

            await self.trigger_export(page)
            self._advance(run, WorkflowState.EXPORT_TRIGGERED)
        except AgentError as exc:
            run.fail(exc.kind)
            self._log.error(f"Form workflow failed ({exc.kind.value}): {exc.detail}")
            raise
        return run

    async def navigate(self, page: Any) -> None:
        self._log.debug("Navigating to target page...")
        try:
            await self._driver.navigate(
                page, self._config.target_url, self._config.navigation_timeout_ms
            )
        except BrowserError as exc:
            raise NavigationError(str(exc)) from exc
        self._log.debug("Navigation completed.")

    async def run_parallel_tasks(self, page: Any, query: UserQuery) -> str:
        """
        Fill the form and solve the CAPTCHA concurrently; return the answer.

        Both tasks mutate the same page.  That is only safe while their
        targets stay disjoint: identity, date and terms controls on one side,
        the CAPTCHA image on the other.  The CAPTCHA answer field is filled
        after the join, in ``submit_form``.
        """
        fill_result, captcha_result = await asyncio.gather(
            self.fill_page_details(page, query),
            self.solve_captcha(page),
            return_exceptions=True,
        )
        self._log.debug("Parallel tasks completed.")

        for result in (fill_result, captcha_result):
            if isinstance(result, BaseException) and not isinstance(result, AgentError):
                raise result

        if isinstance(fill_result, FormFillError):
            if isinstance(captcha_result, CaptchaError):
                self._log.error(f"CAPTCHA also failed: {captcha_result.detail}")
            raise fill_result
        if isinstance(captcha_result, CaptchaError):
            raise captcha_result
        return captcha_result

    async def fill_page_details(self, page: Any, query: UserQuery) -> None:
        """Populate the identity field, both date pickers and the terms box."""
        self._log.debug("Filling page details...")
        timeout = self._config.element_timeout_ms
        try:
            await self._driver.wait_visible(page, self.ID_INPUT, timeout)
            await self._driver.fill(page, self.ID_INPUT, query.subject_id)
            self._log.debug("User ID filled successfully.")

            fields = build_date_fields(query)
            # Each selection touches its own dropdown instance. All six settle
            # before a failure is raised, so none outlives this step.
            selected = await asyncio.gather(
                *(self.select_list_item(page, field) for field in fields),
                return_exceptions=True,
            )
            for result in selected:
                if isinstance(result, BaseException):
                    raise result
            missing = [field for field, ok in zip(fields, selected) if not ok]
            if missing and not self._config.allow_missing_options:
                raise FormFillError(
                    "date options not found: " + ", ".join(_describe(f) for f in missing)
                )
            self._log.debug("Date fields filled successfully.")

            await self._driver.check(page, self.TERMS_CHECKBOX)
            self._log.debug("Terms approved successfully.")
        except BrowserError as exc:
            raise FormFillError(str(exc)) from exc

    async def select_list_item(self, page: Any, field: DropdownField) -> bool:
        """
        Click the option whose trimmed label equals ``field.value``.

        Returns False (after logging a warning) when the list instance or the
        option does not exist.
        """
        labels: Optional[List[str]] = await self._driver.evaluate(
            page, LIST_ITEMS_SCRIPT, {"id": field.list_id, "index": field.index}
        )
        if labels is None:
            self._log.warning(f"List with index {field.index} not found for ID: {field.list_id}")
            return False

        position = next(
            (i for i, label in enumerate(labels) if label.strip() == field.value), None
        )
        if position is None:
            self._log.warning(
                f"Item with value '{field.value}' not found in list "
                f"'{field.list_id}' at index {field.index}"
            )
            return False

        return bool(
            await self._driver.evaluate(
                page,
                CLICK_ITEM_SCRIPT,
                {"id": field.list_id, "index": field.index, "position": position},
            )
        )

    async def solve_captcha(self, page: Any) -> str:
        """Screenshot the challenge image, send it to the solver, return the text."""
        start = time.perf_counter()
        self._log.debug("Solving CAPTCHA...")
        try:
            if not await self._driver.is_visible(page, self.CAPTCHA_IMAGE):
                raise CaptchaError(CaptchaError.ELEMENT_MISSING, "CAPTCHA element not found")
            image = await self._driver.screenshot(page, self.CAPTCHA_IMAGE)

            challenge = await self._captcha.solve(image)
            if not challenge.is_solved:
                raise CaptchaError(
                    CaptchaError.UNSOLVED,
                    f"challenge {challenge.id} ended with status {challenge.status.value}",
                )
            self._log.debug(f"CAPTCHA solved successfully: {challenge.solved_text}")
            return challenge.solved_text
        except CaptchaServiceUnavailable as exc:
            raise CaptchaError(CaptchaError.SERVICE_UNAVAILABLE, str(exc)) from exc
        except BrowserError as exc:
            raise CaptchaError(CaptchaError.ELEMENT_MISSING, str(exc)) from exc
        finally:
            self._log.debug(f"CAPTCHA step took {time.perf_counter() - start:.2f}s")

    async def submit_form(self, page: Any, captcha_text: str) -> None:
        """Type the CAPTCHA answer and submit, waiting for the navigation."""
        self._log.debug("Submitting form...")
        try:
            await self._driver.fill(page, self.CAPTCHA_INPUT, captcha_text)
            await self._driver.click_and_wait_for_navigation(
                page, self.SUBMIT_BUTTON, self._config.result_timeout_ms
            )
        except BrowserTimeout as exc:
            raise ResultPageTimeout(f"no navigation after submit: {exc}") from exc
        except BrowserError as exc:
            raise NavigationError(str(exc)) from exc
        self._log.debug("Form submitted successfully.")

    async def wait_for_results(self, page: Any) -> None:
        try:
            await self._driver.wait_visible(
                page, self.RESULTS_MARKER, self._config.result_timeout_ms
            )
        except BrowserTimeout as exc:
            raise ResultPageTimeout(f"results view never appeared: {exc}") from exc
        except BrowserError as exc:
            raise NavigationError(str(exc)) from exc

    async def trigger_export(self, page: Any) -> None:
        try:
            await self._driver.click(page, self.RESULTS_MARKER)
        except BrowserError as exc:
            raise NavigationError(str(exc)) from exc
        self._log.debug("Export triggered.")

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _advance(self, run: WorkflowRun, target: WorkflowState) -> None:
        run.advance(target)
        self._log.debug(f"Workflow state -> {target.value}")


def _describe(field: DropdownField) -> str:
    return f"{field.list_id}[{field.index}]={field.value}"
