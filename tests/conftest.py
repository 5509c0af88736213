"""
Pytest fixtures for the record agent test suite.

The browser is replaced by :class:`FakeBrowserDriver`, which serves fixture
HTML per URL and answers the page scripts the workflow evaluates with
BeautifulSoup, so the state machine and the extraction run unchanged.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from bs4 import BeautifulSoup

from agents.form_workflow import CLICK_ITEM_SCRIPT, LIST_ITEMS_SCRIPT
from agents.table_extractor import EXPORT_HREF_SCRIPT
from clients.browser import BrowserDriver
from clients.captcha_client import CaptchaSolverClient
from config.settings import Settings
from models.errors import BrowserError, BrowserTimeout
from models.record import RequestContext, Session, UserQuery
from storage.blob_store import BlobStore
from storage.session_store import SessionStore

TARGET_URL = "https://portal.test/"
BASE_ORIGIN = "https://portal.test"
SOLVER_URL = "https://solver.test/"
EXPORT_HREF = "/Print/Insurance?id=7"
EXPORT_URL = "https://portal.test/Print/Insurance?id=7"
SESSION_KEY = "HARB_LOGIN_COOKIES_AFRICA"
VALID_COOKIES = json.dumps(
    [{"name": "ASP.NET_SessionId", "value": "abc123", "domain": "portal.test", "path": "/"}]
)


# === Fixture pages ===


def _listbox(list_id: str, labels) -> str:
    items = "".join(f'<li class="k-item">\n  {label} </li>' for label in labels)
    return f'<ul id="{list_id}" class="k-list">{items}</ul>'


def _date_picker() -> str:
    return (
        _listbox("uiDdlDay_listbox", range(1, 32))
        + _listbox("uiDdlMonth_listbox", range(1, 13))
        + _listbox("uiDdlYear_listbox", range(1940, 2026))
    )


FORM_HTML = f"""
<html><body>
<form id="frmIdent">
  <input id="txtId" type="text" />
  <div class="birth">{_date_picker()}</div>
  <div class="issue">{_date_picker()}</div>
  <input id="cbAproveTerm" type="checkbox" />
  <img id="LocateBeneficiariesCaptcha_CaptchaImage" src="/captcha.png" />
  <input id="CaptchaCode" type="text" />
  <button id="butIdent">Send</button>
</form>
</body></html>
"""

RESULTS_HTML = """
<html><body>
<button id="butInsuranceOf">Insurance</button>
</body></html>
"""

EXPORT_VIEW_HTML = f"""
<html><body>
<button id="butAllInsurance">All</button>
<a title="הדפס" href="{EXPORT_HREF}">print</a>
<a title="other" href="/elsewhere">other</a>
</body></html>
"""

EXPORT_HTML = """
<html><body>
<table>
  <tbody>
    <tr><td> Policy </td><td>Premium</td></tr>
    <tr><td>P-1</td><td>
        100
    </td></tr>
    <tr><td>P-2</td><td>250</td></tr>
  </tbody>
</table>
<table><tbody><tr><td>ignored</td></tr></tbody></table>
</body></html>
"""


# === Fake browser ===


class FakePage:
    def __init__(self) -> None:
        self.url: Optional[str] = None
        self.html: str = ""
        self.values: Dict[str, str] = {}

    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "html.parser")


class FakeBrowserDriver(BrowserDriver):
    """In-memory BrowserDriver over fixture HTML."""

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        submit_target: Optional[str] = RESULTS_HTML,
        click_targets: Optional[Dict[str, str]] = None,
        failures: Optional[Dict[str, Exception]] = None,
    ) -> None:
        self.pages = dict(pages if pages is not None else {TARGET_URL: FORM_HTML, EXPORT_URL: EXPORT_HTML})
        self.submit_target = submit_target
        self.click_targets = dict(
            click_targets if click_targets is not None else {"#butInsuranceOf": EXPORT_VIEW_HTML}
        )
        self.failures = dict(failures or {})
        self.open_calls = 0
        self.close_calls = 0
        self.calls: List[tuple] = []
        self.selections: List[tuple] = []
        self.init_scripts: List[str] = []

    def _record(self, *call: Any) -> None:
        self.calls.append(call)
        failure = self.failures.get(call[0])
        if failure is not None:
            raise failure

    def _require(self, page: FakePage, selector: str) -> None:
        if page.soup().select_one(selector) is None:
            raise BrowserError(f"{selector} not on page")

    def called(self, name: str) -> bool:
        return any(call[0] == name for call in self.calls)

    async def open(self, session: Session):
        self.open_calls += 1
        self._record("open", session.key)
        try:
            session.cookies()
        except ValueError:
            return None
        return object()

    async def new_page(self, context) -> FakePage:
        self._record("new_page")
        return FakePage()

    async def navigate(self, page: FakePage, url: str, timeout_ms: int, wait_until: str = "load") -> None:
        self._record("navigate", url)
        if url not in self.pages:
            raise BrowserError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        page.url = url
        page.html = self.pages[url]

    async def wait_visible(self, page: FakePage, selector: str, timeout_ms: int) -> None:
        self._record("wait_visible", selector)
        if page.soup().select_one(selector) is None:
            raise BrowserTimeout(f"Timeout {timeout_ms}ms waiting for {selector}")

    async def is_visible(self, page: FakePage, selector: str) -> bool:
        self._record("is_visible", selector)
        return page.soup().select_one(selector) is not None

    async def fill(self, page: FakePage, selector: str, value: str) -> None:
        self._record("fill", selector, value)
        self._require(page, selector)
        page.values[selector] = value

    async def click(self, page: FakePage, selector: str) -> None:
        self._record("click", selector)
        self._require(page, selector)
        if selector in self.click_targets:
            page.html = self.click_targets[selector]

    async def check(self, page: FakePage, selector: str) -> None:
        self._record("check", selector)
        self._require(page, selector)
        page.values[selector] = "checked"

    async def click_and_wait_for_navigation(self, page: FakePage, selector: str, timeout_ms: int) -> None:
        self._record("submit", selector)
        self._require(page, selector)
        if self.submit_target is None:
            raise BrowserTimeout(f"Timeout {timeout_ms}ms exceeded waiting for navigation")
        page.html = self.submit_target

    async def screenshot(self, page: FakePage, selector: str) -> bytes:
        self._record("screenshot", selector)
        self._require(page, selector)
        return b"\x89PNG fake captcha"

    async def evaluate(self, page: FakePage, script: str, arg: Any = None) -> Any:
        self._record("evaluate")
        soup = page.soup()
        if script == LIST_ITEMS_SCRIPT:
            lists = soup.select(f'[id="{arg["id"]}"]')
            if len(lists) <= arg["index"]:
                return None
            return [item.get_text() for item in lists[arg["index"]].select(".k-item")]
        if script == CLICK_ITEM_SCRIPT:
            items = soup.select(f'[id="{arg["id"]}"]')[arg["index"]].select(".k-item")
            self.selections.append((arg["id"], arg["index"], items[arg["position"]].get_text().strip()))
            return True
        if script == EXPORT_HREF_SCRIPT:
            for anchor in soup.select("a[title]"):
                if anchor.get("title") == arg:
                    return anchor.get("href")
            return None
        raise AssertionError(f"unexpected script: {script[:40]}")

    async def add_init_script(self, page: FakePage, script: str) -> None:
        self._record("add_init_script")
        self.init_scripts.append(script)

    async def current_html(self, page: FakePage) -> str:
        self._record("current_html")
        return page.html

    async def close(self) -> None:
        self.close_calls += 1


# === Session store ===


class DictBlobStore(BlobStore):
    def __init__(self, data: Optional[Dict[str, str]] = None) -> None:
        self.data = dict(data or {})
        self.reads: List[str] = []
        self.close_calls = 0

    async def get(self, key: str) -> Optional[str]:
        self.reads.append(key)
        return self.data.get(key) or None

    async def close(self) -> None:
        self.close_calls += 1


# === Solver transport ===


def solver_transport(
    status: str = "completed",
    text: Optional[str] = "X7K2P",
    submit_status: int = 200,
    requests: Optional[List[httpx.Request]] = None,
) -> httpx.MockTransport:
    """MockTransport answering the solver's submit and resolve endpoints."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if request.method == "POST" and request.url.path == "/captcha/image":
            if submit_status != 200:
                return httpx.Response(submit_status, json={"error": "boom"})
            return httpx.Response(200, json={"id": "cap-1"})
        if request.method == "GET" and request.url.path == "/captcha/cap-1":
            return httpx.Response(200, json={"id": "cap-1", "status": status, "text": text})
        return httpx.Response(404)

    return httpx.MockTransport(handler)


# === Fixtures ===


@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(
        target_url=TARGET_URL,
        base_origin=BASE_ORIGIN,
        captcha_api_url=SOLVER_URL,
        captcha_access_token="token-123",
        captcha_poll_attempts=3,
        captcha_poll_interval_seconds=0,
        session_backend="file",
        session_dir=str(tmp_path / "sessions"),
        session_key=SESSION_KEY,
        navigation_timeout_ms=1000,
        element_timeout_ms=1000,
        result_timeout_ms=1000,
        log_file=None,
    )


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(user_id="7877", client_id="tests", request_id="req-1")


@pytest.fixture
def query() -> UserQuery:
    return UserQuery.model_validate(
        {
            "subjectId": "306955741",
            "birthDate": "1987-01-01",
            "issueDate": "2023-10-01",
            "requesterId": 7877,
        }
    )


@pytest.fixture
def blob_store() -> DictBlobStore:
    return DictBlobStore({SESSION_KEY: VALID_COOKIES})


@pytest.fixture
def session_store(blob_store, ctx) -> SessionStore:
    return SessionStore(blob_store, key=SESSION_KEY, ctx=ctx)


@pytest.fixture
def captcha_factory(config) -> Callable[..., Callable[[RequestContext], CaptchaSolverClient]]:
    """Build a solver-client factory bound to a mocked transport."""

    def make(**kwargs) -> Callable[[RequestContext], CaptchaSolverClient]:
        transport = solver_transport(**kwargs)
        return lambda request_ctx: CaptchaSolverClient(config, request_ctx, transport=transport)

    return make
