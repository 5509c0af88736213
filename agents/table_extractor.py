"""Table extractor.

Follows the export link on the results view to the printable document and
reads its table into rows of trimmed cell texts.
"""

from __future__ import annotations

from typing import Any, List, Optional

from bs4 import BeautifulSoup
from loguru import logger

from clients.browser import BrowserDriver
from config.settings import Settings, settings as default_settings
from models.errors import BrowserError, ExtractionError
from models.record import ExtractionResult, RequestContext
from utils.helpers import normalize_cell_text, resolve_export_url

EXPORT_HREF_SCRIPT = """(title) => {
    const anchor = Array.from(document.querySelectorAll('a[title]'))
        .find((a) => a.getAttribute('title') === title);
    return anchor ? anchor.getAttribute('href') : null;
}"""

# The printable view calls window.print() on load.
BLOCK_PRINT_SCRIPT = "window.print = () => {};"


def parse_table_rows(html: str) -> Optional[List[List[str]]]:
    """
    Read every row of the first table in ``html``, in document order.

    Rows of ``thead``, ``tbody`` and ``tfoot`` are all included, as are
    ``tr`` elements placed directly in the table.  Returns None when the
    document holds no ``<table>`` at all; a table without rows yields an
    empty list.  Header cells (``th``) are kept alongside data cells.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table")
    if table is None:
        return None
    rows: List[List[str]] = []
    for tr in table.find_all("tr"):
        # Skip rows of nested tables; they belong to their own table.
        if tr.find_parent("table") is not table:
            continue
        cells = tr.find_all(["td", "th"], recursive=False)
        rows.append([normalize_cell_text(cell.get_text(" ")) for cell in cells])
    return rows


class TableExtractor:
    """Resolves the export document of the results view and parses it."""

    EXPORT_MARKER = "#butAllInsurance"

    def __init__(
        self,
        driver: BrowserDriver,
        config: Optional[Settings] = None,
        ctx: Optional[RequestContext] = None,
    ) -> None:
        self._driver = driver
        self._config = config or default_settings
        self._log = logger.bind(**(ctx or RequestContext()).log_extra())

    async def extract(self, page: Any) -> ExtractionResult:
        self._log.debug("Starting table extraction...")
        try:
            await self._driver.wait_visible(
                page, self.EXPORT_MARKER, self._config.element_timeout_ms
            )
            await self._driver.add_init_script(page, BLOCK_PRINT_SCRIPT)

            href = await self._driver.evaluate(
                page, EXPORT_HREF_SCRIPT, self._config.export_link_title
            )
            if not href or not str(href).strip():
                raise ExtractionError("export link not found")

            url = resolve_export_url(str(href), self._config.base_origin)
            self._log.debug(f"Opening export document {url}")
            await self._driver.navigate(
                page, url, self._config.navigation_timeout_ms, wait_until="domcontentloaded"
            )
            html = await self._driver.current_html(page)
        except BrowserError as exc:
            raise ExtractionError(str(exc)) from exc

        rows = parse_table_rows(html)
        if rows is None:
            raise ExtractionError(f"no table in export document {url}")

        result = ExtractionResult.from_rows(rows)
        self._log.info(f"Extracted {result.row_count} table rows.")
        return result
