"""Utility helper functions."""

from __future__ import annotations

import re
from datetime import date
from typing import List, NamedTuple
from urllib.parse import urljoin

from models.record import DateParts, UserQuery

_WHITESPACE_RE = re.compile(r"\s+")


class DropdownField(NamedTuple):
    """One dropdown selection: option label, list element id, occurrence index."""

    value: str
    list_id: str
    index: int


def split_date(value: date) -> DateParts:
    """Decompose a calendar date into the labels the portal dropdowns show."""
    return DateParts(day=str(value.day), month=str(value.month), year=str(value.year))


def build_date_fields(query: UserQuery) -> List[DropdownField]:
    """The six dropdown selections for the birth date and the issue date.

    Both date pickers reuse the same list ids; occurrence 0 is the birth
    date picker and occurrence 1 the issue date picker.
    """
    fields: List[DropdownField] = []
    for index, value in enumerate((query.birth_date, query.issue_date)):
        parts = split_date(value)
        fields += [
            DropdownField(parts.day, "uiDdlDay_listbox", index),
            DropdownField(parts.month, "uiDdlMonth_listbox", index),
            DropdownField(parts.year, "uiDdlYear_listbox", index),
        ]
    return fields


def normalize_cell_text(raw: str) -> str:
    """Collapse inner whitespace runs and trim, as rendered innerText would."""
    return _WHITESPACE_RE.sub(" ", raw).strip()


def resolve_export_url(href: str, base_origin: str) -> str:
    """Resolve a (possibly relative) export link against the portal origin."""
    return urljoin(base_origin.rstrip("/") + "/", href.strip())
