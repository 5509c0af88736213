"""Tests for utils.helpers."""

from datetime import date

from models.record import UserQuery
from utils.helpers import (
    DropdownField,
    build_date_fields,
    normalize_cell_text,
    resolve_export_url,
    split_date,
)


class TestSplitDate:
    def test_no_zero_padding(self):
        parts = split_date(date(1987, 1, 5))
        assert (parts.day, parts.month, parts.year) == ("5", "1", "1987")

    def test_two_digit_parts(self):
        parts = split_date(date(2023, 10, 31))
        assert (parts.day, parts.month, parts.year) == ("31", "10", "2023")


class TestBuildDateFields:
    def test_birth_date_first_then_issue_date(self):
        query = UserQuery(
            subject_id="1", birth_date="1987-01-01", issue_date="2023-10-01", requester_id=1
        )
        assert build_date_fields(query) == [
            DropdownField("1", "uiDdlDay_listbox", 0),
            DropdownField("1", "uiDdlMonth_listbox", 0),
            DropdownField("1987", "uiDdlYear_listbox", 0),
            DropdownField("1", "uiDdlDay_listbox", 1),
            DropdownField("10", "uiDdlMonth_listbox", 1),
            DropdownField("2023", "uiDdlYear_listbox", 1),
        ]


class TestNormalizeCellText:
    def test_collapses_whitespace(self):
        assert normalize_cell_text("\n   100 \t NIS \n") == "100 NIS"

    def test_empty(self):
        assert normalize_cell_text("   ") == ""


class TestResolveExportUrl:
    def test_relative_href(self):
        assert (
            resolve_export_url("/Print/Insurance?id=7", "https://portal.test")
            == "https://portal.test/Print/Insurance?id=7"
        )

    def test_href_without_leading_slash(self):
        assert resolve_export_url("Print?id=1", "https://portal.test/") == "https://portal.test/Print?id=1"

    def test_absolute_href_kept(self):
        assert resolve_export_url("https://cdn.test/doc", "https://portal.test") == "https://cdn.test/doc"
