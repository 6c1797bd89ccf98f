"""Unit tests for within-file and against-store duplicate detection."""

from datetime import date

import pytest

from src.vendor_tool.schemas.csv_import import DuplicateType
from src.vendor_tool.services.duplicate_detector import StoreIndex, StoredRecord, detect_duplicates
from src.vendor_tool.services.import_rules import TEAM_MEMBER_SCHEMA, TIMESHEET_SCHEMA, Identity

SCOPE = "vendor:1"


def _member(email, first="Alice", last="Smith"):
    return {"first_name": first, "last_name": last, "email": email}


# ---------------------------------------------------------------------------
# within-file
# ---------------------------------------------------------------------------

class TestWithinFile:
    def test_repeats_point_at_first_occurrence(self):
        rows = [
            (2, _member("alice@acme.co.uk")),
            (3, _member("alice@acme.co.uk")),
            (4, _member("alice@acme.co.uk")),
        ]
        found = detect_duplicates(rows, TEAM_MEMBER_SCHEMA.identity, SCOPE)
        assert set(found) == {3, 4}
        assert found[3].type == DuplicateType.FILE
        assert found[3].matched_row_number == 2
        assert found[4].matched_row_number == 2
        assert found[4].matched_email == "alice@acme.co.uk"

    def test_rows_without_identity_are_ignored(self):
        rows = [(2, _member(None)), (3, _member(None))]
        assert detect_duplicates(rows, TEAM_MEMBER_SCHEMA.identity, SCOPE) == {}

    def test_timesheet_key_is_member_and_date(self):
        rows = [
            (2, {"team_member_id": 1, "date": date(2025, 3, 3)}),
            (3, {"team_member_id": 1, "date": date(2025, 3, 4)}),
            (4, {"team_member_id": 1, "date": date(2025, 3, 3)}),
            (5, {"team_member_id": 2, "date": date(2025, 3, 3)}),
        ]
        found = detect_duplicates(rows, TIMESHEET_SCHEMA.identity, SCOPE)
        assert list(found) == [4]
        assert found[4].matched_row_number == 2
        assert found[4].match_kind == "key"


# ---------------------------------------------------------------------------
# against the store
# ---------------------------------------------------------------------------

@pytest.fixture
def index():
    return StoreIndex([
        StoredRecord(id=10, email="alice@acme.co.uk", name="Alice Smith"),
        StoredRecord(id=11, email="bob.jones@acme.co.uk", name="Bob Jones"),
    ])


class TestAgainstStore:
    def test_email_match_is_case_insensitive(self, index):
        rows = [(2, _member("ALICE@acme.co.uk", "Someone", "Else"))]
        found = detect_duplicates(rows, TEAM_MEMBER_SCHEMA.identity, SCOPE, index)
        assert found[2].type == DuplicateType.DATABASE
        assert found[2].matched_id == 10
        assert found[2].match_kind == "email"

    def test_exact_name_fallback(self, index):
        rows = [(2, _member("bjones@other.co.uk", "bob", "JONES"))]
        found = detect_duplicates(rows, TEAM_MEMBER_SCHEMA.identity, SCOPE, index, "exact")
        assert found[2].matched_id == 11
        assert found[2].match_kind == "name"
        assert found[2].matched_email == "bob.jones@acme.co.uk"

    def test_fuzzy_name_fallback(self, index):
        rows = [(2, _member("ab@other.co.uk", "Alice", "Smith-Brown"))]
        fuzzy = detect_duplicates(rows, TEAM_MEMBER_SCHEMA.identity, SCOPE, index, "fuzzy")
        exact = detect_duplicates(rows, TEAM_MEMBER_SCHEMA.identity, SCOPE, index, "exact")
        assert fuzzy[2].matched_id == 10
        assert fuzzy[2].match_kind == "name_fuzzy"
        assert exact == {}

    def test_name_fallback_off(self, index):
        rows = [(2, _member("someone@other.co.uk", "Alice", "Smith"))]
        assert detect_duplicates(rows, TEAM_MEMBER_SCHEMA.identity, SCOPE, index, "off") == {}

    def test_file_duplicate_takes_priority(self, index):
        rows = [(2, _member("alice@acme.co.uk")), (3, _member("alice@acme.co.uk"))]
        found = detect_duplicates(rows, TEAM_MEMBER_SCHEMA.identity, SCOPE, index)
        assert found[2].type == DuplicateType.DATABASE
        assert found[3].type == DuplicateType.FILE
        assert found[3].matched_row_number == 2

    def test_unknown_mode_rejected(self, index):
        with pytest.raises(ValueError):
            detect_duplicates([], TEAM_MEMBER_SCHEMA.identity, SCOPE, index, "loose")


class TestStoreIndex:
    def test_exact_name_preferred_over_substring(self):
        index = StoreIndex([
            StoredRecord(id=1, name="Ann Lee Park"),
            StoredRecord(id=2, name="Ann Lee"),
        ])
        record, kind = index.match(Identity(name="ann lee"), "fuzzy")
        assert record.id == 2
        assert kind == "name"

    def test_key_lookup(self):
        index = StoreIndex([StoredRecord(id=5, email="a@acme.co.uk", key="1:2025-03-03")])
        record, kind = index.match(Identity(key="1:2025-03-03"))
        assert record.id == 5
        assert kind == "key"
        assert len(index) == 2
