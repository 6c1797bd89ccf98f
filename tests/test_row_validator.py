"""Unit tests for per-row validation under the entity rule sets."""

from datetime import date
from decimal import Decimal

import pytest

from src.vendor_tool.schemas.csv_import import RawRow
from src.vendor_tool.services.csv_normalizer import map_headers
from src.vendor_tool.services.import_rules import (
    TEAM_MEMBER_SCHEMA,
    TIMESHEET_SCHEMA,
    ImportContext,
    MemberRef,
    find_team_member,
    month_bounds,
)
from src.vendor_tool.services.import_errors import ImportContextError
from src.vendor_tool.services.row_validator import validate_row


def _validate(schema, values, context, extra_cells=None):
    header_map = map_headers(list(values), schema)
    row = RawRow(row_number=2, values=values, extra_cells=extra_cells or [])
    return validate_row(row, header_map.mapping, schema, context)


def _messages(issues):
    return [issue.message for issue in issues]


def _fields(issues):
    return [issue.field for issue in issues]


@pytest.fixture
def member_context():
    return ImportContext(
        vendor_id=1,
        vendor_name="Northwind Consulting",
        roles={"developer": 1, "qa engineer": 2},
        default_role_id=1,
    )


@pytest.fixture
def member_row():
    return {
        "First Name": "Alice",
        "Last Name": "Smith",
        "Email": "Alice.Smith@acme.co.uk",
        "Role": "QA Engineer",
        "Daily Rate": "650",
        "Currency": "gbp",
        "Start Date": "2025-01-06",
        "Status": "active",
    }


# ---------------------------------------------------------------------------
# team members
# ---------------------------------------------------------------------------

class TestTeamMemberRow:
    def test_clean_row(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, member_row, member_context)
        assert result.errors == []
        assert result.warnings == []
        data = result.canonical_data
        assert data["email"] == "alice.smith@acme.co.uk"
        assert data["daily_rate"] == Decimal("650")
        assert data["currency"] == "GBP"
        assert data["start_date"] == date(2025, 1, 6)
        assert data["role_id"] == 2
        assert data["end_date"] is None

    def test_date_formats_are_equivalent(self, member_row, member_context):
        iso = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Start Date": "2025-03-14"}, member_context)
        local = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Start Date": "14/03/2025"}, member_context)
        assert iso.canonical_data["start_date"] == local.canonical_data["start_date"] == date(2025, 3, 14)

    def test_month_first_date_names_both_formats(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Start Date": "03/14/2025"}, member_context)
        assert _fields(result.errors) == ["start_date"]
        assert result.errors[0].message == "Invalid start date '03/14/2025'. Use YYYY-MM-DD or DD/MM/YYYY"
        assert "start_date" not in result.canonical_data

    def test_missing_required_value(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Last Name": "  "}, member_context)
        assert _messages(result.errors) == ["Last name is required"]

    def test_partially_invalid_row_keeps_parsed_fields(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Email": "not-an-email"}, member_context)
        assert _fields(result.errors) == ["email"]
        assert result.canonical_data["first_name"] == "Alice"
        assert result.canonical_data["daily_rate"] == Decimal("650")

    @pytest.mark.parametrize("rate,message", [
        ("0", "Daily rate must be a positive number"),
        ("-10", "Daily rate must be a positive number"),
        ("abc", "Daily rate must be a valid number"),
        ("450,50", "Daily rate must be a valid number"),
    ])
    def test_bad_daily_rate(self, member_row, member_context, rate, message):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Daily Rate": rate}, member_context)
        assert _messages(result.errors) == [message]

    def test_high_daily_rate_is_a_warning(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Daily Rate": "6,000"}, member_context)
        assert result.errors == []
        assert _fields(result.warnings) == ["daily_rate"]
        assert result.canonical_data["daily_rate"] == Decimal("6000")

    def test_currency_defaults_with_warning(self, member_row, member_context):
        row = {k: v for k, v in member_row.items() if k != "Currency"}
        result = _validate(TEAM_MEMBER_SCHEMA, row, member_context)
        assert result.canonical_data["currency"] == "GBP"
        assert _messages(result.warnings) == ["Currency not specified, defaulting to GBP"]

    def test_bad_currency(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Currency": "pounds"}, member_context)
        assert _messages(result.errors) == ["Currency must be a 3-letter code"]

    def test_status_defaults_with_warning(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Status": ""}, member_context)
        assert result.canonical_data["status"] == "active"
        assert _messages(result.warnings) == ["Status not specified, defaulting to active"]

    def test_status_alias_and_missing_end_date(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Status": "Leaver"}, member_context)
        assert result.errors == []
        assert result.canonical_data["status"] == "offboarded"
        assert _fields(result.warnings) == ["status", "end_date"]

    def test_unknown_status(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Status": "retired"}, member_context)
        assert _messages(result.errors) == ["Invalid status. Use: active, inactive, onboarding, offboarded"]

    def test_end_before_start(self, member_row, member_context):
        row = {**member_row, "End Date": "2024-12-31"}
        result = _validate(TEAM_MEMBER_SCHEMA, row, member_context)
        assert _messages(result.errors) == ["End date cannot be before start date"]

    def test_unknown_role(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Role": "Astronaut"}, member_context)
        assert _messages(result.errors) == ['Role "Astronaut" not found']

    def test_missing_role_uses_default(self, member_row, member_context):
        row = {k: v for k, v in member_row.items() if k != "Role"}
        result = _validate(TEAM_MEMBER_SCHEMA, row, member_context)
        assert result.errors == []
        assert result.canonical_data["role_id"] == 1

    def test_utilization_bounds(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "Utilisation": "120"}, member_context)
        assert _messages(result.errors) == ["Planned utilization cannot exceed 100"]

    def test_name_too_long(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, {**member_row, "First Name": "A" * 256}, member_context)
        assert _messages(result.errors) == ["First name must be at most 255 characters"]

    def test_extra_cells_are_a_row_error(self, member_row, member_context):
        result = _validate(TEAM_MEMBER_SCHEMA, member_row, member_context, extra_cells=["stray"])
        assert _fields(result.errors) == ["_row"]


# ---------------------------------------------------------------------------
# timesheet entries
# ---------------------------------------------------------------------------

@pytest.fixture
def timesheet_context():
    start, end = month_bounds(2025, 3)
    return ImportContext(
        vendor_id=1,
        vendor_name="Northwind Consulting",
        team_members=[
            MemberRef(id=1, first_name="Alice", last_name="Smith", email="alice.smith@acme.co.uk"),
            MemberRef(id=2, first_name="Bob", last_name="Jones", email="bob.jones@acme.co.uk"),
            MemberRef(id=3, first_name="Bobby", last_name="Jonesy", email="bobby@acme.co.uk"),
        ],
        period_start=start,
        period_end=end,
    )


def _timesheet(values, context):
    row = {"Team Member": "", "Date": "", "Hours": "", "Holiday Type": ""}
    row.update(values)
    return _validate(TIMESHEET_SCHEMA, row, context)


class TestTimesheetRow:
    def test_clean_hours_row(self, timesheet_context):
        result = _timesheet({"Team Member": "Alice Smith", "Date": "03/03/2025", "Hours": "8"}, timesheet_context)
        assert result.errors == []
        assert result.warnings == []
        assert result.canonical_data["team_member_id"] == 1
        assert result.canonical_data["date"] == date(2025, 3, 3)
        assert result.canonical_data["hours"] == Decimal("8")

    def test_reversed_name_is_exact(self, timesheet_context):
        result = _timesheet({"Team Member": "smith alice", "Date": "2025-03-03", "Hours": "8"}, timesheet_context)
        assert result.canonical_data["team_member_id"] == 1
        assert result.warnings == []

    def test_partial_name_warns(self, timesheet_context):
        result = _timesheet({"Team Member": "Alice", "Date": "2025-03-03", "Hours": "8"}, timesheet_context)
        assert result.canonical_data["team_member_id"] == 1
        assert _messages(result.warnings) == ['"Alice" matched to Alice Smith']

    def test_email_resolves_member(self, timesheet_context):
        result = _timesheet(
            {"Team Member": "bob.jones@acme.co.uk", "Date": "2025-03-03", "Hours": "8"}, timesheet_context
        )
        assert result.canonical_data["team_member_id"] == 2

    def test_ambiguous_name(self, timesheet_context):
        result = _timesheet({"Team Member": "Bob", "Date": "2025-03-03", "Hours": "8"}, timesheet_context)
        assert _fields(result.errors) == ["team_member_name"]
        assert "matches several team members" in result.errors[0].message

    def test_unknown_member(self, timesheet_context):
        result = _timesheet({"Team Member": "Carol King", "Date": "2025-03-03", "Hours": "8"}, timesheet_context)
        assert _messages(result.errors) == ['Team member "Carol King" not found under Northwind Consulting']

    def test_date_outside_period(self, timesheet_context):
        result = _timesheet({"Team Member": "Alice Smith", "Date": "2025-04-01", "Hours": "8"}, timesheet_context)
        assert _messages(result.errors) == ["Date must be within March 2025"]

    def test_needs_hours_or_time_off(self, timesheet_context):
        result = _timesheet({"Team Member": "Alice Smith", "Date": "2025-03-03"}, timesheet_context)
        assert _fields(result.errors) == ["hours/time_off_code"]

    def test_hours_bounds(self, timesheet_context):
        too_many = _timesheet({"Team Member": "Alice Smith", "Date": "2025-03-03", "Hours": "25"}, timesheet_context)
        long_day = _timesheet({"Team Member": "Alice Smith", "Date": "2025-03-03", "Hours": "13"}, timesheet_context)
        assert _messages(too_many.errors) == ["Hours cannot exceed 24"]
        assert long_day.errors == []
        assert _fields(long_day.warnings) == ["hours"]

    def test_time_off_alias_warns(self, timesheet_context):
        result = _timesheet(
            {"Team Member": "Alice Smith", "Date": "2025-03-04", "Holiday Type": "PTO"}, timesheet_context
        )
        assert result.errors == []
        assert result.canonical_data["time_off_code"] == "VAC"
        assert _messages(result.warnings) == ["Time off code 'PTO' interpreted as VAC"]

    def test_hours_on_full_day_off_warns(self, timesheet_context):
        result = _timesheet(
            {"Team Member": "Alice Smith", "Date": "2025-03-04", "Hours": "8", "Holiday Type": "SICK"},
            timesheet_context,
        )
        assert _messages(result.warnings) == ["Hours recorded on a full day of SICK"]

    def test_half_day_with_hours(self, timesheet_context):
        result = _timesheet(
            {"Team Member": "Alice Smith", "Date": "2025-03-04", "Hours": "4", "Holiday Type": "half"},
            timesheet_context,
        )
        assert result.errors == []
        assert result.warnings == []
        assert result.canonical_data["time_off_code"] == "HALF"


class TestFindTeamMember:
    def test_exact_mode_skips_partial(self, timesheet_context):
        candidates, how = find_team_member("Alice", timesheet_context.team_members, "exact")
        assert candidates == []
        assert how == "none"


class TestMonthBounds:
    def test_february_leap_year(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_bad_month(self):
        with pytest.raises(ImportContextError):
            month_bounds(2025, 13)
