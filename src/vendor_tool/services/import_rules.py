"""Per-entity import rule sets.

Each importable entity type is described by an ``EntitySchema``: the fields
it accepts (with header aliases and coercion rules), which headers are
required, cross-field rules, how to derive a row's identity for duplicate
detection, and the template header row. The pipeline itself is entity
agnostic and only ever reads these objects.
"""
import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from src.vendor_tool.models.team_member import TeamMemberStatus
from src.vendor_tool.models.timesheet_entry import TimeOffCode
from src.vendor_tool.schemas.csv_import import FieldIssue
from src.vendor_tool.services.csv_normalizer import name_key, names_match, normalize_email
from src.vendor_tool.services.import_errors import ImportContextError

TEAM_MEMBERS = "team-members"
TIMESHEET_ENTRIES = "timesheet-entries"


@dataclass
class MemberRef:
    id: int
    first_name: str
    last_name: str
    email: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def reversed_name(self) -> str:
        return f"{self.last_name} {self.first_name}"


@dataclass
class ImportContext:
    vendor_id: int
    vendor_name: str = ""
    roles: Dict[str, int] = field(default_factory=dict)
    default_role_id: Optional[int] = None
    team_members: List[MemberRef] = field(default_factory=list)
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    default_currency: str = "GBP"
    name_match_mode: str = "fuzzy"

    @property
    def scope_key(self) -> str:
        return f"vendor:{self.vendor_id}"


@dataclass(frozen=True)
class Identity:
    key: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    contact_email: Optional[str] = None

    @property
    def file_key(self) -> Optional[str]:
        return self.key or self.email


@dataclass(frozen=True)
class FieldSpec:
    key: str
    label: str
    kind: str = "string"
    aliases: Tuple[str, ...] = ()
    required: bool = False
    max_length: Optional[int] = None
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None
    positive: bool = False
    warn_above: Optional[Decimal] = None
    choices: Tuple[str, ...] = ()
    choice_aliases: Mapping[str, str] = field(default_factory=dict)
    choice_case: str = "lower"
    default: Optional[Callable[["ImportContext"], Any]] = None
    default_warning: Optional[str] = None


CrossRule = Callable[[Dict[str, Any], Dict[str, str], ImportContext, List[FieldIssue], List[FieldIssue]], None]


@dataclass(frozen=True)
class EntitySchema:
    entity_type: str
    label: str
    fields: Tuple[FieldSpec, ...]
    identity: Callable[[Dict[str, Any]], Identity]
    required_any: Tuple[Tuple[str, ...], ...] = ()
    cross_rules: Tuple[CrossRule, ...] = ()
    requires_period: bool = False
    template_filename: str = "import-template.csv"

    @property
    def expected_headers(self) -> List[str]:
        return [spec.key for spec in self.fields]

    @property
    def required_headers(self) -> List[str]:
        return [spec.key for spec in self.fields if spec.required]

    def get_field(self, key: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.key == key:
                return spec
        return None


# ---------------------------------------------------------------------------
# team members
# ---------------------------------------------------------------------------

TEAM_MEMBER_STATUS_ALIASES = {
    "current": "active",
    "enabled": "active",
    "disabled": "inactive",
    "onboard": "onboarding",
    "starting": "onboarding",
    "left": "offboarded",
    "leaver": "offboarded",
    "offboard": "offboarded",
}


def _check_end_after_start(data, values, context, errors, warnings):
    start, end = data.get("start_date"), data.get("end_date")
    if start and end and end < start:
        errors.append(FieldIssue(
            field="end_date",
            message="End date cannot be before start date",
            value=values.get("end_date"),
        ))


def _resolve_role(data, values, context, errors, warnings):
    role_name = data.get("role_name")
    if role_name:
        role_id = context.roles.get(role_name.lower())
        if role_id is None:
            errors.append(FieldIssue(
                field="role_name",
                message=f'Role "{role_name}" not found',
                value=values.get("role_name"),
            ))
            return
        data["role_id"] = role_id
    elif context.default_role_id is not None:
        data["role_id"] = context.default_role_id
    else:
        errors.append(FieldIssue(field="role_name", message="No roles are configured; role_name is required"))


def _check_offboarded_end_date(data, values, context, errors, warnings):
    if data.get("status") == TeamMemberStatus.OFFBOARDED.value and not data.get("end_date"):
        warnings.append(FieldIssue(field="end_date", message="Offboarded team member has no end date"))


def _team_member_identity(data: Dict[str, Any]) -> Identity:
    email = data.get("email")
    first, last = data.get("first_name"), data.get("last_name")
    name = f"{first} {last}" if first and last else None
    return Identity(email=email, name=name, contact_email=email)


TEAM_MEMBER_SCHEMA = EntitySchema(
    entity_type=TEAM_MEMBERS,
    label="team members",
    fields=(
        FieldSpec("first_name", "First name", aliases=("first name", "given name", "forename"),
                  required=True, max_length=255),
        FieldSpec("last_name", "Last name", aliases=("last name", "surname", "family name"),
                  required=True, max_length=255),
        FieldSpec("email", "Email", kind="email", aliases=("e-mail", "email address", "mail"),
                  required=True, max_length=255),
        FieldSpec("role_name", "Role", aliases=("role", "role name", "position", "title", "job title"),
                  max_length=255),
        FieldSpec("daily_rate", "Daily rate", kind="decimal", aliases=("daily rate", "day rate", "rate per day"),
                  required=True, positive=True, max_value=Decimal("9999999999.99"),
                  warn_above=Decimal("5000")),
        FieldSpec("currency", "Currency", kind="currency", aliases=("currency code", "ccy"),
                  default=lambda ctx: ctx.default_currency,
                  default_warning="Currency not specified, defaulting to {value}"),
        FieldSpec("start_date", "Start date", kind="date", aliases=("start date", "start", "join date", "joined"),
                  required=True),
        FieldSpec("end_date", "End date", kind="date", aliases=("end date", "end", "leave date")),
        FieldSpec("status", "Status", kind="choice", aliases=("member status",),
                  choices=tuple(s.value for s in TeamMemberStatus),
                  choice_aliases=TEAM_MEMBER_STATUS_ALIASES,
                  default=lambda ctx: TeamMemberStatus.ACTIVE.value,
                  default_warning="Status not specified, defaulting to {value}"),
        FieldSpec("planned_utilization", "Planned utilization", kind="decimal",
                  aliases=("planned utilization", "planned utilisation", "utilization", "utilisation",
                           "target utilization"),
                  min_value=Decimal("0"), max_value=Decimal("100")),
    ),
    identity=_team_member_identity,
    cross_rules=(_check_end_after_start, _resolve_role, _check_offboarded_end_date),
    template_filename="team-members-import-template.csv",
)


# ---------------------------------------------------------------------------
# timesheet entries
# ---------------------------------------------------------------------------

TIME_OFF_ALIASES = {
    "VACATION": "VAC",
    "HOLIDAY": "VAC",
    "PTO": "VAC",
    "ANNUAL": "VAC",
    "ANNUAL_LEAVE": "VAC",
    "SICK_LEAVE": "SICK",
    "ILLNESS": "SICK",
    "MATERNITY": "MAT",
    "MAT_LEAVE": "MAT",
    "CASUAL": "CAS",
    "CASUAL_LEAVE": "CAS",
    "UNPAID_LEAVE": "UNPAID",
    "HALF_DAY": "HALF",
}


def find_team_member(name: str, members: List[MemberRef], mode: str = "fuzzy") -> Tuple[List[MemberRef], str]:
    """Resolve free-text name (or email) to team members.

    Returns the candidates and how they were found: ``exact``, ``partial``,
    ``email`` or ``none``. More than one candidate means the name is ambiguous.
    """
    target = name_key(name)
    if not target:
        return [], "none"

    exact = [m for m in members if target in (name_key(m.full_name), name_key(m.reversed_name))]
    if exact:
        return exact, "exact"

    if mode == "fuzzy":
        partial = [
            m for m in members
            if names_match(target, m.full_name) or names_match(target, m.reversed_name)
        ]
        if partial:
            return partial, "partial"

    email = normalize_email(name)
    by_email = [m for m in members if m.email.lower() == email]
    if by_email:
        return by_email, "email"

    return [], "none"


def _resolve_team_member(data, values, context, errors, warnings):
    name = data.get("team_member_name")
    if not name:
        return
    mode = "exact" if context.name_match_mode == "exact" else "fuzzy"
    candidates, how = find_team_member(name, context.team_members, mode)

    if not candidates:
        vendor = context.vendor_name or "the selected vendor"
        errors.append(FieldIssue(
            field="team_member_name",
            message=f'Team member "{name}" not found under {vendor}',
            value=values.get("team_member_name"),
        ))
        return

    if len(candidates) > 1:
        names = ", ".join(m.full_name for m in candidates)
        errors.append(FieldIssue(
            field="team_member_name",
            message=f'"{name}" matches several team members: {names}',
            value=values.get("team_member_name"),
        ))
        return

    member = candidates[0]
    data["team_member_id"] = member.id
    data["team_member_email"] = member.email
    if how == "partial":
        warnings.append(FieldIssue(
            field="team_member_name",
            message=f'"{name}" matched to {member.full_name}',
            value=values.get("team_member_name"),
        ))


def _check_date_in_period(data, values, context, errors, warnings):
    entry_date = data.get("date")
    if not entry_date or not context.period_start or not context.period_end:
        return
    if entry_date < context.period_start or entry_date > context.period_end:
        period = f"{calendar.month_name[context.period_start.month]} {context.period_start.year}"
        errors.append(FieldIssue(
            field="date",
            message=f"Date must be within {period}",
            value=values.get("date"),
        ))


def _check_hours_or_time_off(data, values, context, errors, warnings):
    if not values.get("hours") and not values.get("time_off_code"):
        errors.append(FieldIssue(
            field="hours/time_off_code",
            message="Either hours or time off code must be provided",
        ))
        return
    code = data.get("time_off_code")
    hours = data.get("hours")
    if code and code != TimeOffCode.HALF.value and hours:
        warnings.append(FieldIssue(
            field="hours",
            message=f"Hours recorded on a full day of {code}",
            value=values.get("hours"),
        ))


def _timesheet_identity(data: Dict[str, Any]) -> Identity:
    member_id, entry_date = data.get("team_member_id"), data.get("date")
    key = f"{member_id}:{entry_date.isoformat()}" if member_id and entry_date else None
    return Identity(key=key, contact_email=data.get("team_member_email"))


TIMESHEET_SCHEMA = EntitySchema(
    entity_type=TIMESHEET_ENTRIES,
    label="timesheet entries",
    fields=(
        FieldSpec("team_member_name", "Team member",
                  aliases=("team member name", "team member", "member", "name", "full name", "employee",
                           "resource"),
                  required=True, max_length=255),
        FieldSpec("date", "Date", kind="date", aliases=("entry date", "work date", "day"), required=True),
        FieldSpec("hours", "Hours", kind="decimal", aliases=("hours worked", "hrs", "hour"),
                  min_value=Decimal("0"), max_value=Decimal("24"), warn_above=Decimal("12")),
        FieldSpec("time_off_code", "Time off code", kind="choice",
                  aliases=("holiday type", "holiday", "time off", "time off code", "absence", "leave type",
                           "leave"),
                  choices=tuple(c.value for c in TimeOffCode),
                  choice_aliases=TIME_OFF_ALIASES,
                  choice_case="upper"),
    ),
    identity=_timesheet_identity,
    required_any=(("hours", "time_off_code"),),
    cross_rules=(_resolve_team_member, _check_date_in_period, _check_hours_or_time_off),
    requires_period=True,
    template_filename="timesheet-import-template.csv",
)


ENTITY_SCHEMAS: Dict[str, EntitySchema] = {
    TEAM_MEMBERS: TEAM_MEMBER_SCHEMA,
    TIMESHEET_ENTRIES: TIMESHEET_SCHEMA,
}


def get_schema(entity_type: str) -> EntitySchema:
    try:
        return ENTITY_SCHEMAS[entity_type]
    except KeyError:
        raise ImportContextError(
            f"Unsupported import type '{entity_type}'. Use one of: {', '.join(ENTITY_SCHEMAS)}"
        ) from None


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    if not 1 <= month <= 12:
        raise ImportContextError("month must be between 1 and 12")
    if not 2000 <= year <= 2100:
        raise ImportContextError("year must be between 2000 and 2100")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
