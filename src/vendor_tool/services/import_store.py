"""Store access for imports: scoping context, duplicate index, row writers"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.vendor_tool.config import get_settings
from src.vendor_tool.models.role import Role
from src.vendor_tool.models.team_member import TeamMember, TeamMemberStatus
from src.vendor_tool.models.timesheet_entry import TimesheetEntry, TimeOffCode
from src.vendor_tool.models.vendor import Vendor
from src.vendor_tool.services.duplicate_detector import StoreIndex, StoredRecord
from src.vendor_tool.services.import_errors import ImportContextError, ImportRowError
from src.vendor_tool.services.import_rules import (
    TEAM_MEMBERS,
    TIMESHEET_ENTRIES,
    EntitySchema,
    ImportContext,
    MemberRef,
    month_bounds,
)

logger = logging.getLogger(__name__)


def load_import_context(
    db: Session,
    schema: EntitySchema,
    vendor_id: Optional[int],
    month: Optional[int] = None,
    year: Optional[int] = None,
    name_match_mode: Optional[str] = None
) -> ImportContext:
    if vendor_id is None:
        raise ImportContextError("vendor_id is required")

    vendor = db.get(Vendor, vendor_id)
    if not vendor:
        raise ImportContextError(f"Vendor {vendor_id} not found")

    settings = get_settings()
    context = ImportContext(
        vendor_id=vendor.id,
        vendor_name=vendor.name,
        default_currency=settings.DEFAULT_CURRENCY,
        name_match_mode=name_match_mode or settings.IMPORT_NAME_MATCH_MODE,
    )

    if schema.entity_type == TEAM_MEMBERS:
        roles = db.execute(select(Role).order_by(Role.id)).scalars().all()
        context.roles = {role.name.lower(): role.id for role in roles}
        context.default_role_id = roles[0].id if roles else None

    if schema.requires_period:
        if month is None or year is None:
            raise ImportContextError(f"month and year are required for {schema.label} imports")
        context.period_start, context.period_end = month_bounds(year, month)

    if schema.entity_type == TIMESHEET_ENTRIES:
        members = db.execute(
            select(TeamMember)
            .where(TeamMember.vendor_id == vendor.id)
            .order_by(TeamMember.id)
        ).scalars().all()
        context.team_members = [
            MemberRef(id=m.id, first_name=m.first_name, last_name=m.last_name, email=m.email)
            for m in members
        ]

    return context


def build_store_index(db: Session, schema: EntitySchema, context: ImportContext) -> StoreIndex:
    """Load every record an upload could collide with, in one query."""
    if schema.entity_type == TEAM_MEMBERS:
        members = db.execute(
            select(TeamMember).where(TeamMember.vendor_id == context.vendor_id)
        ).scalars().all()
        index = StoreIndex(
            StoredRecord(id=m.id, email=m.email, name=m.full_name)
            for m in members
        )
    elif schema.entity_type == TIMESHEET_ENTRIES:
        rows = db.execute(
            select(TimesheetEntry.id, TimesheetEntry.team_member_id, TimesheetEntry.entry_date, TeamMember.email)
            .join(TeamMember, TeamMember.id == TimesheetEntry.team_member_id)
            .where(
                TeamMember.vendor_id == context.vendor_id,
                TimesheetEntry.entry_date >= context.period_start,
                TimesheetEntry.entry_date <= context.period_end,
            )
        ).all()
        index = StoreIndex(
            StoredRecord(id=entry_id, email=email, key=f"{member_id}:{entry_date.isoformat()}")
            for entry_id, member_id, entry_date, email in rows
        )
    else:
        raise ImportContextError(f"No store index for '{schema.entity_type}'")

    logger.debug(f"Built {schema.entity_type} lookup index for {context.scope_key}: {len(index)} keys")
    return index


class TeamMemberWriter:
    def __init__(self, context: ImportContext):
        self.context = context

    def _role_id(self, db: Session, data: Dict[str, Any]) -> int:
        role_id = data.get("role_id")
        if role_id is None or db.get(Role, role_id) is None:
            raise ImportRowError(f'Role "{data.get("role_name") or role_id}" not found')
        return role_id

    def _apply(self, member: TeamMember, data: Dict[str, Any], role_id: int) -> None:
        member.first_name = data["first_name"]
        member.last_name = data["last_name"]
        member.vendor_id = self.context.vendor_id
        member.role_id = role_id
        member.daily_rate = data["daily_rate"]
        member.currency = data.get("currency") or self.context.default_currency
        member.start_date = data["start_date"]
        member.end_date = data.get("end_date")
        member.status = TeamMemberStatus(data.get("status") or TeamMemberStatus.ACTIVE.value)
        member.planned_utilization = data.get("planned_utilization")

    def create(self, db: Session, data: Dict[str, Any]) -> int:
        role_id = self._role_id(db, data)
        member = TeamMember(email=data["email"])
        self._apply(member, data, role_id)
        db.add(member)
        db.flush()
        return member.id

    def update(self, db: Session, record_id: int, data: Dict[str, Any]) -> int:
        member = db.get(TeamMember, record_id)
        if member is None:
            raise ImportRowError(f"Team member {record_id} no longer exists")
        self._apply(member, data, self._role_id(db, data))
        db.flush()
        return member.id


class TimesheetWriter:
    def __init__(self, context: ImportContext):
        self.context = context

    @staticmethod
    def _time_off(data: Dict[str, Any]) -> Optional[TimeOffCode]:
        code = data.get("time_off_code")
        return TimeOffCode(code) if code else None

    def create(self, db: Session, data: Dict[str, Any]) -> int:
        entry = TimesheetEntry(
            team_member_id=data["team_member_id"],
            entry_date=data["date"],
            hours=data.get("hours"),
            time_off_code=self._time_off(data),
        )
        db.add(entry)
        db.flush()
        return entry.id

    def update(self, db: Session, record_id: int, data: Dict[str, Any]) -> int:
        entry = db.get(TimesheetEntry, record_id)
        if entry is None:
            raise ImportRowError(f"Timesheet entry {record_id} no longer exists")
        entry.hours = data.get("hours")
        entry.time_off_code = self._time_off(data)
        db.flush()
        return entry.id


WRITERS = {
    TEAM_MEMBERS: TeamMemberWriter,
    TIMESHEET_ENTRIES: TimesheetWriter,
}


def get_writer(schema: EntitySchema, context: ImportContext):
    return WRITERS[schema.entity_type](context)
