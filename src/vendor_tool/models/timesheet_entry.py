"""TimesheetEntry model - one day of hours or time off for a team member"""
import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import Date, DateTime, Enum, ForeignKey, Numeric, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.vendor_tool.models.base import Base


class TimeOffCode(str, enum.Enum):
    VAC = "VAC"
    HALF = "HALF"
    SICK = "SICK"
    MAT = "MAT"
    CAS = "CAS"
    UNPAID = "UNPAID"


class TimesheetEntry(Base):
    __tablename__ = "timesheet_entries"
    __table_args__ = (
        UniqueConstraint("team_member_id", "date", name="uq_timesheet_entries_member_date"),
    )
    
    id: Mapped[int] = mapped_column(primary_key=True)
    team_member_id: Mapped[int] = mapped_column(ForeignKey("team_members.id"), nullable=False, index=True)
    entry_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(4, 2), nullable=True)
    time_off_code: Mapped[Optional[TimeOffCode]] = mapped_column(Enum(TimeOffCode), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
    
    team_member = relationship("TeamMember")
