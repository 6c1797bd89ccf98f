"""Vendor model - suppliers that team members are contracted through"""
import enum
from datetime import datetime
from sqlalchemy import String, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.vendor_tool.models.base import Base


class VendorStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Vendor(Base):
    __tablename__ = "vendors"
    
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[VendorStatus] = mapped_column(
        Enum(VendorStatus),
        nullable=False,
        default=VendorStatus.ACTIVE
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    
    team_members = relationship("TeamMember", back_populates="vendor")
