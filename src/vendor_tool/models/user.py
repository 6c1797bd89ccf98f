"""User model for identifying who runs an import"""
import enum
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column

from src.vendor_tool.models.base import Base


class PermissionLevel(str, enum.Enum):
    DENIED = "denied"
    VIEW = "view"
    WRITE = "write"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"
    
    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    permission_level: Mapped[PermissionLevel] = mapped_column(
        Enum(PermissionLevel),
        nullable=False,
        default=PermissionLevel.VIEW
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    
    @property
    def can_write(self) -> bool:
        return self.permission_level in (PermissionLevel.WRITE, PermissionLevel.ADMIN)
