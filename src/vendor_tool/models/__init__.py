"""Database models"""
from src.vendor_tool.models.base import Base
from src.vendor_tool.models.user import User
from src.vendor_tool.models.vendor import Vendor
from src.vendor_tool.models.role import Role
from src.vendor_tool.models.team_member import TeamMember
from src.vendor_tool.models.timesheet_entry import TimesheetEntry
from src.vendor_tool.models.audit_log import AuditLog

__all__ = ["Base", "User", "Vendor", "Role", "TeamMember", "TimesheetEntry", "AuditLog"]
