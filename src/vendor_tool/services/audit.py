"""Audit logging service"""
import json
from typing import Optional
from sqlalchemy.orm import Session

from src.vendor_tool.models.audit_log import AuditLog
from src.vendor_tool.models.user import User


def log_action(
    db: Session,
    actor: User,
    action: str,
    target_type: str,
    target_id: Optional[int] = None,
    meta: Optional[dict] = None,
    import_session_id: Optional[str] = None
) -> AuditLog:
    audit_log = AuditLog(
        actor_user_id=actor.id,
        actor_permission_snapshot=actor.permission_level.value,
        action=action,
        target_type=target_type,
        target_id=target_id,
        import_session_id=import_session_id,
        meta_json=json.dumps(meta, default=str) if meta else None
    )
    db.add(audit_log)
    db.commit()
    db.refresh(audit_log)
    return audit_log
