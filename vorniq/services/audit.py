import json
import logging
from fastapi import Request
from sqlalchemy.orm import Session
from vorniq.models.models import AuditLog, AuditSeverity, User

logger = logging.getLogger(__name__)


def record_audit(db: Session, user: User | None, action: str, resource: str,
                 resource_id=None, details=None, severity: AuditSeverity = AuditSeverity.LOW,
                 category: str = "data", request: Request | None = None) -> AuditLog:
    """Stage an audit row in the caller's transaction; the caller commits."""
    entry = AuditLog(
        user_id=user.id if user else None,
        user_email=user.email if user else None,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=json.dumps(details, default=str) if isinstance(details, (dict, list)) else details,
        severity=severity,
        category=category,
        ip_address=request.client.host if request and request.client else None,
        user_agent=request.headers.get("user-agent") if request else None,
    )
    db.add(entry)
    logger.info("audit %s %s/%s by %s", action, resource, resource_id, user.email if user else "anonymous")
    return entry
