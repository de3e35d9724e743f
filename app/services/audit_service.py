import json
import logging
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.audit_log import AuditAction, AuditLog

logger = logging.getLogger(__name__)


def _client_details(request: Request | None) -> tuple[str | None, str | None]:
    if request is None:
        return None, None
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent", "")[:500]


def log_action(
    db: Session,
    *,
    user_id: int | None,
    action: AuditAction,
    resource_type: str,
    resource_id: int | None = None,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> None:
    """Record who changed which note, staged in the caller's session.

    The row is flushed inside its own SAVEPOINT, so a rejected audit row
    is rolled back alone and the note change still commits with the caller.
    """
    if not settings.audit_log_enabled:
        return
    ip_address, user_agent = _client_details(request)
    entry = AuditLog(
        user_id=user_id,
        action=action.value,
        resource_type=resource_type,
        resource_id=resource_id,
        details=json.dumps(details) if details else None,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    try:
        with db.begin_nested():
            db.add(entry)
            db.flush()
    except Exception:
        logger.warning(
            f"Audit entry dropped | action={action.value} | {resource_type}={resource_id}",
            exc_info=True,
        )
