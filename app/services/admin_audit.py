from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.core.request_context import get_request_id
from app.models.admin_audit_log import AdminAuditLog
from app.models.admin_user import AdminUser

logger = logging.getLogger(__name__)

ACTION_LOGIN_SUCCESS = "login_success"
ACTION_LOGIN_FAILED = "login_failed"
ACTION_LOGIN_LOCKED = "login_locked"
ACTION_SIGNUP = "signup"
ACTION_COUPON_CREATED = "coupon_created"
ACTION_COUPON_STATUS_CHANGED = "coupon_status_changed"
ACTION_COUPON_DELETED = "coupon_deleted"

MAX_AUDIT_PAGE = 500


def log_admin_action(
    db: Session,
    *,
    user_id: int,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> AdminAuditLog:
    """Stage an audit row tagged with the current request id; the caller commits."""
    entry = AdminAuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=json.dumps(dict(meta), default=str, sort_keys=True) if meta else None,
        request_id=get_request_id(),
    )
    db.add(entry)
    logger.info("[AUDIT] action=%s user_id=%s entity=%s:%s", action, user_id, entity_type, entity_id)
    return entry


def _decode_meta(raw: Optional[str]) -> Optional[dict[str, Any]]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {"raw": raw}


def list_audit_entries(
    db: Session,
    *,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    limit: int = 200,
) -> list[dict[str, Any]]:
    """Newest-first audit rows joined with the acting admin's email (null once the admin is gone)."""
    query = db.query(AdminAuditLog, AdminUser.email).outerjoin(AdminUser, AdminUser.id == AdminAuditLog.user_id)
    if action:
        query = query.filter(AdminAuditLog.action == action)
    if entity_type:
        query = query.filter(AdminAuditLog.entity_type == entity_type)

    rows = (
        query.order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc())
        .limit(min(limit, MAX_AUDIT_PAGE))
        .all()
    )
    return [
        {
            "id": entry.id,
            "user_id": entry.user_id,
            "user_email": email,
            "action": entry.action,
            "entity_type": entry.entity_type,
            "entity_id": entry.entity_id,
            "meta": _decode_meta(entry.meta_json),
            "request_id": entry.request_id,
            "created_at": entry.created_at,
        }
        for entry, email in rows
    ]
