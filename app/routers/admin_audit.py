from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.deps import require_admin
from app.models.admin_user import AdminUser
from app.schemas.admin import AdminAuditRead
from app.services.admin_audit import MAX_AUDIT_PAGE, list_audit_entries

router = APIRouter(prefix="/api/admin/audit", tags=["admin-audit"])


@router.get("", response_model=List[AdminAuditRead])
def list_audit_logs(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    limit: int = Query(200, ge=1, le=MAX_AUDIT_PAGE),
    _user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return list_audit_entries(db, action=action, entity_type=entity_type, limit=limit)
