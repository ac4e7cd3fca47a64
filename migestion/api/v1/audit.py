from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from migestion.api.deps import get_db, get_settings
from migestion.core.roles import Role
from migestion.core.config import Settings
from migestion.core.context import RequestContext
from migestion.core.logging import get_logger
from migestion.core.rbac import require_exact_role, require_tenant_admin
from migestion.crud.audit import audit_crud
from migestion.schemas.audit import AuditAction, AuditEntity, AuditLogList, AuditLogOut, PurgeRequest, PurgeResult
from migestion.schemas.common import Envelope, page_meta

router = APIRouter()
logger = get_logger(__name__)


@router.get("", response_model=Envelope[AuditLogList])
def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    action: Optional[AuditAction] = None,
    entity: Optional[AuditEntity] = None,
    user_id: Optional[str] = Query(None, alias="userId"),
    ctx: RequestContext = Depends(require_tenant_admin),
    db: Session = Depends(get_db),
):
    rows, total = audit_crud.list_for_tenant(
        db, ctx.tenant_id, page=page, limit=limit, action=action, entity=entity, user_id=user_id
    )
    return Envelope(data=AuditLogList(
        items=[AuditLogOut.model_validate(r) for r in rows],
        meta=page_meta(page, limit, total),
    ))


@router.post("/purge", response_model=Envelope[PurgeResult])
def purge_audit_logs(
    body: PurgeRequest | None = None,
    ctx: RequestContext = Depends(require_exact_role(Role.OWNER)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    days = (body.retention_days if body else None) or settings.AUDIT_RETENTION_DAYS
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    deleted = audit_crud.delete_older_than(db, ctx.tenant_id, cutoff)
    db.commit()
    logger.info("audit_logs_purged", tenant_id=ctx.tenant_id, deleted=deleted, retention_days=days)
    return Envelope(data=PurgeResult(deleted_count=deleted, retention_days=days))
