from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from migestion.crud.base import CRUDBase
from migestion.models.audit import AuditLog


class CRUDAudit(CRUDBase[AuditLog]):
    def list_for_tenant(
        self,
        db: Session,
        tenant_id: str,
        *,
        page: int = 1,
        limit: int = 20,
        action: Optional[str] = None,
        entity: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Tuple[List[AuditLog], int]:
        filters = [AuditLog.tenant_id == tenant_id]
        if action:
            filters.append(AuditLog.action == action)
        if entity:
            filters.append(AuditLog.entity == entity)
        if user_id:
            filters.append(AuditLog.user_id == user_id)

        total = db.scalar(select(func.count()).select_from(AuditLog).where(*filters)) or 0
        rows = db.scalars(
            select(AuditLog)
            .where(*filters)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(rows), total

    def delete_older_than(self, db: Session, tenant_id: str, cutoff: datetime) -> int:
        result = db.execute(
            delete(AuditLog).where(AuditLog.tenant_id == tenant_id, AuditLog.created_at < cutoff)
        )
        return result.rowcount or 0


audit_crud = CRUDAudit(AuditLog)
