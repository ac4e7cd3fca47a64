from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from migestion.schemas.common import CamelModel, PageMeta

AuditAction = Literal["create", "update", "delete", "login", "logout", "export", "import", "assign", "unassign"]
AuditEntity = Literal["user", "client", "interaction", "segment", "notification", "tenant", "session"]


class AuditLogOut(CamelModel):
    id: str
    user_id: Optional[str] = None
    action: str
    entity: str
    entity_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class AuditLogList(CamelModel):
    items: List[AuditLogOut]
    meta: PageMeta


class PurgeRequest(CamelModel):
    retention_days: Optional[int] = Field(default=None, ge=1)


class PurgeResult(CamelModel):
    deleted_count: int
    retention_days: int
