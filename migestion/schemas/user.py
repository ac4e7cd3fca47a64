# migestion/schemas/user.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from migestion.schemas.common import CamelModel


class UserOut(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    status: str
    avatar_url: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime


class TenantOut(CamelModel):
    id: str
    name: str
    slug: str
    status: str
    created_at: datetime


class IdentityOut(CamelModel):
    user_id: str
    tenant_id: str
    email: str
    role: str
