from dataclasses import replace
from typing import Optional

from fastapi import Depends, Header

from migestion.api.deps import authenticate
from migestion.core.context import RequestContext
from migestion.core.errors import TenantMismatchError, UnauthorizedError


def ensure_tenant(ctx: RequestContext) -> RequestContext:
    """The single check that keeps a request inside its caller's tenant."""
    if not ctx.tenant_id:
        raise UnauthorizedError("Tenant context required")
    if ctx.identity is not None and ctx.identity.tenant_id != ctx.tenant_id:
        raise TenantMismatchError()
    return ctx


def require_tenant(
    ctx: RequestContext = Depends(authenticate),
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
) -> RequestContext:
    # an explicitly claimed tenant replaces the token's and must match it
    if x_tenant_id is not None:
        ctx = replace(ctx, tenant_id=x_tenant_id.strip())
    return ensure_tenant(ctx)
