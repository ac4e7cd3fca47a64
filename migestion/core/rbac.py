# migestion/core/rbac.py
from typing import Callable

from fastapi import Depends

from migestion.core.roles import TENANT_ADMIN_ROLES, Role, is_exactly, satisfies_any
from migestion.core.context import RequestContext
from migestion.core.errors import ForbiddenError, InsufficientPermissionsError
from migestion.core.tenancy import require_tenant


def _identity_role(ctx: RequestContext) -> str:
    if ctx.identity is None:
        raise ForbiddenError("Authentication required")
    return ctx.identity.role


def check_authorized(ctx: RequestContext, *roles: Role) -> RequestContext:
    if not satisfies_any(_identity_role(ctx), roles):
        raise InsufficientPermissionsError()
    return ctx


def check_exact_role(ctx: RequestContext, *roles: Role) -> RequestContext:
    if not is_exactly(_identity_role(ctx), roles):
        raise ForbiddenError("This action requires a specific role")
    return ctx


def authorize(*roles: Role) -> Callable[..., RequestContext]:
    """
    Use: Depends(authorize(Role.MANAGER))
    Admits the listed roles and everything above them in the hierarchy.
    """
    def dep(ctx: RequestContext = Depends(require_tenant)) -> RequestContext:
        return check_authorized(ctx, *roles)
    return dep


def require_exact_role(*roles: Role) -> Callable[..., RequestContext]:
    """
    Use: Depends(require_exact_role(Role.OWNER))
    Hierarchy is ignored: only the listed roles pass.
    """
    def dep(ctx: RequestContext = Depends(require_tenant)) -> RequestContext:
        return check_exact_role(ctx, *roles)
    return dep


def require_tenant_admin(ctx: RequestContext = Depends(require_tenant)) -> RequestContext:
    if not is_exactly(_identity_role(ctx), TENANT_ADMIN_ROLES):
        raise ForbiddenError("Admin access required")
    return ctx
