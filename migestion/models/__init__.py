# Loads every model module so the tables register on Base.metadata.
from migestion.models.tenant import Tenant, TenantStatus  # noqa: F401
from migestion.models.user import User, UserStatus  # noqa: F401
from migestion.models.refresh_token import RefreshToken  # noqa: F401
from migestion.models.audit import AuditLog  # noqa: F401

__all__ = ["Tenant", "TenantStatus", "User", "UserStatus", "RefreshToken", "AuditLog"]
