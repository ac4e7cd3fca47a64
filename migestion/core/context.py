from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from migestion.schemas.token import AccessClaims


@dataclass(frozen=True)
class RequestContext:
    """Who is calling and which tenant the request acts in.

    ``identity`` comes from a verified access token and is ``None`` for
    anonymous callers. ``tenant_id`` is the tenant the request claims to act
    in; ``require_tenant`` checks the two agree.
    """

    identity: Optional[AccessClaims] = None
    tenant_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @classmethod
    def anonymous(cls) -> "RequestContext":
        return cls()

    @classmethod
    def for_identity(cls, identity: AccessClaims) -> "RequestContext":
        return cls(identity=identity, tenant_id=identity.tenant_id)
