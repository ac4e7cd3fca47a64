from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from migestion.core.roles import Role
from migestion.crud.base import CRUDBase
from migestion.models.tenant import Tenant, TenantStatus
from migestion.models.user import User, UserStatus


class CRUDTenant(CRUDBase[Tenant]):
    def get_by_slug(self, db: Session, slug: str) -> Optional[Tenant]:
        return db.scalar(select(Tenant).where(Tenant.slug == slug))

    def create_with_owner(
        self,
        db: Session,
        *,
        tenant_name: str,
        tenant_slug: str,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
    ) -> Tuple[Tenant, User]:
        """Create a tenant and its owner in one transaction.

        Either both rows are committed or neither is; on any failure the
        session is rolled back and the error re-raised.
        """
        try:
            tenant = self.create(db, {
                "name": tenant_name,
                "slug": tenant_slug,
                "status": TenantStatus.ACTIVE.value,
                "settings": {},
            })
            owner = User(
                tenant_id=tenant.id,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                role=Role.OWNER.value,
                status=UserStatus.ACTIVE.value,
            )
            db.add(owner)
            db.flush()
            db.commit()
        except Exception:
            db.rollback()
            raise
        return tenant, owner


tenant_crud = CRUDTenant(Tenant)
