# migestion/db/init_db.py
import os
from typing import Optional

from sqlalchemy.orm import Session

from migestion.core.logging import get_logger
from migestion.core.security_password import PasswordHasher
from migestion.crud.tenant import tenant_crud
from migestion.models.tenant import Tenant

DEMO_SLUG = "demo"
DEMO_OWNER_EMAIL = "owner@demo.migestion.app"

logger = get_logger(__name__)


def init_db(db: Session, hasher: PasswordHasher) -> Optional[Tenant]:
    """Seed a demo tenant with its owner. Does nothing when it already exists."""
    if tenant_crud.get_by_slug(db, DEMO_SLUG):
        return None

    tenant, _ = tenant_crud.create_with_owner(
        db,
        tenant_name="Demo Company",
        tenant_slug=DEMO_SLUG,
        email=DEMO_OWNER_EMAIL,
        password_hash=hasher.hash(os.getenv("DEMO_OWNER_PASSWORD", "Demo12345")),
        first_name="Demo",
        last_name="Owner",
    )
    logger.info("demo_tenant_seeded", tenant_id=tenant.id)
    return tenant
