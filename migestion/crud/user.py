from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from migestion.crud.base import CRUDBase
from migestion.models.user import User


class CRUDUser(CRUDBase[User]):
    def get_with_tenant(self, db: Session, user_id: str) -> Optional[User]:
        return db.scalar(select(User).options(joinedload(User.tenant)).where(User.id == user_id))

    def get_by_email(self, db: Session, email: str, tenant_id: str) -> Optional[User]:
        return db.scalar(select(User).where(User.email == email, User.tenant_id == tenant_id))

    def get_by_email_across_tenants(self, db: Session, email: str) -> Optional[User]:
        """First match for the email over all tenants, oldest account first."""
        stmt = (
            select(User)
            .options(joinedload(User.tenant))
            .where(User.email == email)
            .order_by(User.created_at.asc(), User.id.asc())
            .limit(1)
        )
        return db.scalars(stmt).first()

    def touch_last_login(self, db: Session, user: User) -> User:
        user.last_login_at = datetime.now(timezone.utc)
        db.flush()
        return user

    def update_password_hash(self, db: Session, user: User, password_hash: str) -> User:
        user.password_hash = password_hash
        db.flush()
        return user


user_crud = CRUDUser(User)
