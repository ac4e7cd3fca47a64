from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from migestion.crud.base import CRUDBase, as_utc
from migestion.models.refresh_token import RefreshToken


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CRUDRefreshToken(CRUDBase[RefreshToken]):
    def get_by_hash(self, db: Session, token_hash: str) -> Optional[RefreshToken]:
        return db.scalar(select(RefreshToken).where(RefreshToken.token_hash == token_hash))

    def is_usable(self, row: Optional[RefreshToken], now: Optional[datetime] = None) -> bool:
        """Valid iff present, never revoked, and not past its stored expiry."""
        if row is None or row.revoked_at is not None:
            return False
        return (now or _now()) < as_utc(row.expires_at)

    def revoke(self, db: Session, token_hash: str) -> int:
        result = db.execute(
            update(RefreshToken)
            .where(RefreshToken.token_hash == token_hash, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=_now())
        )
        return result.rowcount or 0

    def revoke_all_for_user(self, db: Session, user_id: str) -> int:
        result = db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=_now())
        )
        return result.rowcount or 0

    def _stale(self, now: Optional[datetime]):
        return or_(RefreshToken.expires_at < (now or _now()), RefreshToken.revoked_at.is_not(None))

    def count_expired_or_revoked(self, db: Session, now: Optional[datetime] = None) -> int:
        return db.scalar(select(func.count(RefreshToken.id)).where(self._stale(now))) or 0

    def delete_expired_or_revoked(self, db: Session, now: Optional[datetime] = None) -> int:
        result = db.execute(delete(RefreshToken).where(self._stale(now)))
        return result.rowcount or 0


refresh_token_crud = CRUDRefreshToken(RefreshToken)
