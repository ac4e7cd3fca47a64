from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from migestion.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CRUDBase(Generic[ModelType]):
    """Per-model data access. Methods flush but never commit; the caller owns the transaction."""

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return db.get(self.model, id)

    def create(self, db: Session, data: Dict[str, Any]) -> ModelType:
        obj = self.model(**data)
        db.add(obj)
        db.flush()
        return obj
