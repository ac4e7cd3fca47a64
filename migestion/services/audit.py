from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from migestion.core.logging import get_logger
from migestion.crud.audit import audit_crud
from migestion.db.session import Database

logger = get_logger(__name__)

MAX_USER_AGENT_LENGTH = 500
SENSITIVE_FIELDS = frozenset({"password", "passwordhash", "password_hash", "token", "secret", "apikey", "refreshtoken"})


@dataclass(frozen=True)
class AuditContext:
    tenant_id: str
    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def sanitize_values(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if values is None:
        return None
    return {k: v for k, v in values.items() if k.replace("-", "").lower() not in SENSITIVE_FIELDS}


class AuditRecorder:
    """Fire-and-forget audit trail.

    ``record`` hands the write to ``dispatch`` (a single background worker by
    default) and returns at once. Whatever goes wrong, in dispatch or in the
    write itself, is given to ``on_error`` and never reaches the caller.
    """

    def __init__(
        self,
        database: Database,
        *,
        dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self._database = database
        self._executor: Optional[ThreadPoolExecutor] = None
        self._dispatch = dispatch or self._submit
        self._on_error = on_error or self._log_error

    def record(
        self,
        context: AuditContext,
        *,
        action: str,
        entity: str,
        entity_id: Optional[str] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry = {
            "tenant_id": context.tenant_id,
            "user_id": context.user_id,
            "action": action,
            "entity": entity,
            "entity_id": entity_id,
            "old_values": sanitize_values(old_values),
            "new_values": sanitize_values(new_values),
            "ip_address": context.ip_address,
            "user_agent": (context.user_agent or "")[:MAX_USER_AGENT_LENGTH] or None,
        }
        try:
            self._dispatch(lambda: self._write(entry))
        except Exception as exc:
            self._on_error(exc)

    def close(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def _write(self, entry: Dict[str, Any]) -> None:
        try:
            with self._database.session_scope() as db:
                audit_crud.create(db, entry)
                db.commit()
        except Exception as exc:
            self._on_error(exc)

    def _submit(self, fn: Callable[[], None]) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit")
        self._executor.submit(fn)

    @staticmethod
    def _log_error(exc: BaseException) -> None:
        logger.error("audit_log_failed", error=str(exc), error_type=type(exc).__name__)
