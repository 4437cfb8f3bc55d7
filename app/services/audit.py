import enum
from datetime import date, datetime
from typing import Any, Optional

from app.services.base import BaseService
from app.models.audit_log import AuditLog


def _jsonable(obj: Any) -> Any:
    if hasattr(obj, "model_dump"):
        return _jsonable(obj.model_dump())
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(i) for i in obj]
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        user_id: Optional[int],
        user_role: Optional[str],
        details: dict,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ) -> AuditLog:
        """
        Create an audit log entry. Strictly append-only.

        Does not commit: the entry joins the caller's transaction so it is
        persisted exactly when the audited change is.
        """
        db_log = AuditLog(
            tenant_id=self.tenant_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            user_role=_jsonable(user_role),
            details=_jsonable(details),
            before_state=_jsonable(before_state),
            after_state=_jsonable(after_state),
        )
        self.db.add(db_log)
        return db_log

    # Static wrapper for call sites holding only a session
    @staticmethod
    def log(db, tenant_id: Optional[int], *args, **kwargs) -> AuditLog:
        return AuditService(db, tenant_id).log_action(*args, **kwargs)
