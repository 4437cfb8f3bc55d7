"""
Leave Type Registry: per-tenant catalog of leave categories.
"""
from typing import List, Optional

from sqlalchemy import exists
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from app.models.leave_balance import LeaveBalance
from app.models.leave_request import LeaveRequest
from app.models.leave_type import LeaveType
from app.models.user import User
from app.schemas.leave import LeaveTypeCreate, LeaveTypeUpdate
from app.services import permissions
from app.services.audit import AuditService
from app.services.base import BaseService, reject_null_fields
from app.services.leave_balance_service import LeaveBalanceService


class LeaveTypeService(BaseService):

    def __init__(self, db: Session, tenant_id: int, actor: Optional[User] = None):
        super().__init__(db, tenant_id)
        self.actor = actor

    def list(self, active_only: bool = False) -> List[LeaveType]:
        query = self.db.query(LeaveType).filter(LeaveType.tenant_id == self.tenant_id)
        if active_only:
            query = query.filter(LeaveType.is_active == True)
        return query.order_by(LeaveType.name.asc()).all()

    def get(self, leave_type_id: int) -> LeaveType:
        leave_type = self.db.query(LeaveType).filter(
            LeaveType.id == leave_type_id,
            LeaveType.tenant_id == self.tenant_id,
        ).first()
        if not leave_type:
            raise NotFoundError("Leave type not found")
        return leave_type

    def add(self, data: LeaveTypeCreate) -> LeaveType:
        self._require_admin()
        name = data.name.strip()
        self._ensure_unique_name(name)

        leave_type = LeaveType(tenant_id=self.tenant_id, **data.model_dump(mode="json", exclude={"name"}), name=name)
        with self.unit_of_work():
            self.db.add(leave_type)
            self.db.flush()
            seeded = LeaveBalanceService(self.db, self.tenant_id).backfill_for_leave_type(leave_type)
            self._audit("create_leave_type", leave_type, after_state=data.model_dump())
        self.log_info(f"Created leave type '{name}' and initialized {seeded} balance(s)")
        self.db.refresh(leave_type)
        return leave_type

    def update(self, leave_type_id: int, patch: LeaveTypeUpdate) -> LeaveType:
        self._require_admin()
        leave_type = self.get(leave_type_id)
        updates = patch.model_dump(mode="json", exclude_unset=True)
        if not updates:
            return leave_type

        if "name" in updates:
            if updates["name"] is None or not updates["name"].strip():
                raise ValidationError("Leave type name cannot be empty", field="name")
            updates["name"] = updates["name"].strip()
            if updates["name"] != leave_type.name:
                self._ensure_unique_name(updates["name"], exclude_id=leave_type.id)
        reject_null_fields(updates, ("default_balance", "accrual_rate", "requires_approval", "is_paid", "is_active"))

        before_state = {field: getattr(leave_type, field) for field in updates}
        with self.unit_of_work():
            for field, value in updates.items():
                setattr(leave_type, field, value)
            self._audit("update_leave_type", leave_type, before_state=before_state, after_state=updates)
        self.db.refresh(leave_type)
        return leave_type

    def delete(self, leave_type_id: int) -> None:
        """Remove a leave type. Refused while any balance or request references it."""
        self._require_admin()
        leave_type = self.get(leave_type_id)

        used_in_requests = self.db.query(
            exists().where(LeaveRequest.leave_type_id == leave_type.id)
        ).scalar()
        used_in_balances = self.db.query(
            exists().where(LeaveBalance.leave_type_id == leave_type.id)
        ).scalar()
        if used_in_requests or used_in_balances:
            self.log_warning(f"Attempted to delete leave type {leave_type.id} which is currently in use.")
            raise ConflictError(
                "Leave type cannot be deleted because it is currently in use.",
                details={"used_in_requests": bool(used_in_requests), "used_in_balances": bool(used_in_balances)},
            )

        with self.unit_of_work():
            self._audit("delete_leave_type", leave_type, before_state={"name": leave_type.name})
            self.db.delete(leave_type)
        self.log_info(f"Deleted leave type {leave_type_id}")

    def _ensure_unique_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(LeaveType.id).filter(
            LeaveType.tenant_id == self.tenant_id,
            LeaveType.name == name,
        )
        if exclude_id is not None:
            query = query.filter(LeaveType.id != exclude_id)
        if query.first():
            raise ConflictError(f"A leave type named '{name}' already exists.")

    def _require_admin(self) -> None:
        if self.actor is not None and not permissions.can_manage_leave_types(self.actor.role):
            raise UnauthorizedError("Only administrators can manage leave types.")

    def _audit(self, action: str, leave_type: LeaveType, before_state=None, after_state=None) -> None:
        AuditService(self.db, self.tenant_id).log_action(
            action=action,
            entity_type="leave_type",
            entity_id=leave_type.id,
            user_id=self.actor.id if self.actor else None,
            user_role=self.actor.role if self.actor else "system",
            details={"name": leave_type.name},
            before_state=before_state,
            after_state=after_state,
        )
