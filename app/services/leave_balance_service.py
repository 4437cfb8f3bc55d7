"""
Leave Balance Ledger

Per-employee, per-leave-type running balances. `adjust` is the only
primitive that changes a balance; it records a ledger entry and leaves the
commit to the caller so the adjustment lands atomically with whatever
triggered it (approval, cancellation, accrual run, correction).
"""
from datetime import date, datetime, timezone
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from app.models.employee import Employee
from app.models.leave_balance import AdjustmentReason, LeaveBalance, LeaveBalanceAdjustment
from app.models.leave_type import LeaveType
from app.models.tenant import Tenant
from app.models.user import User
from app.services import permissions
from app.services.audit import AuditService
from app.services.base import BaseService


class LeaveBalanceService(BaseService):

    def __init__(self, db: Session, tenant_id: int, actor: Optional[User] = None):
        super().__init__(db, tenant_id)
        self.actor = actor

    # --- Reads ---

    def get_for_employee(self, employee_id: int) -> List[LeaveBalance]:
        """Balances for one employee, creating any rows still missing."""
        employee = self._get_employee(employee_id)
        if self.actor is not None and not permissions.can_view_employee_leave(
            self.actor.role, employee.id, self.actor.employee_id
        ):
            raise UnauthorizedError("You can only view your own leave balances.")

        with self.unit_of_work():
            created = self.initialize_for_employee(employee)
        if created:
            self.log_info(f"Initialized {created} leave balance(s) for employee {employee.id}")

        return (
            self.db.query(LeaveBalance)
            .join(LeaveType, LeaveBalance.leave_type_id == LeaveType.id)
            .filter(
                LeaveBalance.tenant_id == self.tenant_id,
                LeaveBalance.employee_id == employee.id,
            )
            .order_by(LeaveType.name.asc())
            .all()
        )

    def get_balance(self, employee_id: int, leave_type_id: int, lock: bool = False) -> Optional[LeaveBalance]:
        query = self.db.query(LeaveBalance).filter(
            LeaveBalance.tenant_id == self.tenant_id,
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_id == leave_type_id,
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    # --- Seeding (no commit) ---

    def initialize_for_employee(self, employee: Union[Employee, int]) -> int:
        """
        Insert the balance rows the employee is missing across all active,
        applicable leave types. Idempotent. Returns the number of rows created.
        """
        if not isinstance(employee, Employee):
            employee = self._get_employee(employee)

        existing = {
            leave_type_id
            for (leave_type_id,) in self.db.query(LeaveBalance.leave_type_id).filter(
                LeaveBalance.tenant_id == self.tenant_id,
                LeaveBalance.employee_id == employee.id,
            )
        }
        leave_types = self.db.query(LeaveType).filter(
            LeaveType.tenant_id == self.tenant_id,
            LeaveType.is_active == True,
        ).all()

        created = 0
        for leave_type in leave_types:
            if leave_type.id in existing or not leave_type.applies_to(employee.gender):
                continue
            self.db.add(self._new_balance(employee.id, leave_type))
            created += 1
        if created:
            self.db.flush()
        return created

    def backfill_for_leave_type(self, leave_type: LeaveType) -> int:
        """Seed a new leave type's default balance across existing active employees."""
        if not leave_type.is_active:
            return 0
        covered = {
            employee_id
            for (employee_id,) in self.db.query(LeaveBalance.employee_id).filter(
                LeaveBalance.tenant_id == self.tenant_id,
                LeaveBalance.leave_type_id == leave_type.id,
            )
        }
        employees = self.db.query(Employee).filter(
            Employee.tenant_id == self.tenant_id,
            Employee.is_active == True,
        ).all()

        created = 0
        for employee in employees:
            if employee.id in covered or not leave_type.applies_to(employee.gender):
                continue
            self.db.add(self._new_balance(employee.id, leave_type))
            created += 1
        if created:
            self.db.flush()
        return created

    # --- Mutation primitive (no commit) ---

    def adjust(
        self,
        employee_id: int,
        leave_type_id: int,
        delta: float,
        reason: AdjustmentReason,
        leave_request_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> LeaveBalance:
        """
        Apply `delta` days to a balance and record the ledger entry.
        Positive for accrual and refunds, negative for consumption.
        """
        balance = self.get_balance(employee_id, leave_type_id, lock=True)
        if balance is None:
            self.log_warning(
                f"Balance record not found for employee {employee_id}, type {leave_type_id} during adjustment. Attempting init."
            )
            self.initialize_for_employee(employee_id)
            balance = self.get_balance(employee_id, leave_type_id, lock=True)
            if balance is None:
                raise NotFoundError(
                    f"No leave balance exists for employee {employee_id} and leave type {leave_type_id}."
                )

        balance.balance = round(balance.balance + delta, 2)
        balance.last_updated = datetime.now(timezone.utc)
        self.db.add(LeaveBalanceAdjustment(
            tenant_id=self.tenant_id,
            balance_id=balance.id,
            amount=round(delta, 2),
            reason=AdjustmentReason(reason).value,
            leave_request_id=leave_request_id,
            note=note,
            created_by=self.actor.id if self.actor is not None else None,
        ))
        self.db.flush()
        return balance

    # --- Operations ---

    def correct(self, employee_id: int, leave_type_id: int, delta: float, note: str) -> LeaveBalance:
        """Administrative correction. The only path that may take a balance negative."""
        if self.actor is None or not permissions.can_correct_balances(self.actor.role):
            raise UnauthorizedError("Only administrators can correct leave balances.")
        if delta == 0:
            raise ValidationError("Adjustment must be non-zero.", field="delta")

        employee = self._get_employee(employee_id)
        self._get_leave_type(leave_type_id)

        with self.unit_of_work():
            before = self.get_balance(employee.id, leave_type_id)
            before_value = before.balance if before is not None else None
            balance = self.adjust(employee.id, leave_type_id, delta, AdjustmentReason.CORRECTION, note=note)
            AuditService(self.db, self.tenant_id).log_action(
                action="correct_leave_balance",
                entity_type="leave_balance",
                entity_id=balance.id,
                user_id=self.actor.id,
                user_role=self.actor.role,
                details={"employee_id": employee.id, "leave_type_id": leave_type_id, "delta": delta, "note": note},
                before_state={"balance": before_value},
                after_state={"balance": balance.balance},
            )
        self.log_info(f"Corrected balance {balance.id} by {delta}")
        self.db.refresh(balance)
        return balance

    def run_accrual(self) -> int:
        """
        Credit every active employee with each accruing leave type's rate.
        One transaction for the whole tenant. Returns the number of
        employee/type pairs credited.
        """
        employees = self.db.query(Employee).filter(
            Employee.tenant_id == self.tenant_id,
            Employee.is_active == True,
        ).all()
        leave_types = self.db.query(LeaveType).filter(
            LeaveType.tenant_id == self.tenant_id,
            LeaveType.is_active == True,
            LeaveType.accrual_rate > 0,
        ).all()
        if not employees or not leave_types:
            self.log_info("No active employees or accruable leave types found.")
            return 0

        updated = 0
        with self.unit_of_work():
            for employee in employees:
                self.initialize_for_employee(employee)
                for leave_type in leave_types:
                    if not leave_type.applies_to(employee.gender):
                        continue
                    self.adjust(employee.id, leave_type.id, leave_type.accrual_rate, AdjustmentReason.ACCRUAL,
                                note=f"Accrual {date.today():%Y-%m}")
                    updated += 1
        self.log_info(f"Monthly accrual complete. Updated balances for {updated} employee/type pairs.")
        return updated

    # --- Helpers ---

    def _new_balance(self, employee_id: int, leave_type: LeaveType) -> LeaveBalance:
        seed = leave_type.default_balance or 0.0
        return LeaveBalance(
            tenant_id=self.tenant_id,
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            balance=seed,
            seeded_balance=seed,
            year=date.today().year,
        )

    def _get_employee(self, employee_id: int) -> Employee:
        employee = self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.tenant_id == self.tenant_id,
        ).first()
        if not employee:
            raise NotFoundError("Employee not found")
        return employee

    def _get_leave_type(self, leave_type_id: int) -> LeaveType:
        leave_type = self.db.query(LeaveType).filter(
            LeaveType.id == leave_type_id,
            LeaveType.tenant_id == self.tenant_id,
        ).first()
        if not leave_type:
            raise NotFoundError("Leave type not found")
        return leave_type


def run_accrual_for_all_tenants(db: Session) -> dict:
    """Entry point for the external scheduler: accrue tenant by tenant."""
    results = {}
    for tenant in db.query(Tenant).filter(Tenant.status == "ACTIVE").order_by(Tenant.id).all():
        results[tenant.subdomain] = LeaveBalanceService(db, tenant.id).run_accrual()
    return results
