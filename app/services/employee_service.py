"""
Employee Registry

Canonical employee records, their optional linked user accounts, and the
human-readable employee code generator.
"""
import re
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from app.core.security import get_password_hash
from app.models.employee import Employee, EmployeeStatus
from app.models.leave_balance import LeaveBalance, LeaveBalanceAdjustment
from app.models.leave_request import LeaveRequest
from app.models.notification import Notification
from app.models.user import User, UserRole
from app.schemas.employee import EmployeeCreate, EmployeeUpdate
from app.services import permissions
from app.services.audit import AuditService
from app.services.base import BaseService, reject_null_fields
from app.services.leave_balance_service import LeaveBalanceService

CODE_CONSTRAINT = "uq_employees_tenant_code"
REQUIRED_FIELDS = ("name", "email", "employment_type", "status")


def generate_employee_code(db: Session, tenant_id: int, prefix: str = None) -> str:
    """
    Next human-readable employee code for a tenant: the highest numeric
    suffix among codes shaped like PREFIX<digits>, plus one, zero-padded
    to three digits. "EMP-001" for a tenant with none.

    The scan is only a hint. Run it inside the insert transaction; the
    (tenant_id, employee_code) unique constraint decides collisions.
    """
    prefix = prefix or settings.employee_code_prefix
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    codes = db.query(Employee.employee_code).filter(
        Employee.tenant_id == tenant_id,
        Employee.employee_code.like(f"{prefix}%"),
    )
    highest = 0
    for (code,) in codes:
        match = pattern.match(code or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{highest + 1:03d}"


class EmployeeService(BaseService):

    def __init__(self, db: Session, tenant_id: int, actor: Optional[User] = None):
        super().__init__(db, tenant_id)
        self.actor = actor

    def list(self, status: Optional[str] = None, department: Optional[str] = None) -> List[Employee]:
        query = self.db.query(Employee).filter(Employee.tenant_id == self.tenant_id)
        if status:
            query = query.filter(Employee.status == status)
        if department:
            query = query.filter(Employee.department == department)
        return query.order_by(Employee.name.asc()).all()

    def get(self, employee_id: int) -> Employee:
        employee = self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.tenant_id == self.tenant_id,
        ).first()
        if not employee:
            raise NotFoundError("Employee not found")
        return employee

    def get_by_user(self, user_id: int) -> Optional[Employee]:
        return self.db.query(Employee).filter(
            Employee.user_id == user_id,
            Employee.tenant_id == self.tenant_id,
        ).first()

    def create(self, data: EmployeeCreate) -> Employee:
        """
        Insert an employee (and a linked user account when a password is
        given), then seed leave balances, all in one transaction. A clash on
        the generated code rolls back and retries with a fresh scan.
        """
        self._require_admin()
        self._check_manager(data.reporting_manager_id)
        attempts = max(1, settings.employee_code_max_retries)
        for attempt in range(1, attempts + 1):
            try:
                with self.unit_of_work():
                    employee = self._insert(data)
                    self._audit("create_employee", employee, after_state=data.model_dump(exclude={"password"}))
            except ConflictError as e:
                collided = (e.details or {}).get("constraint") == CODE_CONSTRAINT
                if collided and attempt < attempts:
                    self.log_warning(f"Employee code collision on attempt {attempt}; retrying")
                    continue
                raise
            self.log_info(f"Created employee {employee.employee_code} ({employee.id})")
            self.db.refresh(employee)
            return employee

    def _insert(self, data: EmployeeCreate) -> Employee:
        user_id = None
        if data.password:
            user = User(
                tenant_id=self.tenant_id,
                username=data.username or data.email.split("@")[0],
                email=data.email,
                name=data.name,
                hashed_password=get_password_hash(data.password),
                role=data.role or UserRole.EMPLOYEE,
                is_active=True,
            )
            self.db.add(user)
            self.db.flush()
            user_id = user.id

        fields = data.model_dump(mode="json", exclude={"password", "username", "role"})
        fields["date_of_birth"] = data.date_of_birth
        fields["hire_date"] = data.hire_date
        employee = Employee(
            tenant_id=self.tenant_id,
            user_id=user_id,
            employee_code=generate_employee_code(self.db, self.tenant_id),
            is_active=data.status == EmployeeStatus.ACTIVE,
            **fields,
        )
        self.db.add(employee)
        self.db.flush()
        LeaveBalanceService(self.db, self.tenant_id).initialize_for_employee(employee)
        return employee

    def update(self, employee_id: int, patch: EmployeeUpdate) -> Employee:
        self._require_admin()
        employee = self.get(employee_id)
        updates = patch.model_dump(exclude_unset=True)
        if not updates:
            return employee
        reject_null_fields(updates, REQUIRED_FIELDS)
        if updates.get("reporting_manager_id") is not None:
            self._check_manager(updates["reporting_manager_id"], employee_id=employee.id)

        before_state = {field: getattr(employee, field) for field in updates}
        with self.unit_of_work():
            for field, value in updates.items():
                if hasattr(value, "value"):
                    value = value.value
                setattr(employee, field, value)
            if "status" in updates:
                employee.is_active = employee.status == EmployeeStatus.ACTIVE.value
            if employee.user is not None and "email" in updates:
                employee.user.email = employee.email
            self._audit("update_employee", employee, before_state=before_state, after_state=updates)
        self.db.refresh(employee)
        return employee

    def delete(self, employee_id: int) -> None:
        """
        Remove the employee and everything hanging off it: leave requests,
        ledger entries, balances and the linked user account. Explicit
        bulk deletes in a single transaction; nothing relies on ON DELETE
        CASCADE and the ORM never tries to null out already deleted children.
        """
        self._require_admin()
        employee = self.get(employee_id)
        if self.actor is not None and employee.user_id == self.actor.id:
            raise ConflictError("You cannot delete your own employee record.")

        with self.unit_of_work():
            balance_ids = [
                balance_id for (balance_id,) in self.db.query(LeaveBalance.id).filter(
                    LeaveBalance.employee_id == employee.id
                )
            ]
            if balance_ids:
                self.db.query(LeaveBalanceAdjustment).filter(
                    LeaveBalanceAdjustment.balance_id.in_(balance_ids)
                ).delete(synchronize_session=False)
            self.db.query(LeaveBalance).filter(
                LeaveBalance.employee_id == employee.id
            ).delete(synchronize_session=False)
            self.db.query(LeaveRequest).filter(
                LeaveRequest.employee_id == employee.id
            ).delete(synchronize_session=False)
            self.db.query(Employee).filter(
                Employee.reporting_manager_id == employee.id
            ).update({Employee.reporting_manager_id: None}, synchronize_session=False)

            user_id = employee.user_id
            self._audit("delete_employee", employee, before_state={
                "employee_code": employee.employee_code, "name": employee.name, "user_id": employee.user_id,
            })
            self.db.query(Employee).filter(
                Employee.id == employee.id
            ).delete(synchronize_session=False)
            if user_id is not None:
                self.db.query(Notification).filter(
                    Notification.user_id == user_id
                ).delete(synchronize_session=False)
                self.db.query(User).filter(
                    User.id == user_id, User.tenant_id == self.tenant_id
                ).delete(synchronize_session=False)
        self.log_info(f"Deleted employee {employee_id} and linked records")

    def _check_manager(self, manager_id: Optional[int], employee_id: Optional[int] = None) -> None:
        """The reporting manager must be another employee of the same tenant."""
        if manager_id is None:
            return
        if manager_id == employee_id:
            raise ValidationError("An employee cannot report to themselves.", field="reporting_manager_id")
        manager = self.db.query(Employee.id).filter(
            Employee.id == manager_id,
            Employee.tenant_id == self.tenant_id,
        ).first()
        if manager is None:
            raise ValidationError("Reporting manager not found.", field="reporting_manager_id")

    def _require_admin(self) -> None:
        if self.actor is not None and not permissions.can_manage_employees(self.actor.role):
            raise UnauthorizedError("Only administrators can manage employees.")

    def _audit(self, action: str, employee: Employee, before_state=None, after_state=None) -> None:
        AuditService(self.db, self.tenant_id).log_action(
            action=action,
            entity_type="employee",
            entity_id=employee.id,
            user_id=self.actor.id if self.actor else None,
            user_role=self.actor.role if self.actor else "system",
            details={"employee_code": employee.employee_code},
            before_state=before_state,
            after_state=after_state,
        )
