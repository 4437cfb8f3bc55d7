"""
Leave Request Workflow

State machine:
    Pending  -> Approved | Rejected | Cancelled
    Approved -> Cancelled   (admin only, refunds the deducted days)
Rejected and Cancelled are terminal.

Balance changes go through LeaveBalanceService.adjust inside the same
unit of work as the status change.
"""
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from app.core.security import sanitize_input
from app.models.employee import Employee
from app.models.leave_balance import AdjustmentReason
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.models.leave_type import LeaveType
from app.models.user import User
from app.schemas.leave import LeaveRequestCreate
from app.services import permissions
from app.services.audit import AuditService
from app.services.base import BaseService
from app.services.leave_balance_service import LeaveBalanceService
from app.services.notification import NotificationService


def inclusive_days(start_date: date, end_date: date) -> int:
    """Length of a date span counting both ends: 2024-08-01..2024-08-05 is 5 days."""
    if end_date < start_date:
        raise ValidationError("End date cannot be earlier than start date", field="end_date")
    return (end_date - start_date).days + 1


class LeaveRequestService(BaseService):

    def __init__(self, db: Session, tenant_id: int, actor: User):
        super().__init__(db, tenant_id)
        self.actor = actor
        self.balances = LeaveBalanceService(db, tenant_id, actor)

    # --- Reads ---

    def list(self, employee_id: Optional[int] = None, status: Optional[LeaveStatus] = None) -> List[LeaveRequest]:
        if not permissions.can_approve(self.actor.role):
            # Employees only ever see their own requests
            if employee_id is not None and employee_id != self.actor.employee_id:
                raise UnauthorizedError("You can only view your own leave requests.")
            employee_id = self.actor.employee_id
            if employee_id is None:
                return []

        query = self.db.query(LeaveRequest).options(
            joinedload(LeaveRequest.employee),
            joinedload(LeaveRequest.leave_type),
        ).filter(LeaveRequest.tenant_id == self.tenant_id)
        if employee_id is not None:
            query = query.filter(LeaveRequest.employee_id == employee_id)
        if status is not None:
            query = query.filter(LeaveRequest.status == LeaveStatus(status).value)
        return query.order_by(LeaveRequest.request_date.desc(), LeaveRequest.id.desc()).all()

    def get(self, request_id: int, lock: bool = False) -> LeaveRequest:
        query = self.db.query(LeaveRequest).filter(
            LeaveRequest.id == request_id,
            LeaveRequest.tenant_id == self.tenant_id,
        )
        if lock:
            query = query.with_for_update()
        leave = query.first()
        if not leave:
            raise NotFoundError("Leave request not found.")
        if not permissions.can_view_employee_leave(self.actor.role, leave.employee_id, self.actor.employee_id):
            raise UnauthorizedError("You are not authorized to view this request.")
        return leave

    # --- Transitions ---

    def create(self, data: LeaveRequestCreate, today: Optional[date] = None) -> LeaveRequest:
        """
        Submit a request. Starts Pending, or Approved with an immediate
        deduction when the leave type does not require approval. Fails
        without creating a row when the balance cannot cover the days.
        """
        today = today or date.today()
        if data.end_date < today:
            raise ValidationError("Leave requests cannot end in the past.", field="end_date")
        days = inclusive_days(data.start_date, data.end_date)

        employee = self._resolve_employee(data.employee_id)
        leave_type = self.db.query(LeaveType).filter(
            LeaveType.id == data.leave_type_id,
            LeaveType.tenant_id == self.tenant_id,
        ).first()
        if not leave_type:
            raise NotFoundError("Leave type not found.")
        if not leave_type.is_active:
            raise ValidationError("This leave type is no longer available.", field="leave_type_id")
        if not leave_type.applies_to(employee.gender):
            raise ValidationError("This leave type does not apply to the employee.", field="leave_type_id")

        auto_approve = not leave_type.requires_approval
        with self.unit_of_work():
            self.balances.initialize_for_employee(employee)
            balance = self.balances.get_balance(employee.id, leave_type.id, lock=True)
            available = balance.balance if balance is not None else 0.0
            if days > available:
                self.log_warning(
                    f"Insufficient balance for employee {employee.id}: requested {days}, available {available}"
                )
                raise ConflictError(
                    "Insufficient leave balance.",
                    details={"requested": days, "available": available},
                )

            now = datetime.now(timezone.utc)
            leave = LeaveRequest(
                tenant_id=self.tenant_id,
                employee_id=employee.id,
                leave_type_id=leave_type.id,
                start_date=data.start_date,
                end_date=data.end_date,
                days=days,
                reason=sanitize_input(data.reason),
                attachment_url=str(data.attachment_url) if data.attachment_url else None,
                status=(LeaveStatus.APPROVED if auto_approve else LeaveStatus.PENDING).value,
                request_date=now,
                approval_date=now if auto_approve else None,
            )
            self.db.add(leave)
            self.db.flush()

            if auto_approve:
                self.balances.adjust(employee.id, leave_type.id, -days, AdjustmentReason.DEDUCTION,
                                     leave_request_id=leave.id)
            self._audit("create_leave_request", leave, after_state={"status": leave.status, "days": days})

        self.log_info(f"Leave request {leave.id} created as {leave.status} ({days} day(s))")
        self.db.refresh(leave)
        return leave

    def update_status(self, request_id: int, status: str, comments: Optional[str] = None) -> LeaveRequest:
        status = LeaveStatus(status)
        if status == LeaveStatus.APPROVED:
            return self.approve(request_id, comments)
        if status == LeaveStatus.REJECTED:
            return self.reject(request_id, comments)
        raise ValidationError("Invalid status update value.", field="status")

    def approve(self, request_id: int, comments: Optional[str] = None) -> LeaveRequest:
        self._require_approver()
        leave = self.get(request_id, lock=True)
        self._require_pending(leave, LeaveStatus.APPROVED)

        with self.unit_of_work():
            # Re-check: two pending requests may together exceed the balance
            balance = self.balances.get_balance(leave.employee_id, leave.leave_type_id, lock=True)
            available = balance.balance if balance is not None else 0.0
            if leave.days > available:
                raise ConflictError(
                    "Insufficient leave balance to approve this request.",
                    details={"requested": leave.days, "available": available},
                )
            self._decide(leave, LeaveStatus.APPROVED, comments)
            self.balances.adjust(leave.employee_id, leave.leave_type_id, -leave.days,
                                 AdjustmentReason.DEDUCTION, leave_request_id=leave.id)
            self._audit("approve_leave_request", leave,
                        before_state={"status": LeaveStatus.PENDING.value},
                        after_state={"status": leave.status, "balance": balance.balance})
            NotificationService.notify_user(
                self.db, self.tenant_id, leave.employee.user_id,
                "Leave Approved",
                f"Your {leave.leave_type.name} request for {leave.days} day(s) has been APPROVED.",
                "success",
                link=f"/leave/requests/{leave.id}",
            )

        self.log_info(f"Leave request {leave.id} approved by user {self.actor.id}")
        self.db.refresh(leave)
        return leave

    def reject(self, request_id: int, comments: Optional[str] = None) -> LeaveRequest:
        self._require_approver()
        leave = self.get(request_id, lock=True)
        self._require_pending(leave, LeaveStatus.REJECTED)

        with self.unit_of_work():
            self._decide(leave, LeaveStatus.REJECTED, comments)
            self._audit("reject_leave_request", leave,
                        before_state={"status": LeaveStatus.PENDING.value},
                        after_state={"status": leave.status})
            NotificationService.notify_user(
                self.db, self.tenant_id, leave.employee.user_id,
                "Leave Rejected",
                f"Your {leave.leave_type.name} request has been REJECTED. Reason: {leave.comments or 'not given'}",
                "error",
                link=f"/leave/requests/{leave.id}",
            )

        self.log_info(f"Leave request {leave.id} rejected by user {self.actor.id}")
        self.db.refresh(leave)
        return leave

    def cancel(self, request_id: int, comments: Optional[str] = None) -> LeaveRequest:
        leave = self.get(request_id, lock=True)
        previous = LeaveStatus(leave.status)

        if previous not in (LeaveStatus.PENDING, LeaveStatus.APPROVED):
            raise ConflictError(f"Cannot cancel a request that is {previous.value}.")
        if previous == LeaveStatus.APPROVED and not settings.allow_cancel_approved:
            raise ConflictError("Only pending requests can be cancelled.")
        if not permissions.can_cancel(self.actor.role, leave.employee_id, self.actor.employee_id, previous):
            raise UnauthorizedError("You are not authorized to cancel this request.")

        with self.unit_of_work():
            leave.status = LeaveStatus.CANCELLED.value
            note = sanitize_input(comments) if comments else f"Cancelled by user {self.actor.id}."
            leave.comments = f"{leave.comments}\n{note}" if leave.comments else note
            if previous == LeaveStatus.APPROVED:
                self.balances.adjust(leave.employee_id, leave.leave_type_id, leave.days,
                                     AdjustmentReason.REFUND, leave_request_id=leave.id)
            self._audit("cancel_leave_request", leave,
                        before_state={"status": previous.value},
                        after_state={"status": leave.status, "refunded_days": leave.days if previous == LeaveStatus.APPROVED else 0})

        self.log_info(f"Leave request {leave.id} cancelled (was {previous.value})")
        self.db.refresh(leave)
        return leave

    def delete(self, request_id: int) -> None:
        """Hard delete, restricted to Pending requests. Cancel is the path for anything else."""
        leave = self.get(request_id, lock=True)
        if not permissions.can_delete_request(self.actor.role, leave.employee_id, self.actor.employee_id):
            raise UnauthorizedError("You are not authorized to delete this request.")
        if leave.status != LeaveStatus.PENDING.value:
            raise ConflictError("Only pending requests can be deleted; cancel the request instead.")

        with self.unit_of_work():
            self._audit("delete_leave_request", leave, before_state={"status": leave.status, "days": leave.days})
            self.db.delete(leave)
        self.log_info(f"Leave request {request_id} deleted")

    # --- Helpers ---

    def _resolve_employee(self, employee_id: Optional[int]) -> Employee:
        own_id = self.actor.employee_id
        if employee_id is None or employee_id == own_id:
            if own_id is None:
                raise ValidationError("Could not identify employee for this account.", field="employee_id")
            employee_id = own_id
        elif not permissions.can_file_for_others(self.actor.role):
            raise UnauthorizedError("You can only submit leave requests for yourself.")

        employee = self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.tenant_id == self.tenant_id,
        ).first()
        if not employee:
            raise NotFoundError("Employee not found.")
        return employee

    def _decide(self, leave: LeaveRequest, status: LeaveStatus, comments: Optional[str]) -> None:
        leave.status = status.value
        leave.approver_id = self.actor.id
        leave.approval_date = datetime.now(timezone.utc)
        leave.comments = sanitize_input(comments) if comments else None

    def _require_approver(self) -> None:
        if not permissions.can_approve(self.actor.role):
            raise UnauthorizedError("Unauthorized to approve/reject requests.")

    @staticmethod
    def _require_pending(leave: LeaveRequest, target: LeaveStatus) -> None:
        if leave.status != LeaveStatus.PENDING.value:
            raise ConflictError(f"Cannot change status from {leave.status} to {target.value}.")

    def _audit(self, action: str, leave: LeaveRequest, before_state=None, after_state=None) -> None:
        AuditService(self.db, self.tenant_id).log_action(
            action=action,
            entity_type="leave_request",
            entity_id=leave.id,
            user_id=self.actor.id,
            user_role=self.actor.role,
            details={
                "employee_id": leave.employee_id,
                "leave_type_id": leave.leave_type_id,
                "start_date": leave.start_date,
                "end_date": leave.end_date,
            },
            before_state=before_state,
            after_state=after_state,
        )
