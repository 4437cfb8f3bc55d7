"""
Capability predicates.

Every role-dependent decision in the service layer goes through one of
these functions instead of comparing roles inline.
"""
from typing import Optional

from app.models.leave_request import LeaveStatus
from app.models.user import UserRole

APPROVER_ROLES = (UserRole.ADMIN, UserRole.MANAGER)


def _role(role) -> UserRole:
    return role if isinstance(role, UserRole) else UserRole(role)


def is_admin(role) -> bool:
    return _role(role) == UserRole.ADMIN


def can_manage_leave_types(role) -> bool:
    return is_admin(role)


def can_manage_employees(role) -> bool:
    return is_admin(role)


def can_correct_balances(role) -> bool:
    return is_admin(role)


def can_manage_recruitment(role) -> bool:
    return _role(role) in APPROVER_ROLES


def can_approve(role) -> bool:
    """Approve or reject leave requests."""
    return _role(role) in APPROVER_ROLES


def can_view_employee_leave(role, owner_employee_id: int, requester_employee_id: Optional[int]) -> bool:
    return can_approve(role) or owner_employee_id == requester_employee_id


def can_file_for_others(role) -> bool:
    return can_approve(role)


def can_cancel(role, owner_employee_id: int, requester_employee_id: Optional[int], status) -> bool:
    """
    Pending requests: the owner or any approver.
    Approved requests: admins only (the balance is refunded).
    """
    status = LeaveStatus(status)
    if status == LeaveStatus.PENDING:
        return owner_employee_id == requester_employee_id or can_approve(role)
    if status == LeaveStatus.APPROVED:
        return is_admin(role)
    return False


def can_delete_request(role, owner_employee_id: int, requester_employee_id: Optional[int]) -> bool:
    return owner_employee_id == requester_employee_id or is_admin(role)
