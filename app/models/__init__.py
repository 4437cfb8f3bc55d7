# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    tenant, user, employee,
    leave_type, leave_balance, leave_request, holiday,
    job, candidate, email_template,
    notification, audit_log
)

# Explicit class exports for cleaner imports
from .tenant import Tenant
from .user import User, UserRole
from .employee import Employee
from .leave_type import LeaveType
from .leave_balance import LeaveBalance, LeaveBalanceAdjustment
from .leave_request import LeaveRequest, LeaveStatus
from .notification import Notification

__all__ = [
    "Tenant",
    "User",
    "UserRole",
    "Employee",
    "LeaveType",
    "LeaveBalance",
    "LeaveBalanceAdjustment",
    "LeaveRequest",
    "LeaveStatus",
    "Notification",
]
