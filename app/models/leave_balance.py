from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base


class AdjustmentReason(str, enum.Enum):
    ACCRUAL = "accrual"
    DEDUCTION = "deduction"
    REFUND = "refund"
    CORRECTION = "correction"


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_id", "leave_type_id", name="uq_leave_balances_employee_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    # RESTRICT: a leave type cannot disappear under a balance
    leave_type_id = Column(Integer, ForeignKey("leave_types.id", ondelete="RESTRICT"), nullable=False, index=True)
    balance = Column(Float, default=0.0, nullable=False)
    seeded_balance = Column(Float, default=0.0, nullable=False)
    year = Column(Integer, nullable=True)
    last_updated = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee", back_populates="leave_balances")
    leave_type = relationship("LeaveType")
    adjustments = relationship(
        "LeaveBalanceAdjustment",
        back_populates="leave_balance",
        cascade="all, delete-orphan",
        order_by="LeaveBalanceAdjustment.id",
    )

    @property
    def leave_type_name(self):
        return self.leave_type.name if self.leave_type else None


class LeaveBalanceAdjustment(Base):
    """Append-only ledger entry; amounts for a balance sum to balance - seeded_balance."""
    __tablename__ = "leave_balance_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    balance_id = Column(Integer, ForeignKey("leave_balances.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    reason = Column(String(20), nullable=False)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True)
    note = Column(String(255), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    leave_balance = relationship("LeaveBalance", back_populates="adjustments")
