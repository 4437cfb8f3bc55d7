from sqlalchemy import Column, Integer, String, Float, Boolean, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base


class LeaveType(Base):
    """Per-tenant leave category and its approval/accrual policy."""
    __tablename__ = "leave_types"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_leave_types_tenant_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    short_code = Column(String(10), nullable=True)
    description = Column(Text, nullable=True)
    is_paid = Column(Boolean, default=True, nullable=False)
    requires_approval = Column(Boolean, default=True, nullable=False)
    default_balance = Column(Float, default=0.0, nullable=False)  # days seeded per employee
    accrual_rate = Column(Float, default=0.0, nullable=False)  # days added per accrual run (monthly)
    applicable_gender = Column(String(30), nullable=True)  # None = everyone
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def applies_to(self, gender) -> bool:
        return not self.applicable_gender or self.applicable_gender == gender
