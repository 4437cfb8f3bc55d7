from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    ON_LEAVE = "On Leave"


class Gender(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    UNDISCLOSED = "Prefer not to say"


class EmploymentType(str, enum.Enum):
    FULL_TIME = "Full-time"
    PART_TIME = "Part-time"
    CONTRACT = "Contract"
    INTERNSHIP = "Internship"
    TEMPORARY = "Temporary"


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        # Last-resort guard for the max-scan code generator
        UniqueConstraint("tenant_id", "employee_code", name="uq_employees_tenant_code"),
        UniqueConstraint("tenant_id", "email", name="uq_employees_tenant_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), unique=True, nullable=True)
    employee_code = Column(String(50), nullable=False)  # Human-readable, e.g. EMP-007

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    gender = Column(String(30), nullable=True)
    date_of_birth = Column(Date, nullable=True)

    position = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)
    work_location = Column(String(255), nullable=True)
    employment_type = Column(String(30), default=EmploymentType.FULL_TIME.value, nullable=False)
    hire_date = Column(Date, nullable=True)
    reporting_manager_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    status = Column(String(20), default=EmployeeStatus.ACTIVE.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="employee_profile")
    leave_balances = relationship("LeaveBalance", back_populates="employee", passive_deletes=True)
    leave_requests = relationship("LeaveRequest", back_populates="employee", passive_deletes=True)

    def __repr__(self):
        return f"<Employee {self.employee_code} {self.name}>"
