from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import date, datetime
from typing import Optional

from app.models.employee import EmployeeStatus, EmploymentType, Gender
from app.models.user import UserRole


class EmployeeBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    position: Optional[str] = None
    department: Optional[str] = None
    work_location: Optional[str] = None
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    hire_date: Optional[date] = None
    reporting_manager_id: Optional[int] = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE


class EmployeeCreate(EmployeeBase):
    # Supplying a password also creates a login for the employee
    password: Optional[str] = Field(default=None, min_length=8)
    username: Optional[str] = Field(default=None, max_length=100)
    role: Optional[UserRole] = None


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    position: Optional[str] = None
    department: Optional[str] = None
    work_location: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    hire_date: Optional[date] = None
    reporting_manager_id: Optional[int] = None
    status: Optional[EmployeeStatus] = None


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    user_id: Optional[int] = None
    employee_code: str
    name: str
    email: str
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    position: Optional[str] = None
    department: Optional[str] = None
    work_location: Optional[str] = None
    employment_type: str
    hire_date: Optional[date] = None
    reporting_manager_id: Optional[int] = None
    status: str
    is_active: bool
    created_at: Optional[datetime] = None
