from pydantic import BaseModel, ConfigDict, Field, HttpUrl, model_validator
import datetime as dt
from datetime import date, datetime
from typing import Literal, Optional

from app.models.employee import Gender
from app.models.leave_request import LeaveStatus


# --- Leave Types ---

class LeaveTypeBase(BaseModel):
    short_code: Optional[str] = Field(default=None, max_length=10)
    description: Optional[str] = None
    is_paid: bool = True
    requires_approval: bool = True
    default_balance: float = Field(default=0.0, ge=0, description="Days seeded for each employee")
    accrual_rate: float = Field(default=0.0, ge=0, description="Days credited per accrual run")
    applicable_gender: Optional[Gender] = None
    is_active: bool = True


class LeaveTypeCreate(LeaveTypeBase):
    name: str = Field(..., min_length=1, max_length=50)

    @model_validator(mode="after")
    def name_not_blank(self):
        if not self.name.strip():
            raise ValueError("Leave type name is required")
        return self


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=50)
    short_code: Optional[str] = Field(default=None, max_length=10)
    description: Optional[str] = None
    is_paid: Optional[bool] = None
    requires_approval: Optional[bool] = None
    default_balance: Optional[float] = Field(default=None, ge=0)
    accrual_rate: Optional[float] = Field(default=None, ge=0)
    applicable_gender: Optional[Gender] = None
    is_active: Optional[bool] = None


class LeaveTypeResponse(LeaveTypeBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    name: str
    applicable_gender: Optional[str] = None


# --- Leave Requests ---

class LeaveRequestCreate(BaseModel):
    leave_type_id: int
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=5, max_length=200)
    attachment_url: Optional[HttpUrl] = None
    # Approvers may file on behalf of another employee
    employee_id: Optional[int] = None

    @model_validator(mode="after")
    def end_not_before_start(self):
        if self.end_date < self.start_date:
            raise ValueError("End date cannot be earlier than start date")
        return self


class LeaveStatusUpdate(BaseModel):
    status: Literal["Approved", "Rejected"]
    comments: Optional[str] = Field(default=None, max_length=500)


class LeaveCancelRequest(BaseModel):
    comments: Optional[str] = Field(default=None, max_length=500)


class LeaveRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    employee_id: int
    employee_name: Optional[str] = None
    leave_type_id: int
    leave_type_name: Optional[str] = None
    start_date: date
    end_date: date
    days: int
    reason: Optional[str] = None
    status: LeaveStatus
    request_date: Optional[datetime] = None
    approver_id: Optional[int] = None
    approval_date: Optional[datetime] = None
    comments: Optional[str] = None
    attachment_url: Optional[str] = None


# --- Leave Balances ---

class LeaveBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    leave_type_id: int
    leave_type_name: str
    balance: float
    year: Optional[int] = None
    last_updated: Optional[datetime] = None


class BalanceCorrection(BaseModel):
    leave_type_id: int
    delta: float
    note: str = Field(..., min_length=3, max_length=255)


class AccrualRunResponse(BaseModel):
    success: bool
    updated: int


# --- Holidays ---

class HolidayCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    date: dt.date
    description: Optional[str] = None


class HolidayResponse(HolidayCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
