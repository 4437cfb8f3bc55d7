from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import extract
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.exceptions import NotFoundError
from app.database import get_db
from app.models.holiday import Holiday
from app.models.leave_request import LeaveStatus
from app.models.user import User
from app.routers.auth_deps import get_current_user, require_admin
from app.schemas.leave import (
    AccrualRunResponse,
    BalanceCorrection,
    HolidayCreate,
    HolidayResponse,
    LeaveBalanceResponse,
    LeaveCancelRequest,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveStatusUpdate,
    LeaveTypeCreate,
    LeaveTypeResponse,
    LeaveTypeUpdate,
)
from app.services.audit import AuditService
from app.services.base import commit_or_raise, flush_or_raise
from app.services.leave_balance_service import LeaveBalanceService
from app.services.leave_request_service import LeaveRequestService
from app.services.leave_type_service import LeaveTypeService

router = APIRouter(
    prefix="/leave",
    tags=["leave"]
)


# --- Leave Types ---

@router.get("/types", response_model=List[LeaveTypeResponse])
def list_leave_types(
    active_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return LeaveTypeService(db, current_user.tenant_id, current_user).list(active_only=active_only)


@router.post("/types", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
def create_leave_type(
    data: LeaveTypeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Create a leave type and seed its default balance for every active employee."""
    return LeaveTypeService(db, current_user.tenant_id, current_user).add(data)


@router.get("/types/{type_id}", response_model=LeaveTypeResponse)
def get_leave_type(
    type_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return LeaveTypeService(db, current_user.tenant_id, current_user).get(type_id)


@router.put("/types/{type_id}", response_model=LeaveTypeResponse)
def update_leave_type(
    type_id: int,
    data: LeaveTypeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    return LeaveTypeService(db, current_user.tenant_id, current_user).update(type_id, data)


@router.delete("/types/{type_id}")
def delete_leave_type(
    type_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    LeaveTypeService(db, current_user.tenant_id, current_user).delete(type_id)
    return {"success": True, "message": "Leave type deleted"}


# --- Leave Requests ---

@router.get("/requests", response_model=List[LeaveRequestResponse])
def list_leave_requests(
    employee_id: Optional[int] = None,
    status: Optional[LeaveStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Approvers see the whole tenant; employees only their own requests."""
    return LeaveRequestService(db, current_user.tenant_id, current_user).list(employee_id=employee_id, status=status)


@router.post("/requests", response_model=LeaveRequestResponse, status_code=201)
def submit_leave_request(
    data: LeaveRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return LeaveRequestService(db, current_user.tenant_id, current_user).create(data)


@router.get("/requests/{request_id}", response_model=LeaveRequestResponse)
def get_leave_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return LeaveRequestService(db, current_user.tenant_id, current_user).get(request_id)


@router.patch("/requests/{request_id}/status", response_model=LeaveRequestResponse)
def update_leave_status(
    request_id: int,
    data: LeaveStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Approve or reject a pending request. Approval deducts the balance."""
    service = LeaveRequestService(db, current_user.tenant_id, current_user)
    return service.update_status(request_id, data.status, data.comments)


@router.patch("/requests/{request_id}/cancel", response_model=LeaveRequestResponse)
def cancel_leave_request(
    request_id: int,
    data: Optional[LeaveCancelRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = LeaveRequestService(db, current_user.tenant_id, current_user)
    return service.cancel(request_id, data.comments if data else None)


@router.delete("/requests/{request_id}")
def delete_leave_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    LeaveRequestService(db, current_user.tenant_id, current_user).delete(request_id)
    return {"success": True, "message": "Leave request deleted"}


# --- Balances & Accrual ---

@router.get("/balances/{employee_id}", response_model=List[LeaveBalanceResponse])
def get_leave_balances(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return LeaveBalanceService(db, current_user.tenant_id, current_user).get_for_employee(employee_id)


@router.post("/balances/{employee_id}/adjust", response_model=LeaveBalanceResponse)
def adjust_leave_balance(
    employee_id: int,
    data: BalanceCorrection,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    service = LeaveBalanceService(db, current_user.tenant_id, current_user)
    return service.correct(employee_id, data.leave_type_id, data.delta, data.note)


@router.post("/accrual/run", response_model=AccrualRunResponse)
def run_accrual(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Manual trigger for the monthly accrual; normally driven by scripts/run_accrual.py."""
    updated = LeaveBalanceService(db, current_user.tenant_id, current_user).run_accrual()
    return {"success": True, "updated": updated}


# --- Holidays ---

@router.get("/holidays", response_model=List[HolidayResponse])
def list_holidays(
    year: Optional[int] = Query(default=None, ge=1900, le=2100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Holiday).filter(Holiday.tenant_id == current_user.tenant_id)
    if year is not None:
        query = query.filter(extract("year", Holiday.date) == year)
    return query.order_by(Holiday.date.asc()).all()


@router.post("/holidays", response_model=HolidayResponse, status_code=201)
def create_holiday(
    data: HolidayCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    holiday = Holiday(tenant_id=current_user.tenant_id, **data.model_dump())
    db.add(holiday)
    flush_or_raise(db)
    AuditService.log(
        db, current_user.tenant_id,
        action="create_holiday",
        entity_type="holiday",
        entity_id=holiday.id,
        user_id=current_user.id,
        user_role=current_user.role,
        details={"name": holiday.name, "date": holiday.date},
    )
    commit_or_raise(db)
    db.refresh(holiday)
    return holiday


@router.delete("/holidays/{holiday_id}")
def delete_holiday(
    holiday_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    holiday = db.query(Holiday).filter(
        Holiday.id == holiday_id,
        Holiday.tenant_id == current_user.tenant_id
    ).first()
    if not holiday:
        raise NotFoundError("Holiday not found")

    AuditService.log(
        db, current_user.tenant_id,
        action="delete_holiday",
        entity_type="holiday",
        entity_id=holiday.id,
        user_id=current_user.id,
        user_role=current_user.role,
        details={"name": holiday.name, "date": holiday.date},
    )
    db.delete(holiday)
    commit_or_raise(db)
    return {"success": True, "message": "Holiday deleted"}
