from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database import get_db
from app.models.employee import EmployeeStatus
from app.models.user import User
from app.routers.auth_deps import get_current_user, require_admin
from app.schemas.employee import EmployeeCreate, EmployeeResponse, EmployeeUpdate
from app.services import permissions
from app.services.employee_service import EmployeeService

router = APIRouter(
    prefix="/employees",
    tags=["employees"]
)


@router.get("", response_model=List[EmployeeResponse])
def list_employees(
    status: Optional[EmployeeStatus] = None,
    department: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = EmployeeService(db, current_user.tenant_id, current_user)
    if not permissions.can_approve(current_user.role):
        own = service.get_by_user(current_user.id)
        return [own] if own else []
    return service.list(status=status.value if status else None, department=department)


@router.post("", response_model=EmployeeResponse, status_code=201)
def create_employee(
    data: EmployeeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Register an employee. A generated code such as EMP-007 is assigned."""
    return EmployeeService(db, current_user.tenant_id, current_user).create(data)


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if not permissions.can_approve(current_user.role) and current_user.employee_id != employee_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own employee record."
        )
    return EmployeeService(db, current_user.tenant_id, current_user).get(employee_id)


@router.put("/{employee_id}", response_model=EmployeeResponse)
def update_employee(
    employee_id: int,
    data: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    return EmployeeService(db, current_user.tenant_id, current_user).update(employee_id, data)


@router.delete("/{employee_id}")
def delete_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Delete the employee with their leave history, balances and login."""
    EmployeeService(db, current_user.tenant_id, current_user).delete(employee_id)
    return {"success": True, "message": "Employee deleted"}
