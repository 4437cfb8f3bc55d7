import pytest

from app.core.exceptions import ConflictError, UnauthorizedError, ValidationError
from app.models.leave_balance import LeaveBalance
from app.models.leave_type import LeaveType
from app.schemas.leave import LeaveRequestCreate, LeaveTypeCreate, LeaveTypeUpdate
from app.services.leave_request_service import LeaveRequestService
from app.services.leave_type_service import LeaveTypeService
from datetime import date, timedelta


def test_add_backfills_default_balance_for_active_employees(db_session, tenant, admin_user, employee_user):
    leave_type = LeaveTypeService(db_session, tenant.id, admin_user).add(
        LeaveTypeCreate(name="Sick Leave", default_balance=10)
    )
    balances = db_session.query(LeaveBalance).filter(LeaveBalance.leave_type_id == leave_type.id).all()
    assert sorted(b.employee_id for b in balances) == sorted([admin_user.employee_id, employee_user.employee_id])
    assert all(b.balance == 10 and b.seeded_balance == 10 for b in balances)


def test_add_applies_defaults(db_session, tenant, admin_user):
    leave_type = LeaveTypeService(db_session, tenant.id, admin_user).add(LeaveTypeCreate(name="Unpaid"))
    assert leave_type.is_paid is True
    assert leave_type.requires_approval is True
    assert leave_type.default_balance == 0
    assert leave_type.accrual_rate == 0
    assert leave_type.is_active is True


def test_gender_specific_type_only_seeds_matching_employees(db_session, tenant, admin_user, employee_user):
    leave_type = LeaveTypeService(db_session, tenant.id, admin_user).add(
        LeaveTypeCreate(name="Maternity Leave", default_balance=90, applicable_gender="Female")
    )
    balances = db_session.query(LeaveBalance).filter(LeaveBalance.leave_type_id == leave_type.id).all()
    assert [b.employee_id for b in balances] == [employee_user.employee_id]


def test_duplicate_name_conflicts(db_session, tenant, admin_user, annual_leave):
    with pytest.raises(ConflictError):
        LeaveTypeService(db_session, tenant.id, admin_user).add(LeaveTypeCreate(name="Annual Leave"))


def test_same_name_allowed_in_another_tenant(db_session, make_user, annual_leave):
    from app.models.tenant import Tenant
    from app.models.user import UserRole
    other = Tenant(name="Other Corp", subdomain="other")
    db_session.add(other)
    db_session.commit()
    other_admin = make_user("otheradmin", UserRole.ADMIN, tenant_id=other.id)

    leave_type = LeaveTypeService(db_session, other.id, other_admin).add(LeaveTypeCreate(name="Annual Leave"))
    assert leave_type.tenant_id == other.id


def test_blank_name_rejected_by_schema():
    with pytest.raises(ValueError):
        LeaveTypeCreate(name="   ")


def test_non_admin_cannot_add(db_session, tenant, manager_user):
    with pytest.raises(UnauthorizedError):
        LeaveTypeService(db_session, tenant.id, manager_user).add(LeaveTypeCreate(name="Study Leave"))


def test_update_partial(db_session, tenant, admin_user, annual_leave):
    service = LeaveTypeService(db_session, tenant.id, admin_user)
    updated = service.update(annual_leave.id, LeaveTypeUpdate(accrual_rate=2.0))
    assert updated.accrual_rate == 2.0
    assert updated.default_balance == 20


def test_update_rejects_empty_name(db_session, tenant, admin_user, annual_leave):
    with pytest.raises(ValidationError):
        LeaveTypeService(db_session, tenant.id, admin_user).update(annual_leave.id, LeaveTypeUpdate(name=" "))


def test_delete_in_use_conflicts_and_leaves_type_intact(db_session, tenant, admin_user, employee_user, annual_leave):
    LeaveRequestService(db_session, tenant.id, employee_user).create(LeaveRequestCreate(
        leave_type_id=annual_leave.id,
        start_date=date.today() + timedelta(days=10),
        end_date=date.today() + timedelta(days=11),
        reason="Family visit",
    ))

    with pytest.raises(ConflictError) as exc_info:
        LeaveTypeService(db_session, tenant.id, admin_user).delete(annual_leave.id)
    assert exc_info.value.details["used_in_requests"] is True
    assert db_session.query(LeaveType).filter(LeaveType.id == annual_leave.id).first() is not None


def test_delete_with_only_balances_conflicts(db_session, tenant, admin_user, annual_leave):
    with pytest.raises(ConflictError) as exc_info:
        LeaveTypeService(db_session, tenant.id, admin_user).delete(annual_leave.id)
    assert exc_info.value.details == {"used_in_requests": False, "used_in_balances": True}


def test_delete_unused(db_session, tenant, admin_user):
    service = LeaveTypeService(db_session, tenant.id, admin_user)
    leave_type = service.add(LeaveTypeCreate(name="Bereavement", applicable_gender="Other"))
    service.delete(leave_type.id)
    assert db_session.query(LeaveType).filter(LeaveType.name == "Bereavement").first() is None


# --- API ---

def test_api_create_and_list(client, admin_user, auth_headers):
    response = client.post("/api/leave/types", json={"name": "Annual Leave", "default_balance": 20},
                           headers=auth_headers(admin_user))
    assert response.status_code == 201
    assert response.json()["name"] == "Annual Leave"

    response = client.get("/api/leave/types", headers=auth_headers(admin_user))
    assert [t["name"] for t in response.json()] == ["Annual Leave"]


def test_api_employee_cannot_create(client, employee_user, auth_headers):
    response = client.post("/api/leave/types", json={"name": "Annual Leave"}, headers=auth_headers(employee_user))
    assert response.status_code == 403


def test_api_missing_name_is_422(client, admin_user, auth_headers):
    response = client.post("/api/leave/types", json={"default_balance": 5}, headers=auth_headers(admin_user))
    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "name"


def test_api_delete_in_use_is_409(client, admin_user, auth_headers, annual_leave):
    response = client.delete(f"/api/leave/types/{annual_leave.id}", headers=auth_headers(admin_user))
    assert response.status_code == 409
    assert response.json()["success"] is False
