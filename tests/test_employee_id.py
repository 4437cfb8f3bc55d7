import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, UnauthorizedError, ValidationError
from app.models.audit_log import AuditLog
from app.models.employee import Employee
from app.models.leave_balance import LeaveBalance, LeaveBalanceAdjustment
from app.models.leave_request import LeaveRequest
from app.models.user import User, UserRole
from app.schemas.employee import EmployeeCreate, EmployeeUpdate
from app.schemas.leave import LeaveRequestCreate
from app.services import employee_service
from app.services.employee_service import EmployeeService, generate_employee_code
from app.services.leave_request_service import LeaveRequestService
from datetime import date, timedelta


def _new_employee(name, **kwargs):
    return EmployeeCreate(name=name, email=f"{name.lower().replace(' ', '.')}@alphacorp.com", **kwargs)


def test_first_code_for_empty_tenant(db_session, tenant):
    assert generate_employee_code(db_session, tenant.id) == "EMP-001"


def test_codes_increment(db_session, tenant, admin_user):
    service = EmployeeService(db_session, tenant.id, admin_user)
    # admin_user already holds EMP-001
    assert service.create(_new_employee("Ann Lee")).employee_code == "EMP-002"
    assert service.create(_new_employee("Bob Roy")).employee_code == "EMP-003"


def test_max_scan_ignores_non_matching_codes(db_session, tenant):
    for code in ("EMP-007", "EMP-XYZ", "CONTRACTOR-99", "EMP-12a"):
        db_session.add(Employee(tenant_id=tenant.id, employee_code=code, name=code, email=f"{code}@alphacorp.com"))
    db_session.commit()
    assert generate_employee_code(db_session, tenant.id) == "EMP-008"


def test_codes_are_per_tenant(db_session, tenant, admin_user):
    from app.models.tenant import Tenant
    other = Tenant(name="Other Corp", subdomain="other")
    db_session.add(other)
    db_session.commit()
    assert generate_employee_code(db_session, other.id) == "EMP-001"


def test_unique_constraint_enforced(db_session, tenant, admin_user):
    db_session.add(Employee(
        tenant_id=tenant.id,
        employee_code=admin_user.employee_profile.employee_code,
        name="Clone",
        email="clone@alphacorp.com",
    ))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_forced_collision_is_retried(db_session, tenant, admin_user, monkeypatch):
    taken = admin_user.employee_profile.employee_code
    calls = []
    original = employee_service.generate_employee_code

    def colliding(db, tenant_id, prefix=None):
        calls.append(tenant_id)
        if len(calls) == 1:
            return taken
        return original(db, tenant_id, prefix)

    monkeypatch.setattr(employee_service, "generate_employee_code", colliding)
    employee = EmployeeService(db_session, tenant.id, admin_user).create(_new_employee("Cara Diaz"))

    assert len(calls) == 2
    assert employee.employee_code == "EMP-002"
    assert db_session.query(Employee).filter(Employee.name == "Cara Diaz").count() == 1


def test_collision_retries_are_bounded(db_session, tenant, admin_user, monkeypatch):
    taken = admin_user.employee_profile.employee_code
    monkeypatch.setattr(employee_service, "generate_employee_code", lambda db, tenant_id, prefix=None: taken)

    with pytest.raises(ConflictError) as exc_info:
        EmployeeService(db_session, tenant.id, admin_user).create(_new_employee("Dan Ek"))
    assert exc_info.value.details == {"constraint": "uq_employees_tenant_code"}
    assert db_session.query(Employee).filter(Employee.name == "Dan Ek").count() == 0


def test_duplicate_email_conflicts(db_session, tenant, admin_user):
    service = EmployeeService(db_session, tenant.id, admin_user)
    service.create(_new_employee("Eve Fox"))
    with pytest.raises(ConflictError) as exc_info:
        service.create(_new_employee("Eve Fox"))
    assert "email" in exc_info.value.message


def test_create_with_login_links_user(db_session, tenant, admin_user, annual_leave):
    employee = EmployeeService(db_session, tenant.id, admin_user).create(
        _new_employee("Gil Ho", password="GilPassword1", gender="Male")
    )
    assert employee.user is not None
    assert employee.user.username == "gil.ho"
    assert employee.user.employee_id == employee.id
    balance = db_session.query(LeaveBalance).filter(LeaveBalance.employee_id == employee.id).one()
    assert balance.balance == 20


def test_non_admin_cannot_create(db_session, tenant, manager_user):
    with pytest.raises(UnauthorizedError):
        EmployeeService(db_session, tenant.id, manager_user).create(_new_employee("Ivy Jo"))


def test_update_status_syncs_active_flag(db_session, tenant, admin_user, employee_user):
    employee = EmployeeService(db_session, tenant.id, admin_user).update(
        employee_user.employee_id, EmployeeUpdate(status="Inactive", department="Finance")
    )
    assert employee.status == "Inactive"
    assert employee.is_active is False
    assert employee.department == "Finance"


def test_update_email_syncs_user(db_session, tenant, admin_user, employee_user):
    EmployeeService(db_session, tenant.id, admin_user).update(
        employee_user.employee_id, EmployeeUpdate(email="renamed@alphacorp.com")
    )
    db_session.refresh(employee_user)
    assert employee_user.email == "renamed@alphacorp.com"


def _other_tenant_employee(db_session, make_user):
    from app.models.tenant import Tenant
    other = Tenant(name="Other Corp", subdomain="other")
    db_session.add(other)
    db_session.commit()
    return make_user("outsider", UserRole.MANAGER, tenant_id=other.id)


def test_manager_from_other_tenant_rejected(db_session, tenant, admin_user, employee_user, make_user):
    outsider = _other_tenant_employee(db_session, make_user)
    service = EmployeeService(db_session, tenant.id, admin_user)

    with pytest.raises(ValidationError) as exc_info:
        service.update(employee_user.employee_id, EmployeeUpdate(reporting_manager_id=outsider.employee_id))
    assert exc_info.value.details["field"] == "reporting_manager_id"

    with pytest.raises(ValidationError):
        service.create(_new_employee("Dan Wu", reporting_manager_id=outsider.employee_id))
    assert service.get(employee_user.employee_id).reporting_manager_id is None


def test_employee_cannot_report_to_self(db_session, tenant, admin_user, employee_user):
    with pytest.raises(ValidationError):
        EmployeeService(db_session, tenant.id, admin_user).update(
            employee_user.employee_id, EmployeeUpdate(reporting_manager_id=employee_user.employee_id)
        )


@pytest.mark.parametrize("field", ["name", "email", "status", "employment_type"])
def test_null_required_field_rejected(db_session, tenant, admin_user, employee_user, field):
    with pytest.raises(ValidationError) as exc_info:
        EmployeeService(db_session, tenant.id, admin_user).update(
            employee_user.employee_id, EmployeeUpdate(**{field: None})
        )
    assert exc_info.value.details["field"] == field


def test_delete_removes_employee_and_user_atomically(db_session, tenant, admin_user, employee_user, annual_leave):
    employee_id = employee_user.employee_id
    user_id = employee_user.id
    start = date.today() + timedelta(days=7)
    leave = LeaveRequestService(db_session, tenant.id, employee_user).create(LeaveRequestCreate(
        leave_type_id=annual_leave.id, start_date=start, end_date=start, reason="Dentist visit",
    ))
    LeaveRequestService(db_session, tenant.id, admin_user).approve(leave.id)

    EmployeeService(db_session, tenant.id, admin_user).delete(employee_id)
    db_session.expire_all()

    assert db_session.query(Employee).filter(Employee.id == employee_id).first() is None
    assert db_session.query(User).filter(User.id == user_id).first() is None
    assert db_session.query(LeaveRequest).filter(LeaveRequest.employee_id == employee_id).count() == 0
    assert db_session.query(LeaveBalance).filter(LeaveBalance.employee_id == employee_id).count() == 0
    assert db_session.query(LeaveBalanceAdjustment).count() == 0
    assert db_session.query(AuditLog).filter(AuditLog.action == "delete_employee").count() == 1


def test_delete_clears_reporting_manager(db_session, tenant, admin_user, manager_user, employee_user):
    service = EmployeeService(db_session, tenant.id, admin_user)
    service.update(employee_user.employee_id, EmployeeUpdate(reporting_manager_id=manager_user.employee_id))
    service.delete(manager_user.employee_id)
    db_session.expire_all()
    assert service.get(employee_user.employee_id).reporting_manager_id is None


def test_admin_cannot_delete_self(db_session, tenant, admin_user):
    with pytest.raises(ConflictError):
        EmployeeService(db_session, tenant.id, admin_user).delete(admin_user.employee_id)


# --- API ---

def test_api_create_and_get(client, admin_user, auth_headers):
    response = client.post("/api/employees", json={
        "name": "Kim Lo", "email": "kim.lo@alphacorp.com", "department": "Sales", "hire_date": "2024-03-01",
    }, headers=auth_headers(admin_user))
    assert response.status_code == 201
    data = response.json()
    assert data["employee_code"] == "EMP-002"
    assert data["hire_date"] == "2024-03-01"
    assert data["employment_type"] == "Full-time"

    response = client.get(f"/api/employees/{data['id']}", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["name"] == "Kim Lo"


def test_api_invalid_email_is_422(client, admin_user, auth_headers):
    response = client.post("/api/employees", json={"name": "Bad", "email": "not-an-email"},
                           headers=auth_headers(admin_user))
    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "email"


def test_api_employee_sees_only_self(client, admin_user, employee_user, auth_headers):
    response = client.get("/api/employees", headers=auth_headers(employee_user))
    assert [e["id"] for e in response.json()] == [employee_user.employee_id]

    response = client.get(f"/api/employees/{admin_user.employee_id}", headers=auth_headers(employee_user))
    assert response.status_code == 403


def test_api_delete(client, admin_user, employee_user, auth_headers):
    employee_id = employee_user.employee_id
    response = client.delete(f"/api/employees/{employee_id}", headers=auth_headers(admin_user))
    assert response.status_code == 200
    response = client.get(f"/api/employees/{employee_id}", headers=auth_headers(admin_user))
    assert response.status_code == 404


def test_api_null_name_is_422(client, admin_user, employee_user, auth_headers):
    response = client.put(f"/api/employees/{employee_user.employee_id}", json={"name": None},
                          headers=auth_headers(admin_user))
    assert response.status_code == 422
    assert response.json()["errors"][0]["details"]["field"] == "name"


def test_api_cross_tenant_manager_is_422(client, db_session, admin_user, employee_user, make_user, auth_headers):
    outsider = _other_tenant_employee(db_session, make_user)
    response = client.put(f"/api/employees/{employee_user.employee_id}",
                          json={"reporting_manager_id": outsider.employee_id},
                          headers=auth_headers(admin_user))
    assert response.status_code == 422
    assert response.json()["errors"][0]["details"]["field"] == "reporting_manager_id"
