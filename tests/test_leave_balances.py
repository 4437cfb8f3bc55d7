import pytest
from sqlalchemy import func

from app.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from app.models.leave_balance import AdjustmentReason, LeaveBalance, LeaveBalanceAdjustment
from app.models.tenant import Tenant
from app.schemas.leave import LeaveTypeCreate
from app.services.leave_balance_service import LeaveBalanceService, run_accrual_for_all_tenants
from app.services.leave_type_service import LeaveTypeService


def _ledger_sum(db_session, balance):
    return db_session.query(func.coalesce(func.sum(LeaveBalanceAdjustment.amount), 0.0)).filter(
        LeaveBalanceAdjustment.balance_id == balance.id
    ).scalar()


def test_initialize_is_idempotent(db_session, tenant, annual_leave, employee_user):
    service = LeaveBalanceService(db_session, tenant.id)
    employee_id = employee_user.employee_id

    first = service.initialize_for_employee(employee_id)
    db_session.commit()
    second = service.initialize_for_employee(employee_id)
    db_session.commit()

    assert second == 0
    assert first in (0, 1)
    rows = db_session.query(LeaveBalance).filter(LeaveBalance.employee_id == employee_id).all()
    assert len(rows) == 1
    assert rows[0].balance == 20


def test_initialize_skips_inactive_types(db_session, tenant, admin_user, employee_user):
    LeaveTypeService(db_session, tenant.id, admin_user).add(
        LeaveTypeCreate(name="Retired Type", default_balance=5, is_active=False)
    )
    # Inactive types are not seeded on creation either
    assert db_session.query(LeaveBalance).count() == 0
    assert LeaveBalanceService(db_session, tenant.id).initialize_for_employee(employee_user.employee_id) == 0


def test_adjust_records_ledger_entry(db_session, tenant, annual_leave, employee_user):
    service = LeaveBalanceService(db_session, tenant.id)
    service.initialize_for_employee(employee_user.employee_id)
    balance = service.adjust(employee_user.employee_id, annual_leave.id, -3, AdjustmentReason.DEDUCTION)
    db_session.commit()

    assert balance.balance == 17
    entries = balance.adjustments
    assert [(e.amount, e.reason) for e in entries] == [(-3, "deduction")]


def test_adjust_missing_balance_for_inapplicable_type(db_session, tenant, admin_user, employee_user):
    # Employee is Female; a Male-only type can never have a balance row for them
    leave_type = LeaveTypeService(db_session, tenant.id, admin_user).add(
        LeaveTypeCreate(name="Paternity Leave", default_balance=10, applicable_gender="Male")
    )
    with pytest.raises(NotFoundError):
        LeaveBalanceService(db_session, tenant.id).adjust(
            employee_user.employee_id, leave_type.id, -1, AdjustmentReason.DEDUCTION
        )


def test_ledger_sum_matches_balance_minus_seed(db_session, tenant, admin_user, annual_leave, employee_user):
    service = LeaveBalanceService(db_session, tenant.id, admin_user)
    service.initialize_for_employee(employee_user.employee_id)
    for delta, reason in [(-5, AdjustmentReason.DEDUCTION), (5, AdjustmentReason.REFUND),
                          (1.67, AdjustmentReason.ACCRUAL), (-2, AdjustmentReason.DEDUCTION)]:
        service.adjust(employee_user.employee_id, annual_leave.id, delta, reason)
    db_session.commit()
    service.correct(employee_user.employee_id, annual_leave.id, 0.33, "Rounding fix")

    balance = service.get_balance(employee_user.employee_id, annual_leave.id)
    assert balance.balance == pytest.approx(20.0)
    assert _ledger_sum(db_session, balance) == pytest.approx(balance.balance - balance.seeded_balance)


def test_accrual_credits_every_active_employee(db_session, tenant, annual_leave, admin_user, employee_user):
    updated = LeaveBalanceService(db_session, tenant.id).run_accrual()
    assert updated == 2

    balance = LeaveBalanceService(db_session, tenant.id).get_balance(employee_user.employee_id, annual_leave.id)
    assert balance.balance == pytest.approx(21.67)
    assert balance.adjustments[-1].reason == "accrual"


def test_accrual_skips_inactive_employees(db_session, tenant, annual_leave, admin_user, employee_user):
    employee = employee_user.employee_profile
    employee.is_active = False
    db_session.commit()

    assert LeaveBalanceService(db_session, tenant.id).run_accrual() == 1


def test_accrual_without_accruing_types_is_noop(db_session, tenant, admin_user):
    LeaveTypeService(db_session, tenant.id, admin_user).add(LeaveTypeCreate(name="Sick Leave", default_balance=10))
    assert LeaveBalanceService(db_session, tenant.id).run_accrual() == 0


def test_accrual_for_all_tenants(db_session, tenant, annual_leave, admin_user):
    db_session.add(Tenant(name="Dormant", subdomain="dormant", status="SUSPENDED"))
    db_session.commit()
    assert run_accrual_for_all_tenants(db_session) == {"alpha": 1}


def test_correction_is_admin_only(db_session, tenant, manager_user, annual_leave, employee_user):
    with pytest.raises(UnauthorizedError):
        LeaveBalanceService(db_session, tenant.id, manager_user).correct(
            employee_user.employee_id, annual_leave.id, 2, "Bonus days"
        )


def test_correction_rejects_zero(db_session, tenant, admin_user, annual_leave, employee_user):
    with pytest.raises(ValidationError):
        LeaveBalanceService(db_session, tenant.id, admin_user).correct(
            employee_user.employee_id, annual_leave.id, 0, "Nothing"
        )


def test_correction_may_go_negative(db_session, tenant, admin_user, annual_leave, employee_user):
    balance = LeaveBalanceService(db_session, tenant.id, admin_user).correct(
        employee_user.employee_id, annual_leave.id, -25, "Carry-over clawback"
    )
    assert balance.balance == -5


# --- API ---

def test_api_employee_reads_own_balances(client, employee_user, annual_leave, auth_headers):
    response = client.get(f"/api/leave/balances/{employee_user.employee_id}", headers=auth_headers(employee_user))
    assert response.status_code == 200
    data = response.json()
    assert [(b["leave_type_name"], b["balance"]) for b in data] == [("Annual Leave", 20.0)]


def test_api_employee_cannot_read_others(client, employee_user, admin_user, annual_leave, auth_headers):
    response = client.get(f"/api/leave/balances/{admin_user.employee_id}", headers=auth_headers(employee_user))
    assert response.status_code == 403


def test_api_admin_adjusts_balance(client, admin_user, employee_user, annual_leave, auth_headers):
    response = client.post(
        f"/api/leave/balances/{employee_user.employee_id}/adjust",
        json={"leave_type_id": annual_leave.id, "delta": 2.5, "note": "Overtime credit"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    assert response.json()["balance"] == 22.5


def test_api_accrual_run(client, admin_user, annual_leave, auth_headers):
    response = client.post("/api/leave/accrual/run", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json() == {"success": True, "updated": 1}
