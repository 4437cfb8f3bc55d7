"""
Local development seed: a demo tenant, its Admin account and a starter
set of leave types. Safe to re-run.
"""
import sys
import os
import logging

# Ensure we can import app modules
sys.path.append(os.getcwd())

from app.core.exceptions import ConflictError
from app.core.logging import setup_logging
from app.database import SessionLocal, init_db
from app.models.tenant import Tenant
from app.models.user import User, UserRole
from app.schemas.auth import RegisterRequest
from app.schemas.leave import LeaveTypeCreate
from app.services import auth as auth_service
from app.services.leave_type_service import LeaveTypeService

setup_logging()
logger = logging.getLogger(__name__)

DEMO = RegisterRequest(
    company_name="Demo Company",
    subdomain="demo",
    admin_name="Demo Admin",
    admin_username="admin",
    admin_email="admin@demo-company.com",
    password="Admin123!",
)

STARTER_LEAVE_TYPES = [
    LeaveTypeCreate(name="Annual Leave", short_code="AL", default_balance=20, accrual_rate=1.67),
    LeaveTypeCreate(name="Sick Leave", short_code="SL", default_balance=10),
    LeaveTypeCreate(name="Wellness Day", short_code="WD", default_balance=2, requires_approval=False),
    LeaveTypeCreate(name="Maternity Leave", short_code="ML", default_balance=90, applicable_gender="Female"),
    LeaveTypeCreate(name="Unpaid Leave", short_code="UL", is_paid=False),
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        tenant = db.query(Tenant).filter(Tenant.subdomain == DEMO.subdomain).first()
        if tenant is None:
            tenant, admin, _ = auth_service.register_tenant(db, DEMO)
            logger.info(f"Created tenant '{tenant.subdomain}' with admin '{admin.username}'")
        else:
            admin = db.query(User).filter(User.tenant_id == tenant.id, User.role == UserRole.ADMIN).first()
            logger.info(f"Tenant '{tenant.subdomain}' already exists")

        service = LeaveTypeService(db, tenant.id, admin)
        for leave_type in STARTER_LEAVE_TYPES:
            try:
                service.add(leave_type)
            except ConflictError:
                logger.info(f"Leave type '{leave_type.name}' already exists")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
