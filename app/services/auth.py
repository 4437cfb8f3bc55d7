"""
Tenant registration and login.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AuthenticationError, ConflictError, PersistenceError
from app.core.security import create_access_token, get_password_hash, verify_password
from app.models.employee import Employee, EmployeeStatus
from app.models.tenant import Tenant
from app.models.user import User, UserRole
from app.schemas.auth import RegisterRequest
from app.services.audit import AuditService
from app.services.base import translate_integrity_error
from app.services.employee_service import generate_employee_code
from app.services.leave_balance_service import LeaveBalanceService

logger = logging.getLogger(__name__)


def register_tenant(db: Session, data: RegisterRequest) -> Tuple[Tenant, User, Employee]:
    """
    Create a tenant with its first Admin account and that admin's employee
    record in one transaction.
    """
    subdomain = data.subdomain.lower()
    if db.query(Tenant.id).filter(Tenant.subdomain == subdomain).first():
        raise ConflictError("This company subdomain is already registered.")

    try:
        tenant = Tenant(name=data.company_name.strip(), subdomain=subdomain, status="ACTIVE")
        db.add(tenant)
        db.flush()

        user = User(
            tenant_id=tenant.id,
            username=data.admin_username,
            email=data.admin_email,
            name=data.admin_name,
            hashed_password=get_password_hash(data.password),
            role=UserRole.ADMIN,
            is_active=True,
        )
        db.add(user)
        db.flush()

        employee = Employee(
            tenant_id=tenant.id,
            user_id=user.id,
            employee_code=generate_employee_code(db, tenant.id),
            name=data.admin_name,
            email=data.admin_email,
            position="Administrator",
            status=EmployeeStatus.ACTIVE.value,
            is_active=True,
        )
        db.add(employee)
        db.flush()
        LeaveBalanceService(db, tenant.id).initialize_for_employee(employee)

        AuditService.log(
            db, tenant.id,
            action="register_tenant",
            entity_type="tenant",
            entity_id=tenant.id,
            user_id=user.id,
            user_role=user.role,
            details={"subdomain": subdomain, "admin_email": data.admin_email},
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Tenant registration failed: {e}", exc_info=True)
        raise PersistenceError() from e

    db.refresh(user)
    logger.info(f"Registered tenant {subdomain} ({tenant.id})", extra={"tenant_id": tenant.id})
    return tenant, user, employee


def authenticate(db: Session, subdomain: str, identifier: str, password: str) -> User:
    """Resolve a login by tenant subdomain plus username or email."""
    tenant = db.query(Tenant).filter(Tenant.subdomain == subdomain.lower()).first()
    user: Optional[User] = None
    if tenant is not None and tenant.status == "ACTIVE":
        user = db.query(User).filter(
            User.tenant_id == tenant.id,
            or_(User.username == identifier, User.email == identifier),
        ).first()

    if user is None or not verify_password(password, user.hashed_password):
        logger.warning(f"Failed login for '{identifier}' on '{subdomain}'")
        if tenant is not None:
            AuditService.log(
                db, tenant.id,
                action="failed_login",
                entity_type="user",
                entity_id=None,
                user_id=None,
                user_role=None,
                details={"identifier": identifier, "reason": "invalid_credentials"},
            )
            db.commit()
        raise AuthenticationError("Incorrect username or password")

    if not user.is_active:
        raise AuthenticationError("User account is inactive")

    user.last_login = datetime.now(timezone.utc)
    AuditService.log(
        db, tenant.id,
        action="login",
        entity_type="user",
        entity_id=user.id,
        user_id=user.id,
        user_role=user.role,
        details={"identifier": identifier},
    )
    db.commit()
    db.refresh(user)
    return user


def issue_token(user: User) -> str:
    return create_access_token(data={
        "sub": str(user.id),
        "tenant_id": user.tenant_id,
        "role": user.role.value if hasattr(user.role, "value") else user.role,
        "employee_id": user.employee_id,
    })
