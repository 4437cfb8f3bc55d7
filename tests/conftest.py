import pytest
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from app.database import Base, enable_sqlite_foreign_keys, get_db
from app.main import app
from fastapi.testclient import TestClient

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

PASSWORD = "Password123!"


@pytest.fixture(scope="function")
def db_session():
    """
    A brand-new in-memory database per test. Services commit and roll back
    on their own, so a wrapping outer transaction cannot isolate tests.
    """
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def tenant(db_session):
    from app.models.tenant import Tenant
    tenant = Tenant(name="Alpha Corp", subdomain="alpha")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope="function")
def make_user(db_session, tenant):
    """Create a user with a linked employee record in the default tenant."""
    from app.core.security import get_password_hash
    from app.models.employee import Employee
    from app.models.user import User
    from app.services.employee_service import generate_employee_code

    def _make_user(username, role, gender=None, tenant_id=None):
        tenant_id = tenant_id or tenant.id
        user = User(
            tenant_id=tenant_id,
            username=username,
            email=f"{username}@alphacorp.com",
            name=username.title(),
            hashed_password=get_password_hash(PASSWORD),
            role=role,
            is_active=True,
        )
        db_session.add(user)
        db_session.flush()
        employee = Employee(
            tenant_id=tenant_id,
            user_id=user.id,
            employee_code=generate_employee_code(db_session, tenant_id),
            name=username.title(),
            email=user.email,
            gender=gender,
        )
        db_session.add(employee)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture(scope="function")
def admin_user(make_user):
    from app.models.user import UserRole
    return make_user("admin", UserRole.ADMIN)


@pytest.fixture(scope="function")
def manager_user(make_user):
    from app.models.user import UserRole
    return make_user("manager", UserRole.MANAGER)


@pytest.fixture(scope="function")
def employee_user(make_user):
    from app.models.user import UserRole
    return make_user("employee", UserRole.EMPLOYEE, gender="Female")


@pytest.fixture(scope="function")
def annual_leave(db_session, tenant, admin_user):
    """Annual Leave: 20 days seeded, 1.67 accrued per run, requires approval."""
    from app.schemas.leave import LeaveTypeCreate
    from app.services.leave_type_service import LeaveTypeService
    return LeaveTypeService(db_session, tenant.id, admin_user).add(LeaveTypeCreate(
        name="Annual Leave",
        default_balance=20,
        accrual_rate=1.67,
        requires_approval=True,
    ))


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens for a user."""
    from app.services.auth import issue_token

    def _get_token(user):
        return issue_token(user)
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
