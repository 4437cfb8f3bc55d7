from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import logging

from app.core.config import settings
from app.core.limiter import limiter
from app.database import get_db
from app.models.user import User
from app.routers.auth_deps import get_current_user
from app.schemas.auth import LoginRequest, RegisterRequest, RegisterResponse, Token, UserResponse
from app.services import auth as auth_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Sign up a company: tenant, first Admin account and its employee record."""
    tenant, user, employee = auth_service.register_tenant(db, data)
    return {
        "tenant_id": tenant.id,
        "subdomain": tenant.subdomain,
        "user": UserResponse.model_validate(user),
        "employee_code": employee.employee_code,
    }


@router.post("/login", response_model=Token)
@limiter.limit(settings.login_rate_limit)
def login(request: Request, login_data: LoginRequest, db: Session = Depends(get_db)):
    # JSON body instead of form-data for frontend compatibility
    user = auth_service.authenticate(db, login_data.subdomain, login_data.identifier, login_data.password)
    access_token = auth_service.issue_token(user)
    logger.info(f"User {user.id} logged in", extra={"tenant_id": user.tenant_id})
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": {
            "id": user.id,
            "tenant_id": user.tenant_id,
            "username": user.username,
            "email": user.email,
            "role": user.role.value,
            "employee_id": user.employee_id,
        }
    }


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user
