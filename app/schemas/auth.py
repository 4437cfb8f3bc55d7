from pydantic import BaseModel, EmailStr, ConfigDict, Field
from typing import Optional
from app.models.user import UserRole
from datetime import datetime


class RegisterRequest(BaseModel):
    company_name: str = Field(..., min_length=2, max_length=255)
    subdomain: str = Field(..., min_length=2, max_length=63, pattern=r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
    admin_name: str = Field(..., min_length=1, max_length=255)
    admin_username: str = Field(..., min_length=3, max_length=100)
    admin_email: EmailStr
    password: str = Field(..., min_length=8)


class LoginRequest(BaseModel):
    subdomain: str
    # Username or email
    identifier: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[dict] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    username: str
    email: EmailStr
    name: Optional[str] = None
    role: UserRole
    is_active: bool
    employee_id: Optional[int] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class RegisterResponse(BaseModel):
    tenant_id: int
    subdomain: str
    user: UserResponse
    employee_code: str
