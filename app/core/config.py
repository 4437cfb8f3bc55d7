import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()


class Config(BaseModel):
    app_name: str = "HR Platform"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://localhost:3001,"
                "http://127.0.0.1:3000,http://127.0.0.1:3001",
            ).split(",")
            if o.strip()
        ]
    )

    # Rate limiting
    rate_limit_enabled: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    login_rate_limit: str = os.getenv("LOGIN_RATE_LIMIT", "10/minute")

    # Employee registry
    employee_code_prefix: str = os.getenv("EMPLOYEE_CODE_PREFIX", "EMP-")
    employee_code_max_retries: int = int(os.getenv("EMPLOYEE_CODE_MAX_RETRIES", "3"))

    # Leave policy
    allow_cancel_approved: bool = os.getenv("ALLOW_CANCEL_APPROVED", "true").lower() == "true"


settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if "dev-only" in settings.secret_key or "change-it" in settings.secret_key:
        raise RuntimeError(
            "FATAL: SECRET_KEY must be set for non-development environments. "
            "Set it as an environment variable."
        )
elif "dev-only" in settings.secret_key:
    _logger.warning("Using insecure default SECRET_KEY; only acceptable in development.")
