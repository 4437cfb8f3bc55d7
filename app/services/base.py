"""
Service layer base class and database error translation.

Services own the transaction: each public operation runs inside
`unit_of_work()`, which commits on success and rolls back on any error,
translating driver errors into AppExceptions on the way out.
"""
import logging
from contextlib import contextmanager
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

# constraint name -> (SQLite "UNIQUE constraint failed" signature, message)
CONSTRAINT_MESSAGES = {
    "uq_employees_tenant_code": (
        "employees.tenant_id, employees.employee_code",
        "Generated employee ID already exists for this tenant. Please try again.",
    ),
    "uq_employees_tenant_email": (
        "employees.tenant_id, employees.email",
        "An employee with this email already exists for this tenant.",
    ),
    "employees_user_id_key": (
        "employees.user_id",
        "This user account is already linked to an employee profile.",
    ),
    "uq_users_tenant_username": (
        "users.tenant_id, users.username",
        "This username is already taken for this tenant.",
    ),
    "uq_users_tenant_email": (
        "users.tenant_id, users.email",
        "A user with this email already exists for this tenant.",
    ),
    "tenants_subdomain_key": (
        "tenants.subdomain",
        "This company subdomain is already registered.",
    ),
    "uq_leave_types_tenant_name": (
        "leave_types.tenant_id, leave_types.name",
        "A leave type with this name already exists.",
    ),
    "uq_leave_balances_employee_type": (
        "leave_balances.tenant_id, leave_balances.employee_id, leave_balances.leave_type_id",
        "A balance already exists for this employee and leave type.",
    ),
    "uq_holidays_tenant_date": (
        "holidays.tenant_id, holidays.date",
        "A holiday is already defined on this date.",
    ),
    "uq_candidates_posting_email": (
        "candidates.job_posting_id, candidates.email",
        "This candidate has already applied to this job posting.",
    ),
    "uq_email_templates_tenant_name": (
        "email_templates.tenant_id, email_templates.name",
        "An email template with this name already exists.",
    ),
}


def translate_integrity_error(exc: IntegrityError) -> ConflictError:
    """Map a constraint violation to a readable ConflictError."""
    raw = str(exc.orig) if exc.orig is not None else str(exc)
    for constraint, (sqlite_signature, message) in CONSTRAINT_MESSAGES.items():
        if constraint in raw or raw.rstrip().endswith(sqlite_signature):
            return ConflictError(message, details={"constraint": constraint})
    if "foreign key" in raw.lower():
        return ConflictError(
            "The record is referenced by other data or refers to a record that does not exist.",
            details={"constraint": "foreign_key"},
        )
    return ConflictError("The operation conflicts with existing data.", details={"constraint": None})


def reject_null_fields(updates: dict, required: Iterable[str]) -> None:
    """A partial update may omit a required column but never set it to null."""
    for field in required:
        if field in updates and updates[field] is None:
            raise ValidationError(f"{field} cannot be null", field=field)


def flush_or_raise(db: Session) -> None:
    """Flush pending inserts so ids are assigned, translating constraint violations."""
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e) from e


def commit_or_raise(db: Session) -> None:
    """Commit, translating failures. Used by routers that talk to the session directly."""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Commit failed: {e}", exc_info=True)
        raise PersistenceError() from e


class BaseService:
    def __init__(self, db: Session, tenant_id: Optional[int] = None):
        self.db = db
        self.tenant_id = tenant_id
        self._logger = logging.getLogger(self.__class__.__module__)

    @contextmanager
    def unit_of_work(self):
        try:
            yield
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise translate_integrity_error(e) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            self._logger.error(f"Database error: {e}", exc_info=True)
            raise PersistenceError() from e
        except Exception:
            self.db.rollback()
            raise

    def log_info(self, message: str, **extra):
        self._logger.info(message, extra={"tenant_id": self.tenant_id, **extra})

    def log_warning(self, message: str, **extra):
        self._logger.warning(message, extra={"tenant_id": self.tenant_id, **extra})
