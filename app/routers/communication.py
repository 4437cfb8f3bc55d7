from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.exceptions import NotFoundError
from app.database import get_db
from app.models.email_template import EmailTemplate
from app.models.user import User
from app.routers.auth_deps import require_admin, require_recruiter
from app.schemas.email_template import EmailTemplateCreate, EmailTemplateResponse, EmailTemplateUpdate
from app.services.audit import AuditService
from app.services.base import commit_or_raise, flush_or_raise, reject_null_fields

router = APIRouter(
    prefix="/communication",
    tags=["communication"]
)

REQUIRED_FIELDS = ("name", "subject", "body")


def _get_template(db: Session, tenant_id: int, template_id: int) -> EmailTemplate:
    template = db.query(EmailTemplate).filter(
        EmailTemplate.id == template_id,
        EmailTemplate.tenant_id == tenant_id
    ).first()
    if not template:
        raise NotFoundError("Email template not found")
    return template


def _audit(db: Session, user: User, action: str, template: EmailTemplate, before_state=None, after_state=None):
    AuditService.log(
        db, user.tenant_id,
        action=action,
        entity_type="email_template",
        entity_id=template.id,
        user_id=user.id,
        user_role=user.role,
        details={"name": template.name},
        before_state=before_state,
        after_state=after_state,
    )


@router.get("/templates", response_model=List[EmailTemplateResponse])
def list_templates(
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    query = db.query(EmailTemplate).filter(EmailTemplate.tenant_id == current_user.tenant_id)
    if category:
        query = query.filter(EmailTemplate.category == category)
    return query.order_by(EmailTemplate.name.asc()).all()


@router.post("/templates", response_model=EmailTemplateResponse, status_code=201)
def create_template(
    data: EmailTemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    template = EmailTemplate(tenant_id=current_user.tenant_id, **data.model_dump())
    db.add(template)
    flush_or_raise(db)
    _audit(db, current_user, "create_email_template", template, after_state=data.model_dump())
    commit_or_raise(db)
    db.refresh(template)
    return template


@router.get("/templates/{template_id}", response_model=EmailTemplateResponse)
def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    return _get_template(db, current_user.tenant_id, template_id)


@router.put("/templates/{template_id}", response_model=EmailTemplateResponse)
def update_template(
    template_id: int,
    data: EmailTemplateUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    template = _get_template(db, current_user.tenant_id, template_id)
    update_data = data.model_dump(exclude_unset=True)
    reject_null_fields(update_data, REQUIRED_FIELDS)

    before_state = {field: getattr(template, field) for field in update_data}
    for field, value in update_data.items():
        setattr(template, field, value)
    _audit(db, current_user, "update_email_template", template, before_state=before_state, after_state=update_data)
    commit_or_raise(db)
    db.refresh(template)
    return template


@router.delete("/templates/{template_id}")
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    template = _get_template(db, current_user.tenant_id, template_id)
    _audit(db, current_user, "delete_email_template", template, before_state={"name": template.name})
    db.delete(template)
    commit_or_raise(db)
    return {"success": True, "message": "Email template deleted"}
