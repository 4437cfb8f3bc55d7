from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.exceptions import ConflictError, NotFoundError
from app.database import get_db
from app.models.candidate import Candidate
from app.models.job import JobPosting, JobPostingStatus
from app.models.user import User
from app.routers.auth_deps import require_recruiter
from app.schemas.job import (
    CandidateCreate,
    CandidateResponse,
    CandidateUpdate,
    JobPostingCreate,
    JobPostingResponse,
    JobPostingUpdate,
)
from app.services.audit import AuditService
from app.services.base import commit_or_raise, flush_or_raise, reject_null_fields

router = APIRouter(
    prefix="/recruitment",
    tags=["recruitment"]
)


def _get_posting(db: Session, tenant_id: int, posting_id: int) -> JobPosting:
    posting = db.query(JobPosting).filter(
        JobPosting.id == posting_id,
        JobPosting.tenant_id == tenant_id
    ).first()
    if not posting:
        raise NotFoundError("Job posting not found")
    return posting


def _get_candidate(db: Session, tenant_id: int, candidate_id: int) -> Candidate:
    candidate = db.query(Candidate).filter(
        Candidate.id == candidate_id,
        Candidate.tenant_id == tenant_id
    ).first()
    if not candidate:
        raise NotFoundError("Candidate not found")
    return candidate


def _audit(db: Session, user: User, action: str, entity_type: str, entity_id: int, details: dict,
           before_state=None, after_state=None):
    AuditService.log(
        db, user.tenant_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user.id,
        user_role=user.role,
        details=details,
        before_state=before_state,
        after_state=after_state,
    )


# --- Job Postings ---

@router.get("/postings", response_model=List[JobPostingResponse])
def list_postings(
    status: Optional[JobPostingStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    query = db.query(JobPosting).filter(JobPosting.tenant_id == current_user.tenant_id)
    if status is not None:
        query = query.filter(JobPosting.status == status.value)
    return query.order_by(JobPosting.date_posted.desc(), JobPosting.id.desc()).all()


@router.post("/postings", response_model=JobPostingResponse, status_code=201)
def create_posting(
    data: JobPostingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    posting = JobPosting(tenant_id=current_user.tenant_id, **data.model_dump(mode="json", exclude={"closing_date"}),
                         closing_date=data.closing_date)
    db.add(posting)
    db.flush()
    _audit(db, current_user, "create_job_posting", "job_posting", posting.id,
           {"title": posting.title, "department": posting.department}, after_state=data.model_dump())
    commit_or_raise(db)
    db.refresh(posting)
    return posting


@router.get("/postings/{posting_id}", response_model=JobPostingResponse)
def get_posting(
    posting_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    return _get_posting(db, current_user.tenant_id, posting_id)


@router.put("/postings/{posting_id}", response_model=JobPostingResponse)
def update_posting(
    posting_id: int,
    data: JobPostingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    posting = _get_posting(db, current_user.tenant_id, posting_id)
    update_data = data.model_dump(mode="json", exclude_unset=True)
    reject_null_fields(update_data, ("title", "description", "employment_type", "status"))
    if "closing_date" in update_data:
        update_data["closing_date"] = data.closing_date

    before_state = {field: getattr(posting, field) for field in update_data}
    for field, value in update_data.items():
        setattr(posting, field, value)
    _audit(db, current_user, "update_job_posting", "job_posting", posting.id, {"title": posting.title},
           before_state=before_state, after_state=update_data)
    commit_or_raise(db)
    db.refresh(posting)
    return posting


@router.delete("/postings/{posting_id}")
def delete_posting(
    posting_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    """Hard delete; the posting's candidates go with it."""
    posting = _get_posting(db, current_user.tenant_id, posting_id)
    _audit(db, current_user, "delete_job_posting", "job_posting", posting.id, {"title": posting.title},
           before_state={"title": posting.title, "candidates": len(posting.candidates)})
    db.delete(posting)
    commit_or_raise(db)
    return {"success": True, "message": "Job posting deleted"}


# --- Candidates ---

@router.get("/candidates", response_model=List[CandidateResponse])
def list_candidates(
    job_posting_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    query = db.query(Candidate).filter(Candidate.tenant_id == current_user.tenant_id)
    if job_posting_id is not None:
        query = query.filter(Candidate.job_posting_id == job_posting_id)
    return query.order_by(Candidate.application_date.desc(), Candidate.id.desc()).all()


@router.post("/candidates", response_model=CandidateResponse, status_code=201)
def create_candidate(
    data: CandidateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    posting = _get_posting(db, current_user.tenant_id, data.job_posting_id)
    if posting.status != JobPostingStatus.OPEN.value:
        raise ConflictError(f"Job posting is {posting.status}; candidates can only apply to open postings.")

    candidate = Candidate(tenant_id=current_user.tenant_id, **data.model_dump())
    db.add(candidate)
    flush_or_raise(db)
    _audit(db, current_user, "create_candidate", "candidate", candidate.id,
           {"job_posting_id": posting.id, "email": candidate.email})
    commit_or_raise(db)
    db.refresh(candidate)
    return candidate


@router.get("/candidates/{candidate_id}", response_model=CandidateResponse)
def get_candidate(
    candidate_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    return _get_candidate(db, current_user.tenant_id, candidate_id)


@router.put("/candidates/{candidate_id}", response_model=CandidateResponse)
def update_candidate(
    candidate_id: int,
    data: CandidateUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    candidate = _get_candidate(db, current_user.tenant_id, candidate_id)
    update_data = data.model_dump(mode="json", exclude_unset=True)
    reject_null_fields(update_data, ("status",))

    before_state = {field: getattr(candidate, field) for field in update_data}
    for field, value in update_data.items():
        setattr(candidate, field, value)
    _audit(db, current_user, "update_candidate", "candidate", candidate.id, {"email": candidate.email},
           before_state=before_state, after_state=update_data)
    commit_or_raise(db)
    db.refresh(candidate)
    return candidate


@router.delete("/candidates/{candidate_id}")
def delete_candidate(
    candidate_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter())
):
    candidate = _get_candidate(db, current_user.tenant_id, candidate_id)
    _audit(db, current_user, "delete_candidate", "candidate", candidate.id, {"email": candidate.email})
    db.delete(candidate)
    commit_or_raise(db)
    return {"success": True, "message": "Candidate deleted"}
