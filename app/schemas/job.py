from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import date, datetime

from app.models.candidate import CandidateStatus
from app.models.employee import EmploymentType
from app.models.job import JobPostingStatus


# --- Job Postings ---

class JobPostingBase(BaseModel):
    title: str = Field(..., min_length=2, max_length=255)
    description: str = Field(..., min_length=10)
    department: Optional[str] = None
    location: Optional[str] = None
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    salary_range: Optional[str] = Field(default=None, max_length=100)
    status: JobPostingStatus = JobPostingStatus.DRAFT
    closing_date: Optional[date] = None


class JobPostingCreate(JobPostingBase):
    pass


class JobPostingUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=2, max_length=255)
    description: Optional[str] = Field(default=None, min_length=10)
    department: Optional[str] = None
    location: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    salary_range: Optional[str] = Field(default=None, max_length=100)
    status: Optional[JobPostingStatus] = None
    closing_date: Optional[date] = None


class JobPostingResponse(JobPostingBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    date_posted: Optional[datetime] = None


# --- Candidates ---

class CandidateCreate(BaseModel):
    job_posting_id: int
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    resume_url: Optional[str] = Field(default=None, max_length=255)
    cover_letter: Optional[str] = None


class CandidateUpdate(BaseModel):
    status: Optional[CandidateStatus] = None
    notes: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    resume_url: Optional[str] = Field(default=None, max_length=255)


class CandidateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    job_posting_id: int
    name: str
    email: str
    phone: Optional[str] = None
    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None
    status: CandidateStatus
    notes: Optional[str] = None
    application_date: Optional[datetime] = None
