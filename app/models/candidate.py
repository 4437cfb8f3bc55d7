from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base


class CandidateStatus(str, enum.Enum):
    APPLIED = "Applied"
    SCREENING = "Screening"
    INTERVIEWING = "Interviewing"
    OFFERED = "Offered"
    HIRED = "Hired"
    REJECTED = "Rejected"


class Candidate(Base):
    __tablename__ = "candidates"
    __table_args__ = (
        UniqueConstraint("job_posting_id", "email", name="uq_candidates_posting_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    job_posting_id = Column(Integer, ForeignKey("job_postings.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    resume_url = Column(String(255), nullable=True)
    cover_letter = Column(Text, nullable=True)
    status = Column(String(20), default=CandidateStatus.APPLIED.value, nullable=False)
    notes = Column(Text, nullable=True)
    application_date = Column(DateTime(timezone=True), server_default=func.now())

    job_posting = relationship("JobPosting", back_populates="candidates")
