from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base


class JobPostingStatus(str, enum.Enum):
    DRAFT = "Draft"
    OPEN = "Open"
    CLOSED = "Closed"


class JobPosting(Base):
    __tablename__ = "job_postings"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), index=True, nullable=False)
    description = Column(Text, nullable=False)
    department = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    employment_type = Column(String(30), default="Full-time", nullable=False)
    salary_range = Column(String(100), nullable=True)
    status = Column(String(20), default=JobPostingStatus.DRAFT.value, nullable=False, index=True)
    date_posted = Column(DateTime(timezone=True), server_default=func.now())
    closing_date = Column(Date, nullable=True)

    candidates = relationship("Candidate", back_populates="job_posting", cascade="all, delete-orphan")
