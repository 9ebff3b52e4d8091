from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import EmailStr, Field

from app.gestio.schemas import ApiModel, OutModel, UtcDatetime

ApplicationStatus = Literal["RECEIVED", "REVIEWING", "INTERVIEW", "OFFERED", "HIRED", "REJECTED"]
InterviewStatus = Literal["PLANNED", "CONFIRMED", "COMPLETED", "CANCELLED"]


class JobPostingIn(ApiModel):
    title: str = Field(min_length=3)
    description: str = Field(min_length=10)
    requirements: str | None = None
    location: str | None = None
    salary: str | None = None
    type: str | None = None
    status: str = "OPEN"
    is_active: bool = True
    publish_date: UtcDatetime = Field(default_factory=datetime.utcnow)
    closing_date: UtcDatetime | None = None
    contact_email: EmailStr | None = None
    company_id: int | None = None


class JobPostingUpdateIn(ApiModel):
    title: str | None = Field(default=None, min_length=3)
    description: str | None = Field(default=None, min_length=10)
    requirements: str | None = None
    location: str | None = None
    salary: str | None = None
    type: str | None = None
    status: str | None = None
    is_active: bool | None = None
    publish_date: UtcDatetime | None = None
    closing_date: UtcDatetime | None = None
    contact_email: EmailStr | None = None


class JobPostingOut(OutModel):
    id: int
    company_id: int
    title: str
    description: str
    requirements: str | None
    location: str | None
    salary: str | None
    type: str | None
    status: str
    is_active: bool
    publish_date: datetime
    closing_date: datetime | None
    contact_email: str | None
    created_at: datetime


class NewCandidateIn(ApiModel):
    name: str = Field(min_length=2)
    email: EmailStr
    phone: str | None = None
    address: str | None = None
    linkedin: str | None = None
    resume_url: str | None = None


class CandidateIn(NewCandidateIn):
    status: str = "ACTIVE"
    notes: str | None = None


class CandidateUpdateIn(ApiModel):
    name: str | None = Field(default=None, min_length=2)
    phone: str | None = None
    address: str | None = None
    linkedin: str | None = None
    resume_url: str | None = None
    status: str | None = None
    notes: str | None = None


class ApplicationIn(ApiModel):
    job_posting_id: int
    candidate_id: int | None = None
    status: ApplicationStatus = "RECEIVED"
    notes: str | None = None
    resume: str | None = None
    cover_letter: str | None = None
    new_candidate: NewCandidateIn | None = None


class ApplicationUpdateIn(ApiModel):
    status: ApplicationStatus | None = None
    notes: str | None = None
    resume: str | None = None
    cover_letter: str | None = None
    feedback: str | None = None
    rating: int | None = Field(default=None, ge=0, le=5)


class CandidateOut(OutModel):
    id: int
    name: str
    email: str
    phone: str | None
    address: str | None
    linkedin: str | None
    resume_url: str | None
    status: str
    notes: str | None
    created_at: datetime


class PostingSummaryOut(OutModel):
    id: int
    title: str
    company_id: int


class InterviewSummaryOut(OutModel):
    id: int
    title: str
    scheduled_at: datetime
    status: str
    interviewer_user_id: int | None


class ApplicationOut(OutModel):
    id: int
    job_posting_id: int
    candidate_id: int
    status: str
    notes: str | None
    resume: str | None
    cover_letter: str | None
    feedback: str | None
    rating: int | None
    created_at: datetime
    updated_at: datetime
    job_posting: PostingSummaryOut
    candidate: CandidateOut
    interviews: list[InterviewSummaryOut]


class InterviewIn(ApiModel):
    application_id: int
    interviewer_id: int
    title: str = Field(min_length=1, max_length=255)
    scheduled_at: UtcDatetime
    duration: int = Field(default=60, ge=1)
    status: InterviewStatus = "PLANNED"
    type: str | None = None
    location: str | None = None
    notes: str | None = None
    feedback: str | None = None
    rating: int | None = Field(default=None, ge=0, le=5)


class InterviewUpdateIn(ApiModel):
    interviewer_id: int | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    scheduled_at: UtcDatetime | None = None
    duration: int | None = Field(default=None, ge=1)
    status: InterviewStatus | None = None
    type: str | None = None
    location: str | None = None
    notes: str | None = None
    feedback: str | None = None
    rating: int | None = Field(default=None, ge=0, le=5)


class InterviewerOut(OutModel):
    id: int
    name: str | None
    email: str


class InterviewApplicationOut(OutModel):
    id: int
    status: str
    job_posting: PostingSummaryOut
    candidate: CandidateOut


class InterviewOut(OutModel):
    id: int
    application_id: int
    interviewer_user_id: int | None
    title: str
    scheduled_at: datetime
    duration: int
    status: str
    type: str | None
    location: str | None
    notes: str | None
    feedback: str | None
    rating: int | None
    created_at: datetime
    updated_at: datetime
    interviewer: InterviewerOut | None
    application: InterviewApplicationOut
