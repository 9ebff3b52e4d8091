from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select

from app.gestio.audit import log_action
from app.gestio.errors import AccessDenied, BadRequest, Conflict, NotFound
from app.gestio.models import User
from app.gestio.modules.recruitment.models import Application, Candidate, Interview, JobPosting

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.modules.recruitment.schemas import (
        ApplicationIn,
        ApplicationUpdateIn,
        CandidateIn,
        CandidateUpdateIn,
        InterviewIn,
        InterviewUpdateIn,
        JobPostingIn,
        JobPostingUpdateIn,
    )

# Fields a candidate may edit on their own application.
CANDIDATE_FIELDS = frozenset({"resume", "cover_letter"})
# Fields the assigned interviewer may record on an interview.
INTERVIEWER_FIELDS = frozenset({"status", "notes", "feedback", "rating"})
# Applications still in progress; a candidate with one of these cannot be removed.
OPEN_APPLICATION_STATUSES = ("RECEIVED", "REVIEWING", "INTERVIEW", "OFFERED")


def create_job_posting(s: "Session", payload: "JobPostingIn", company_id: int, user: "User") -> JobPosting:
    data = payload.model_dump(exclude={"company_id"})
    if data.get("contact_email"):
        data["contact_email"] = str(data["contact_email"])
    posting = JobPosting(company_id=company_id, created_at=datetime.utcnow(), **data)
    s.add(posting)
    s.flush()
    log_action(s, user, "CREATE", "JOB_POSTING", posting.id, {"title": posting.title})
    return posting


def _apply_changes(target, data: dict) -> dict:
    changes = {}
    for field, value in data.items():
        old = getattr(target, field)
        if value != old:
            changes[field] = {"old": old, "new": value}
            setattr(target, field, value)
    return changes


def update_job_posting(s: "Session", posting: JobPosting, payload: "JobPostingUpdateIn", user: "User") -> JobPosting:
    data = payload.model_dump(exclude_unset=True)
    if data.get("contact_email"):
        data["contact_email"] = str(data["contact_email"])
    for field in ("title", "description", "status", "is_active", "publish_date"):
        if field in data and data[field] is None:
            raise BadRequest(f"'{field}' cannot be null")
    changes = _apply_changes(posting, data)
    log_action(s, user, "UPDATE", "JOB_POSTING", posting.id, {"changes": changes})
    return posting


def delete_job_posting(s: "Session", posting: JobPosting, user: "User") -> bool:
    """Delete a posting, or close it when applications reference it.

    Returns True when the row was removed.
    """
    applications = s.query(Application).filter(Application.job_posting_id == posting.id).count()
    if applications:
        posting.is_active = False
        posting.status = "CLOSED"
        log_action(s, user, "UPDATE", "JOB_POSTING", posting.id, {"deactivated": True, "applications": applications})
        return False
    s.delete(posting)
    log_action(s, user, "DELETE", "JOB_POSTING", posting.id, {"title": posting.title})
    return True


def is_candidate(user: "User", application: Application) -> bool:
    return user.email.lower() == application.candidate.email.lower()


def _resolve_candidate(s: "Session", payload: "ApplicationIn") -> Candidate:
    if payload.candidate_id is not None:
        candidate = s.get(Candidate, payload.candidate_id)
        if candidate is None:
            raise NotFound("Candidate not found")
        return candidate
    if payload.new_candidate is None:
        raise BadRequest("Either candidateId or newCandidate is required")

    info = payload.new_candidate
    email = str(info.email).lower()
    candidate = s.query(Candidate).filter(Candidate.email == email).one_or_none()
    if candidate is not None:
        return candidate
    candidate = Candidate(
        name=info.name,
        email=email,
        phone=info.phone,
        address=info.address,
        linkedin=info.linkedin,
        resume_url=info.resume_url,
        created_at=datetime.utcnow(),
    )
    s.add(candidate)
    s.flush()
    return candidate


def create_application(s: "Session", payload: "ApplicationIn", user: "User") -> Application:
    posting = s.get(JobPosting, payload.job_posting_id)
    if posting is None:
        raise NotFound("Job posting not found")
    if not posting.is_active:
        raise BadRequest("This job posting is no longer accepting applications")

    candidate = _resolve_candidate(s, payload)
    exists = (
        s.query(Application.id)
        .filter(Application.job_posting_id == posting.id, Application.candidate_id == candidate.id)
        .first()
    )
    if exists is not None:
        raise BadRequest("This candidate has already applied to this job posting")

    now = datetime.utcnow()
    application = Application(
        job_posting_id=posting.id,
        candidate_id=candidate.id,
        status=payload.status,
        notes=payload.notes,
        resume=payload.resume,
        cover_letter=payload.cover_letter,
        created_at=now,
        updated_at=now,
    )
    s.add(application)
    s.flush()
    log_action(
        s,
        user,
        "CREATE",
        "APPLICATION",
        application.id,
        {"jobPostingId": posting.id, "candidateId": candidate.id, "status": application.status},
    )
    return application


def update_application(
    s: "Session",
    application: Application,
    payload: "ApplicationUpdateIn",
    user: "User",
    *,
    as_admin: bool,
) -> Application:
    data = payload.model_dump(exclude_unset=True)
    if not as_admin:
        forbidden = sorted(set(data) - CANDIDATE_FIELDS)
        if forbidden:
            raise AccessDenied("Candidates may only update their resume and cover letter", details={"fields": forbidden})

    changes = {}
    for field, value in data.items():
        if value is None and field == "status":
            continue
        if value != getattr(application, field):
            changes[field] = {"old": getattr(application, field), "new": value}
            setattr(application, field, value)
    application.updated_at = datetime.utcnow()
    log_action(s, user, "UPDATE", "APPLICATION", application.id, {"changes": changes})
    return application


def delete_application(s: "Session", application: Application, user: "User") -> None:
    interviews = len(application.interviews)
    s.delete(application)
    log_action(
        s,
        user,
        "DELETE",
        "APPLICATION",
        application.id,
        {"candidateId": application.candidate_id, "interviewsDeleted": interviews},
    )


def company_candidate_ids(company_id: int):
    """Subquery of candidates who applied to one of the company's postings."""
    return (
        select(Application.candidate_id)
        .join(JobPosting, Application.job_posting_id == JobPosting.id)
        .where(JobPosting.company_id == company_id)
    )


def create_candidate(s: "Session", payload: "CandidateIn", user: "User") -> Candidate:
    email = str(payload.email).lower()
    if s.query(Candidate.id).filter(Candidate.email == email).first() is not None:
        raise Conflict("A candidate with this email already exists")
    candidate = Candidate(
        **payload.model_dump(exclude={"email"}),
        email=email,
        created_at=datetime.utcnow(),
    )
    s.add(candidate)
    s.flush()
    log_action(s, user, "CREATE", "CANDIDATE", candidate.id, {"email": email})
    return candidate


def update_candidate(s: "Session", candidate: Candidate, payload: "CandidateUpdateIn", user: "User") -> Candidate:
    data = payload.model_dump(exclude_unset=True)
    for field in ("name", "status"):
        if field in data and data[field] is None:
            raise BadRequest(f"'{field}' cannot be null")
    changes = _apply_changes(candidate, data)
    log_action(s, user, "UPDATE", "CANDIDATE", candidate.id, {"changes": changes})
    return candidate


def delete_candidate(s: "Session", candidate: Candidate, user: "User") -> None:
    applications = s.query(Application).filter(Application.candidate_id == candidate.id).all()
    open_ids = [a.id for a in applications if a.status in OPEN_APPLICATION_STATUSES]
    if open_ids:
        raise BadRequest(
            "This candidate still has applications in progress",
            details={"applicationIds": open_ids},
        )
    for application in applications:
        s.delete(application)
    s.delete(candidate)
    log_action(
        s,
        user,
        "DELETE",
        "CANDIDATE",
        candidate.id,
        {"email": candidate.email, "applicationsDeleted": len(applications)},
    )


def _interviewer(s: "Session", user_id: int, company_id: int) -> User:
    interviewer = s.get(User, user_id)
    if interviewer is None:
        raise NotFound("Interviewer not found")
    if interviewer.company_id != company_id:
        raise BadRequest("The interviewer must belong to the company of the job posting")
    return interviewer


def create_interview(s: "Session", application: Application, payload: "InterviewIn", user: "User") -> Interview:
    interviewer = _interviewer(s, payload.interviewer_id, application.job_posting.company_id)
    now = datetime.utcnow()
    interview = Interview(
        **payload.model_dump(exclude={"application_id", "interviewer_id"}),
        application_id=application.id,
        interviewer_user_id=interviewer.id,
        created_at=now,
        updated_at=now,
    )
    s.add(interview)
    s.flush()
    log_action(
        s,
        user,
        "CREATE",
        "INTERVIEW",
        interview.id,
        {"applicationId": application.id, "interviewerId": interviewer.id, "scheduledAt": interview.scheduled_at},
    )
    return interview


def update_interview(
    s: "Session",
    interview: Interview,
    payload: "InterviewUpdateIn",
    user: "User",
    *,
    as_admin: bool,
) -> Interview:
    data = payload.model_dump(exclude_unset=True)
    if not as_admin:
        forbidden = sorted(set(data) - INTERVIEWER_FIELDS)
        if forbidden:
            raise AccessDenied("Interviewers may only record status, notes, feedback and rating", details={"fields": forbidden})
    for field in ("title", "scheduled_at", "duration", "status"):
        if field in data and data[field] is None:
            raise BadRequest(f"'{field}' cannot be null")

    interviewer_id = data.pop("interviewer_id", None)
    if interviewer_id is not None:
        data["interviewer_user_id"] = _interviewer(s, interviewer_id, interview.application.job_posting.company_id).id
    changes = _apply_changes(interview, data)
    interview.updated_at = datetime.utcnow()
    log_action(s, user, "UPDATE", "INTERVIEW", interview.id, {"changes": changes})
    return interview


def delete_interview(s: "Session", interview: Interview, user: "User") -> None:
    if interview.status == "COMPLETED" and interview.scheduled_at < datetime.utcnow():
        raise BadRequest("A completed interview cannot be deleted")
    s.delete(interview)
    log_action(s, user, "DELETE", "INTERVIEW", interview.id, {"applicationId": interview.application_id})
