from __future__ import annotations

from flask import Blueprint
from sqlalchemy import or_

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import AccessDenied, NotFound
from app.gestio.modules.recruitment.models import Application, Candidate, Interview, JobPosting
from app.gestio.modules.recruitment.schemas import (
    ApplicationIn,
    ApplicationOut,
    ApplicationUpdateIn,
    CandidateIn,
    CandidateOut,
    CandidateUpdateIn,
    InterviewIn,
    InterviewOut,
    InterviewUpdateIn,
    JobPostingIn,
    JobPostingOut,
    JobPostingUpdateIn,
)
from app.gestio.modules.recruitment.service import (
    company_candidate_ids,
    create_application,
    create_candidate,
    create_interview,
    create_job_posting,
    delete_application,
    delete_candidate,
    delete_interview,
    delete_job_posting,
    is_candidate,
    update_application,
    update_candidate,
    update_interview,
    update_job_posting,
)
from app.gestio.rbac import (
    apply_company_scope,
    current_user,
    ensure_same_company,
    is_admin,
    is_super_admin,
    require_admin,
    require_permission,
    resolve_company,
)
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import arg_bool, arg_datetime, arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("recruitment", __name__)


def _get_application(s, application_id: int) -> Application:
    application = s.get(Application, application_id)
    if not application:
        raise NotFound("Application not found")
    return application


def _get_posting(s, posting_id: int) -> JobPosting:
    posting = s.get(JobPosting, posting_id)
    if not posting:
        raise NotFound("Job posting not found")
    return posting


def _admin_of(user, application: Application) -> bool:
    if is_super_admin(user):
        return True
    return is_admin(user) and application.job_posting.company_id == user.company_id


@bp.get("/job-postings")
@require_permission(READ, "JOB_POSTING")
def job_postings_list():
    user = current_user()
    s = db_session()
    q = s.query(JobPosting)
    if user.company_id is not None or arg_int("companyId") is not None:
        q = apply_company_scope(q, JobPosting.company_id, user, arg_int("companyId"))
    if arg_bool("activeOnly"):
        q = q.filter(JobPosting.is_active.is_(True))
    search = arg_str("search")
    if search:
        q = q.filter(or_(JobPosting.title.ilike(like(search)), JobPosting.description.ilike(like(search))))
    rows, pagination = paginate(q.order_by(JobPosting.publish_date.desc()), page_request())
    return envelope("items", dump_many(JobPostingOut, rows), pagination)


@bp.post("/job-postings")
@require_permission(CREATE, "JOB_POSTING")
def job_postings_create():
    user = current_user()
    payload = parse_body(JobPostingIn)
    s = db_session()
    company = resolve_company(s, user, payload.company_id)
    posting = create_job_posting(s, payload, company.id, user)
    s.commit()
    return dump(JobPostingOut, posting), 201


@bp.get("/job-postings/<int:posting_id>")
@require_permission(READ, "JOB_POSTING")
def job_postings_detail(posting_id: int):
    user = current_user()
    s = db_session()
    posting = _get_posting(s, posting_id)
    # Company-less accounts (external candidates) may read any open posting.
    if user.company_id is not None:
        ensure_same_company(user, posting.company_id)
    if not posting.is_active and not is_admin(user):
        raise AccessDenied("This job posting is no longer available")
    return dump(JobPostingOut, posting)


@bp.patch("/job-postings/<int:posting_id>")
@require_permission(UPDATE, "JOB_POSTING")
def job_postings_update(posting_id: int):
    user = current_user()
    require_admin(user)
    payload = parse_body(JobPostingUpdateIn)
    s = db_session()
    posting = _get_posting(s, posting_id)
    ensure_same_company(user, posting.company_id)
    update_job_posting(s, posting, payload, user)
    s.commit()
    return dump(JobPostingOut, posting)


@bp.delete("/job-postings/<int:posting_id>")
@require_permission(DELETE, "JOB_POSTING")
def job_postings_delete(posting_id: int):
    user = current_user()
    require_admin(user)
    s = db_session()
    posting = _get_posting(s, posting_id)
    ensure_same_company(user, posting.company_id)
    deleted = delete_job_posting(s, posting, user)
    s.commit()
    if deleted:
        return {"message": "Job posting deleted", "wasDeleted": True}
    return {"message": "Job posting has applications and was closed instead", "wasDeactivated": True}


@bp.get("/applications")
@require_permission(READ, "APPLICATION")
def applications_list():
    user = current_user()
    require_admin(user)
    s = db_session()
    q = (
        s.query(Application)
        .join(JobPosting, Application.job_posting_id == JobPosting.id)
        .join(Candidate, Application.candidate_id == Candidate.id)
    )
    q = apply_company_scope(q, JobPosting.company_id, user, arg_int("companyId"))

    status = arg_str("status")
    if status:
        q = q.filter(Application.status == status)
    for arg, column in (("jobPostingId", Application.job_posting_id), ("candidateId", Application.candidate_id)):
        value = arg_int(arg)
        if value is not None:
            q = q.filter(column == value)
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(
            or_(
                Application.notes.ilike(term),
                JobPosting.title.ilike(term),
                Candidate.name.ilike(term),
                Candidate.email.ilike(term),
            )
        )

    rows, pagination = paginate(q.order_by(Application.created_at.desc(), Application.id.desc()), page_request())
    return envelope("data", dump_many(ApplicationOut, rows), pagination)


@bp.post("/applications")
@require_permission(CREATE, "APPLICATION")
def applications_create():
    payload = parse_body(ApplicationIn)
    s = db_session()
    application = create_application(s, payload, current_user())
    s.commit()
    return dump(ApplicationOut, application), 201


@bp.get("/applications/<int:application_id>")
@require_permission(READ, "APPLICATION")
def applications_detail(application_id: int):
    user = current_user()
    s = db_session()
    application = _get_application(s, application_id)
    if not (_admin_of(user, application) or is_candidate(user, application)):
        raise AccessDenied("You cannot view this application")
    return dump(ApplicationOut, application)


@bp.patch("/applications/<int:application_id>")
@require_permission(UPDATE, "APPLICATION")
def applications_update(application_id: int):
    user = current_user()
    payload = parse_body(ApplicationUpdateIn)
    s = db_session()
    application = _get_application(s, application_id)
    as_admin = _admin_of(user, application)
    if not as_admin and not is_candidate(user, application):
        raise AccessDenied("You cannot update this application")
    update_application(s, application, payload, user, as_admin=as_admin)
    s.commit()
    return dump(ApplicationOut, application)


@bp.delete("/applications/<int:application_id>")
@require_permission(DELETE, "APPLICATION")
def applications_delete(application_id: int):
    user = current_user()
    require_admin(user)
    s = db_session()
    application = _get_application(s, application_id)
    ensure_same_company(user, application.job_posting.company_id)
    delete_application(s, application, user)
    s.commit()
    return {"message": "Application deleted"}


def _get_candidate(s, user, candidate_id: int) -> Candidate:
    candidate = s.get(Candidate, candidate_id)
    if not candidate:
        raise NotFound("Candidate not found")
    if not is_super_admin(user):
        applied = company_candidate_ids(user.company_id).where(Application.candidate_id == candidate.id)
        if s.execute(applied).first() is None:
            raise AccessDenied("This candidate has not applied to your company")
    return candidate


@bp.get("/candidates")
@require_permission(READ, "CANDIDATE")
def candidates_list():
    user = current_user()
    require_admin(user)
    s = db_session()
    q = s.query(Candidate)
    if not is_super_admin(user):
        q = q.filter(Candidate.id.in_(company_candidate_ids(user.company_id)))
    status = arg_str("status")
    if status:
        q = q.filter(Candidate.status == status)
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(or_(Candidate.name.ilike(term), Candidate.email.ilike(term), Candidate.phone.ilike(term)))
    rows, pagination = paginate(q.order_by(Candidate.created_at.desc(), Candidate.id.desc()), page_request())
    return envelope("items", dump_many(CandidateOut, rows), pagination)


@bp.post("/candidates")
@require_permission(CREATE, "CANDIDATE")
def candidates_create():
    payload = parse_body(CandidateIn)
    s = db_session()
    candidate = create_candidate(s, payload, current_user())
    s.commit()
    return dump(CandidateOut, candidate), 201


@bp.get("/candidates/<int:candidate_id>")
@require_permission(READ, "CANDIDATE")
def candidates_detail(candidate_id: int):
    user = current_user()
    require_admin(user)
    s = db_session()
    return dump(CandidateOut, _get_candidate(s, user, candidate_id))


@bp.patch("/candidates/<int:candidate_id>")
@require_permission(UPDATE, "CANDIDATE")
def candidates_update(candidate_id: int):
    user = current_user()
    require_admin(user)
    payload = parse_body(CandidateUpdateIn)
    s = db_session()
    candidate = _get_candidate(s, user, candidate_id)
    update_candidate(s, candidate, payload, user)
    s.commit()
    return dump(CandidateOut, candidate)


@bp.delete("/candidates/<int:candidate_id>")
@require_permission(DELETE, "CANDIDATE")
def candidates_delete(candidate_id: int):
    user = current_user()
    if not is_super_admin(user):
        raise AccessDenied("Only a super administrator can delete candidates")
    s = db_session()
    candidate = _get_candidate(s, user, candidate_id)
    delete_candidate(s, candidate, user)
    s.commit()
    return {"message": "Candidate deleted"}


def _get_interview(s, interview_id: int) -> Interview:
    interview = s.get(Interview, interview_id)
    if not interview:
        raise NotFound("Interview not found")
    return interview


@bp.get("/interviews")
@require_permission(READ, "INTERVIEW")
def interviews_list():
    user = current_user()
    s = db_session()
    q = (
        s.query(Interview)
        .join(Application, Interview.application_id == Application.id)
        .join(JobPosting, Application.job_posting_id == JobPosting.id)
        .join(Candidate, Application.candidate_id == Candidate.id)
    )
    if is_admin(user):
        q = apply_company_scope(q, JobPosting.company_id, user, arg_int("companyId"))
    else:
        q = q.filter(Interview.interviewer_user_id == user.id)

    status = arg_str("status")
    if status:
        q = q.filter(Interview.status == status)
    for arg, column in (("applicationId", Interview.application_id), ("interviewerId", Interview.interviewer_user_id)):
        value = arg_int(arg)
        if value is not None:
            q = q.filter(column == value)
    date_from, date_to = arg_datetime("dateFrom"), arg_datetime("dateTo")
    if date_from is not None:
        q = q.filter(Interview.scheduled_at >= date_from)
    if date_to is not None:
        q = q.filter(Interview.scheduled_at <= date_to)
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(
            or_(
                Interview.title.ilike(term),
                Interview.notes.ilike(term),
                Candidate.name.ilike(term),
                JobPosting.title.ilike(term),
            )
        )

    rows, pagination = paginate(q.order_by(Interview.scheduled_at.asc(), Interview.id.asc()), page_request())
    return envelope("items", dump_many(InterviewOut, rows), pagination)


@bp.post("/interviews")
@require_permission(CREATE, "INTERVIEW")
def interviews_create():
    user = current_user()
    payload = parse_body(InterviewIn)
    s = db_session()
    application = _get_application(s, payload.application_id)
    if not _admin_of(user, application):
        raise AccessDenied("Only an administrator of the hiring company can schedule interviews")
    interview = create_interview(s, application, payload, user)
    s.commit()
    return dump(InterviewOut, interview), 201


@bp.get("/interviews/<int:interview_id>")
@require_permission(READ, "INTERVIEW")
def interviews_detail(interview_id: int):
    user = current_user()
    s = db_session()
    interview = _get_interview(s, interview_id)
    if not (_admin_of(user, interview.application) or interview.interviewer_user_id == user.id):
        raise AccessDenied("You cannot view this interview")
    return dump(InterviewOut, interview)


@bp.patch("/interviews/<int:interview_id>")
@require_permission(UPDATE, "INTERVIEW")
def interviews_update(interview_id: int):
    user = current_user()
    payload = parse_body(InterviewUpdateIn)
    s = db_session()
    interview = _get_interview(s, interview_id)
    as_admin = _admin_of(user, interview.application)
    if not as_admin and interview.interviewer_user_id != user.id:
        raise AccessDenied("You cannot update this interview")
    update_interview(s, interview, payload, user, as_admin=as_admin)
    s.commit()
    return dump(InterviewOut, interview)


@bp.delete("/interviews/<int:interview_id>")
@require_permission(DELETE, "INTERVIEW")
def interviews_delete(interview_id: int):
    user = current_user()
    s = db_session()
    interview = _get_interview(s, interview_id)
    if not _admin_of(user, interview.application):
        raise AccessDenied("Only an administrator of the hiring company can delete interviews")
    delete_interview(s, interview, user)
    s.commit()
    return {"message": "Interview deleted"}
