from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash

from app.gestio.audit import record_event
from app.gestio.db import db_session
from app.gestio.errors import AuthenticationRequired
from app.gestio.models import User
from app.gestio.modules.accounts.schemas import LoginIn, UserOut
from app.gestio.schemas import dump
from app.gestio.security import ensure_csrf_token, rotate_csrf_token
from app.gestio.utils import parse_body

bp = Blueprint("auth", __name__)


def _attempts() -> dict[str, list[datetime]]:
    return current_app.extensions.setdefault("login_attempts", defaultdict(list))


def _check_rate_limit(ip: str) -> bool:
    window = int(current_app.config.get("LOGIN_RATE_WINDOW") or 300)
    limit = int(current_app.config.get("LOGIN_RATE_LIMIT") or 5)
    cutoff = datetime.utcnow() - timedelta(seconds=window)
    attempts = _attempts()
    # Drop every address whose attempts have all aged out of the window.
    for key in [k for k, times in attempts.items() if not times or times[-1] <= cutoff]:
        del attempts[key]
    recent = [t for t in attempts.get(ip, ()) if t > cutoff]
    if recent:
        attempts[ip] = recent
    return len(recent) >= limit


def _record_attempt(ip: str) -> None:
    _attempts()[ip].append(datetime.utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


@bp.post("/login")
def login_post():
    payload = parse_body(LoginIn)
    email = payload.email.lower()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        return jsonify({"error": "Too many login attempts. Please wait before retrying."}), 429

    _record_attempt(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, payload.password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="USER",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        current_app.logger.info("Failed login for %s (request_id=%s)", email, getattr(g, "request_id", None))
        raise AuthenticationRequired("Invalid credentials")

    session["user_id"] = user.id
    session.permanent = True
    _attempts().pop(ip, None)
    token = rotate_csrf_token()
    record_event(s, actor=user, action="auth.login", entity_type="USER", entity_id=str(user.id))
    s.commit()
    return {"user": dump(UserOut, user), "csrfToken": token}


@bp.post("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="USER", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return {"message": "Logged out"}


@bp.get("/me")
def me():
    user = getattr(g, "current_user", None)
    if not user:
        raise AuthenticationRequired()
    return {"user": dump(UserOut, user), "csrfToken": ensure_csrf_token()}
