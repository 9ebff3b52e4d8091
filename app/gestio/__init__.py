import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request

from app.gestio.config import load_config
from app.gestio.db import init_db, teardown_db_session
from app.gestio.errors import register_error_handlers
from app.gestio.routes import bp as routes_bp
from app.gestio.auth import bp as auth_bp, load_current_user
from app.gestio.admin import bp as admin_bp
from app.gestio.modules.accounts.api import bp as accounts_bp
from app.gestio.modules.clients.api import bp as clients_bp
from app.gestio.modules.projects.api import bp as projects_bp
from app.gestio.modules.invoices.api import bp as invoices_bp
from app.gestio.modules.inventory.api import bp as inventory_bp
from app.gestio.modules.purchasing.api import bp as purchasing_bp
from app.gestio.modules.payroll.api import bp as payroll_bp
from app.gestio.modules.recruitment.api import bp as recruitment_bp
from app.gestio.modules.crm.api import bp as crm_bp
from app.gestio.modules.custom_fields.api import bp as custom_fields_bp
from app.gestio.modules.finance.api import bp as finance_bp
from app.gestio.modules.approvals.api import bp as approvals_bp
from app.gestio.modules.messaging.api import bp as messaging_bp
from app.gestio.modules.contracts.api import bp as contracts_bp
from app.gestio.modules.absences.api import bp as absences_bp

API_PREFIX = "/api/v1"


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.json.sort_keys = False
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    from app.gestio.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz")):
            return None
        ensure_csrf_token()
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/logout carry no token yet
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return jsonify({"error": "CSRF token missing or invalid."}), 400
        return None

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix=API_PREFIX)
    for bp in (
        accounts_bp,
        clients_bp,
        projects_bp,
        invoices_bp,
        inventory_bp,
        purchasing_bp,
        payroll_bp,
        recruitment_bp,
        crm_bp,
        custom_fields_bp,
        finance_bp,
        approvals_bp,
        absences_bp,
        messaging_bp,
        contracts_bp,
    ):
        app.register_blueprint(bp, url_prefix=API_PREFIX)

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)
    register_error_handlers(app)

    @app.after_request
    def _request_id_header(response):
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers["X-Request-ID"] = rid
        return response

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
