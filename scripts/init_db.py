import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash
from contextlib import contextmanager

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.gestio.config import load_settings
from app.gestio.constants import ROLE_SUPER_ADMIN
from app.gestio.db import build_engine, make_sessionmaker
from app.gestio.models import User
from app.gestio.rbac import ensure_default_roles


@contextmanager
def _session_scope(database_url: str):
    engine = build_engine(database_url)
    s = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed roles, permissions, default grants and the platform super admin.
    Idempotent; does NOT overwrite an existing admin user's password or role.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@gestio.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or load_settings().database_url).strip()

    # Direct engine/session so this can run in release without building the Flask app.
    with _session_scope(db_url) as s:
        roles = ensure_default_roles(s)

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                email=admin_email,
                name="Platform administrator",
                password_hash=generate_password_hash(admin_password),
                role=roles[ROLE_SUPER_ADMIN].key,
                is_active=True,
            )
            s.add(user)

    print("Initialized database (seed_only).")
    print(f"Roles: {', '.join(sorted(roles))}")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
