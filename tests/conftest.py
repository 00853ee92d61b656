"""
Pytest configuration for ProVeloce Connect tests.
Provides the application client and user/token factories.

Every test that uses ``client`` runs against its own SQLite database under
``tmp_path``; the application lifespan creates the schema and seeds the
reference data.
"""

from typing import Any, Dict, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, insert, select

from app.auth.jwt_utils import create_access_token
from app.core.config_manager import settings
from app.core.database_schema import organizations, users, utc_now
from app.utils.password_hashing import PasswordHasher

DEFAULT_PASSWORD = "Secret123!"
OTHER_ORG_ID = "ORG-OTHER"


# ============================================================================
# DATABASE AND APPLICATION FIXTURES
# ============================================================================


@pytest.fixture
def database_file(tmp_path, monkeypatch):
    """Point the application at a fresh SQLite file and storage root."""
    path = tmp_path / "proveloce.db"
    monkeypatch.setattr(settings, "database_url_override", f"sqlite+aiosqlite:///{path}")
    monkeypatch.setattr(settings, "storage_root", str(tmp_path / "storage"))
    return path


@pytest.fixture
def app(database_file):
    from app.main import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """TestClient with the lifespan running (schema created, data seeded)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sync_engine(database_file, client):
    """
    Synchronous engine on the same SQLite file, used to arrange rows directly.

    Depends on ``client`` so the schema already exists.
    """
    engine = create_engine(f"sqlite:///{database_file}")
    yield engine
    engine.dispose()


# ============================================================================
# USER FACTORIES
# ============================================================================


@pytest.fixture
def make_user(sync_engine):
    """
    Factory creating a user row and a bearer credential for it.

    Usage:
        admin = make_user("ADMIN")
        client.get("/api/applications", headers=admin["headers"])
    """

    def _make_user(
        role: str = "CUSTOMER",
        org_id: Optional[str] = None,
        status: str = "ACTIVE",
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        org_id = org_id or settings.default_org_id
        suffix = uuid4().hex[:8]
        now = utc_now()
        row = {
            "id": str(uuid4()),
            "email": email or f"{role.lower()}-{suffix}@proveloce.io",
            "name": name or f"{role.title()} {suffix}",
            "password_hash": PasswordHasher.hash_password(DEFAULT_PASSWORD),
            "role": role,
            "status": status,
            "org_id": org_id,
            "email_verified": True,
            "auth_provider": "local",
            "created_at": now,
            "updated_at": now,
        }
        with sync_engine.begin() as connection:
            existing = connection.execute(
                select(organizations.c.id).where(organizations.c.id == org_id)
            ).first()
            if existing is None:
                connection.execute(
                    insert(organizations).values(id=org_id, name=org_id, created_at=now)
                )
            connection.execute(insert(users).values(**row))

        token = create_access_token(row)
        return {
            **row,
            "password": DEFAULT_PASSWORD,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _make_user


@pytest.fixture
def customer(make_user):
    return make_user("CUSTOMER")


@pytest.fixture
def expert(make_user):
    return make_user("EXPERT")


@pytest.fixture
def admin(make_user):
    return make_user("ADMIN")


@pytest.fixture
def superadmin(make_user):
    return make_user("SUPERADMIN")


@pytest.fixture
def other_org_admin(make_user):
    return make_user("ADMIN", org_id=OTHER_ORG_ID)
