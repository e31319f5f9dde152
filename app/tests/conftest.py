import os
_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret
os.environ.setdefault("ENV", "test")

import subprocess
import tempfile
import uuid
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

# PostgreSQL when DATABASE_URL points at one, otherwise a throwaway SQLite file
_SQLITE_PATH = Path(tempfile.gettempdir()) / "bordereau_billing_test.db"
TEST_DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{_SQLITE_PATH}"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
USING_POSTGRES = make_url(TEST_DATABASE_URL).drivername.startswith("postgresql")

from app import database
from app.core.errors import ExternalServiceError
from app.database import Base
from app.deps.services import get_esign_client, get_file_store, get_renderer
from app.main import app
from app.models.enums import ProjectType
from app.schemas.project import ProjectCreate
from app.services import project_service
from app.services.append_only_guards import install_append_only_guards
from app.services.file_store import LocalFileStore

FAKE_PDF = b"%PDF-1.4\n% fake bordereau\n%%EOF"


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


def _truncate_all() -> None:
    with database.engine.begin() as conn:
        rows = conn.execute(
            text(
                """
                SELECT tablename
                FROM pg_tables
                WHERE schemaname = 'public'
                  AND tablename <> 'alembic_version'
                """
            )
        ).fetchall()

        table_names = [row[0] for row in rows]
        if table_names:
            quoted = ", ".join([f'"public"."{name}"' for name in table_names])
            conn.execute(text(f"TRUNCATE TABLE {quoted} RESTART IDENTITY CASCADE"))


def _rebuild_sqlite_schema() -> None:
    import app.models  # noqa: F401

    Base.metadata.drop_all(bind=database.engine)
    Base.metadata.create_all(bind=database.engine)
    install_append_only_guards(database.engine)


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    if USING_POSTGRES:
        _ensure_database_exists(TEST_DATABASE_URL)

        env = os.environ.copy()
        env["DATABASE_URL"] = TEST_DATABASE_URL

        subprocess.run(
            ["alembic", "upgrade", "head"],
            check=True,
            cwd=Path(__file__).resolve().parents[2],
            env=env,
        )

    database.configure_database()


@pytest.fixture(scope="function", autouse=True)
def _clean_database():
    if USING_POSTGRES:
        _truncate_all()
    else:
        _rebuild_sqlite_schema()

    yield

    if USING_POSTGRES:
        _truncate_all()


@pytest.fixture
def db():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


class FakeRenderer:
    def __init__(self, content: bytes = FAKE_PDF, fail: bool = False):
        self.content = content
        self.fail = fail
        self.urls = []

    def render_url(self, url: str) -> bytes:
        self.urls.append(url)
        if self.fail:
            raise ExternalServiceError("renderer", "HTTP 500: boom")
        return self.content

    def render_html(self, html: str) -> bytes:
        return self.render_url("about:blank")


class FakeESignClient:
    def __init__(self):
        self.transient_documents = []
        self.agreements = []
        self.downloads = []
        self.reminders = []
        self.member_ids = ["participant-1"]
        self.fail_audit_trail = False
        self._counter = 0

    def create_transient_document(self, file_name: str, data: bytes) -> str:
        self.transient_documents.append((file_name, data))
        return f"transient-{len(self.transient_documents)}"

    def create_agreement(self, payload: dict) -> str:
        self._counter += 1
        self.agreements.append(payload)
        return f"agreement-{self._counter}-{uuid.uuid4().hex[:6]}"

    def get_combined_document(self, agreement_id: str) -> bytes:
        self.downloads.append(("signed", agreement_id))
        return b"%PDF-1.4 signed"

    def get_audit_trail(self, agreement_id: str) -> bytes:
        self.downloads.append(("audit", agreement_id))
        if self.fail_audit_trail:
            raise ExternalServiceError("esign", "GET auditTrail: 503")
        return b"%PDF-1.4 audit"

    def get_member_ids(self, agreement_id: str) -> list:
        return list(self.member_ids)

    def send_reminder(self, agreement_id: str, participant_ids: list, note=None) -> dict:
        self.reminders.append((agreement_id, list(participant_ids)))
        return {"id": f"reminder-{len(self.reminders)}"}


@pytest.fixture
def file_store(tmp_path):
    return LocalFileStore(str(tmp_path / "storage"))


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def esign():
    return FakeESignClient()


@pytest.fixture
def client(file_store, renderer, esign):
    app.dependency_overrides[get_file_store] = lambda: file_store
    app.dependency_overrides[get_renderer] = lambda: renderer
    app.dependency_overrides[get_esign_client] = lambda: esign
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def _get_access_token(client, role: str = "ADMIN", email: str = "admin@example.com", name: str = "Admin") -> str:
    resp = client.post("/auth/token", json={"user_id": email, "role": role, "email": email, "name": name})
    assert resp.status_code == 200, f"token request failed: {resp.status_code} {resp.text}"
    data = resp.json()
    assert "access_token" in data, f"token response missing access_token: {data}"
    return data["access_token"]


@pytest.fixture
def admin_headers(client):
    return {"Authorization": f"Bearer {_get_access_token(client)}"}


@pytest.fixture
def manager_headers(client):
    token = _get_access_token(client, role="PROJECT_MANAGER", email="pm@example.com", name="Paula Manager")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_project(db):
    counter = {"n": 0}

    def _make(project_type: ProjectType = ProjectType.AT, **overrides):
        counter["n"] += 1
        fields = {
            "project_number": f"P-{counter['n']:04d}",
            "designation": f"Project {counter['n']}",
            "type": project_type,
            "project_manager_email": "pm@example.com",
        }
        if project_type == ProjectType.AT:
            fields.update(
                at_days_sold_bo=Decimal("10"),
                at_days_sold_site=Decimal("5"),
                at_daily_rate_bo=Decimal("800"),
                at_daily_rate_site=Decimal("900"),
            )
        else:
            fields.update(order_amount=Decimal("10000"))
        fields.update(overrides)

        project = project_service.create_project(db, payload=ProjectCreate(**fields), actor="tester")
        db.commit()
        return project

    return _make
