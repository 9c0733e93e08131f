"""Shared test configuration and fixtures for Silicon Mile tests"""

import logging
import os
import subprocess
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from tests.config import DEFAULT_PASSWORD, apply_test_environment, test_config

apply_test_environment()

import fakeredis  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import event, text  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from testcontainers.postgres import PostgresContainer  # noqa: E402

from silicon_mile.auth.dependencies import get_identity_gateway  # noqa: E402
from silicon_mile.auth.models import Role, SessionUser  # noqa: E402
from silicon_mile.main import app  # noqa: E402
from silicon_mile.models.database import get_db, get_redis  # noqa: E402
from silicon_mile.models.registration import Registration  # noqa: E402
from silicon_mile.models.registration_form import RegistrationData  # noqa: E402
from silicon_mile.services.identity_gateway import (  # noqa: E402
    IdentityError,
    IdentityGateway,
)
from silicon_mile.services.registration_pipeline import (  # noqa: E402
    RegistrationPipeline,
)
from silicon_mile.services.registration_service import (  # noqa: E402
    RegistrationService,
)
from silicon_mile.services.registration_state_manager import (  # noqa: E402
    RegistrationStateManager,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Unprivileged role the application connects as; superusers bypass row-level security
APP_DB_ROLE = "registration_app"


class FakeIdentityGateway(IdentityGateway):
    """In-memory identity provider with the same session behaviour as Auth0's"""

    def __init__(self):
        super().__init__()
        self.accounts: Dict[str, Dict[str, Any]] = {}

    def add_account(
        self,
        email: str,
        password: str = DEFAULT_PASSWORD,
        metadata: Dict[str, Any] | None = None,
    ) -> SessionUser:
        user_id = f"auth0|{uuid.uuid4().hex[:24]}"
        self.accounts[email] = {
            "id": user_id,
            "password": password,
            "metadata": dict(metadata or {}),
        }
        return SessionUser.from_identity(user_id, email, metadata)

    async def sign_up(self, email, password, metadata):
        if email in self.accounts:
            raise IdentityError("User already registered")
        self.add_account(email, password, metadata)
        return await self.sign_in_with_password(email, password)

    async def sign_in_with_password(self, email, password):
        account = self.accounts.get(email)
        if not account or account["password"] != password:
            raise IdentityError("Wrong email or password.")
        return SessionUser.from_identity(account["id"], email, account["metadata"])


@pytest.fixture
def db_engine():
    """In-memory SQLite database shared across threads for one test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def _db_session(db_engine):
    """Private DB session for fixtures only.

    Prefer the service fixtures (`registration_service`, `pipeline`) in tests.
    """
    session = Session(db_engine)
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def registration_service(_db_session):
    return RegistrationService(_db_session)


@pytest.fixture
def state_manager(redis_client):
    return RegistrationStateManager(redis_client=redis_client, ttl_seconds=1800)


@pytest.fixture
def pipeline(state_manager, registration_service):
    return RegistrationPipeline(state_manager, registration_service)


@pytest.fixture
def make_user():
    """Factory for signed-in users; role is passed through as raw metadata"""

    def _make_user(role: Any = None, **overrides) -> SessionUser:
        user_id = overrides.pop("id", f"auth0|{uuid.uuid4().hex[:24]}")
        metadata = {
            "full_name": overrides.pop("full_name", "Jordan Rivera"),
            "company": overrides.pop("company", "Acme"),
            "role": role,
        }
        email = overrides.pop("email", f"{uuid.uuid4().hex[:8]}@acme.io")
        return SessionUser.from_identity(user_id, email, metadata)

    return _make_user


@pytest.fixture
def registration_data():
    """Factory for a complete, valid set of wizard fields"""

    def _registration_data(**overrides) -> RegistrationData:
        values = {
            "full_name": "Jordan Rivera",
            "corporate_email": "jordan.rivera@acme.io",
            "employee_id": "EMP-1042",
            "company_name": "Acme",
            "tshirt_size": "M",
            "emergency_contact": "Sam Rivera",
            "emergency_phone": "+1 555 010 4477",
        }
        values.update(overrides)
        return RegistrationData.model_validate(values)

    return _registration_data


@pytest.fixture
def add_registration(_db_session, registration_data):
    """Insert a registration row directly, bypassing the wizard"""

    def _add_registration(
        user_id: str, registered_at: datetime | None = None, **fields
    ) -> Registration:
        data = registration_data(**fields)
        registration = Registration(
            user_id=user_id,
            registration_date=registered_at or datetime.now(timezone.utc),
            **data.model_dump(),
        )
        _db_session.add(registration)
        _db_session.commit()
        _db_session.refresh(registration)
        return registration

    return _add_registration


@pytest.fixture
def identity_gateway():
    return FakeIdentityGateway()


@pytest.fixture
def client(_db_session, redis_client, identity_gateway):
    """Test client wired to the test database, fake Redis and fake identity provider"""
    original_overrides = app.dependency_overrides.copy()

    def get_test_db():
        return _db_session

    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_redis] = lambda: redis_client
    app.dependency_overrides[get_identity_gateway] = lambda: identity_gateway

    # HTTPS base URL so the secure session cookie is sent back
    with TestClient(
        app, base_url=test_config["base_url"], follow_redirects=False
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)


@pytest.fixture
def sign_in(client, identity_gateway):
    """Create an account with the given role and sign the test client in"""

    def _sign_in(role: Any = None, **metadata) -> SessionUser:
        email = metadata.pop("email", f"{uuid.uuid4().hex[:8]}@acme.io")
        metadata.setdefault("full_name", "Jordan Rivera")
        metadata.setdefault("company", "Acme")
        if role is not None:
            metadata["role"] = role
        user = identity_gateway.add_account(email, metadata=metadata)

        response = client.post(
            "/login", data={"email": email, "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 303, response.text
        assert response.headers["location"] == "/dashboard"
        return user

    return _sign_in


@pytest.fixture
def admin_user(sign_in):
    return sign_in(role=Role.ADMIN.value)


@pytest.fixture(scope="session")
def postgres_container():
    """PostgreSQL test container with the migrated schema, for row policy tests"""
    try:
        postgres = PostgresContainer("postgres:16")
        postgres.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL test container unavailable: {e}")

    try:
        database_url = postgres.get_connection_url()
        _run_migrations(database_url)
        _create_app_role(database_url)
        yield postgres
    finally:
        postgres.stop()


def _run_migrations(database_url: str):
    """Run Alembic migrations on the test database"""
    project_dir = Path(__file__).parent.parent
    alembic_ini = project_dir / "alembic.ini"

    env = os.environ.copy()
    env["DATABASE_URL"] = database_url

    result = subprocess.run(
        [sys.executable, "-m", "alembic", "-c", str(alembic_ini), "upgrade", "head"],
        cwd=project_dir,
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )
    if result.returncode != 0:
        logger.error(f"Alembic migration failed: {result.stderr}")
        raise RuntimeError(f"Failed to run migrations: {result.stderr}")
    logger.info("Database schema setup completed successfully")


def _create_app_role(database_url: str):
    engine = create_engine(database_url)
    with engine.begin() as connection:
        connection.execute(text(f"CREATE ROLE {APP_DB_ROLE} NOLOGIN"))
        connection.execute(text(f"GRANT USAGE ON SCHEMA public TO {APP_DB_ROLE}"))
        connection.execute(
            text(
                "GRANT SELECT, INSERT, UPDATE, DELETE ON registrations "
                f"TO {APP_DB_ROLE}"
            )
        )
    engine.dispose()


@pytest.fixture(scope="session")
def pg_owner_engine(postgres_container):
    """Superuser engine, used only to clean up between tests"""
    engine = create_engine(postgres_container.get_connection_url())
    yield engine
    engine.dispose()


@pytest.fixture(scope="session")
def pg_app_engine(postgres_container):
    """Engine whose connections run as the unprivileged application role"""
    engine = create_engine(postgres_container.get_connection_url())

    @event.listens_for(engine, "connect")
    def _set_role(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute(f"SET ROLE {APP_DB_ROLE}")
        cursor.close()
        dbapi_connection.commit()

    yield engine
    engine.dispose()


@pytest.fixture
def pg_session(pg_app_engine, pg_owner_engine):
    """Session on PostgreSQL with row-level security in force"""
    session = Session(pg_app_engine)
    yield session
    session.close()
    with pg_owner_engine.begin() as connection:
        connection.execute(text("TRUNCATE registrations"))


@pytest.fixture
def pg_registration_service(pg_session):
    return RegistrationService(pg_session)
