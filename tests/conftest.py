"""Pytest configuration and shared fixtures.

Every test gets a fresh in-memory SQLite database with the full schema, a
session bound to it, and a ``TestClient`` whose ``get_db`` dependency yields
that same session so tests can inspect what the API wrote.
"""

import pytest
from fastapi.testclient import TestClient

from auditflow.api.deps import get_db
from auditflow.api.main import create_app
from auditflow.core.config import Settings
from auditflow.core.security import create_access_token
from auditflow.db.base import Base
from auditflow.db.session import create_db_engine, create_session_factory

from tests.factories import (
    create_company,
    create_group,
    create_site,
    create_user,
)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        secret_key="test-secret-key",
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def app(test_settings, db_session):
    application = create_app(test_settings)

    def override_get_db():
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user: ``auth_headers(user)``."""
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers


# ---------------------------------------------------------------------------
# A small organisation: one group, two companies, a site under each
# ---------------------------------------------------------------------------


@pytest.fixture
def org(db_session):
    group = create_group(db_session, name="North Group")
    company = create_company(db_session, group=group, name="Acme Foods")
    other_company = create_company(db_session, group=group, name="Acme Logistics")
    site = create_site(db_session, company=company, name="Plant 1")
    other_site = create_site(db_session, company=other_company, name="Depot 1")

    foreign_group = create_group(db_session, name="South Group")
    foreign_company = create_company(db_session, group=foreign_group, name="Rival Corp")
    foreign_site = create_site(db_session, company=foreign_company, name="Rival Plant")
    db_session.commit()

    return {
        "group": group,
        "company": company,
        "other_company": other_company,
        "site": site,
        "other_site": other_site,
        "foreign_group": foreign_group,
        "foreign_company": foreign_company,
        "foreign_site": foreign_site,
    }


@pytest.fixture
def admin_user(db_session):
    user = create_user(db_session, role="admin", scope_level="system", name="Admin")
    db_session.commit()
    return user


@pytest.fixture
def group_admin(db_session, org):
    user = create_user(db_session, role="groupAdmin", scope_level="group", group=org["group"])
    db_session.commit()
    return user


@pytest.fixture
def company_admin(db_session, org):
    user = create_user(
        db_session,
        role="companyAdmin",
        scope_level="company",
        group=org["group"],
        company=org["company"],
    )
    db_session.commit()
    return user


@pytest.fixture
def manager(db_session, org):
    user = create_user(db_session, role="manager", scope_level="company", company=org["company"])
    db_session.commit()
    return user


@pytest.fixture
def auditor(db_session, org):
    user = create_user(db_session, role="auditor", scope_level="site", site=org["site"])
    db_session.commit()
    return user


@pytest.fixture
def approver(db_session, org):
    user = create_user(db_session, role="approver", scope_level="site", site=org["site"])
    db_session.commit()
    return user
