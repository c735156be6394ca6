import os

os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from vorniq.core.auth import ADMIN_ROLE, create_access_token, hash_password
from vorniq.db.session import get_db
from vorniq.models.base import Base
from vorniq.models.models import Role, User
from vorniq.services.access import ensure_default_access


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    ensure_default_access(session)
    session.commit()
    yield session
    session.close()


@pytest.fixture
def client(session_factory, db):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(db, username, role_name, password="secret123"):
    role = db.query(Role).filter(Role.name == role_name).first()
    user = User(
        username=username,
        email=f"{username}@vorniq.test",
        first_name=username.capitalize(),
        hashed_password=hash_password(password),
        role_id=role.id if role else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def admin_user(db):
    return _make_user(db, "admin", ADMIN_ROLE)


@pytest.fixture
def auth_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def make_headers(db):
    def factory(username, role_name):
        return _headers(_make_user(db, username, role_name))
    return factory
