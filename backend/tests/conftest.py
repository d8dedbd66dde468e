import os
import tempfile
from pathlib import Path

import pytest

# point the app at a throwaway SQLite file before `shopadmin` is imported
_DB_DIR = tempfile.mkdtemp(prefix="shopadmin-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ.setdefault("ALLOW_DEV_CORS", "false")

from sqlmodel import Session  # noqa: E402

from shopadmin import models  # noqa: E402
from shopadmin.api.session import _login_throttle  # noqa: E402
from shopadmin.database import create_db_and_tables, drop_db_and_tables, engine  # noqa: E402
from shopadmin.services import AuthService  # noqa: E402

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def reset_db():
    """Give every test empty tables and a fresh login limiter."""
    drop_db_and_tables()
    create_db_and_tables()
    _login_throttle.clear()
    yield


@pytest.fixture
def make_user():
    """Factory inserting a user directly; returns the stored `User`."""
    counter = {"n": 0}

    def _make(role=models.UserRole.SUPER_ADMIN, email=None, password=PASSWORD, status=models.UserStatus.ACTIVE, name=None):
        counter["n"] += 1
        role = models.UserRole(role)
        email = email or f"{role.value.lower()}{counter['n']}@example.com"
        user = models.User(
            name=name or f"{role.value.title()} {counter['n']}",
            email=email,
            password_hash=AuthService.hash_password(password),
            role=role,
            status=status,
        )
        with Session(engine) as session:
            session.add(user)
            session.commit()
            session.refresh(user)
        return user

    return _make


@pytest.fixture
def headers_for(make_user):
    """Factory returning bearer headers for a new user with `role`."""

    def _headers(role=models.UserRole.SUPER_ADMIN, **kwargs):
        user = make_user(role, **kwargs)
        return {"Authorization": f"Bearer {AuthService.create_token(user)}"}

    return _headers


@pytest.fixture
def admin_headers(headers_for):
    return headers_for(models.UserRole.SUPER_ADMIN)
