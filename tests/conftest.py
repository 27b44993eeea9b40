"""
Pytest configuration and fixtures for testing.
"""

from datetime import datetime, timedelta

import pytest

from membership_authkit.auth.providers import MembershipProvider, RoleProvider
from membership_authkit.auth.stores.database import open_database
from membership_authkit.utils.config import ProviderConfig


class FakeClock:
    """Controllable naive-UTC clock."""

    def __init__(self, start=datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_url(tmp_path):
    """Temporary-file SQLite database (peewee keeps one connection per thread)."""
    return f"sqlite:///{tmp_path / 'membership.db'}"


@pytest.fixture
def database(db_url):
    db = open_database(db_url, timeout=5)
    yield db
    db.close()


@pytest.fixture
def make_config(db_url):
    """Build a ProviderConfig isolated from the environment."""

    def _make(**overrides):
        settings = {"database_url": db_url, "hash_rounds": 4, "audit_log_enabled": False}
        settings.update(overrides)
        return ProviderConfig(env={}, **settings)

    return _make


@pytest.fixture
def make_membership(make_config, database, clock):
    def _make(**overrides):
        return MembershipProvider(make_config(**overrides), database=database, clock=clock)

    return _make


@pytest.fixture
def membership(make_membership):
    return make_membership()


@pytest.fixture
def roles(make_config, database, clock):
    return RoleProvider(make_config(), database=database, clock=clock)
