"""Shared fixtures and fakes for the auth test-suite."""

from datetime import datetime, timedelta, timezone

import pytest

from trainingpeaks.auth.base_strategy import BaseAuthStrategy
from trainingpeaks.auth.models import AuthToken, Session, User
from trainingpeaks.auth.storage import InMemoryStorage
from trainingpeaks.config import AuthenticationConfig, WebAuthConfig
from trainingpeaks.errors import AuthenticationError, StorageError


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_token(expires_in=timedelta(hours=1), refresh_token=None, access_token="access-123",
               now=None):
    return AuthToken(
        access_token=access_token,
        token_type="Bearer",
        expires_at=(now or datetime.now(timezone.utc)) + expires_in,
        refresh_token=refresh_token,
    )


def make_user(user_id="1234", name="Test Athlete"):
    return User(id=user_id, name=name, username="athlete")


class FakeStrategy(BaseAuthStrategy):
    """Configurable in-memory strategy; records every call."""

    def __init__(self, name="fake", web=None, session=None, error=None,
                 supports_refresh=False, refreshed=None, refresh_error=None):
        self._name = name
        self._web = web
        self.session = session
        self.error = error
        self.supports_refresh = supports_refresh
        self.refreshed = refreshed
        self.refresh_error = refresh_error
        self.authenticate_calls = []
        self.refresh_calls = []

    @property
    def name(self):
        return self._name

    def can_handle(self, config):
        if self._web is None:
            return True
        return (config.web_auth is not None) == self._web

    async def authenticate(self, credentials, config):
        self.authenticate_calls.append(credentials)
        if self.error is not None:
            raise self.error
        return self.session

    async def refresh_token(self, refresh_token, config):
        if not self.supports_refresh:
            return await super().refresh_token(refresh_token, config)
        self.refresh_calls.append(refresh_token)
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refreshed


class RecordingStorage(InMemoryStorage):
    """In-memory storage that counts writes and can be told to fail."""

    def __init__(self, fail_reads=False, fail_writes=False, fail_user_writes=False):
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.fail_user_writes = fail_user_writes
        self.store_token_calls = 0
        self.store_user_calls = 0
        self.clear_calls = 0

    async def get_token(self):
        if self.fail_reads:
            raise RuntimeError("storage unavailable")
        return await super().get_token()

    async def store_token(self, token):
        self.store_token_calls += 1
        if self.fail_writes:
            raise AuthenticationError("write failed")
        await super().store_token(token)

    async def store_user(self, user):
        self.store_user_calls += 1
        if self.fail_user_writes:
            raise StorageError("user write failed")
        await super().store_user(user)

    async def clear(self):
        self.clear_calls += 1
        await super().clear()


@pytest.fixture
def web_config():
    return AuthenticationConfig(web_auth=WebAuthConfig(timeout_ms=1_000))


@pytest.fixture
def api_config():
    return AuthenticationConfig(base_url="https://api.example.test", timeout_ms=1_000)


@pytest.fixture
def session():
    return Session(token=make_token(refresh_token="refresh-1"), user=make_user())
