"""Tests for AuthManager callbacks, fallback refresh and auto-refresh."""

import asyncio
from datetime import timedelta

import pytest

from trainingpeaks.auth.manager import AuthManager
from trainingpeaks.auth.models import Session
from trainingpeaks.auth.repository import AuthSessionRepository
from trainingpeaks.errors import AuthenticationError, InvalidCredentialsError, NetworkError

from conftest import FakeStrategy, RecordingStorage, make_token, make_user


def _manager(config, *strategies, **kwargs):
    repo = AuthSessionRepository(RecordingStorage(), config=config, strategies=list(strategies))
    return AuthManager(repo, **kwargs)


def _near_expiry_session():
    return Session(make_token(expires_in=timedelta(minutes=2), refresh_token="r1"), make_user())


class TestLoginLogout:

    def test_login_emits_and_schedules(self, api_config, session):
        manager = _manager(api_config, FakeStrategy("api", session=session, supports_refresh=True))
        events = []
        manager.on_login = events.append

        async def scenario():
            await manager.login("athlete", "pw")
            scheduled = manager.refresh_scheduled
            manager.close()
            return scheduled

        assert asyncio.run(scenario()) is True
        assert events == [session]
        assert manager.is_authenticated()

    def test_no_schedule_without_refresh_token(self, web_config):
        session = Session(make_token(), make_user())
        manager = _manager(web_config, FakeStrategy("web", session=session))

        async def scenario():
            await manager.login("athlete", "pw")
            return manager.refresh_scheduled

        assert asyncio.run(scenario()) is False

    def test_login_failure_emits_error(self, web_config):
        manager = _manager(web_config, FakeStrategy("web", error=InvalidCredentialsError("nope")))
        errors = []
        manager.on_error = errors.append

        with pytest.raises(InvalidCredentialsError):
            asyncio.run(manager.login("athlete", "pw"))
        assert len(errors) == 1

    def test_logout(self, web_config, session):
        manager = _manager(web_config, FakeStrategy("web", session=session), auto_refresh=False)
        logged_out = []
        manager.on_logout = lambda: logged_out.append(True)

        async def scenario():
            await manager.login("athlete", "pw")
            await manager.logout()

        asyncio.run(scenario())
        assert logged_out == [True]
        assert not manager.is_authenticated()

    def test_callback_errors_do_not_break_login(self, web_config, session):
        manager = _manager(web_config, FakeStrategy("web", session=session), auto_refresh=False)

        def broken(_session):
            raise RuntimeError("callback bug")

        manager.on_login = broken
        assert asyncio.run(manager.login("athlete", "pw")) is session


class TestRefresh:

    def test_requires_session(self, api_config):
        manager = _manager(api_config, FakeStrategy("api", supports_refresh=True))
        with pytest.raises(AuthenticationError):
            asyncio.run(manager.refresh())

    def test_fallback_config_used_when_unsupported(self, web_config, api_config, session):
        new_token = make_token(access_token="fresh")
        manager = _manager(
            web_config,
            FakeStrategy("web", web=True, session=session),
            FakeStrategy("api", web=False, supports_refresh=True, refreshed=new_token),
            auto_refresh=False,
            fallback_config=api_config,
        )
        refreshed = []
        manager.on_token_refresh = refreshed.append

        async def scenario():
            await manager.login("athlete", "pw")
            return await manager.refresh()

        assert asyncio.run(scenario()) == new_token
        assert refreshed == [new_token]

    def test_auto_refresh_fires_inside_window(self, api_config):
        new_token = make_token(access_token="fresh", refresh_token="r2")
        manager = _manager(api_config, FakeStrategy(
            "api", session=_near_expiry_session(), supports_refresh=True, refreshed=new_token))
        refreshed = []
        manager.on_token_refresh = refreshed.append

        async def scenario():
            await manager.login("athlete", "pw")
            await asyncio.sleep(0.05)
            rescheduled = manager.refresh_scheduled
            manager.close()
            return rescheduled

        assert asyncio.run(scenario()) is True
        assert refreshed == [new_token]
        assert manager.repository.get_current_token() == new_token

    def test_auto_refresh_failure_reports_expiry(self, api_config):
        session = _near_expiry_session()
        manager = _manager(api_config, FakeStrategy(
            "api", session=session, supports_refresh=True,
            refresh_error=NetworkError("offline")))
        expired, errors = [], []
        manager.on_token_expired = expired.append
        manager.on_error = errors.append

        async def scenario():
            await manager.login("athlete", "pw")
            await asyncio.sleep(0.05)
            manager.close()

        asyncio.run(scenario())
        assert expired == [session.token]
        assert len(errors) == 1

    def test_auto_refresh_unexpected_error_reported(self, api_config):
        session = _near_expiry_session()
        manager = _manager(api_config, FakeStrategy(
            "api", session=session, supports_refresh=True))
        expired, errors = [], []
        manager.on_token_expired = expired.append
        manager.on_error = errors.append

        async def broken_refresh():
            raise RuntimeError("unexpected")

        manager.refresh = broken_refresh

        async def scenario():
            await manager.login("athlete", "pw")
            await asyncio.sleep(0.05)
            task_error = manager._refresh_task.exception()
            manager.close()
            return task_error

        assert asyncio.run(scenario()) is None
        assert expired == [session.token]
        assert isinstance(errors[0], RuntimeError)
