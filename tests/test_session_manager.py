import asyncio
import time

import httpx
import pytest

from flowcore_catalog.core.session_manager import SessionManager, SessionState
from flowcore_catalog.utils.errors import AuthenticationError, TransportError


def _count_authenticate(monkeypatch, manager):
    calls = []

    async def _fake_authenticate():
        calls.append(time.time())
        manager.state.mark_authenticated(time.time())
        return True

    monkeypatch.setattr(manager, "authenticate", _fake_authenticate)
    return calls


def test_session_state_expiry():
    state = SessionState(authenticated=True, last_auth_time=1_000.0)

    assert not state.is_expired(3600.0, now=1_000.0 + 30 * 60)
    assert state.is_expired(3600.0, now=1_000.0 + 61 * 60)
    assert SessionState().is_expired(3600.0)


def test_stale_session_reauthenticates(monkeypatch, settings):
    manager = SessionManager(settings)
    calls = _count_authenticate(monkeypatch, manager)
    manager.state.authenticated = True
    manager.state.last_auth_time = time.time() - 61 * 60

    asyncio.run(manager.ensure_authenticated())

    assert len(calls) == 1


def test_fresh_session_is_reused(monkeypatch, settings):
    manager = SessionManager(settings)
    calls = _count_authenticate(monkeypatch, manager)
    manager.state.authenticated = True
    manager.state.last_auth_time = time.time() - 30 * 60

    assert asyncio.run(manager.ensure_authenticated()) is True
    assert calls == []


def test_unauthenticated_session_triggers_login(monkeypatch, settings):
    manager = SessionManager(settings)
    calls = _count_authenticate(monkeypatch, manager)

    asyncio.run(manager.ensure_authenticated())

    assert len(calls) == 1


def test_demo_login_handshake(demo_site, settings):
    manager = SessionManager(settings, transport=demo_site.transport)

    async def _go():
        try:
            return await manager.authenticate()
        finally:
            await manager.aclose()

    assert asyncio.run(_go()) is True
    assert manager.state.authenticated is True
    assert manager.state.last_auth_time is not None
    assert manager.state.auth_retry_count == 0
    assert demo_site.hits("/login") == 1
    assert demo_site.hits("/demo-login") == 1
    # one hit after the demo redirect, one for verification
    assert demo_site.hits("/m") == 2


def test_cookies_from_handshake_are_kept(demo_site, settings):
    manager = SessionManager(settings, transport=demo_site.transport)

    asyncio.run(manager.authenticate())
    status = manager.status()

    assert status["authenticated"] is True
    assert status["cookies"] == ["catalog_session"]
    assert status["last_auth_time"] is not None


def test_retry_bound_with_failing_verification(site, make_settings):
    settings = make_settings(max_auth_retries=3)
    site.add("/login", '<a href="/demo">Demo</a>')
    site.add("/demo", "welcome")
    site.add("/m", "down", status=503)
    manager = SessionManager(settings, transport=site.transport)

    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(manager.authenticate())

    assert excinfo.value.attempts == 3
    assert site.hits("/login") == 3
    assert site.hits("/m") == 3
    assert manager.state.authenticated is False


def test_backoff_is_linear(monkeypatch, site, make_settings):
    settings = make_settings(max_auth_retries=3, auth_backoff_seconds=2.0)
    site.add("/login", "<p>login</p>")
    site.add("/m", "nope", status=500)
    manager = SessionManager(settings, transport=site.transport)
    delays = []
    original_sleep = asyncio.sleep

    async def _record_sleep(seconds):
        delays.append(seconds)
        await original_sleep(0)

    monkeypatch.setattr("flowcore_catalog.core.session_manager.asyncio.sleep", _record_sleep)

    with pytest.raises(AuthenticationError):
        asyncio.run(manager.authenticate())

    assert [delay for delay in delays if delay] == [2.0, 4.0]


def test_transport_failure_counts_as_attempt(make_settings):
    settings = make_settings(max_auth_retries=2)

    def _boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    manager = SessionManager(settings, transport=httpx.MockTransport(_boom))

    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(manager.authenticate())

    assert excinfo.value.attempts == 2


def test_recovers_after_transient_failure(site, settings):
    site.add("/login", '<a href="/demo">Demo</a>')
    site.add("/demo", "ok")
    statuses = iter([500, 200])
    site.add_handler("/m", lambda request: httpx.Response(next(statuses), text="listing"))
    manager = SessionManager(settings, transport=site.transport)

    assert asyncio.run(manager.authenticate()) is True
    assert manager.state.auth_retry_count == 0
    assert site.hits("/login") == 2


def test_reset_discards_session(demo_site, settings):
    manager = SessionManager(settings, transport=demo_site.transport)

    async def _go():
        await manager.authenticate()
        first_client = manager.get_client()
        await manager.reset()
        return first_client

    first_client = asyncio.run(_go())

    assert manager.state.authenticated is False
    assert manager.state.last_auth_time is None
    assert manager.status()["cookies"] == []
    assert manager.get_client() is not first_client


def test_fetch_marks_session_stale_on_authorization_failure(site, settings):
    site.add("/movie/x", "denied", status=403)
    manager = SessionManager(settings, transport=site.transport)
    manager.state.mark_authenticated(time.time())

    response = asyncio.run(manager.fetch("https://catalog.test/movie/x", phase="test"))

    assert response.status_code == 403
    assert manager.state.authenticated is False


def test_fetch_wraps_transport_errors(settings):
    def _timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    manager = SessionManager(settings, transport=httpx.MockTransport(_timeout))

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(manager.fetch("https://catalog.test/m", phase="test"))

    assert excinfo.value.url == "https://catalog.test/m"
    assert "timeout" in str(excinfo.value)


def test_malformed_demo_link_does_not_break_login(site, settings):
    site.add("/login", '<a href="http://[broken/demo">Demo</a>')
    site.add("/m", "listing")
    manager = SessionManager(settings, transport=site.transport)

    assert asyncio.run(manager.authenticate()) is True
    assert manager.state.auth_retry_count == 0
    assert site.hits("/m") == 1
