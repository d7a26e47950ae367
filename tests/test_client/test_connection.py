"""Tests for the authenticated Okapi connection: token cache, retry and headers."""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Optional

import httpx
import pytest

from okapiconn.auth.base import AuthStrategy
from okapiconn.client.connection import MAX_ATTEMPTS, OkapiConnection, build_url
from okapiconn.exceptions import (
    AuthenticationError,
    ConfigError,
    ConnectionError_,
    InvalidUsageError,
)
from okapiconn.models import AuthConfig, Profile, RequestConfig
from okapiconn.plugins.fixed_credentials import FixedCredentialsStrategy
from okapiconn.plugins.fixed_token import FixedTokenStrategy


BASE_URL = "https://okapi.example.org"
TENANT = "diku"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class CountingStrategy(AuthStrategy):
    """Returns ``token-1``, ``token-2``, ... and counts its calls.

    When *gate* is given every call blocks until it is set. When *fail*
    is given the first call raises it.
    """

    auth_type = "counting"

    def __init__(
        self,
        gate: Optional[threading.Event] = None,
        fail: Optional[Exception] = None,
    ) -> None:
        self.calls = 0
        self.started = threading.Event()
        self._gate = gate
        self._fail = fail
        self._lock = threading.Lock()

    def obtain_token(self, connection: OkapiConnection) -> str:
        with self._lock:
            self.calls += 1
            call = self.calls
        self.started.set()
        if self._gate is not None:
            assert self._gate.wait(timeout=5)
        if self._fail is not None and call == 1:
            raise self._fail
        return f"token-{call}"


def _connect(fake_okapi, strategy: AuthStrategy, **kwargs) -> OkapiConnection:
    return OkapiConnection(BASE_URL, TENANT, strategy, transport=fake_okapi.transport, **kwargs)


def _status(code: int, text: str = ""):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(code, text=text)

    return handler


# ---------------------------------------------------------------------------
# URL building
# ---------------------------------------------------------------------------


class TestBuildUrl:
    @pytest.mark.parametrize(
        ("base", "path", "expected"),
        [
            ("https://h", "/items", "https://h/items"),
            ("https://h/", "/items", "https://h/items"),
            ("https://h/", "items", "https://h/items"),
            ("https://h", "items", "https://h/items"),
            ("https://h/okapi", "/items", "https://h/okapi/items"),
        ],
    )
    def test_exactly_one_slash(self, base: str, path: str, expected: str) -> None:
        assert build_url(base, path) == expected

    def test_params_are_form_encoded(self) -> None:
        url = build_url("https://h", "/items", {"query": "title==a b&c", "limit": 10})
        assert url == "https://h/items?query=title%3D%3Da+b%26c&limit=10"

    def test_existing_query_uses_ampersand(self) -> None:
        url = build_url("https://h", "/items?offset=5", {"limit": 10})
        assert url == "https://h/items?offset=5&limit=10"

    def test_no_params_no_delimiter(self) -> None:
        assert build_url("https://h", "/items", {}) == "https://h/items"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    @pytest.mark.parametrize("base_url", ["okapi.example.org", "/relative", "ftp://h"])
    def test_rejects_non_absolute_base_url(self, base_url: str) -> None:
        with pytest.raises(InvalidUsageError):
            OkapiConnection(base_url, TENANT, FixedTokenStrategy("t"))

    @pytest.mark.parametrize("tenant", ["", "   "])
    def test_rejects_blank_tenant(self, tenant: str) -> None:
        with pytest.raises(InvalidUsageError):
            OkapiConnection(BASE_URL, tenant, FixedTokenStrategy("t"))

    def test_from_profile_builds_strategy(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OKAPI_TEST_TOKEN", "abc")
        profile = Profile(
            name="diku",
            base_url=BASE_URL,
            tenant=TENANT,
            auth=AuthConfig(type="fixed_token", token_source="env:OKAPI_TEST_TOKEN"),
            request=RequestConfig(timeout=5),
        )
        with OkapiConnection.from_profile(profile) as connection:
            assert isinstance(connection.strategy, FixedTokenStrategy)
            assert connection.base_url == BASE_URL
            assert connection.tenant == TENANT
            assert connection.ensure_token() == "abc"

    def test_from_profile_without_auth(self) -> None:
        profile = Profile(name="bare", base_url=BASE_URL, tenant=TENANT)
        with pytest.raises(ConfigError, match="no auth configuration"):
            OkapiConnection.from_profile(profile)

    def test_from_profile_with_explicit_strategy(self) -> None:
        profile = Profile(name="bare", base_url=BASE_URL, tenant=TENANT)
        strategy = FixedTokenStrategy("t")
        with OkapiConnection.from_profile(profile, strategy=strategy) as connection:
            assert connection.strategy is strategy


# ---------------------------------------------------------------------------
# Token cache
# ---------------------------------------------------------------------------


class TestTokenCache:
    def test_token_is_fetched_lazily_and_cached(self, fake_okapi) -> None:
        strategy = CountingStrategy()
        with _connect(fake_okapi, strategy) as connection:
            assert strategy.calls == 0
            assert connection.ensure_token() == "token-1"
            assert connection.ensure_token() == "token-1"
        assert strategy.calls == 1

    def test_invalidate_forces_new_fetch(self, fake_okapi) -> None:
        strategy = CountingStrategy()
        with _connect(fake_okapi, strategy) as connection:
            connection.ensure_token()
            connection.invalidate_token()
            assert connection.ensure_token() == "token-2"
        assert strategy.calls == 2

    def test_concurrent_callers_share_one_fetch(self, fake_okapi) -> None:
        gate = threading.Event()
        strategy = CountingStrategy(gate=gate)
        workers = 8
        barrier = threading.Barrier(workers)
        results: list[str] = []
        results_lock = threading.Lock()

        with _connect(fake_okapi, strategy) as connection:

            def worker() -> None:
                barrier.wait(timeout=5)
                token = connection.ensure_token()
                with results_lock:
                    results.append(token)

            threads = [threading.Thread(target=worker) for _ in range(workers)]
            for thread in threads:
                thread.start()
            assert strategy.started.wait(timeout=5)
            time.sleep(0.1)
            gate.set()
            for thread in threads:
                thread.join(timeout=5)

        assert strategy.calls == 1
        assert results == ["token-1"] * workers

    def test_waiters_receive_the_fetch_failure(self, fake_okapi) -> None:
        gate = threading.Event()
        failure = AuthenticationError("login was cancelled")
        strategy = CountingStrategy(gate=gate, fail=failure)
        errors: list[BaseException] = []
        errors_lock = threading.Lock()

        with _connect(fake_okapi, strategy) as connection:

            def worker() -> None:
                try:
                    connection.ensure_token()
                except AuthenticationError as exc:
                    with errors_lock:
                        errors.append(exc)

            first = threading.Thread(target=worker)
            first.start()
            assert strategy.started.wait(timeout=5)
            others = [threading.Thread(target=worker) for _ in range(3)]
            for thread in others:
                thread.start()
            time.sleep(0.2)
            gate.set()
            for thread in [first, *others]:
                thread.join(timeout=5)

            assert strategy.calls == 1
            assert errors == [failure] * 4

            # The failure is not cached: the next call tries again.
            assert connection.ensure_token() == "token-2"
        assert strategy.calls == 2

    def test_invalidate_during_fetch_is_not_lost(self, fake_okapi) -> None:
        gate = threading.Event()
        strategy = CountingStrategy(gate=gate)
        results: list[str] = []

        with _connect(fake_okapi, strategy) as connection:
            fetcher = threading.Thread(target=lambda: results.append(connection.ensure_token()))
            fetcher.start()
            assert strategy.started.wait(timeout=5)

            invalidator = threading.Thread(target=connection.invalidate_token)
            invalidator.start()
            invalidator.join(timeout=5)
            assert not invalidator.is_alive()

            gate.set()
            fetcher.join(timeout=5)

            # The caller that started the fetch still gets its token.
            assert results == ["token-1"]
            # The invalidation came later, so the token was not cached.
            assert connection._token is None
            assert connection.ensure_token() == "token-2"
        assert strategy.calls == 2

    def test_failed_fetch_leaves_cache_empty(self, fake_okapi) -> None:
        strategy = CountingStrategy(fail=AuthenticationError("no"))
        with _connect(fake_okapi, strategy) as connection:
            with pytest.raises(AuthenticationError):
                connection.get("/items")
            assert fake_okapi.requests == []
            connection.get("/items")
        assert fake_okapi.requests[0].headers["x-okapi-token"] == "token-2"

    def test_empty_token_is_an_error(self, fake_okapi) -> None:
        class EmptyStrategy(AuthStrategy):
            def obtain_token(self, connection: OkapiConnection) -> str:
                return ""

        with _connect(fake_okapi, EmptyStrategy()) as connection:
            with pytest.raises(AuthenticationError):
                connection.ensure_token()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequest:
    def test_first_request_logs_in_once(self, fake_okapi) -> None:
        fake_okapi.handler = lambda request: httpx.Response(200, json={"items": []})
        strategy = FixedCredentialsStrategy("diku_admin", None, "admin")
        with _connect(fake_okapi, strategy) as connection:
            response = connection.get("/items")

        assert response.http_code == 200
        assert response.json() == {"items": []}
        assert len(fake_okapi.logins) == 1
        assert fake_okapi.login_payload() == {"username": "diku_admin", "password": "admin"}
        assert len(fake_okapi.requests) == 1
        request = fake_okapi.requests[0]
        assert request.method == "GET"
        assert str(request.url) == f"{BASE_URL}/items"
        assert request.headers["x-okapi-token"] == "token-1"
        assert request.headers["x-okapi-tenant"] == TENANT

    def test_token_is_reused_across_requests(self, fake_okapi) -> None:
        strategy = FixedCredentialsStrategy("diku_admin", None, "admin")
        with _connect(fake_okapi, strategy) as connection:
            connection.get("/a")
            connection.get("/b")
        assert len(fake_okapi.logins) == 1
        assert len(fake_okapi.requests) == 2

    def test_fixed_headers_override_caller_headers(self, fake_okapi) -> None:
        with _connect(fake_okapi, FixedTokenStrategy("real")) as connection:
            connection.get(
                "/items",
                headers={
                    "x-okapi-token": "forged",
                    "X-OKAPI-TENANT": "other",
                    "Accept": "text/plain",
                },
            )
        request = fake_okapi.requests[0]
        assert request.headers.get_list("x-okapi-token") == ["real"]
        assert request.headers.get_list("x-okapi-tenant") == [TENANT]
        assert request.headers["accept"] == "text/plain"

    def test_query_params_are_encoded(self, fake_okapi) -> None:
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            connection.get("/items", params={"query": "title==a b&c", "limit": 10})
        request = fake_okapi.requests[0]
        assert request.url.params["query"] == "title==a b&c"
        assert request.url.params["limit"] == "10"

    def test_body_and_content_type_for_post(self, fake_okapi) -> None:
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            connection.post("/items", "{\"a\": 1}", "application/json")
        request = fake_okapi.requests[0]
        assert request.method == "POST"
        assert request.content == b'{"a": 1}'
        assert request.headers["content-type"] == "application/json"

    def test_body_is_ignored_for_get_and_delete(self, fake_okapi) -> None:
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            connection.request("GET", "/items", body=b"ignored")
            connection.request("DELETE", "/items/1", body=b"ignored")
        assert [r.content for r in fake_okapi.requests] == [b"", b""]
        assert [r.method for r in fake_okapi.requests] == ["GET", "DELETE"]

    def test_put_sends_body(self, fake_okapi) -> None:
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            connection.put("/items/1", b"raw", "text/plain")
        assert fake_okapi.requests[0].method == "PUT"
        assert fake_okapi.requests[0].content == b"raw"

    def test_response_headers_are_exposed(self, fake_okapi) -> None:
        fake_okapi.handler = lambda request: httpx.Response(
            200, headers={"X-Trace": "abc", "Content-Type": "text/plain"}, text="ok"
        )
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            response = connection.get("/health")
        assert response.header("x-trace") == "abc"
        assert response.content_type == "text/plain"
        assert response.text == "ok"


# ---------------------------------------------------------------------------
# Re-authentication and failures
# ---------------------------------------------------------------------------


class TestReauthentication:
    def test_rejected_token_is_replaced_once(self, fake_okapi) -> None:
        statuses = iter([401, 200])
        fake_okapi.handler = lambda request: httpx.Response(next(statuses), text="")
        strategy = FixedCredentialsStrategy("diku_admin", None, "admin")

        with _connect(fake_okapi, strategy) as connection:
            response = connection.get("/items")

        assert response.http_code == 200
        assert len(fake_okapi.logins) == 2
        tokens = [r.headers["x-okapi-token"] for r in fake_okapi.requests]
        assert tokens == ["token-1", "token-2"]

    @pytest.mark.parametrize("status", [401, 403])
    def test_second_rejection_fails(self, fake_okapi, status: int) -> None:
        fake_okapi.handler = _status(status, "Invalid token")
        strategy = CountingStrategy()

        with _connect(fake_okapi, strategy) as connection:
            with pytest.raises(ConnectionError_) as exc_info:
                connection.get("/items")

        assert len(fake_okapi.requests) == MAX_ATTEMPTS
        assert strategy.calls == 2
        assert exc_info.value.status_code == status
        assert exc_info.value.body == "Invalid token"

    def test_fixed_token_is_sent_twice_then_fails(self, fake_okapi) -> None:
        fake_okapi.handler = _status(401, "expired")
        with _connect(fake_okapi, FixedTokenStrategy("stale")) as connection:
            with pytest.raises(ConnectionError_):
                connection.get("/items")
        assert [r.headers["x-okapi-token"] for r in fake_okapi.requests] == ["stale", "stale"]

    def test_reauth_statuses_are_configurable(self, fake_okapi) -> None:
        fake_okapi.handler = _status(403, "forbidden")
        strategy = CountingStrategy()
        with _connect(fake_okapi, strategy, reauth_statuses={401}) as connection:
            with pytest.raises(ConnectionError_):
                connection.get("/items")
        assert len(fake_okapi.requests) == 1
        assert strategy.calls == 1

    def test_other_status_fails_without_retry(self, fake_okapi) -> None:
        fake_okapi.handler = _status(404, "Not found")
        strategy = CountingStrategy()
        with _connect(fake_okapi, strategy) as connection:
            with pytest.raises(ConnectionError_) as exc_info:
                connection.get("/items/42")
        exc = exc_info.value
        assert exc.status_code == 404
        assert exc.path == "/items/42"
        assert "404" in str(exc)
        assert "Not found" in str(exc)
        assert len(fake_okapi.requests) == 1
        assert strategy.calls == 1

    def test_only_200_is_success(self, fake_okapi) -> None:
        fake_okapi.handler = _status(201, "created")
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            with pytest.raises(ConnectionError_) as exc_info:
                connection.post("/items", b"{}")
        assert exc_info.value.status_code == 201

    def test_transport_error_is_not_retried(self, fake_okapi) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fake_okapi.handler = handler
        strategy = CountingStrategy()
        with _connect(fake_okapi, strategy) as connection:
            with pytest.raises(ConnectionError_) as exc_info:
                connection.get("/items")
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert len(fake_okapi.requests) == 1
        assert strategy.calls == 1

    def test_failed_reauthentication_propagates(self, fake_okapi) -> None:
        fake_okapi.handler = _status(401)
        strategy = FixedCredentialsStrategy("diku_admin", None, "admin")
        with _connect(fake_okapi, strategy) as connection:
            connection.ensure_token()
            fake_okapi.login_status = 422
            fake_okapi.login_body = "Password does not match"
            with pytest.raises(AuthenticationError) as exc_info:
                connection.get("/items")
        assert exc_info.value.status_code == 422
        assert len(fake_okapi.requests) == 1


# ---------------------------------------------------------------------------
# Login through the connection
# ---------------------------------------------------------------------------


class TestLoginForToken:
    def test_returns_token_without_touching_cache(self, fake_okapi) -> None:
        strategy = CountingStrategy()
        with _connect(fake_okapi, strategy) as connection:
            token = connection.login_for_token("diku_admin", None, bytearray(b"admin"))
            assert token == "token-1"
            assert strategy.calls == 0
        request = fake_okapi.logins[0]
        assert str(request.url) == f"{BASE_URL}/authn/login"
        assert request.headers["x-okapi-tenant"] == TENANT

    def test_escaped_body_on_the_wire(self, fake_okapi) -> None:
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            connection.login_for_token('a"b', None, ["p", "\t", "q"])
        content = fake_okapi.logins[0].content
        assert b'"a\\"b"' in content
        assert b'"p\\tq"' in content
        assert b"\t" not in content

    def test_password_is_erased_on_success(self, fake_okapi) -> None:
        password = bytearray(b"admin")
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            connection.login_for_token("diku_admin", None, password)
        assert password == bytearray(5)

    def test_password_is_erased_on_failure(self, fake_okapi) -> None:
        fake_okapi.login_status = 422
        password = bytearray(b"admin")
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            with pytest.raises(AuthenticationError):
                connection.login_for_token("diku_admin", None, password)
        assert password == bytearray(5)

    def test_password_is_erased_on_invalid_input(self, fake_okapi) -> None:
        password = list("admin")
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            with pytest.raises(InvalidUsageError):
                connection.login_for_token(None, "", password)
        assert password == ["\0"] * 5
        assert fake_okapi.logins == []


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


class TestJsonHelpers:
    def test_get_json(self, fake_okapi) -> None:
        fake_okapi.handler = lambda request: httpx.Response(200, json={"totalRecords": 0})
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            assert connection.get_json("/users", params={"limit": 0}) == {"totalRecords": 0}

    def test_post_json_serialises_body(self, fake_okapi) -> None:
        fake_okapi.handler = lambda request: httpx.Response(200, json=json.loads(request.content))
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            result = connection.post_json("/items", {"title": "Faust"})
        assert result == {"title": "Faust"}
        assert fake_okapi.requests[0].headers["content-type"] == "application/json"

    def test_put_json_empty_answer(self, fake_okapi) -> None:
        fake_okapi.handler = lambda request: httpx.Response(200)
        with _connect(fake_okapi, FixedTokenStrategy("t")) as connection:
            assert connection.put_json("/items/1", {"title": "Faust"}) is None
        assert fake_okapi.requests[0].method == "PUT"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


class TestLogging:
    def test_reauthentication_is_logged(self, fake_okapi, caplog) -> None:
        statuses = iter([401, 200])
        fake_okapi.handler = lambda request: httpx.Response(next(statuses))
        caplog.set_level(logging.DEBUG, logger="okapiconn")
        with _connect(fake_okapi, FixedCredentialsStrategy("diku_admin", None, "s3cret")) as c:
            c.get("/items")
        assert any("authenticating again" in r.getMessage() for r in caplog.records)
        assert all("s3cret" not in r.getMessage() for r in caplog.records)
        assert all("token-1" not in r.getMessage() for r in caplog.records)

    def test_custom_logger(self, fake_okapi, caplog) -> None:
        fake_okapi.handler = _status(500, "boom")
        logger = logging.getLogger("test.okapi")
        caplog.set_level(logging.DEBUG, logger="test.okapi")
        with _connect(fake_okapi, FixedTokenStrategy("t"), logger=logger) as connection:
            with pytest.raises(ConnectionError_):
                connection.get("/items")
        errors = [
            r for r in caplog.records if r.name == "test.okapi" and r.levelno == logging.ERROR
        ]
        assert errors
        assert "boom" in errors[0].getMessage()
