"""Shared test fixtures for okapiconn.

Provides reusable fixtures for isolated config environments, fake Okapi
backends built on :class:`httpx.MockTransport`, and output state
management. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from okapiconn.models import AuthConfig, Profile, RequestConfig
from okapiconn.output import OutputFormat, OutputManager, reset_output, set_output


BASE_URL = "https://okapi.example.org"
TENANT = "diku"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()
    pkg_logger = logging.getLogger("okapiconn")
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
    pkg_logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Fake Okapi backend
# ---------------------------------------------------------------------------


class FakeOkapi:
    """In-memory Okapi double served through :class:`httpx.MockTransport`.

    ``POST .../authn/login`` issues ``token-1``, ``token-2``, ... unless
    ``login_status`` is set to a failing status. Every other request is
    answered by ``handler`` (default: 200 with an empty JSON object) and
    recorded in ``requests``.
    """

    def __init__(
        self,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        self.handler = handler or (lambda request: httpx.Response(200, json={}))
        self.login_status = 201
        self.login_body = ""
        self.logins: list[httpx.Request] = []
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._dispatch)

    def login_payload(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.logins[index].content)

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            if request.url.path.endswith("/authn/login"):
                self.logins.append(request)
                if self.login_status >= 300:
                    return httpx.Response(self.login_status, text=self.login_body)
                token = f"token-{len(self.logins)}"
                return httpx.Response(
                    self.login_status, headers={"x-okapi-token": token}, json={}
                )
            self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def fake_okapi() -> FakeOkapi:
    """A fake Okapi backend with default handlers."""
    return FakeOkapi()


# ---------------------------------------------------------------------------
# Profile fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_profile() -> Profile:
    """A profile for the fake backend with fixed credentials from the environment."""
    return Profile(
        name="diku",
        base_url=BASE_URL,
        tenant=TENANT,
        auth=AuthConfig(
            type="fixed_credentials",
            username="diku_admin",
            password_source="env:OKAPI_TEST_PASSWORD",
        ),
        request=RequestConfig(timeout=5),
    )


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config, forces the XDG layout,
    clears all OKAPI_* environment variables and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("okapiconn.config._is_xdg_platform", lambda: True)

    for var in ["OKAPI_PROFILE", "OKAPI_BASE_URL", "OKAPI_TENANT"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN-format output manager for tests that don't care about output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
