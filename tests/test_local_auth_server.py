from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass
from urllib.error import HTTPError
from urllib.request import ProxyHandler, build_opener

import pytest

from tubedesk.services.errors import (
    AuthorizationDeniedError,
    AuthorizationTimeoutError,
    NoAuthorizationCodeError,
    NoPortAvailableError,
)
from tubedesk.services.local_auth_server import LocalAuthServer, find_available_port

_HOST = "127.0.0.1"
_OPENER = build_opener(ProxyHandler({}))


@dataclass(frozen=True)
class _Page:
    status_code: int
    text: str


def _visit(url: str) -> _Page:
    try:
        with _OPENER.open(url, timeout=5) as response:
            return _Page(int(response.getcode() or 0), response.read().decode("utf-8"))
    except HTTPError as exc:
        return _Page(int(exc.code), exc.read().decode("utf-8", errors="replace"))


class _FakeBrowser:
    """Visits a list of paths on the callback listener instead of opening a browser."""

    def __init__(self, *paths: str) -> None:
        self._paths = paths
        self.opened: list[str] = []
        self.responses: list[_Page] = []

    def __call__(self, url: str) -> bool:
        self.opened.append(url)
        base = url.split("/callback", 1)[0]
        for path in self._paths:
            self.responses.append(_visit(f"{base}{path}"))
        return True


def _free_port() -> int:
    return find_available_port(18_500, 500, host=_HOST)


def _run(server: LocalAuthServer, port: int) -> str:
    return asyncio.run(
        server.run_callback(
            port,
            f"http://{_HOST}:{port}/callback",
            lambda code: f"token-for-{code}",
        )
    )


def _port_is_free(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            probe.bind((_HOST, port))
        except OSError:
            return False
    return True


def test_find_available_port_skips_bound_ports() -> None:
    start = _free_port()
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind((_HOST, start))
        blocker.listen()

        port = find_available_port(start, 50, host=_HOST)

    assert port > start


def test_find_available_port_raises_when_exhausted() -> None:
    start = _free_port()
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind((_HOST, start))
        blocker.listen()

        with pytest.raises(NoPortAvailableError):
            find_available_port(start, 1, host=_HOST)


def test_redirect_uri_uses_host_and_port() -> None:
    assert LocalAuthServer().redirect_uri(5001) == "http://localhost:5001/callback"


def test_callback_code_is_exchanged_and_listener_closed() -> None:
    port = _free_port()
    browser = _FakeBrowser("/favicon.ico", "/callback?code=auth-code-1", "/callback?code=late")
    server = LocalAuthServer(host=_HOST, timeout_seconds=10, open_browser=browser)

    result = _run(server, port)

    assert result == "token-for-auth-code-1"
    assert browser.opened == [f"http://{_HOST}:{port}/callback"]
    not_found, success, repeated = browser.responses
    assert not_found.status_code == 404
    assert success.status_code == 200
    assert "Authentication successful" in success.text
    assert "already" in repeated.text
    assert _port_is_free(port)


def test_callback_error_is_denied() -> None:
    port = _free_port()
    browser = _FakeBrowser("/callback?error=access_denied")
    server = LocalAuthServer(host=_HOST, timeout_seconds=10, open_browser=browser)

    with pytest.raises(AuthorizationDeniedError, match="access_denied"):
        _run(server, port)

    assert "Authentication failed" in browser.responses[0].text
    assert _port_is_free(port)


def test_callback_without_code_fails() -> None:
    port = _free_port()
    browser = _FakeBrowser("/callback")
    server = LocalAuthServer(host=_HOST, timeout_seconds=10, open_browser=browser)

    with pytest.raises(NoAuthorizationCodeError):
        _run(server, port)


def test_missing_callback_times_out() -> None:
    port = _free_port()
    server = LocalAuthServer(host=_HOST, timeout_seconds=0.2, open_browser=_FakeBrowser())

    with pytest.raises(AuthorizationTimeoutError):
        _run(server, port)

    assert _port_is_free(port)
