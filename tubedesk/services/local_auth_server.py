from __future__ import annotations

import asyncio
import logging
import socket
import webbrowser
from collections.abc import Callable
from html import escape
from typing import TypeVar

import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from tubedesk.services.errors import (
    AuthorizationDeniedError,
    AuthorizationError,
    AuthorizationTimeoutError,
    NoAuthorizationCodeError,
    NoPortAvailableError,
)

LOGGER = logging.getLogger("tubedesk.oauth")

CALLBACK_PATH = "/callback"
DEFAULT_PORT_ATTEMPTS = 100
MAX_PORT = 65_535
_STARTUP_POLL_SECONDS = 0.01

T = TypeVar("T")

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>TubeDesk</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 4em;">
<h1>{heading}</h1>
<p>{message}</p>
</body>
</html>
"""


def _render_page(heading: str, message: str) -> str:
    return _PAGE_TEMPLATE.format(heading=escape(heading), message=escape(message))


SUCCESS_PAGE = _render_page(
    "Authentication successful",
    "You can close this window and return to TubeDesk.",
)


def find_available_port(
    start: int,
    attempts: int = DEFAULT_PORT_ATTEMPTS,
    *,
    host: str = "localhost",
) -> int:
    for port in range(start, min(start + attempts, MAX_PORT + 1)):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
                probe.bind((host, port))
        except OSError:
            LOGGER.debug("oauth port_unavailable port=%s", port)
            continue
        return port
    raise NoPortAvailableError(start, attempts)


def build_callback_app(outcome: asyncio.Future[str]) -> FastAPI:
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get(CALLBACK_PATH, response_class=HTMLResponse)
    async def oauth_callback(code: str | None = None, error: str | None = None) -> HTMLResponse:
        if outcome.done():
            return HTMLResponse(
                _render_page(
                    "Authentication already handled",
                    "This authorization request has already been processed.",
                )
            )

        if error:
            outcome.set_exception(AuthorizationDeniedError(error))
            return HTMLResponse(
                _render_page("Authentication failed", f"Error: {error}")
            )

        if code:
            outcome.set_result(code)
            return HTMLResponse(SUCCESS_PAGE)

        outcome.set_exception(NoAuthorizationCodeError())
        return HTMLResponse(
            _render_page("Authentication failed", "No authorization code was received.")
        )

    return app


class LocalAuthServer:
    """Single-shot local listener for the installed-app authorization code redirect."""

    def __init__(
        self,
        *,
        host: str = "localhost",
        timeout_seconds: float = 300.0,
        open_browser: Callable[[str], object] = webbrowser.open,
    ) -> None:
        self._host = host
        self._timeout_seconds = timeout_seconds
        self._open_browser = open_browser

    @property
    def host(self) -> str:
        return self._host

    def redirect_uri(self, port: int) -> str:
        return f"http://{self._host}:{port}{CALLBACK_PATH}"

    async def run_callback(
        self,
        port: int,
        authorization_url: str,
        exchange_code: Callable[[str], T],
    ) -> T:
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[str] = loop.create_future()
        listener = _bind_listener(self._host, port)
        server = uvicorn.Server(
            uvicorn.Config(
                build_callback_app(outcome),
                log_config=None,
                log_level="warning",
                access_log=False,
                lifespan="off",
            )
        )
        serve_task = asyncio.create_task(server.serve(sockets=[listener]))
        try:
            await _wait_until_started(server, serve_task)
            LOGGER.info("oauth callback_listener_started port=%s", port)
            await asyncio.to_thread(self._open_browser, authorization_url)
            try:
                code = await asyncio.wait_for(outcome, timeout=self._timeout_seconds)
            except TimeoutError as exc:
                raise AuthorizationTimeoutError(self._timeout_seconds) from exc
        finally:
            await _shutdown(server, serve_task, listener)
            LOGGER.info("oauth callback_listener_closed port=%s", port)

        return await asyncio.to_thread(exchange_code, code)


def _bind_listener(host: str, port: int) -> socket.socket:
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((host, port))
    except OSError:
        listener.close()
        raise
    return listener


async def _wait_until_started(server: uvicorn.Server, serve_task: asyncio.Task[None]) -> None:
    while not server.started:
        if serve_task.done():
            serve_task.result()
            raise AuthorizationError("OAuth callback listener stopped before it started.")
        await asyncio.sleep(_STARTUP_POLL_SECONDS)


async def _shutdown(
    server: uvicorn.Server,
    serve_task: asyncio.Task[None],
    listener: socket.socket,
) -> None:
    server.should_exit = True
    try:
        await serve_task
    except Exception:
        LOGGER.warning("oauth callback_listener_shutdown_failed", exc_info=True)
    finally:
        listener.close()
