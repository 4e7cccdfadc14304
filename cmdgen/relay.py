"""Lifecycle of the in-process relay server.

The relay runs as a task on the CLI's own event loop, so requests to it
and the rest of the CLI are scheduled cooperatively on a single thread.
It is started once, before the first dispatch, and is never shut down
gracefully: when the CLI's work is done the event loop closes and the
task goes with it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .errors import RelayStartupError
from .server import close_upstream_client

logger = logging.getLogger(__name__)


class _EmbeddedServer(uvicorn.Server):
    """A uvicorn server that leaves signal handling to the host process.

    Without this, Ctrl-C at the interactive prompt would be captured by
    the relay instead of interrupting the CLI.
    """

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening-ready TCP socket, raising on failure."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        raise RelayStartupError(f"cannot bind relay to {host}:{port}: {exc}") from exc
    sock.set_inheritable(True)
    return sock


class RelayServer:
    """Handle on the single relay instance of this process.

    :param app: The relay ASGI application (see :func:`cmdgen.server.create_app`).
    :param host: Loopback address to bind.
    :param port: Port to bind; ``0`` picks a free one.
    """

    def __init__(self, app: FastAPI, host: str = "127.0.0.1", port: int = 3003) -> None:
        self.app = app
        self.host = host
        self.port = port
        self.server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}"

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, poll_interval: float = 0.01) -> "RelayServer":
        """Bind the socket and serve in the background.

        Returns once the server accepts connections.

        :raises RelayStartupError: If the address cannot be bound or the
          server stops during startup.
        """
        if self._task is not None:
            raise RuntimeError("relay already started")
        sock = bind_socket(self.host, self.port)
        self.port = sock.getsockname()[1]
        # The task is cancelled, not shut down, when the loop closes; with
        # lifespan on, uvicorn would log that cancellation as an error.
        config = uvicorn.Config(
            self.app,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self.server = _EmbeddedServer(config)
        self._task = asyncio.create_task(self.server.serve(sockets=[sock]))
        while not self.server.started:
            if self._task.done():
                exc = None if self._task.cancelled() else self._task.exception()
                sock.close()
                raise RelayStartupError(f"relay stopped during startup: {exc}")
            await asyncio.sleep(poll_interval)
        logger.debug("Relay listening on %s", self.url)
        return self

    def stop(self) -> None:
        """Ask the server to exit without waiting for it."""
        if self.server is not None:
            self.server.should_exit = True

    async def close_upstream(self) -> None:
        """Close the relay's upstream client while leaving it serving."""
        await close_upstream_client(self.app)
