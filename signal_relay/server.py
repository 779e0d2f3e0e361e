"""WebSocket listener for the signaling relay.

Binds the ``SignalRouter`` to a ``websockets`` asyncio server. The listener
accepts upgrades on exactly one HTTP path; every other path is answered with
404 before any websocket is created. When ``allowed_origins`` is configured,
upgrades from other origins are answered with 403.

Usage:
    server = RelayServer(ServerConfig(port=8080))
    asyncio.run(server.serve_forever())
"""

import asyncio
import signal
from http import HTTPStatus
from typing import Optional

from loguru import logger
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.http11 import Request, Response

from signal_relay.config import ServerConfig
from signal_relay.router import SignalRouter


class RelayServer:
    """Signaling relay listener.

    Attributes:
        config: Listener settings.
        router: Router that handles every accepted connection.
    """

    def __init__(self, config: ServerConfig, router: Optional[SignalRouter] = None):
        self.config = config
        self.router = router if router is not None else SignalRouter()
        self._server: Optional[Server] = None

    @property
    def port(self) -> int:
        """Port actually bound. Differs from the configured one when it is 0."""
        if self._server is None:
            return self.config.port
        return self._server.sockets[0].getsockname()[1]

    @property
    def url(self) -> str:
        return f"ws://{self.config.host}:{self.port}{self.config.path}"

    def process_request(
        self, connection: ServerConnection, request: Request
    ) -> Optional[Response]:
        """Reject upgrades on other paths or from disallowed origins.

        Returns:
            An HTTP response to abort the handshake, or None to accept it.
        """
        path = request.path.split("?", 1)[0]
        if path != self.config.path:
            logger.warning(
                f"Rejected upgrade on unknown path {request.path!r} "
                f"from {connection.remote_address}"
            )
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")

        if self.config.allowed_origins:
            origin = request.headers.get("Origin")
            if origin not in self.config.allowed_origins:
                logger.warning(
                    f"Rejected upgrade from origin {origin!r} "
                    f"({connection.remote_address})"
                )
                return connection.respond(HTTPStatus.FORBIDDEN, "Forbidden origin\n")

        return None

    async def start(self) -> Server:
        """Bind the listener and start accepting connections."""
        self._server = await serve(
            self.router.handle_connection,
            self.config.host,
            self.config.port,
            process_request=self.process_request,
            max_size=self.config.max_message_size,
        )
        logger.info(f"Signaling relay running on {self.url}")
        return self._server

    async def stop(self) -> None:
        """Close every connection, then the listener."""
        if self._server is None:
            return
        await self.router.close_all()
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Signaling relay stopped")

    async def serve_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        """Run until ``stop`` is set or the process receives SIGINT/SIGTERM.

        Args:
            stop: Event that ends the server. One is created if not given.
        """
        if stop is None:
            stop = asyncio.Event()

        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except (NotImplementedError, RuntimeError):
                # Signal handlers are unavailable on Windows and off the main thread
                continue
            installed.append(sig)

        await self.start()
        try:
            await stop.wait()
        finally:
            await self.stop()
            for sig in installed:
                loop.remove_signal_handler(sig)

    async def __aenter__(self) -> "RelayServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
