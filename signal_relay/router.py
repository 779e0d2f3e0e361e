"""Signal routing for the relay.

The router owns a ``ConnectionRegistry`` and runs one handling coroutine per
accepted connection. Each connection moves through a small state machine:

    CONNECTING -> REGISTERED -> DRAINING -> CLOSED

A connection is registered and told its identity, then reads envelopes until
the transport closes. Every ``sdp`` or ``candidate`` envelope is stamped with
the sender's identity and written to the addressed recipient. Anything the
router cannot parse or route is logged and dropped; only a failed read ends a
connection.
"""

import asyncio
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, Union

from loguru import logger
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from signal_relay.channel import Channel
from signal_relay.protocol import (
    EnvelopeError,
    SignalEnvelope,
    identity_message,
    parse_envelope,
)
from signal_relay.registry import ConnectionRegistry

if TYPE_CHECKING:
    from websockets.asyncio.server import ServerConnection


class ConnectionState(str, Enum):
    """Lifecycle states of one relay connection."""

    CONNECTING = "connecting"
    REGISTERED = "registered"
    DRAINING = "draining"
    CLOSED = "closed"


@dataclass
class Connection:
    """One accepted client connection.

    Attributes:
        identity: Identity minted by the router. Immutable for the lifetime
            of the connection.
        channel: Channel the client is reachable on.
        state: Current lifecycle state.
    """

    identity: str
    channel: Channel
    state: ConnectionState = ConnectionState.CONNECTING


def new_identity() -> str:
    return str(uuid.uuid4())


class SignalRouter:
    """Registers connections and forwards envelopes between them.

    Attributes:
        registry: Identity to channel map shared by every connection.
    """

    def __init__(
        self,
        registry: Optional[ConnectionRegistry[Channel]] = None,
        identity_factory: Callable[[], str] = new_identity,
    ):
        """Initialize the router.

        Args:
            registry: Registry to route through. A fresh one is created if
                not given.
            identity_factory: Callable that mints a new unique identity.
        """
        self.registry: ConnectionRegistry[Channel] = (
            registry if registry is not None else ConnectionRegistry()
        )
        self._identity_factory = identity_factory

    async def handle_connection(self, websocket: "ServerConnection") -> None:
        """Run one connection from registration to teardown.

        This is the per-connection handler given to the websocket server.
        """
        connection = await self.register(Channel(websocket))
        if connection is None:
            return
        try:
            await self.read_loop(connection)
        finally:
            await self.teardown(connection)

    async def register(self, channel: Channel) -> Optional[Connection]:
        """Mint an identity, register it and disclose it to the client.

        Returns:
            The registered connection, or None if the identity could not be
            sent (the connection is torn down in that case).
        """
        connection = Connection(identity=self._identity_factory(), channel=channel)
        self.registry.add(connection.identity, channel)
        connection.state = ConnectionState.REGISTERED
        logger.info(
            f"[{connection.identity}] Client connected from {channel.remote_address} "
            f"(total: {len(self.registry)})"
        )

        try:
            await channel.write_json(identity_message(connection.identity))
        except ConnectionClosed as e:
            logger.error(
                f"[{connection.identity}] Failed to send identity, closing connection: {e}"
            )
            connection.state = ConnectionState.DRAINING
            await self.teardown(connection)
            return None

        return connection

    async def read_loop(self, connection: Connection) -> None:
        """Read and dispatch messages until the transport closes."""
        while connection.state is ConnectionState.REGISTERED:
            try:
                message = await connection.channel.read_message()
            except ConnectionClosedOK as e:
                logger.info(f"[{connection.identity}] Connection closed by peer: {e}")
                break
            except ConnectionClosed as e:
                logger.warning(f"[{connection.identity}] Error reading message: {e}")
                break
            await self.dispatch(connection, message)

        if connection.state is ConnectionState.REGISTERED:
            connection.state = ConnectionState.DRAINING

    async def dispatch(self, connection: Connection, message: Union[str, bytes]) -> bool:
        """Classify one inbound message and forward it if it is routable.

        Returns:
            True if the envelope was delivered to its target.
        """
        logger.debug(f"Received from {connection.identity}: {message!r}")
        try:
            envelope = parse_envelope(message)
        except EnvelopeError as e:
            logger.warning(f"[{connection.identity}] Dropping malformed envelope: {e}")
            return False

        if envelope is None:
            logger.debug(f"[{connection.identity}] Dropping unrecognized envelope")
            return False

        return await self.forward(connection.identity, envelope)

    async def forward(self, sender_id: str, envelope: SignalEnvelope) -> bool:
        """Stamp ``envelope`` with the sender's identity and deliver it.

        Neither a routing miss nor a failed write is reported to the sender.

        Args:
            sender_id: Identity the router assigned to the sending connection.
            envelope: Parsed envelope whose ``user_id`` names the target.

        Returns:
            True if the envelope was written to the target's channel.
        """
        target_id = envelope.user_id
        stamped = envelope.with_sender(sender_id)
        signal_type = envelope.signal_type.value

        target, found = self.registry.get(target_id)
        if not found:
            logger.warning(
                f"Target peer not found: {target_id} ({signal_type} from {sender_id})"
            )
            return False

        try:
            await target.write_message(stamped.encode())
        except ConnectionClosed as e:
            logger.warning(
                f"Failed to forward {signal_type} from {sender_id} to {target_id}: {e}"
            )
            return False

        logger.info(f"Forwarded {signal_type} from {sender_id} to {target_id}")
        return True

    async def teardown(self, connection: Connection) -> None:
        """Unregister the connection and release its channel.

        Safe to call more than once; only the first call has any effect.
        """
        if connection.state is ConnectionState.CLOSED:
            return
        connection.state = ConnectionState.CLOSED
        self.registry.remove(connection.identity)
        await connection.channel.close()
        logger.info(
            f"[{connection.identity}] Connection closed "
            f"(remaining: {len(self.registry)})"
        )

    async def close_all(self, code: int = 1001, reason: str = "going away") -> None:
        """Close every registered channel, e.g. on process shutdown.

        Each connection's own handler then sees the closure, leaves its read
        loop and removes its registry entry.
        """
        identities = self.registry.identities()
        logger.info(f"Closing {len(identities)} connection(s)")
        channels = []
        for identity in identities:
            channel, found = self.registry.get(identity)
            if found:
                channels.append((identity, channel))

        # Closing handshakes run concurrently
        results = await asyncio.gather(
            *(channel.close(code, reason) for _, channel in channels),
            return_exceptions=True,
        )
        for (identity, _), result in zip(channels, results):
            if isinstance(result, Exception):
                logger.warning(f"[{identity}] Failed to close connection: {result}")
