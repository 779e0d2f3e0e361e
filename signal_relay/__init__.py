"""Signaling relay for peer-to-peer media negotiation.

This package provides:
- registry: Concurrent-safe identity to channel map
- protocol: sdp / candidate envelope definitions and parsing
- router: Per-connection lifecycle and envelope forwarding
- server: websockets listener bound to the router
"""

from signal_relay.channel import Channel
from signal_relay.protocol import (
    CandidateEnvelope,
    EnvelopeError,
    SdpEnvelope,
    SignalEnvelope,
    SignalType,
    parse_envelope,
)
from signal_relay.registry import ConnectionRegistry
from signal_relay.router import Connection, ConnectionState, SignalRouter
from signal_relay.server import RelayServer

__version__ = "0.1.0"

__all__ = [
    "Channel",
    # Protocol
    "SignalType",
    "SignalEnvelope",
    "SdpEnvelope",
    "CandidateEnvelope",
    "EnvelopeError",
    "parse_envelope",
    # Routing
    "ConnectionRegistry",
    "Connection",
    "ConnectionState",
    "SignalRouter",
    "RelayServer",
]
