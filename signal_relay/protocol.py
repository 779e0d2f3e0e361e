"""Message protocol definitions for the signaling relay.

This module defines the JSON envelopes exchanged between clients and the relay
over the websocket channel. The relay never interprets negotiation content;
it only reads the tag and the addressed identity.

Message Types
-------------

**Identity disclosure**
    Sent by: Relay, once per connection, right after registration
    Format: ``{"userId": "<assigned-identity>"}``

**sdp**
    Sent by: Client (to relay) and Relay (to the addressed client)
    Purpose: Carries an opaque base64-encoded session description
    Format: ``{"signalType": "sdp", "userId": "<id>", "sdp_base64": "<opaque>"}``

**candidate**
    Sent by: Client (to relay) and Relay (to the addressed client)
    Purpose: Carries an opaque connectivity candidate
    Format: ``{"signalType": "candidate", "userId": "<id>", "candidate": "<opaque>"}``

Addressing
----------

On the way in, ``userId`` names the recipient. Before the relay writes the
envelope to the recipient it overwrites ``userId`` with the identity it
assigned to the sending connection, so the recipient always sees the
authenticated sender and never a client-declared one.

Message Flow Example
--------------------

1. Relay → A: {"userId": "A1"}
2. Relay → B: {"userId": "B1"}
3. A → Relay: {"signalType": "sdp", "userId": "B1", "sdp_base64": "xyz"}
4. Relay → B: {"signalType": "sdp", "userId": "A1", "sdp_base64": "xyz"}

Any other ``signalType`` (or none at all) is dropped by the relay.
"""

import json
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import ClassVar, Dict, Optional, Type, Union

# Envelope field names
FIELD_SIGNAL_TYPE = "signalType"
FIELD_USER_ID = "userId"
FIELD_SDP = "sdp_base64"
FIELD_CANDIDATE = "candidate"


class SignalType(str, Enum):
    """Known envelope tags."""

    SDP = "sdp"
    CANDIDATE = "candidate"


class EnvelopeError(ValueError):
    """Raised when an inbound message cannot be parsed as an envelope."""


@dataclass(frozen=True)
class SignalEnvelope:
    """Base class for routable envelopes.

    Subclasses set ``signal_type`` and declare their payload fields with the
    JSON key in the field's ``wire`` metadata.
    """

    signal_type: ClassVar[SignalType]

    user_id: str = field(metadata={"wire": FIELD_USER_ID})

    @classmethod
    def from_dict(cls, data: dict) -> "SignalEnvelope":
        """Build the envelope from a decoded JSON object.

        Args:
            data: Decoded envelope object.

        Returns:
            Envelope instance of this variant.

        Raises:
            EnvelopeError: If a required field is missing or not a string.
        """
        values = {}
        for f in fields(cls):
            wire_name = f.metadata["wire"]
            value = data.get(wire_name)
            if not isinstance(value, str):
                raise EnvelopeError(
                    f"'{cls.signal_type.value}' envelope field '{wire_name}' "
                    f"must be a string, got {type(value).__name__}"
                )
            values[f.name] = value
        return cls(**values)

    def to_dict(self) -> dict:
        data = {FIELD_SIGNAL_TYPE: self.signal_type.value}
        for f in fields(self):
            data[f.metadata["wire"]] = getattr(self, f.name)
        return data

    def encode(self) -> str:
        return json.dumps(self.to_dict())

    def with_sender(self, sender_id: str) -> "SignalEnvelope":
        """Return a copy whose ``user_id`` is the sending connection's identity."""
        return replace(self, user_id=sender_id)


@dataclass(frozen=True)
class SdpEnvelope(SignalEnvelope):
    """Session description, carried as an opaque base64 blob."""

    signal_type: ClassVar[SignalType] = SignalType.SDP

    sdp_base64: str = field(metadata={"wire": FIELD_SDP})


@dataclass(frozen=True)
class CandidateEnvelope(SignalEnvelope):
    """Connectivity candidate, carried as an opaque string."""

    signal_type: ClassVar[SignalType] = SignalType.CANDIDATE

    candidate: str = field(metadata={"wire": FIELD_CANDIDATE})


ENVELOPE_TYPES: Dict[SignalType, Type[SignalEnvelope]] = {
    SignalType.SDP: SdpEnvelope,
    SignalType.CANDIDATE: CandidateEnvelope,
}


def decode_message(message: Union[str, bytes]) -> dict:
    """Decode one inbound frame into a JSON object.

    Raises:
        EnvelopeError: If the frame is not valid JSON or not a JSON object.
    """
    try:
        data = json.loads(message)
    except (ValueError, UnicodeDecodeError, RecursionError) as e:
        # ValueError also covers integer literals past the digit limit
        raise EnvelopeError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise EnvelopeError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def read_signal_type(data: dict) -> Optional[SignalType]:
    """Extract the tag from a decoded envelope.

    Returns:
        The known ``SignalType``, or None for a missing or unknown tag.
    """
    tag = data.get(FIELD_SIGNAL_TYPE)
    if not isinstance(tag, str):
        return None
    try:
        return SignalType(tag)
    except ValueError:
        return None


def parse_envelope(message: Union[str, bytes]) -> Optional[SignalEnvelope]:
    """Parse an inbound frame into a routable envelope.

    Args:
        message: Raw text or binary frame read from the channel.

    Returns:
        The parsed envelope, or None if the tag is missing or unrecognized.

    Raises:
        EnvelopeError: If the frame is malformed or a known variant is
            missing one of its fields.
    """
    data = decode_message(message)
    signal_type = read_signal_type(data)
    if signal_type is None:
        return None
    return ENVELOPE_TYPES[signal_type].from_dict(data)


def identity_message(identity: str) -> dict:
    """Build the one-time message that tells a client its assigned identity."""
    return {FIELD_USER_ID: identity}
