"""Tests for envelope parsing and encoding."""

import json

import pytest

from signal_relay.protocol import (
    FIELD_USER_ID,
    CandidateEnvelope,
    EnvelopeError,
    SdpEnvelope,
    SignalType,
    decode_message,
    identity_message,
    parse_envelope,
    read_signal_type,
)


class TestParseEnvelope:
    """Tests for parse_envelope()."""

    def test_sdp(self):
        envelope = parse_envelope(
            '{"signalType": "sdp", "userId": "B1", "sdp_base64": "xyz"}'
        )
        assert envelope == SdpEnvelope(user_id="B1", sdp_base64="xyz")
        assert envelope.signal_type is SignalType.SDP

    def test_candidate(self):
        envelope = parse_envelope(
            '{"signalType": "candidate", "userId": "B1", '
            '"candidate": "candidate:1 1 UDP 2122252543 10.0.0.2 50000 typ host"}'
        )
        assert isinstance(envelope, CandidateEnvelope)
        assert envelope.user_id == "B1"
        assert envelope.candidate.startswith("candidate:1")

    def test_binary_frame_accepted(self):
        envelope = parse_envelope(b'{"signalType": "sdp", "userId": "B1", "sdp_base64": "x"}')
        assert envelope == SdpEnvelope(user_id="B1", sdp_base64="x")

    @pytest.mark.parametrize(
        "message",
        [
            '{"signalType": "offer", "userId": "B1", "sdp": "x"}',
            '{"signalType": "answer", "userId": "B1", "sdp": "x"}',
            '{"userId": "B1", "sdp_base64": "x"}',
            '{"signalType": 5, "userId": "B1"}',
            "{}",
        ],
    )
    def test_unrecognized_tag_returns_none(self, message):
        """Unknown or missing tags are dropped, not errors."""
        assert parse_envelope(message) is None

    @pytest.mark.parametrize(
        "message",
        ["not json", "{", b"\xff\xfe", "[" * 100000, '{"n": 1' + "0" * 5000 + "}"],
        ids=["text", "truncated", "bad-bytes", "deep-nesting", "huge-int"],
    )
    def test_invalid_json_raises(self, message):
        with pytest.raises(EnvelopeError, match="Invalid JSON"):
            parse_envelope(message)

    @pytest.mark.parametrize("message", ["[]", '"sdp"', "42", "null"])
    def test_non_object_raises(self, message):
        with pytest.raises(EnvelopeError, match="JSON object"):
            parse_envelope(message)

    def test_missing_payload_field_raises(self):
        with pytest.raises(EnvelopeError, match="sdp_base64"):
            parse_envelope('{"signalType": "sdp", "userId": "B1"}')

    def test_missing_user_id_raises(self):
        with pytest.raises(EnvelopeError, match="userId"):
            parse_envelope('{"signalType": "candidate", "candidate": "c"}')

    def test_non_string_field_raises(self):
        with pytest.raises(EnvelopeError, match="must be a string"):
            parse_envelope('{"signalType": "sdp", "userId": 7, "sdp_base64": "x"}')


class TestEnvelopeEncoding:
    """Tests for sender stamping and wire encoding."""

    def test_with_sender_rewrites_user_id_only(self):
        inbound = SdpEnvelope(user_id="B1", sdp_base64="xyz")
        stamped = inbound.with_sender("A1")
        assert stamped == SdpEnvelope(user_id="A1", sdp_base64="xyz")
        # Original is untouched
        assert inbound.user_id == "B1"

    def test_sdp_wire_format(self):
        envelope = SdpEnvelope(user_id="A1", sdp_base64="xyz")
        assert json.loads(envelope.encode()) == {
            "signalType": "sdp",
            "userId": "A1",
            "sdp_base64": "xyz",
        }

    def test_candidate_wire_format(self):
        envelope = CandidateEnvelope(user_id="A1", candidate="c")
        assert envelope.to_dict() == {
            "signalType": "candidate",
            "userId": "A1",
            "candidate": "c",
        }

    def test_extra_fields_are_not_relayed(self):
        envelope = parse_envelope(
            '{"signalType": "sdp", "userId": "B1", "sdp_base64": "x", "secret": 1}'
        )
        assert "secret" not in envelope.to_dict()


class TestHelpers:
    def test_identity_message(self):
        assert identity_message("A1") == {FIELD_USER_ID: "A1"}

    def test_read_signal_type(self):
        assert read_signal_type({"signalType": "candidate"}) is SignalType.CANDIDATE
        assert read_signal_type({"signalType": "bogus"}) is None

    def test_decode_message(self):
        assert decode_message('{"a": 1}') == {"a": 1}
