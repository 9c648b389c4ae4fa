"""Tests for gateway inventory normalisation."""

import pytest

from sms_dispatch.domain.models import ChannelState
from sms_dispatch.gateway import (
    KeyedPayload,
    SequencePayload,
    TextPayload,
    classify_payload,
    normalize_channels,
    normalize_inventory,
)

TEXT_FORM = """Gateway status
Port 0: +355691234567 ready
Port 1: +355699876543 offline
SIM 2: +355681112223 online
"""

SEQUENCE_FORM = [
    {"port": 0, "msisdn": "+355691234567", "status": "ready"},
    {"port": 1, "phone_number": "+355699876543", "status": "offline"},
    {"id": 2, "number": "+355681112223", "online": True},
]

KEYED_FORM = {
    "port0": {"msisdn": "+355691234567", "status": "ready"},
    "port1": {"number": "+355699876543", "status": "offline"},
    "sim2": {"phone_number": "+355681112223", "status": "online"},
}


def _summary(channels):
    return [(c.index, c.number, c.state) for c in channels]


class TestClassifyPayload:
    def test_text(self):
        assert isinstance(classify_payload("port 1 ready"), TextPayload)

    def test_sequence(self):
        assert isinstance(classify_payload([{"port": 1}]), SequencePayload)

    def test_keyed(self):
        assert isinstance(classify_payload({"port1": "ready"}), KeyedPayload)

    @pytest.mark.parametrize("key", ["sim_status", "ports", "data"])
    def test_unwraps_nested_port_list(self, key):
        payload = classify_payload({key: [{"port": 0}], "model": "DWG2000"})
        assert isinstance(payload, SequencePayload)

    def test_unknown_shape(self):
        assert classify_payload(42) is None
        assert normalize_channels(None) == []


class TestShapeEquivalence:
    def test_three_forms_yield_same_channels(self):
        expected = [
            (0, "+355691234567", ChannelState.ACTIVE),
            (1, "+355699876543", ChannelState.INACTIVE),
            (2, "+355681112223", ChannelState.ACTIVE),
        ]

        assert _summary(normalize_inventory(TEXT_FORM)) == expected
        assert _summary(normalize_inventory(SEQUENCE_FORM)) == expected
        assert _summary(normalize_inventory(KEYED_FORM)) == expected


class TestTextForm:
    def test_skips_lines_without_channel_marker(self):
        channels = normalize_inventory("uptime 12345\nport 3 +12025550123 ok\n")
        assert [c.index for c in channels] == [3]

    def test_unrecognised_state_is_inactive(self):
        channels = normalize_inventory("port 1 +12025550123 error")
        assert channels[0].state == ChannelState.INACTIVE

    def test_missing_number(self):
        channels = normalize_inventory("port 4 active")
        assert channels[0].number is None
        assert channels[0].carrier == "Unknown"

    def test_signal_is_placeholder(self):
        channel = normalize_inventory("port 1 ready")[0]
        assert channel.signal_estimated is True
        assert 50 <= channel.signal <= 90


class TestStructuredForms:
    def test_alternative_key_names(self):
        channels = normalize_inventory(
            [{"port": 5, "msisdn": "+12025550123", "operator": "Vodafone", "rssi": "27", "status": "ok"}]
        )
        channel = channels[0]
        assert channel.index == 5
        assert channel.carrier == "Vodafone"
        assert channel.signal == 27
        assert channel.signal_estimated is False
        assert channel.state == ChannelState.ACTIVE

    def test_error_status(self):
        channels = normalize_inventory([{"port": 0, "status": "error"}])
        assert channels[0].state == ChannelState.ERROR

    def test_index_falls_back_to_position(self):
        channels = normalize_inventory([{"status": "ready"}, {"status": "ready"}])
        assert [c.index for c in channels] == [0, 1]

    def test_malformed_entries_are_skipped(self):
        channels = normalize_inventory([None, "garbage", {"port": 1, "status": "ready"}, 7])
        assert [c.index for c in channels] == [1]

    def test_keyed_ignores_non_channel_keys(self):
        channels = normalize_inventory({"model": "DWG2000", "port1": "ready", "port2": ["bad"]})
        assert [(c.index, c.state) for c in channels] == [(1, ChannelState.ACTIVE)]

    def test_non_numeric_signal_uses_placeholder(self):
        channel = normalize_inventory([{"port": 0, "signal": "strong"}])[0]
        assert channel.signal_estimated is True

    @pytest.mark.parametrize("reading", [-75, "-113", 140])
    def test_out_of_range_signal_uses_placeholder(self, reading):
        channel = normalize_inventory([{"port": 0, "rssi": reading}])[0]
        assert channel.signal_estimated is True
        assert 50 <= channel.signal <= 90

    @pytest.mark.parametrize("reading", [0, 100])
    def test_signal_bounds_are_kept(self, reading):
        channel = normalize_inventory([{"port": 0, "signal": reading}])[0]
        assert channel.signal == reading
        assert channel.signal_estimated is False

    def test_empty_input(self):
        assert normalize_inventory([]) == []
        assert normalize_inventory("") == []
