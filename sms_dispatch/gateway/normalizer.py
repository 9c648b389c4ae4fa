"""
Normalisation of gateway inventory responses.

Firmware builds answer the SIM status query as a text blob, a JSON array
or a JSON object keyed by port name. Each shape is wrapped in a payload
variant and reconciled into a list of ChannelStatus entries. Nothing here
performs I/O or raises on malformed entries.
"""

import random
import re
from dataclasses import dataclass
from typing import Any

from ..domain.models import ChannelState, ChannelStatus

UNKNOWN_CARRIER = "Unknown"

SIGNAL_RANGE = (0, 100)
SIGNAL_PLACEHOLDER_RANGE = (50, 90)

ACTIVE_KEYWORDS = frozenset({"ready", "active", "ok", "online"})

_CHANNEL_MARKER = re.compile(r"port|sim", re.IGNORECASE)
_TEXT_INDEX = re.compile(r"(?:port|sim)[^\d]*(\d+)", re.IGNORECASE)
_TEXT_NUMBER = re.compile(r"(\+?\d{10,15})")
_TEXT_STATE = re.compile(r"\b(ready|active|ok|online|inactive|offline|error)\b", re.IGNORECASE)
_DIGITS = re.compile(r"\d+")

_PAYLOAD_KEYS = ("sim_status", "ports", "data")


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class SequencePayload:
    items: list[Any]


@dataclass(frozen=True)
class KeyedPayload:
    entries: dict[str, Any]


RawPayload = TextPayload | SequencePayload | KeyedPayload


def classify_payload(body: Any) -> RawPayload | None:
    """
    Wrap an inventory response in its payload variant.

    JSON objects are unwrapped through the ``sim_status``, ``ports`` and
    ``data`` keys first, since firmware builds nest the port list under
    any of them.
    """
    if isinstance(body, dict):
        for key in _PAYLOAD_KEYS:
            if body.get(key) is not None:
                body = body[key]
                break

    if isinstance(body, str):
        return TextPayload(body)
    if isinstance(body, list):
        return SequencePayload(body)
    if isinstance(body, dict):
        return KeyedPayload(body)
    return None


def normalize_channels(payload: RawPayload | None) -> list[ChannelStatus]:
    """Reconcile any payload variant into canonical channel entries."""
    match payload:
        case TextPayload(text=text):
            return _from_text(text)
        case SequencePayload(items=items):
            return _from_sequence(items)
        case KeyedPayload(entries=entries):
            return _from_keyed(entries)
        case _:
            return []


def normalize_inventory(body: Any) -> list[ChannelStatus]:
    return normalize_channels(classify_payload(body))


def _from_text(text: str) -> list[ChannelStatus]:
    channels = []
    for line in text.splitlines():
        if not _CHANNEL_MARKER.search(line):
            continue
        index_match = _TEXT_INDEX.search(line)
        if not index_match:
            continue
        number_match = _TEXT_NUMBER.search(line[index_match.end():])
        state_match = _TEXT_STATE.search(line)
        state = ChannelState.INACTIVE
        if state_match and state_match.group(1).lower() in ACTIVE_KEYWORDS:
            state = ChannelState.ACTIVE
        signal, estimated = _signal(None)
        channels.append(
            ChannelStatus(
                index=int(index_match.group(1)),
                number=number_match.group(1) if number_match else None,
                state=state,
                carrier=UNKNOWN_CARRIER,
                signal=signal,
                signal_estimated=estimated,
            )
        )
    return channels


def _from_sequence(items: list[Any]) -> list[ChannelStatus]:
    channels = []
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        index = _as_int(_first(item, "port", "id"))
        channel = _from_mapping(item, position if index is None else index)
        if channel is not None:
            channels.append(channel)
    return channels


def _from_keyed(entries: dict[str, Any]) -> list[ChannelStatus]:
    channels = []
    position = 0
    for key, value in entries.items():
        if not _CHANNEL_MARKER.search(str(key)):
            continue
        digits = _DIGITS.search(str(key))
        index = int(digits.group()) if digits else position
        position += 1
        if isinstance(value, str):
            value = {"status": value}
        if not isinstance(value, dict):
            continue
        channel = _from_mapping(value, index)
        if channel is not None:
            channels.append(channel)
    return channels


def _from_mapping(item: dict[str, Any], index: int) -> ChannelStatus | None:
    try:
        number = _first(item, "msisdn", "phone_number", "number")
        carrier = _first(item, "operator", "carrier", "network")
        signal, estimated = _signal(_first(item, "signal_level", "signal", "rssi"))
        return ChannelStatus(
            index=index,
            number=str(number) if number is not None else None,
            state=_structured_state(item),
            carrier=str(carrier) if carrier else UNKNOWN_CARRIER,
            signal=signal,
            signal_estimated=estimated,
        )
    except (TypeError, ValueError):
        return None


def _structured_state(item: dict[str, Any]) -> ChannelState:
    status = str(item.get("status", "")).strip().lower()
    if status in ACTIVE_KEYWORDS or item.get("online") is True or item.get("ready") is True:
        return ChannelState.ACTIVE
    if status == "error":
        return ChannelState.ERROR
    return ChannelState.INACTIVE


def _signal(value: Any) -> tuple[int, bool]:
    parsed = _as_int(value)
    # Signal is a 0-100 quality figure; raw dBm readings such as -75 do not fit it.
    if parsed is None or not SIGNAL_RANGE[0] <= parsed <= SIGNAL_RANGE[1]:
        # Display placeholder only; never feeds a delivery decision.
        return random.randint(*SIGNAL_PLACEHOLDER_RANGE), True
    return parsed, False


def _first(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None
