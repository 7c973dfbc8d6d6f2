"""
Hyperliquid l2Book wire format.

Inbound:  {"channel": "l2Book", "data": {"coin": ..., "time": ..., "levels": [[{px, sz, n}, ...], [...]]}}
Outbound: {"method": "subscribe", "subscription": {"type": "l2Book", "coin": ..., "nSigFigs": ...}}

Group 0 of `levels` is the buy side; group 1 and anything after it is sell.
A bad level is dropped on its own; a bad envelope drops the whole message.
"""

from __future__ import annotations

import logging
import math

import orjson

from ..errors import LevelParseError, MessageDecodeError
from ..types import BookUpdate, PriceLevel

logger = logging.getLogger(__name__)

BOOK_CHANNEL = "l2Book"

# Truncate raw payloads in log lines
_LOG_PREVIEW_CHARS = 200


def subscription_message(coin: str, n_sig_figs: int) -> str:
    """Serialized l2Book subscription request."""
    return orjson.dumps({
        "method": "subscribe",
        "subscription": {
            "type": BOOK_CHANNEL,
            "coin": coin,
            "nSigFigs": n_sig_figs,
        },
    }).decode()


def _parse_number(raw: object, field: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
        raise LevelParseError(f"{field} has unsupported type {type(raw).__name__}")
    try:
        value = float(raw)
    except ValueError as e:
        raise LevelParseError(f"{field} is not a number: {raw!r}") from e
    # NaN/inf would break the ordering of price keys
    if not math.isfinite(value) or value < 0:
        raise LevelParseError(f"{field} must be finite and non-negative: {raw!r}")
    return value


def parse_level(raw: object) -> PriceLevel:
    """Parse one {"px", "sz", "n"} level. Raises LevelParseError."""
    if not isinstance(raw, dict):
        raise LevelParseError(f"level is not an object: {raw!r}")
    if 'px' not in raw or 'sz' not in raw:
        raise LevelParseError(f"level missing px/sz: {raw!r}")

    price = _parse_number(raw['px'], 'px')
    size = _parse_number(raw['sz'], 'sz')

    orders = raw.get('n', 0)
    if isinstance(orders, bool) or not isinstance(orders, int):
        orders = 0
    return PriceLevel(price, size, orders)


def _parse_group(group: object, index: int) -> list[PriceLevel]:
    if not isinstance(group, list):
        raise MessageDecodeError(f"levels[{index}] is not a list")

    result: list[PriceLevel] = []
    for raw_level in group:
        try:
            result.append(parse_level(raw_level))
        except LevelParseError as e:
            logger.warning("Discarding level in group %d: %s", index, e)
    return result


def decode_book_message(raw: str | bytes) -> BookUpdate | None:
    """
    Decode one inbound WebSocket message.

    Returns None for messages on other channels (subscription acks, pongs).
    Raises MessageDecodeError if the message is not a well-formed book.
    """
    try:
        message = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise MessageDecodeError(f"invalid JSON: {e}") from e

    if not isinstance(message, dict):
        raise MessageDecodeError("message is not an object")

    channel = message.get('channel')
    if channel is not None and channel != BOOK_CHANNEL:
        logger.debug("Skipping message on channel %r", channel)
        return None

    data = message.get('data')
    if not isinstance(data, dict):
        raise MessageDecodeError("missing 'data' object")

    coin = data.get('coin')
    levels = data.get('levels')
    timestamp_ms = data.get('time')

    if not isinstance(coin, str):
        raise MessageDecodeError("missing or invalid 'coin'")
    if not isinstance(levels, list):
        raise MessageDecodeError("missing or invalid 'levels'")
    if isinstance(timestamp_ms, bool) or not isinstance(timestamp_ms, int):
        raise MessageDecodeError("missing or invalid 'time'")

    buy: list[PriceLevel] = []
    sell: list[PriceLevel] = []
    for index, group in enumerate(levels):
        parsed = _parse_group(group, index)
        if index == 0:
            buy.extend(parsed)
        else:
            sell.extend(parsed)

    return BookUpdate(coin, tuple(buy), tuple(sell), timestamp_ms)


def preview(raw: str | bytes) -> str:
    """Shortened message text for log lines."""
    text = raw.decode('utf-8', errors='replace') if isinstance(raw, bytes) else raw
    if len(text) <= _LOG_PREVIEW_CHARS:
        return text
    return text[:_LOG_PREVIEW_CHARS] + "..."
