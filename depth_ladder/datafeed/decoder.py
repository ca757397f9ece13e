"""
Depth message decoding.

Expected format:
    {
        "Levels": {"1000": {"BestBid": 1000, "BidQuantity": 5,
                            "BestAsk": 1001, "AskQuantity": 3}, ...},
        "Command": null,
        "LastTradedPrice": 1000,
        "LastTradedQuantity": 2
    }

Anything that does not match raises MalformedMessage; partially-filled
updates never leave this module.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any

import orjson

from ..errors import MalformedMessage
from ..types import DepthUpdate, PriceLevel

_PRICE_KEY = re.compile(r"-?[0-9]+")


def _require(data: dict, key: str, where: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise MalformedMessage(f"missing field {key!r} in {where}") from None


def _as_int(value: Any, field: str) -> int:
    # bool is an int subclass; a true/false price is never valid
    if isinstance(value, bool):
        raise MalformedMessage(f"{field} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise MalformedMessage(f"{field} must be an integer, got {value!r}")


def _as_qty(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedMessage(f"{field} must be a number, got {value!r}")
    if value < 0:
        raise MalformedMessage(f"{field} must be >= 0, got {value!r}")
    return float(value)


def _decode_level(key: str, raw: Any) -> tuple[int, PriceLevel]:
    # int() alone would also take " 1000 ", "+1000" and "1_000"
    if not _PRICE_KEY.fullmatch(key):
        raise MalformedMessage(f"level key {key!r} is not an integer price")
    price_key = int(key)

    if not isinstance(raw, dict):
        raise MalformedMessage(f"level {key!r} must be an object")

    where = f"level {key!r}"
    level = PriceLevel(
        best_bid_price=_as_int(_require(raw, 'BestBid', where), 'BestBid'),
        bid_qty=_as_qty(_require(raw, 'BidQuantity', where), 'BidQuantity'),
        best_ask_price=_as_int(_require(raw, 'BestAsk', where), 'BestAsk'),
        ask_qty=_as_qty(_require(raw, 'AskQuantity', where), 'AskQuantity'),
    )
    return price_key, level


def parse_depth_update(data: Any) -> DepthUpdate:
    """Build a DepthUpdate from an already-parsed JSON value."""
    if not isinstance(data, dict):
        raise MalformedMessage(f"expected a JSON object, got {type(data).__name__}")

    raw_levels = _require(data, 'Levels', 'message')
    if not isinstance(raw_levels, dict):
        raise MalformedMessage("Levels must be an object")

    levels = dict(_decode_level(key, raw) for key, raw in raw_levels.items())

    command = data.get('Command')
    if command is not None and not isinstance(command, str):
        raise MalformedMessage(f"Command must be a string or null, got {command!r}")

    return DepthUpdate(
        levels=MappingProxyType(levels),
        command=command,
        last_traded_price=_as_int(
            _require(data, 'LastTradedPrice', 'message'), 'LastTradedPrice'
        ),
        last_traded_qty=_as_qty(
            _require(data, 'LastTradedQuantity', 'message'), 'LastTradedQuantity'
        ),
    )


def decode_depth_update(raw: str | bytes) -> DepthUpdate:
    """
    Decode one text or binary WebSocket frame.

    HOT PATH - called for every message.
    """
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise MalformedMessage(f"invalid JSON: {e}") from e
    return parse_depth_update(data)


def encode_depth_update(update: DepthUpdate) -> bytes:
    """Inverse of decode_depth_update. Used by the benchmark and tests."""
    return orjson.dumps({
        'Levels': {
            str(price): {
                'BestBid': level.best_bid_price,
                'BidQuantity': level.bid_qty,
                'BestAsk': level.best_ask_price,
                'AskQuantity': level.ask_qty,
            }
            for price, level in update.levels.items()
        },
        'Command': update.command,
        'LastTradedPrice': update.last_traded_price,
        'LastTradedQuantity': update.last_traded_qty,
    })
