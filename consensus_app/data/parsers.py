"""
Parsers converting raw JSON payloads into canonical data models.

Each parser raises ``MalformedDataError`` on payloads it cannot interpret;
the HTTP sources turn that into a ``FetchResult`` failure.
"""

import json
import math
from typing import Any, Optional

from ..errors import MalformedDataError, MissingDataError
from .models import ParticipantPosition, PositionRecord, Side, WindowResolution


def _to_float(value: Any, field: str) -> float:
    """Convert a numeric or numeric-string field, rejecting NaN and infinity."""
    if isinstance(value, bool):
        raise MalformedDataError(f"Invalid {field}: {value!r}", raw_data=value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedDataError(f"Invalid {field}: {value!r}", raw_data=value)

    if math.isnan(number) or math.isinf(number):
        raise MalformedDataError(f"Non-finite {field}: {value!r}", raw_data=value)
    return number


def _json_list(value: Any, field: str) -> list:
    """Accept a list or a JSON-encoded list (as some APIs double-encode arrays)."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            raise MalformedDataError(f"{field} is not valid JSON", raw_data=value)
    if not isinstance(value, list):
        raise MalformedDataError(f"{field} must be a list", expected_format="list")
    return value


def parse_closes(payload: Any) -> list[float]:
    """
    Parse a price history payload into closing prices, oldest first.

    Accepts kline arrays ``[open_time, open, high, low, close, ...]`` or
    objects carrying a ``close`` key.
    """
    if not isinstance(payload, list):
        raise MalformedDataError(
            "Price history must be a list",
            raw_data=payload,
            expected_format="list of klines"
        )

    closes = []
    for row in payload:
        if isinstance(row, (list, tuple)):
            if len(row) < 5:
                raise MalformedDataError("Kline row too short", raw_data=row)
            close = _to_float(row[4], "close")
        elif isinstance(row, dict) and "close" in row:
            close = _to_float(row["close"], "close")
        else:
            raise MalformedDataError("Unrecognised price row", raw_data=row)

        if close <= 0:
            raise MalformedDataError(f"Non-positive close: {close}")
        closes.append(close)

    return closes


def _parse_position(raw: Any) -> Optional[ParticipantPosition]:
    if not isinstance(raw, dict):
        raise MalformedDataError("Position must be an object", raw_data=raw)

    trader_id = raw.get("trader_id") or raw.get("proxyWallet")
    if not trader_id:
        raise MalformedDataError("Position missing trader id", raw_data=raw)

    side = Side.from_label(raw.get("outcome", raw.get("side", "")))
    if side is None:
        return None

    return ParticipantPosition(
        trader_id=str(trader_id),
        side=side,
        size=_to_float(raw.get("size", 0), "size"),
        display_name=raw.get("name") or raw.get("pseudonym"),
    )


def parse_resolution(window_id: str, payload: Any) -> WindowResolution:
    """
    Parse a window resolution payload.

    Unresolved windows come back with ``resolved=False`` and no positions.
    """
    if isinstance(payload, list):
        if not payload:
            raise MissingDataError("Empty resolution payload", data_type="resolution")
        payload = payload[0]
    if not isinstance(payload, dict):
        raise MalformedDataError("Resolution must be an object", raw_data=payload)

    resolved = bool(payload.get("resolved", payload.get("closed", False)))
    if not resolved:
        return WindowResolution(window_id=window_id, resolved=False)

    outcomes = _json_list(payload.get("outcomes", []), "outcomes")
    prices = _json_list(payload.get("outcomePrices", []), "outcomePrices")
    if len(outcomes) != len(prices):
        raise MalformedDataError(
            "outcomes and outcomePrices differ in length",
            raw_data=f"{outcomes} / {prices}"
        )

    settlement = []
    for label, price in zip(outcomes, prices):
        side = Side.from_label(label)
        if side is not None:
            settlement.append((side, _to_float(price, "outcome price")))

    positions = []
    for raw in _json_list(payload.get("positions", []), "positions"):
        position = _parse_position(raw)
        if position is not None:
            positions.append(position)

    return WindowResolution(
        window_id=window_id,
        resolved=True,
        settlement=tuple(settlement),
        positions=tuple(positions),
    )


def parse_position_records(source: str, payload: Any) -> list[PositionRecord]:
    """
    Parse live positions or activity rows for one trader.

    Activity rows with a ``type`` other than TRADE are skipped, as are rows
    with an unrecognised outcome or a non-positive size.
    """
    if isinstance(payload, dict):
        payload = payload.get("data", payload.get("positions", []))
    if not isinstance(payload, list):
        raise MalformedDataError(
            f"{source} payload must be a list",
            raw_data=payload,
            expected_format="list"
        )

    records = []
    for row in payload:
        if not isinstance(row, dict):
            raise MalformedDataError(f"{source} row must be an object", raw_data=row)
        row_type = row.get("type")
        if row_type is not None and str(row_type).upper() != "TRADE":
            continue

        side = Side.from_label(row.get("outcome", ""))
        if side is None:
            continue

        size = _to_float(row.get("size", 0), "size")
        if size <= 0:
            continue

        records.append(PositionRecord(side=side, size=size, source=source))

    return records
