"""
Decision Parser
Validates decision provider output before anything touches the broker.

Accepted shapes:
  - a JSON object (possibly wrapped in prose or markdown fences)
  - "key: value" lines, e.g.

        keputusan: OPEN
        pair: XAUUSD
        arah: BUY_LIMIT
        harga: 2350.5
        sl: 2345
        tp: 2365
        alasan: sweep of Asian low
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..core.constants import DecisionType, OrderType
from ..core.exceptions import DecisionPayloadError

# Extractor keys (Indonesian) -> payload keys
KEY_ALIASES = {
    "keputusan": "decision",
    "action": "decision",
    "pair": "symbol",
    "arah": "order_type",
    "type": "order_type",
    "harga": "price",
    "entry": "price",
    "alasan": "reason",
    "stop_loss": "sl",
    "take_profit": "tp",
}


def _number(value: Any, field_name: str, default: Optional[float] = None) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise DecisionPayloadError(f"{field_name} is not a number: {value!r}")


@dataclass(frozen=True)
class DecisionPayload:
    """A validated trading decision."""
    decision: DecisionType
    symbol: str
    order_type: Optional[OrderType] = None
    price: float = 0.0
    sl: float = 0.0
    tp: float = 0.0
    reason: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default_symbol: Optional[str] = None) -> "DecisionPayload":
        """
        Validate an untrusted mapping.

        Args:
            data: Raw decision fields (English or extractor keys)
            default_symbol: Symbol used when the payload omits it

        Raises:
            DecisionPayloadError: If required fields are missing or malformed
        """
        if not isinstance(data, Mapping):
            raise DecisionPayloadError(f"Decision payload must be a mapping, got {type(data).__name__}")

        fields: Dict[str, Any] = {}
        for key, value in data.items():
            norm = str(key).strip().lower()
            fields[KEY_ALIASES.get(norm, norm)] = value

        raw_decision = fields.get("decision")
        if not raw_decision:
            raise DecisionPayloadError("Missing 'decision'")
        try:
            decision = DecisionType(str(raw_decision).strip().upper())
        except ValueError:
            raise DecisionPayloadError(f"Unknown decision: {raw_decision!r}")

        symbol = str(fields.get("symbol") or default_symbol or "").strip().upper()
        if not symbol:
            raise DecisionPayloadError("Missing 'symbol'")

        order_type = None
        if fields.get("order_type"):
            try:
                order_type = OrderType.from_string(fields["order_type"])
            except ValueError as e:
                raise DecisionPayloadError(str(e))

        price = _number(fields.get("price"), "price", 0.0)
        sl = _number(fields.get("sl"), "sl", 0.0)
        tp = _number(fields.get("tp"), "tp", 0.0)

        if decision == DecisionType.OPEN:
            if order_type is None:
                raise DecisionPayloadError("OPEN decision without order type")
            if order_type.is_pending and not price:
                raise DecisionPayloadError(f"{order_type.value} requires a price")

        return cls(
            decision=decision,
            symbol=symbol,
            order_type=order_type,
            price=price,
            sl=sl,
            tp=tp,
            reason=str(fields.get("reason") or "").strip(),
        )


def _extract_json(text: str) -> Optional[str]:
    """Extract the outermost {...} block from text."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start:end + 1]


def _parse_lines(text: str) -> Dict[str, str]:
    data = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().strip("*-• ").strip()
        if key:
            data[key] = value.strip().strip("*").strip()
    return data


def parse_decision_text(text: str, default_symbol: Optional[str] = None) -> DecisionPayload:
    """
    Parse raw provider output into a DecisionPayload.

    Raises:
        DecisionPayloadError: If no decision can be read
    """
    if not text or not text.strip():
        raise DecisionPayloadError("Empty decision output")

    json_str = _extract_json(text)
    if json_str:
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            return DecisionPayload.from_mapping(data, default_symbol)

    return DecisionPayload.from_mapping(_parse_lines(text), default_symbol)
