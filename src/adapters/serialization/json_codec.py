"""
Explicit wire codec for API payloads.

JSON consumers in the browser parse numbers as IEEE-754 doubles, so token
amounts in base units (and uint256 ids) lose precision above 2**53 - 1.
Such integers are emitted as decimal strings here, at the boundary, instead
of changing how integers serialize anywhere else.
"""

import json
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

MAX_SAFE_INTEGER = 2**53 - 1


def to_wire(value: Any) -> Any:
    """Convert value into JSON-safe primitives."""
    if value is None or isinstance(value, (bool, str, float)):
        return value
    if isinstance(value, int):
        return str(value) if abs(value) > MAX_SAFE_INTEGER else value
    if isinstance(value, Decimal):
        return f"{value:f}"
    if isinstance(value, Enum):
        return to_wire(value.value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, BaseException):
        return str(value)
    if hasattr(value, "to_dict"):
        return to_wire(value.to_dict())
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_wire(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_wire(v) for v in value]
    return str(value)


def encode_json(value: Any, **kwargs: Any) -> str:
    return json.dumps(to_wire(value), **kwargs)


def parse_int(value: Any) -> int:
    """Inverse of the big-int encoding: accepts ints, decimal strings and 0x-hex strings."""
    if isinstance(value, bool):
        raise ValueError(f"Not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    raise ValueError(f"Not an integer: {value!r}")
