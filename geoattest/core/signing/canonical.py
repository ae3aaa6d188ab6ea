"""
Payload Canonicalization

The signed unit is a four-field location attestation. Signer and verifier
must derive the exact same bytes from it, so the canonical form mirrors what
a browser client signs: the UTF-8 encoding of

    JSON.stringify({latitude, longitude, timestamp, message})

Canonical Format (json-stringify-v1):
    {"latitude":<num>,"longitude":<num>,"timestamp":"<str>","message":"<str>"}

Where:
    - keys appear in exactly this order, no whitespace
    - <num> uses ECMAScript Number-to-String: 35 (not 35.0), -0 as 0,
      shortest round-trip digits otherwise, exponent form outside [1e-6, 1e21)
    - <str> escapes '"' and '\\', uses \\b \\f \\n \\r \\t, writes other
      control characters and lone surrogates as lowercase \\u00xx / \\udxxx,
      and keeps everything else (U+007F and non-ASCII included) as raw UTF-8

Strings are treated as sequences of code points. A str that carries a surrogate
pair as two separate code points (e.g. "\\ud83d\\ude00" built by hand rather
than decoded from UTF-8 or JSON) is escaped as two \\udxxx sequences, whereas
JavaScript would emit the astral character raw.

Coordinates are rounded to 3 decimals with ROUND_HALF_UP (half away from zero)
on the float's shortest decimal representation. A Payload also bounds latitude
to [-90, 90] and longitude to [-180, 180].
"""

import json
import math
import re
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

CANONICAL_FORMAT = "json-stringify-v1"

COORDINATE_QUANTUM = Decimal("0.001")

# enough digits to quantize any finite double (max ~1.8e308) to 3 decimals
_ROUNDING_PRECISION = 400

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)

# Date.prototype.toISOString() output, extended years included
ISO_UTC_TIMESTAMP = re.compile(
    r"^(?:\d{4}|[+-]\d{6})-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"
)

_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


def round_coordinate(value: float) -> float:
    """
    Round a coordinate to 3 decimal places, half away from zero.

    >>> round_coordinate(35.12345)
    35.123
    >>> round_coordinate(-120.98765)
    -120.988
    """
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Coordinate must be finite, got {value!r}")
    with localcontext() as ctx:
        ctx.prec = _ROUNDING_PRECISION
        rounded = Decimal(repr(value)).quantize(COORDINATE_QUANTUM, rounding=ROUND_HALF_UP)
    return float(rounded)


class Payload(BaseModel):
    """A location attestation: where, when, and what."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    latitude: float
    longitude: float
    timestamp: str
    message: str

    @field_validator("latitude", "longitude")
    @classmethod
    def round_coordinates(cls, v: float, info: ValidationInfo) -> float:
        rounded = round_coordinate(v)
        low, high = LATITUDE_RANGE if info.field_name == "latitude" else LONGITUDE_RANGE
        if not low <= rounded <= high:
            raise ValueError(f"{info.field_name} must be within [{low:g}, {high:g}], got {v!r}")
        return rounded

    @field_validator("timestamp")
    @classmethod
    def check_timestamp(cls, v: str) -> str:
        if not ISO_UTC_TIMESTAMP.match(v):
            raise ValueError(
                f"timestamp must be ISO-8601 UTC with milliseconds (YYYY-MM-DDTHH:MM:SS.sssZ), got {v!r}"
            )
        return v


PayloadLike = Union[Payload, Mapping[str, Any]]


def format_number(value: float) -> str:
    """Render a float the way ECMAScript's Number::toString does."""
    if not math.isfinite(value):
        raise ValueError(f"Cannot canonicalize non-finite number {value!r}")
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    # repr() yields the shortest round-trip digits, same as ECMAScript
    _, digit_tuple, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    k = len(digits)
    n = exponent + k  # value == 0.<digits> * 10**n

    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        body = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
        body = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + body


def format_string(value: str) -> str:
    """Render a string the way JSON.stringify does."""
    encoded = json.dumps(value, ensure_ascii=False)
    return _LONE_SURROGATE.sub(lambda m: "\\u%04x" % ord(m.group()), encoded)


def to_payload(payload: PayloadLike) -> Payload:
    if isinstance(payload, Payload):
        return payload
    return Payload.model_validate(dict(payload))


def canonicalize(payload: PayloadLike) -> bytes:
    """
    Produce the canonical bytes for a payload.

    Args:
        payload: Payload, or a mapping with exactly the four fields

    Returns:
        UTF-8 bytes of the json-stringify-v1 form

    Example:
        >>> canonicalize({"latitude": 35.681, "longitude": 139.767,
        ...               "timestamp": "2024-01-01T00:00:00.000Z", "message": "hi"})
        b'{"latitude":35.681,"longitude":139.767,"timestamp":"2024-01-01T00:00:00.000Z","message":"hi"}'
    """
    p = to_payload(payload)
    text = (
        '{"latitude":' + format_number(round_coordinate(p.latitude))
        + ',"longitude":' + format_number(round_coordinate(p.longitude))
        + ',"timestamp":' + format_string(p.timestamp)
        + ',"message":' + format_string(p.message)
        + "}"
    )
    return text.encode("utf-8")
