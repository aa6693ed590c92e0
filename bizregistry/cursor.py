"""Opaque keyset-pagination cursor.

The token is URL-safe base64 of ``{"m": metric, "id": tiebreak_id}``. Callers
must hand tokens back unchanged; the format is not a stable contract.
"""

import base64
import binascii
import json
import math
from dataclasses import dataclass
from typing import Optional, Union

Metric = Optional[Union[int, float]]

MAX_TOKEN_LENGTH = 256


@dataclass(frozen=True)
class Cursor:
    """Last seen sort metric (``None`` inside the NULL partition) and row id."""

    metric: Metric
    tiebreak_id: int


def encode_cursor(metric: Metric, tiebreak_id: int) -> str:
    """Encode a cursor token."""
    payload = json.dumps({"m": metric, "id": tiebreak_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def _number(value: object) -> Optional[Union[int, float]]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("not a number")
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise ValueError("not finite")
    return value


def decode_cursor(token: Optional[str]) -> Optional[Cursor]:
    """Decode a token; anything malformed means "no cursor"."""
    if not token or not isinstance(token, str):
        return None
    token = token.strip()
    if len(token) > MAX_TOKEN_LENGTH:
        return None
    padded = token + "=" * (-len(token) % 4)
    try:
        if "-" in padded or "_" in padded:
            raw = base64.urlsafe_b64decode(padded)
        else:
            raw = base64.b64decode(padded, validate=True)
        data = json.loads(raw.decode("utf-8"))
        if not isinstance(data, dict) or "id" not in data:
            return None
        tiebreak_id = _number(data["id"])
        if tiebreak_id != int(tiebreak_id) or tiebreak_id < 0:
            return None
        metric = data.get("m")
        if metric is not None:
            metric = _number(metric)
        return Cursor(metric=metric, tiebreak_id=int(tiebreak_id))
    except (
        ValueError,
        TypeError,
        RecursionError,
        binascii.Error,
        UnicodeDecodeError,
    ):
        return None
