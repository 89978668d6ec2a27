"""
Message Pipeline

Turns a raw inbound frame into a decoded value without ever raising.

Inbound frames are expected to be JSON text. Binary frames and anything that
json.loads rejects become a failed DecodeResult carrying a readable message;
the caller keeps its previous value in that case.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional


DECODE_ERROR_MESSAGE = "Failed to parse message data"


@dataclass(frozen=True)
class DecodeResult:
    """Success carries value, failure carries error"""

    ok: bool
    value: Any = None
    error: Optional[str] = None


def decode_frame(raw: Any) -> DecodeResult:
    """
    Parse one inbound frame.

    Args:
        raw: Frame payload as delivered by the transport

    Returns:
        DecodeResult: ok=True with the parsed JSON value, or ok=False with error

    Example:
        >>> decode_frame('{"price": 1}').value
        {'price': 1}
        >>> decode_frame("{not json").ok
        False
    """
    if not isinstance(raw, str):
        return DecodeResult(
            ok=False,
            error=f"{DECODE_ERROR_MESSAGE}: expected JSON text, got {type(raw).__name__}"
        )

    try:
        return DecodeResult(ok=True, value=json.loads(raw))
    except (ValueError, RecursionError) as e:
        # JSONDecodeError, oversized integer literals, deep nesting
        return DecodeResult(ok=False, error=f"{DECODE_ERROR_MESSAGE}: {e}")
