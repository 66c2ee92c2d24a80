"""
Shared helpers: package logger and hex/bytes conversions used when talking
JSON-RPC to nodes and bundlers.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional, Union

from eth_utils import to_bytes


logger = logging.getLogger("permit7702")

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logger(level: Union[str, int] = "INFO") -> logging.Logger:
    """
    Attach a stderr handler to the package logger and set its level.

    Safe to call more than once; the handler is only installed the first time.
    """
    if not any(getattr(h, "_permit7702", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._permit7702 = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger


def canonical_json(data: Dict[str, Any]) -> str:
    """
    RFC8785-ish: sort_keys + no whitespace
    """
    return json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def hex_to_bytes(value: Union[str, bytes, None]) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return to_bytes(hexstr=value)


def bytes_to_hex(value: Union[str, bytes, None]) -> str:
    if value is None:
        return "0x"
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(value).hex()


def to_quantity(value: int) -> str:
    """Encode an int as a JSON-RPC quantity (``0x``-prefixed, no leading zeros)."""
    return hex(int(value))


def from_quantity(value: Optional[Union[str, int]]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16) if value.startswith("0x") else int(value)
