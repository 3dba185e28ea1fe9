"""
Utility functions for the Sales Funnel Dashboard.
Tolerant number/timestamp parsing and atomic JSON writes.

Usage:
    from scripts.lib.utils import parse_currency, parse_ts, atomic_write_json
"""
import json
import math
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

_CURRENCY_DECORATION = re.compile(r"[$,\s]")
_LEADING_DECIMAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_EPOCH_MS = re.compile(r"^-?\d{10,}$")

_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
)


def parse_currency(value: Any) -> float:
    """
    Parse a currency-ish value into a finite float.

    Strips ``$``, commas and whitespace, then reads the leading decimal
    literal (``"12abc"`` -> 12.0). Absent, empty, unparseable, NaN and
    infinite inputs all give 0.0. Never raises.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    cleaned = _CURRENCY_DECORATION.sub("", str(value))
    if not cleaned:
        return 0.0
    match = _LEADING_DECIMAL.match(cleaned)
    if not match:
        return 0.0
    try:
        number = float(match.group(0))
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def safe_int(val, default: Optional[int] = None) -> Optional[int]:
    """Safely convert a value to int, accepting float-looking strings."""
    if val is None or val == "":
        return default
    try:
        number = float(val)
    except (ValueError, TypeError):
        return default
    if not math.isfinite(number):
        return default
    return int(number)


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Zero-safe division."""
    if denominator == 0:
        return default
    return numerator / denominator


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_ts(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into a UTC-aware datetime, or None.

    Accepts datetimes, epoch milliseconds (int or digit string), ISO-8601
    strings with or without a trailing ``Z``, and US ``MM/DD/YYYY`` dates.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _as_utc(value)

    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

        text = str(value).strip()
        if not text:
            return None
        if _EPOCH_MS.match(text):
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None

    try:
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return _as_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    return None


def atomic_write_json(data: Dict, file_path: str | Path, indent: int = 2) -> bool:
    """
    Write JSON data to file atomically using temp file + rename.

    Returns:
        True if successful, False otherwise.
    """
    file_path = Path(file_path)
    temp_path = file_path.with_suffix(file_path.suffix + ".tmp")

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=indent, default=str)

        os.replace(temp_path, file_path)
        logger.debug("Atomically wrote JSON to %s", file_path)
        return True

    except (OSError, TypeError, ValueError) as e:
        logger.error("Failed to write JSON to %s: %s", file_path, e)
        if temp_path.exists():
            temp_path.unlink()
        return False
