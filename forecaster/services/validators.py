from __future__ import annotations
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

ZIP_RE = re.compile(r"\b\d{5}\b")

# "<city>, <ST or state name>" with an optional trailing zip, e.g.
# "6214 Stewart Rd. Leeds, AL. 35094" -> ("6214 Stewart Rd. Leeds", "AL")
CITY_STATE_RE = re.compile(r"([^,]+),\s*([A-Z]{2}|[A-Za-z\s]+?)(?:\s*\.?\s*\d{5}|$)")

STREET_TYPES_RE = re.compile(
    r"\s+(?:Rd|Road|St|Street|Ave|Avenue|Blvd|Boulevard|Dr|Drive|Ln|Lane|Ct|Court|Pl|Place|Way|Cir|Circle)\b",
    re.IGNORECASE,
)
LEADING_DOT_RE = re.compile(r"^\.\s*")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def extract_zip(address: Optional[str]) -> Optional[str]:
    # First standalone 5-digit token, anywhere in the text.
    m = ZIP_RE.search(address or "")
    return m.group(0) if m else None


def clean_city_name(city: str) -> str:
    """
    Drop any street address in front of the city name:
    "6214 Stewart Rd. Leeds" -> "Leeds".
    """
    parts = [p for p in STREET_TYPES_RE.split(city) if p.strip()]
    last = parts[-1] if parts else city
    return LEADING_DOT_RE.sub("", last).strip()


def extract_city_state(address: Optional[str]) -> Optional[str]:
    m = CITY_STATE_RE.search(address or "")
    if not m:
        return None

    city = clean_city_name(m.group(1))
    state = LEADING_DOT_RE.sub("", m.group(2)).strip()
    if not city or not state:
        return None
    return f"{city}, {state}"


def round_half_up(value: Optional[float], places: int = 1) -> Optional[float]:
    # Python's round() is banker's rounding on binary floats; 72.25 must become 72.3.
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def to_percent(probability: Optional[float]) -> Optional[int]:
    # 0.105 -> 11, not 10
    if probability is None:
        return None
    scaled = Decimal(str(probability)) * 100
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))
