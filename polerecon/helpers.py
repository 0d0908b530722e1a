"""helpers.py – scalar normalizers shared by the SPIDA and Katapult readers.

Every function here is total: bad or missing input yields ``None``, never an
exception.
"""

from __future__ import annotations
import math
import re
from math import radians, sin, cos, sqrt, atan2
from typing import Any, Callable, Iterable, Optional, Tuple

from .config import EARTH_R, METRE_TO_FT, METRE_HEIGHT_RANGE
from .models import Coord

Extractor = Callable[[Any], Any]

_METRES_RE = re.compile(r"^([-+]?\d*\.?\d+)\s*(?:m|metres?|meters?)$")
_FEET_RE = re.compile(r"^([-+]?\d*\.?\d+)\s*(?:'|ft\b|feet\b)")
_NUMERAL_RE = re.compile(r"^[-+]?\d*\.?\d+$")

# ---------------------------------------------------------------------------
# first-of-several-shapes combinator
# ---------------------------------------------------------------------------

def first_some(value: Any, extractors: Iterable[Extractor]) -> Any | None:
    """Run *extractors* over *value* in order; the first non-``None`` wins."""
    for extract in extractors:
        found = extract(value)
        if found is not None:
            return found
    return None


def is_scalar(val: Any) -> bool:
    return isinstance(val, (str, int, float)) and not isinstance(val, bool)


def as_scalar(val: Any) -> Any | None:
    return val if is_scalar(val) else None


def as_list(val: Any) -> list:
    return val if isinstance(val, list) else []


def _key(name: str) -> Extractor:
    return lambda d: d.get(name) if isinstance(d, dict) else None


def _sole_button_added(d: Any) -> Any | None:
    if isinstance(d, dict) and len(d) == 1:
        return d.get("button_added")
    return None


def _first_inner(d: Any) -> Any | None:
    if isinstance(d, dict) and d:
        inner = next(iter(d.values()))
        if is_scalar(inner) or isinstance(inner, dict):
            return inner
    return None


# Katapult stores most attributes as {"-Imported": v}, {"auto_button": v},
# {"<push id>": v} ... or, in older exports, as the bare value.
ATTRIBUTE_SHAPES: Tuple[Extractor, ...] = (
    as_scalar,
    _key("-Imported"),
    _key("auto_button"),
    _sole_button_added,
    _key("tagtext"),
    _first_inner,
)


def first_value(attr: Any) -> Any | None:
    """Unwrap a Katapult attribute to its first usable value (scalar or dict)."""
    return first_some(attr, ATTRIBUTE_SHAPES)


def first_scalar(attr: Any) -> str | int | float | None:
    """Like ``first_value`` but only scalars count."""
    return as_scalar(first_value(attr))


# ---------------------------------------------------------------------------
# identifiers / numbers
# ---------------------------------------------------------------------------

def normalize_string(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    if is_scalar(value):
        return str(value)
    return None


def normalize_scid(value: Any) -> str | None:
    """Trimmed digits, or ``None`` if anything else is in there."""
    if value is None or isinstance(value, bool):
        return None
    s = str(value).strip()
    if s and s.isascii() and s.isdigit():
        return s
    return None


def normalize_pole_num(value: Any) -> str | None:
    """Keep only the digits and drop leading zeros: ``"PL-00412"`` → ``"412"``."""
    if value is None or isinstance(value, bool):
        return None
    digits = "".join(ch for ch in str(value) if "0" <= ch <= "9")
    if not digits:
        return None
    return digits.lstrip("0") or "0"


def _finite_float(value: Any) -> float | None:
    try:
        num = float(value)
    except (ValueError, OverflowError):
        return None
    return num if math.isfinite(num) else None


def normalize_number(value: Any) -> float | None:
    """Numbers pass through; strings may carry a trailing ``%``.

    Anything that is not a finite float (``nan``, ``1e400``, a 400-digit int)
    is ``None``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if _finite_float(value) is not None else None
    if isinstance(value, str):
        return _finite_float(value.strip().rstrip("%").strip())
    return None


# ---------------------------------------------------------------------------
# heights
# ---------------------------------------------------------------------------

def _whole_feet(val: float) -> int | None:
    return int(round(val)) if math.isfinite(val) else None


def _metres_to_feet(val: float) -> int | None:
    return _whole_feet(val / METRE_TO_FT)


def _guess_feet(val: float, looks_metric: bool,
                metre_range: Tuple[float, float]) -> int | None:
    low, high = metre_range
    if looks_metric or not float(val).is_integer() or low < val < high:
        return _metres_to_feet(val)
    return _whole_feet(val)


def to_feet(raw: Any, metre_range: Tuple[float, float] = METRE_HEIGHT_RANGE) -> int | None:
    """Convert raw height to whole feet (int).

    Accepts:
        • dicts from SPIDA JSON, e.g. {"unit":"METRE","value":16.764}
        • numeric – an integer outside *metre_range* is taken as feet,
          anything else as metres
        • strings like "13.7m", "45'", "45 ft", or a bare numeral (same guess
          as numeric; a decimal point always means metres)
    """
    if raw is None or isinstance(raw, bool):
        return None

    # 1) Dict object with explicit unit/value --------------------------------
    if isinstance(raw, dict):
        val = normalize_number(raw.get("value"))
        if val is None:
            return None
        unit = str(raw.get("unit") or "").lower()
        if unit.startswith("m"):
            return _metres_to_feet(val)
        return _whole_feet(val)

    # 2) Bare number ---------------------------------------------------------
    if isinstance(raw, (int, float)):
        val = normalize_number(raw)
        return _guess_feet(val, False, metre_range) if val is not None else None

    # 3) String parsing ------------------------------------------------------
    if not isinstance(raw, str):
        return None
    s = raw.strip().lower().replace("′", "'")
    m = _METRES_RE.match(s)
    if m:
        return _metres_to_feet(float(m.group(1)))
    m = _FEET_RE.match(s)
    if m:
        return _whole_feet(float(m.group(1)))
    if _NUMERAL_RE.match(s):
        return _guess_feet(float(s), "." in s, metre_range)
    return None


# ---------------------------------------------------------------------------
# geometry
# ---------------------------------------------------------------------------

def haversine_m(p1: Coord, p2: Coord) -> float:
    """Calculate distance between two coordinates in meters using Haversine formula."""
    lat1, lon1 = map(radians, p1)
    lat2, lon2 = map(radians, p2)
    dlat, dlon = lat2 - lat1, lon2 - lon1
    a = sin(dlat/2)**2 + cos(lat1)*cos(lat2)*sin(dlon/2)**2
    return 2 * EARTH_R * atan2(sqrt(a), sqrt(1-a))


def coord_from_geojson(block: Any) -> Optional[Coord]:
    """(lat, lon) from a ``{"coordinates": [lon, lat]}`` block, else None."""
    if isinstance(block, dict):
        coords = block.get("coordinates")
        if isinstance(coords, (list, tuple)) and len(coords) == 2:
            lon, lat = coords              # GeoJSON is lon,lat
            return coord_from_pair(lat, lon)
    return None


def coord_from_pair(lat: Any, lon: Any) -> Optional[Coord]:
    lat_f, lon_f = normalize_number(lat), normalize_number(lon)
    if lat_f is None or lon_f is None:
        return None
    return float(lat_f), float(lon_f)
