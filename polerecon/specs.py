"""specs.py – pole specification strings ("45-3 SOUTHERN PINE").

Parsing splits free text into height / class / species; building puts the
canonical string back together. ``normalize_spec`` is build∘parse and is
idempotent. ``specs_match`` compares height (with tolerance) and class only:
species text is too inconsistent between the two tools to compare.
"""

from __future__ import annotations
import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from .config import HEIGHT_TOLERANCE_FT, METRE_HEIGHT_RANGE
from .helpers import as_list, normalize_string, to_feet
from .models import SpecComponents

logger = logging.getLogger(__name__)

SPEC_HEIGHT_RANGE = (10, 200)            # bare leading number read as feet
_MAX_PASSES = 4

_HEIGHT_CLASS_RE = re.compile(r"(\d+)'?\s*-\s*([\w.-]+)")     # 45-3, 45'-3
_HEIGHT_RE = re.compile(r"(\d+)\s*(?:FT|'|FEET\b)")            # 45' / 45 FT
_BARE_HEIGHT_RE = re.compile(r"^(\d+)(\s+[A-Z].*)?$")          # 45 SOUTHERN PINE
_CLASS_RE = re.compile(r"\b(?:CL|CLASS)\s+([\w.-]+)")         # CLASS 3, not XCL 3
_CLASS_PREFIX_RE = re.compile(r"^(?:CLASS|CL)\b\s*")


def _squash(text: str) -> str:
    return " ".join(text.split())


def _cut(text: str, start: int, end: int) -> str:
    return _squash(f"{text[:start]} {text[end:]}")


# ---------------------------------------------------------------------------
# parse / build
# ---------------------------------------------------------------------------

def parse_spec_components(text: Any) -> SpecComponents:
    """Extract height, class, species from a spec string like '45-3 Southern Pine'.

    Tried in order:
        1. ``<digits>-<class>`` – height and class together
        2. ``<digits> FT|'|FEET`` for height, and ``CL|CLASS <class>``
        3. a bare leading number in the plausible height range
    Whatever text is left over is the species.
    """
    if text is None:
        return SpecComponents()
    spec = _squash(str(text).upper().replace("′", "'"))
    if not spec:
        return SpecComponents()

    height: Optional[int] = None
    pole_class: Optional[str] = None

    m = _HEIGHT_CLASS_RE.search(spec)
    if m:
        height = int(m.group(1))
        pole_class = m.group(2)
        spec = _cut(spec, *m.span())
    else:
        m = _HEIGHT_RE.search(spec)
        if m:
            height = int(m.group(1))
            spec = _cut(spec, *m.span())
        else:
            m = _BARE_HEIGHT_RE.match(spec)
            low, high = SPEC_HEIGHT_RANGE
            if m and low < int(m.group(1)) < high:
                height = int(m.group(1))
                spec = _cut(spec, *m.span(1))

        m = _CLASS_RE.search(spec)
        if m:
            pole_class = m.group(1)
            spec = _cut(spec, *m.span())

    return SpecComponents(height, pole_class, spec or None)


def build_spec_string(height_ft: Any, pole_class: Any, species: Any) -> str | None:
    """Reassemble ``"<height>-<class> <SPECIES>"``, leaving out missing parts.

    A class without a height is written ``"CL <class>"`` so it parses back as
    a class.
    """
    if isinstance(height_ft, float):
        height_ft = int(round(height_ft)) if math.isfinite(height_ft) else None
    klass = normalize_string(pole_class)
    klass = _squash(klass.upper()) if klass else None
    sp = normalize_string(species)
    sp = _squash(sp.upper()) if sp else None

    parts = []
    if isinstance(height_ft, int) and not isinstance(height_ft, bool):
        parts.append(f"{height_ft}-{klass}" if klass else str(height_ft))
    elif klass:
        parts.append(f"CL {klass}")
    if sp:
        parts.append(sp)
    return " ".join(parts) or None


def normalize_spec(text: Any) -> str | None:
    """Canonical spec string, or None for empty input."""
    if text is None or not str(text).strip():
        return None
    spec = build_spec_string(*_as_tuple(parse_spec_components(text)))
    # leftover species text can hold another height/class token once rebuilt
    for _ in range(_MAX_PASSES):
        if spec is None:
            break
        again = build_spec_string(*_as_tuple(parse_spec_components(spec)))
        if again == spec:
            break
        spec = again
    return spec


def _as_tuple(c: SpecComponents) -> Tuple[Optional[int], Optional[str], Optional[str]]:
    return c.height_ft, c.pole_class, c.species


def normalize_class(raw: Any) -> str | None:
    """``"Class 3"`` / ``"cl 3"`` / ``3`` → ``"3"``."""
    s = normalize_string(raw)
    if not s:
        return None
    s = _CLASS_PREFIX_RE.sub("", s.upper()).strip()
    return s or None


def spec_from_fields(height_raw: Any, class_raw: Any, species_raw: Any,
                     metre_range: Tuple[float, float] = METRE_HEIGHT_RANGE) -> str | None:
    """Spec string from separate height / class / species fields."""
    return normalize_spec(build_spec_string(
        to_feet(height_raw, metre_range),
        normalize_class(class_raw),
        normalize_string(species_raw),
    ))


# ---------------------------------------------------------------------------
# comparison
# ---------------------------------------------------------------------------

def specs_match(spec_a: Any, spec_b: Any,
                height_tolerance_ft: float = HEIGHT_TOLERANCE_FT) -> bool:
    """Compare two pole specs for compatibility within tolerance."""
    if not spec_a and not spec_b:
        return True
    if not spec_a or not spec_b:
        return False

    norm_a, norm_b = normalize_spec(spec_a), normalize_spec(spec_b)
    if norm_a is None and norm_b is None:
        return True
    if norm_a is None or norm_b is None:
        return False

    a, b = parse_spec_components(norm_a), parse_spec_components(norm_b)

    # Height check (within tolerance)
    if a.height_ft is not None and b.height_ft is not None:
        if abs(a.height_ft - b.height_ft) > height_tolerance_ft:
            return False
    elif a.height_ft is not None or b.height_ft is not None:
        return False

    # Class check (exact match when both present)
    if a.pole_class and b.pole_class:
        if a.pole_class != b.pole_class:
            return False
    elif a.pole_class or b.pole_class:
        return False

    # species intentionally not compared
    return True


# ---------------------------------------------------------------------------
# SPIDA alias table
# ---------------------------------------------------------------------------

def build_alias_table(pole_definitions: List[dict] | None,
                      metre_range: Tuple[float, float] = METRE_HEIGHT_RANGE) -> Dict[str, str]:
    """Map every ``clientData.poles`` alias id (or the pole's own id when it
    has no aliases) to the pole's canonical spec. First definition wins."""
    alias_table: Dict[str, str] = {}
    for pole in as_list(pole_definitions):
        if not isinstance(pole, dict):
            continue
        full_spec = spec_from_fields(
            pole.get("height") or pole.get("length"),
            pole.get("classOfPole") or pole.get("class"),
            pole.get("species"),
            metre_range,
        )
        if not full_spec:
            continue

        keys = [
            str(alias["id"]) for alias in as_list(pole.get("aliases"))
            if isinstance(alias, dict) and alias.get("id") not in (None, "")
        ]
        if not keys and pole.get("id") not in (None, ""):
            keys = [str(pole["id"])]

        for key in keys:
            known = alias_table.get(key)
            if known is None:
                alias_table[key] = full_spec
            elif known != full_spec:
                logger.warning("Alias %r already maps to %r; ignoring %r", key, known, full_spec)

    logger.info("Built alias table with %d pole specifications", len(alias_table))
    return alias_table
