"""spida.py – SPIDAcalc exchange JSON → NormalizedPole records.

A SPIDA pole record is either a ``project.structures[*]`` entry or a
``leads[*].locations[*]`` entry. Both carry a list of design layers
("Measured", "Recommended") or, in older exports, ``measuredDesign`` /
``recommendedDesign`` objects.
"""

from __future__ import annotations
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .config import DEFAULT_CONFIG, METRE_HEIGHT_RANGE, MatchConfig
from .helpers import (
    as_list, coord_from_geojson, coord_from_pair, first_some, normalize_number,
    normalize_pole_num, normalize_scid, normalize_string,
)
from .models import Coord, NormalizedPole
from .specs import build_alias_table, build_spec_string, parse_spec_components, spec_from_fields

logger = logging.getLogger(__name__)

SOURCE = "spida"
MEASURED = "Measured"
RECOMMENDED = "Recommended"

_LABEL_PREFIX_RE = re.compile(r"^\d+-(.+)$")

# ---------------------------------------------------------------------------
# document level
# ---------------------------------------------------------------------------

def spida_structures(spida: dict) -> List[dict]:
    """Per-pole records: ``project.structures``, ``spidadevices.structures``,
    or every location of every lead."""
    if not isinstance(spida, dict):
        raise ValueError("SPIDA JSON is not a valid object")
    for container in ("project", "spidadevices"):
        structures = _dict(spida.get(container)).get("structures")
        if isinstance(structures, list):
            return structures

    logger.debug("No project structures in SPIDA file – falling back to leads[*].locations")
    return [
        loc
        for lead in as_list(spida.get("leads"))
        if isinstance(lead, dict)
        for loc in as_list(lead.get("locations"))
    ]


def pole_definitions(spida: dict) -> List[dict]:
    poles = _dict(spida.get("clientData")).get("poles")
    return poles if isinstance(poles, list) else []


# ---------------------------------------------------------------------------
# record helpers
# ---------------------------------------------------------------------------

def _dict(val: Any) -> dict:
    return val if isinstance(val, dict) else {}


def find_design(record: dict, layer: str) -> Optional[dict]:
    """The design layer called *layer*, or the legacy ``<layer>Design`` object."""
    for design in as_list(record.get("designs")):
        if isinstance(design, dict) and design.get("layerType") == layer:
            return design
    legacy = record.get(f"{layer.lower()}Design")
    return legacy if isinstance(legacy, dict) else None


def pole_num_display(record: dict) -> str | None:
    """First non-empty of ``id``, ``externalId``, ``label``; ``"1-PL28462"``
    labels lose their ``"<n>-"`` prefix."""
    for key in ("id", "externalId"):
        val = normalize_string(record.get(key))
        if val:
            return val
    label = normalize_string(record.get("label"))
    if label:
        m = _LABEL_PREFIX_RE.match(label)
        return m.group(1) if m else label
    return None


def _coords_on(block: Any) -> Optional[Coord]:
    block = _dict(block)
    return first_some(block, (
        lambda b: coord_from_geojson(b.get("geographicCoordinate")),
        lambda b: coord_from_geojson(b.get("mapLocation")),
        lambda b: coord_from_pair(b.get("latitude"), b.get("longitude")),
    ))


def coords_from_spida(record: dict) -> Optional[Coord]:
    """
    Return (lat, lon) or None. Tries, in order:
    1. the record's own geographicCoordinate / mapLocation / latitude+longitude
    2. the same on each design's structure.pole, structure, structure.poleLocation
    3. recommendedDesign.pole, then measuredDesign.pole
    """
    blocks: List[Any] = [record]
    for design in as_list(record.get("designs")):
        structure = _dict(_dict(design).get("structure"))
        blocks += [structure.get("pole"), structure, structure.get("poleLocation")]
    for legacy in ("recommendedDesign", "measuredDesign"):
        design = _dict(record.get(legacy))
        blocks += [design.get("pole"), design]
    for block in blocks:
        coord = _coords_on(block)
        if coord:
            return coord
    return None


def _pole_of(design: Optional[dict]) -> Optional[dict]:
    design = _dict(design)
    pole = _dict(design.get("structure")).get("pole") or design.get("pole")
    return pole if isinstance(pole, dict) else None


def pole_struct(record: dict) -> Optional[dict]:
    """Pole sub-object used for the spec: recommended, measured, then first design."""
    designs = [d for d in as_list(record.get("designs")) if isinstance(d, dict)]
    candidates = (
        find_design(record, RECOMMENDED),
        find_design(record, MEASURED),
        designs[0] if designs else None,
    )
    for design in candidates:
        pole = _pole_of(design)
        if pole:
            return pole
    return None


# ---------------------------------------------------------------------------
# spec / loading / drops
# ---------------------------------------------------------------------------

def spida_spec(pole: Optional[dict], alias_table: Dict[str, str],
               metre_range: Tuple[float, float] = METRE_HEIGHT_RANGE) -> str | None:
    """Return the pole spec string following the SPIDA lookup order.

    Priority order:
    1. Height / class / species directly on the design pole.
    2. ``clientItemAlias`` resolved via *alias_table*.
    3. ``clientItemAlias`` that reads like ``"45-3"`` + ``clientItem.species``.
    4. Height / class / species fields in ``clientItem``.
    """
    if not pole:
        return None
    client_item = _dict(pole.get("clientItem"))

    # -- 1. Direct fields -------------------------------------------------------------------
    spec = spec_from_fields(
        pole.get("length") or pole.get("height"),
        pole.get("class") or pole.get("classOfPole"),
        pole.get("species"),
        metre_range,
    )
    if spec:
        return spec

    # -- 2. Alias handling with table lookup ------------------------------------------------
    alias = normalize_string(pole.get("clientItemAlias"))
    if alias and alias in alias_table:
        return alias_table[alias]

    # -- 3. Direct alias parsing --------------------------------------------------------------
    if alias:
        parsed = parse_spec_components(alias)
        if parsed.height_ft is not None and parsed.pole_class:
            spec = build_spec_string(parsed.height_ft, parsed.pole_class, client_item.get("species"))
            if spec:
                return spec

    # -- 4. clientItem fields -------------------------------------------------------------------
    return spec_from_fields(
        client_item.get("height") or client_item.get("length"),
        client_item.get("classOfPole") or client_item.get("class"),
        client_item.get("species"),
        metre_range,
    )


def analysis_load_pct(design: Optional[dict]) -> float | None:
    """Pole ``actual`` loading from the design's analysis results."""
    for case in as_list(_dict(design).get("analysis")):
        for res in as_list(_dict(case).get("results")):
            res = _dict(res)
            if res.get("component") != "Pole":
                continue
            actual = res.get("actual")
            if isinstance(actual, (int, float)) and not isinstance(actual, bool):
                actual = normalize_number(actual)
                return round(float(actual), 2) if actual is not None else None
    return None


def _attachment_list(design: Optional[dict]) -> Optional[list]:
    if not isinstance(design, dict):
        return None
    for holder in (_dict(design.get("structure")), design):
        for key in ("attachments", "items"):
            if isinstance(holder.get(key), list):
                return holder[key]
    return None


def is_carrier_drop(att: Any, carrier: str) -> bool:
    """Communication attachment owned by *carrier* whose item type is a drop."""
    att = _dict(att)
    owner = _dict(att.get("owner"))
    industry = str(owner.get("industry") or "").lower()
    owner_id = str(owner.get("id") or "").lower()
    item_type = str(_dict(att.get("clientItem")).get("type") or "").lower()
    return (
        industry == "communication"
        and owner_id == carrier.lower()
        and item_type.endswith("drop")
    )


def spida_comm_drop(design: Optional[dict], carrier: str = DEFAULT_CONFIG.carrier_name) -> bool | None:
    """True/False from the recommended design's attachments; None if it has no list at all."""
    attachments = _attachment_list(design)
    if attachments is None:
        return None
    return any(is_carrier_drop(att, carrier) for att in attachments)


# ---------------------------------------------------------------------------
# public API
# ---------------------------------------------------------------------------

def normalize_spida_record(index: int, record: Any, alias_table: Dict[str, str],
                           config: MatchConfig = DEFAULT_CONFIG) -> NormalizedPole:
    rec = _dict(record)
    display = pole_num_display(rec)
    recommended = find_design(rec, RECOMMENDED)
    measured = find_design(rec, MEASURED)
    if recommended is None and measured is None:
        logger.debug("SPIDA record %d has no Measured/Recommended design", index)

    return NormalizedPole(
        original_index=index,
        source=SOURCE,
        scid=normalize_scid(display),
        pole_num=normalize_pole_num(display),
        coords=coords_from_spida(rec),
        spec=spida_spec(pole_struct(rec), alias_table, config.metre_height_range),
        existing_pct=analysis_load_pct(measured),
        final_pct=analysis_load_pct(recommended),
        comm_drop=spida_comm_drop(recommended, config.carrier_name),
        raw=record,
    )


def normalize_spida_data(structures: List[Any], alias_table: Dict[str, str],
                         config: MatchConfig = DEFAULT_CONFIG) -> List[NormalizedPole]:
    poles = [
        normalize_spida_record(index, record, alias_table, config)
        for index, record in enumerate(structures)
    ]
    logger.info("Normalized %d SPIDA poles", len(poles))
    return poles


def load_spida(spida: dict, config: MatchConfig = DEFAULT_CONFIG) -> List[NormalizedPole]:
    """Whole SPIDA document → normalized poles (alias table built on the way)."""
    structures = spida_structures(spida)
    if not structures:
        logger.warning("No pole records found in SPIDA file")
    alias_table = build_alias_table(pole_definitions(spida), config.metre_height_range)
    return normalize_spida_data(structures, alias_table, config)
