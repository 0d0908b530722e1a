"""katapult.py – Katapult Pro job JSON → NormalizedPole records.

Katapult keeps one ``nodes`` map (poles, service locations, references ...)
and a ``connections`` map of spans between nodes. Attribute values are wrapped
in small dicts whose shape varies between exports; ``helpers.first_value``
unwraps them.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from .config import DEFAULT_CONFIG, METRE_HEIGHT_RANGE, MatchConfig
from .helpers import (
    as_scalar, coord_from_geojson, coord_from_pair, first_scalar, first_some,
    first_value, normalize_number, normalize_pole_num, normalize_scid,
    normalize_string, to_feet,
)
from .models import Coord, NormalizedPole, SpecComponents
from .specs import build_spec_string, normalize_class, normalize_spec, spec_from_fields

logger = logging.getLogger(__name__)

SOURCE = "katapult"
SERVICE_LOCATION = "service location"

# (constant set of node types we accept as actual poles)
ALLOWED_NODE_TYPES: Set[str] = {"pole", "power", "power transformer", "joint", "joint transformer"}

KatapultNode = Tuple[Optional[str], dict]          # (node key, node)


def _dict(val: Any) -> dict:
    return val if isinstance(val, dict) else {}


def _attrs(node: Any) -> dict:
    return _dict(_dict(node).get("attributes"))


def node_type(node: dict) -> str | None:
    """Lower-cased node type from ``node_type`` or ``attributes.node_type``."""
    val = as_scalar(node.get("node_type"))
    if val is None:
        val = first_scalar(_attrs(node).get("node_type"))
    return str(val).strip().lower() if val is not None else None


# ---------------------------------------------------------------------------
# document level
# ---------------------------------------------------------------------------

def _nodes_of(katapult: dict) -> dict:
    if not isinstance(katapult, dict):
        raise ValueError("Katapult JSON is not a valid object")
    nodes = katapult.get("nodes")
    if not isinstance(nodes, dict):
        raise ValueError("Katapult JSON must have a 'nodes' object map")
    return nodes


def katapult_pole_nodes(katapult: dict) -> List[KatapultNode]:
    """``(node_key, node)`` for every node whose type is an allowed pole type."""
    return [
        (str(key), node)
        for key, node in _nodes_of(katapult).items()
        if isinstance(node, dict) and node_type(node) in ALLOWED_NODE_TYPES
    ]


def birthmark_components(bundle: Any,
                         metre_range: Tuple[float, float] = METRE_HEIGHT_RANGE) -> Optional[SpecComponents]:
    """Height / class / species from a ``birthmark_brand`` attribute."""
    if isinstance(bundle, dict) and ("pole_height" in bundle or "height" in bundle):
        brand = bundle
    else:
        brand = first_value(bundle)          # nested one level under a push id
    if not isinstance(brand, dict):
        return None
    species = brand.get("pole_species*") or brand.get("pole_species") or brand.get("species")
    return SpecComponents(
        height_ft=to_feet(brand.get("pole_height") or brand.get("height"), metre_range),
        pole_class=normalize_class(brand.get("pole_class") or brand.get("class")),
        species=normalize_string(species.replace("*", "")) if isinstance(species, str) else None,
    )


def collect_birthmarks(katapult: dict,
                       metre_range: Tuple[float, float] = METRE_HEIGHT_RANGE) -> Dict[str, SpecComponents]:
    """Birthmark table keyed by ``birthmark_reference_id``, else ``StructureRID``,
    else the node key."""
    birthmarks: Dict[str, SpecComponents] = {}
    for node_key, node in _nodes_of(katapult).items():
        attrs = _attrs(node)
        bundle = attrs.get("birthmark_brand")
        if not isinstance(bundle, dict):
            continue
        parts = birthmark_components(bundle, metre_range)
        if parts is None:
            continue
        ref_id = (
            normalize_string(first_scalar(attrs.get("birthmark_reference_id")))
            or normalize_string(_dict(node).get("StructureRID"))
            or str(node_key)
        )
        birthmarks[ref_id] = parts

    logger.info("Collected %d birthmarks from Katapult file", len(birthmarks))
    return birthmarks


def proposed_drop_poles(katapult: Optional[dict],
                        carrier: str = DEFAULT_CONFIG.carrier_name) -> Optional[Set[str]]:
    """Node keys of poles with a proposed (not yet measured) *carrier* drop.

    A carrier service-location node lists ``measured_attachments`` by section
    id; a ``False`` entry on a section of a connection to a pole marks that
    pole. ``None`` when the document has no connection data at all.
    """
    if not isinstance(katapult, dict):
        return None
    nodes, connections = katapult.get("nodes"), katapult.get("connections")
    if not isinstance(nodes, dict) or not isinstance(connections, dict):
        return None

    section_to_ends: Dict[str, List[Tuple[str, str]]] = {}
    for conn in connections.values():
        conn = _dict(conn)
        ends = (str(conn.get("node_id_1")), str(conn.get("node_id_2")))
        for sid in _dict(conn.get("sections")):
            section_to_ends.setdefault(str(sid), []).append(ends)

    carrier = carrier.lower()
    poles: Set[str] = set()
    for node_id, node in nodes.items():
        if not isinstance(node, dict) or node_type(node) != SERVICE_LOCATION:
            continue
        owner = normalize_string(first_scalar(_attrs(node).get("node_sub_type")))
        if not owner or owner.lower() != carrier:
            continue
        service_id = str(node_id)
        for sec_id, measured in _dict(_attrs(node).get("measured_attachments")).items():
            if measured is not False:
                continue
            for end_1, end_2 in section_to_ends.get(str(sec_id), []):
                if end_1 == service_id:
                    poles.add(end_2)
                elif end_2 == service_id:
                    poles.add(end_1)
    return poles


# ---------------------------------------------------------------------------
# per-node fields
# ---------------------------------------------------------------------------

def coords_from_katapult(node: dict) -> Optional[Coord]:
    """Flat lat/lon, GeoJSON Point geometry, legacy Latitude/Longitude, or the
    ``-Imported`` latitude/longitude attributes."""
    def _point(n: dict) -> Optional[Coord]:
        geometry = _dict(n.get("geometry"))
        return coord_from_geojson(geometry) if geometry.get("type") == "Point" else None

    return first_some(node, (
        lambda n: coord_from_pair(n.get("latitude"), n.get("longitude")),
        _point,
        lambda n: coord_from_pair(n.get("Latitude"), n.get("Longitude")),
        lambda n: coord_from_pair(first_scalar(_attrs(n).get("latitude")),
                                  first_scalar(_attrs(n).get("longitude"))),
    ))


def katapult_scid(node: dict) -> str | None:
    raw = first_some(node, (
        lambda n: first_scalar(_attrs(n).get("scid")),
        lambda n: as_scalar(n.get("StructureRID")),
    ))
    return normalize_scid(raw)


def _sub_field(attr: Any, name: str) -> Any | None:
    """``attr[name]``, or ``first_value(attr)[name]``, or the bare first value."""
    if isinstance(attr, dict) and as_scalar(attr.get(name)) is not None:
        return attr[name]
    val = first_value(attr)
    if isinstance(val, dict):
        return as_scalar(val.get(name))
    return as_scalar(val)


POLE_NUMBER_SOURCES = (
    lambda n: first_scalar(_attrs(n).get("PL_number")),
    lambda n: first_scalar(_attrs(n).get("PoleNumber")),
    lambda n: _sub_field(_attrs(n).get("pole_tag"), "tagtext"),
    lambda n: _sub_field(_attrs(n).get("electric_pole_tag"), "assessment"),
    lambda n: first_scalar(_attrs(n).get("DLOC_number")),
    lambda n: as_scalar(n.get("PoleNumber")),
)


def katapult_pole_num(node: dict) -> str | None:
    """First pole-number attribute that yields any digits."""
    return first_some(node, (
        lambda n, source=source: normalize_pole_num(source(n)) for source in POLE_NUMBER_SOURCES
    ))


def katapult_spec(node: dict, birthmarks: Dict[str, SpecComponents],
                  metre_range: Tuple[float, float] = METRE_HEIGHT_RANGE) -> str | None:
    """Spec from, in order: ``pole_spec``, legacy ``Pole Specs``, the node's own
    birthmark, the referenced birthmark, then pole_height/class/species."""
    attrs = _attrs(node)

    def _from_parts(parts: Optional[SpecComponents]) -> str | None:
        if parts is None:
            return None
        return normalize_spec(build_spec_string(parts.height_ft, parts.pole_class, parts.species))

    def _referenced(_: dict) -> str | None:
        ref_id = normalize_string(first_scalar(attrs.get("birthmark_reference_id")))
        return _from_parts(birthmarks.get(ref_id)) if ref_id else None

    def _attribute_triple(n: dict) -> str | None:
        height = first_some(n, (
            lambda m: first_scalar(attrs.get("pole_height")),
            lambda m: first_scalar(attrs.get("poleLength")),
            lambda m: as_scalar(m.get("Height")),
        ))
        klass = first_scalar(attrs.get("pole_class")) or as_scalar(n.get("Class"))
        species = first_scalar(attrs.get("pole_species")) or as_scalar(n.get("Species"))
        return spec_from_fields(height, klass, species, metre_range)

    return first_some(node, (
        lambda n: normalize_spec(first_scalar(attrs.get("pole_spec"))),
        lambda n: normalize_spec(as_scalar(n.get("Pole Specs"))),
        lambda n: _from_parts(birthmark_components(attrs.get("birthmark_brand"), metre_range)),
        _referenced,
        _attribute_triple,
    ))


def katapult_existing_pct(node: dict) -> float | None:
    raw = first_scalar(_attrs(node).get("existing_capacity_%"))
    if raw is None:
        raw = node.get("Condition (%)")
    return normalize_number(raw)


def katapult_final_pct(node: dict) -> float | None:
    return normalize_number(first_scalar(_attrs(node).get("final_passing_capacity_%")))


# ---------------------------------------------------------------------------
# public API
# ---------------------------------------------------------------------------

def normalize_katapult_record(index: int, node_key: Optional[str], node: Any,
                              birthmarks: Dict[str, SpecComponents],
                              drop_poles: Optional[Set[str]],
                              config: MatchConfig = DEFAULT_CONFIG) -> NormalizedPole:
    rec = _dict(node)
    if drop_poles is None or node_key is None:
        comm_drop = None
    else:
        comm_drop = str(node_key) in drop_poles

    return NormalizedPole(
        original_index=index,
        source=SOURCE,
        scid=katapult_scid(rec),
        pole_num=katapult_pole_num(rec),
        coords=coords_from_katapult(rec),
        spec=katapult_spec(rec, birthmarks, config.metre_height_range),
        existing_pct=katapult_existing_pct(rec),
        final_pct=katapult_final_pct(rec),
        comm_drop=comm_drop,
        raw=node,
    )


def normalize_katapult_data(nodes: List[KatapultNode], birthmarks: Dict[str, SpecComponents],
                            katapult: Optional[dict],
                            config: MatchConfig = DEFAULT_CONFIG) -> List[NormalizedPole]:
    """Normalize ``(node_key, node)`` pairs; *katapult* is the whole document,
    needed for the cross-node communication-drop scan."""
    drop_poles = proposed_drop_poles(katapult, config.carrier_name)
    poles = [
        normalize_katapult_record(index, key, node, birthmarks, drop_poles, config)
        for index, (key, node) in enumerate(nodes)
    ]
    logger.info("Normalized %d Katapult poles", len(poles))
    return poles


def load_katapult(katapult: dict, config: MatchConfig = DEFAULT_CONFIG) -> List[NormalizedPole]:
    """Whole Katapult document → normalized poles."""
    nodes = katapult_pole_nodes(katapult)
    if not nodes:
        logger.warning("No pole nodes found in Katapult file")
    birthmarks = collect_birthmarks(katapult, config.metre_height_range)
    return normalize_katapult_data(nodes, birthmarks, katapult, config)
