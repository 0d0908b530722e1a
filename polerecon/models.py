"""models.py – records shared by the normalizers and the matching engine."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

Coord = Tuple[float, float]              # (lat, lon) helper alias


class MatchTier(str, Enum):
    # declaration order is the output order of a matching run
    SCID_EXACT_MATCH = "SCID Exact Match"
    POLE_NUMBER_MATCH = "Pole Number Match"
    COORDINATE_DIRECT_MATCH = "Coordinate Direct Match (<1m)"
    COORDINATE_SPEC_VERIFIED = "Coordinate + Specification Verified"
    UNMATCHED_KATAPULT = "Katapult-Only"
    UNMATCHED_SPIDA = "Unmatched SPIDA"

    @property
    def is_match(self) -> bool:
        return self not in (MatchTier.UNMATCHED_KATAPULT, MatchTier.UNMATCHED_SPIDA)


TIER_ORDER = {tier: rank for rank, tier in enumerate(MatchTier)}


@dataclass(frozen=True)
class SpecComponents:
    height_ft: Optional[int] = None
    pole_class: Optional[str] = None
    species: Optional[str] = None


@dataclass(frozen=True)
class NormalizedPole:
    """One pole instance from either source, in canonical form.

    ``scid`` and ``pole_num`` hold digits only (or ``None``). ``raw`` keeps a
    reference to the source record for display; it is never modified.
    """
    original_index: int
    source: str                          # "spida" | "katapult"
    scid: Optional[str] = None
    pole_num: Optional[str] = None
    coords: Optional[Coord] = None
    spec: Optional[str] = None
    existing_pct: Optional[float] = None
    final_pct: Optional[float] = None
    comm_drop: Optional[bool] = None
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ProcessedPole:
    """Result of the matching run for one pair (or one orphan).

    The ``editable_*`` fields mirror the SPIDA side and are the only values a
    user may change; see ``compare.apply_edit``.
    """
    id: str
    match_tier: MatchTier
    spida: Optional[NormalizedPole] = None
    katapult: Optional[NormalizedPole] = None

    editable_spec: Optional[str] = None
    editable_existing_pct: Optional[float] = None
    editable_final_pct: Optional[float] = None
    editable_comm_drop: Optional[bool] = None

    is_scid_mismatch: bool = False
    is_pole_num_mismatch: bool = False
    is_coords_mismatch: bool = False
    is_spec_mismatch: bool = False
    is_existing_pct_mismatch: bool = False
    is_final_pct_mismatch: bool = False
    is_comm_drop_mismatch: bool = False

    map_coords: Optional[Coord] = None
    spida_coords: Optional[Coord] = None
    katapult_coords: Optional[Coord] = None
    match_distance_m: Optional[float] = None
    is_edited: bool = False

    @property
    def has_mismatch(self) -> bool:
        return any((
            self.is_scid_mismatch, self.is_pole_num_mismatch, self.is_coords_mismatch,
            self.is_spec_mismatch, self.is_existing_pct_mismatch,
            self.is_final_pct_mismatch, self.is_comm_drop_mismatch,
        ))


@dataclass
class ComparisonStats:
    total_spida_poles: int = 0
    total_katapult_poles: int = 0
    matches_by_tier: Dict[MatchTier, int] = field(
        default_factory=lambda: {tier: 0 for tier in MatchTier}
    )
    total_matches: int = 0
    match_success_rate: str = "N/A"
