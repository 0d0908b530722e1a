"""compare.py – tiered matching of SPIDAcalc poles against Katapult poles.

Returns ProcessedPole entries with:
    match tier, both normalized records, editable SPIDA mirrors,
    per-field mismatch flags, and simple match statistics.

Matching is greedy and runs in fixed passes; a pole claimed in one pass is
never reconsidered:
    1. SCID exact match
    2. pole number match
    3. nearest coordinate (< verified threshold); under the direct threshold
       the pair is always taken, otherwise only when the specs agree
    4. leftovers become Katapult-only / SPIDA-only orphans
"""

from __future__ import annotations
import dataclasses
import itertools
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

import pandas as pd

from .config import DEFAULT_CONFIG, MatchConfig
from .helpers import haversine_m, normalize_number, normalize_string
from .katapult import load_katapult
from .models import TIER_ORDER, ComparisonStats, Coord, MatchTier, NormalizedPole, ProcessedPole
from .specs import specs_match
from .spida import load_spida

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("spec", "existing_pct", "final_pct", "comm_drop")

_TRUE_WORDS = {"yes", "y", "true", "t", "1"}
_FALSE_WORDS = {"no", "n", "false", "f", "0"}

# ---------------------------------------------------------------------------
# field comparisons
# ---------------------------------------------------------------------------

def _pct_mismatch(spida_pct: Optional[float], kat_pct: Optional[float]) -> bool:
    """Exact comparison; a missing side only counts if the other isn't 0."""
    if spida_pct is not None and kat_pct is not None:
        return spida_pct != kat_pct
    if spida_pct is not None:
        return spida_pct != 0
    if kat_pct is not None:
        return kat_pct != 0
    return False


def _comm_drop_mismatch(spida_drop: Optional[bool], kat_drop: Optional[bool]) -> bool:
    if spida_drop is None and kat_drop is None:
        return False
    return spida_drop is None or kat_drop is None or spida_drop != kat_drop


def _coords_mismatch(tier: MatchTier, sp: NormalizedPole, kat: NormalizedPole,
                     config: MatchConfig) -> bool:
    if sp.coords and kat.coords:
        if tier in (MatchTier.SCID_EXACT_MATCH, MatchTier.POLE_NUMBER_MATCH):
            return haversine_m(sp.coords, kat.coords) > config.verified_threshold_m
        return False
    return bool(sp.coords or kat.coords)


def _editable_flags(pole: ProcessedPole, config: MatchConfig) -> Dict[str, bool]:
    """Flags that depend on the editable SPIDA mirrors."""
    kat = pole.katapult
    return {
        "is_spec_mismatch": not specs_match(pole.editable_spec, kat.spec, config.height_tolerance_ft),
        "is_existing_pct_mismatch": _pct_mismatch(pole.editable_existing_pct, kat.existing_pct),
        "is_final_pct_mismatch": _pct_mismatch(pole.editable_final_pct, kat.final_pct),
        "is_comm_drop_mismatch": _comm_drop_mismatch(pole.editable_comm_drop, kat.comm_drop),
    }


def _map_coords(tier: MatchTier, sp: Optional[NormalizedPole],
                kat: Optional[NormalizedPole]) -> Optional[Coord]:
    sp_coord = sp.coords if sp else None
    kat_coord = kat.coords if kat else None
    if tier is MatchTier.UNMATCHED_KATAPULT:
        return kat_coord
    return sp_coord or kat_coord


def _make_pole(pole_id: str, tier: MatchTier, sp: Optional[NormalizedPole],
               kat: Optional[NormalizedPole], config: MatchConfig,
               distance_m: Optional[float] = None) -> ProcessedPole:
    pole = ProcessedPole(
        id=pole_id,
        match_tier=tier,
        spida=sp,
        katapult=kat,
        editable_spec=sp.spec if sp else None,
        editable_existing_pct=sp.existing_pct if sp else None,
        editable_final_pct=sp.final_pct if sp else None,
        editable_comm_drop=sp.comm_drop if sp else None,
        map_coords=_map_coords(tier, sp, kat),
        spida_coords=sp.coords if sp else None,
        katapult_coords=kat.coords if kat else None,
        match_distance_m=distance_m,
    )
    if sp is None or kat is None:
        return pole                      # orphans carry no mismatch flags

    return dataclasses.replace(
        pole,
        is_scid_mismatch=sp.scid != kat.scid,
        is_pole_num_mismatch=sp.pole_num != kat.pole_num,
        is_coords_mismatch=_coords_mismatch(tier, sp, kat, config),
        **_editable_flags(pole, config),
    )


# ---------------------------------------------------------------------------
# main compare with tiered matching
# ---------------------------------------------------------------------------

def _success_rate(total_matches: int, total_spida: int, total_katapult: int) -> str:
    if total_spida > 0:
        return f"{total_matches / total_spida * 100:.2f}%"
    if total_katapult > 0:
        return "SPIDA N/A"
    return "N/A"


def _scid_key(scid: Optional[str]) -> Tuple[int, int, str]:
    """Numeric order of a digit string without converting it; missing sorts last."""
    if not scid:
        return 1, 0, ""
    digits = scid.lstrip("0") or "0"
    return 0, len(digits), digits


def _sort_key(pole: ProcessedPole) -> Tuple[int, Tuple[int, int, str], float, float]:
    anchor = pole.spida or pole.katapult
    sp_idx = pole.spida.original_index if pole.spida else float("inf")
    kat_idx = pole.katapult.original_index if pole.katapult else float("inf")
    return TIER_ORDER[pole.match_tier], _scid_key(anchor.scid if anchor else None), sp_idx, kat_idx


def compare_poles(spida_poles: Sequence[NormalizedPole], katapult_poles: Sequence[NormalizedPole],
                  config: MatchConfig = DEFAULT_CONFIG,
                  id_seq: Optional[Iterator[int]] = None) -> Tuple[List[ProcessedPole], ComparisonStats]:
    """Pair SPIDA poles with Katapult poles; see module docstring for the tiers.

    *id_seq* numbers the produced entries (``pole-<n>``); a fresh counter
    starting at 1 is used when omitted so every run is reproducible.
    """
    if not isinstance(spida_poles, (list, tuple)) or not isinstance(katapult_poles, (list, tuple)):
        raise TypeError("compare_poles() expects two lists of NormalizedPole")

    seq = id_seq if id_seq is not None else itertools.count(1)
    results: List[ProcessedPole] = []
    sp_claimed: Set[int] = set()
    kat_claimed: Set[int] = set()

    def _claim(tier: MatchTier, s_idx: Optional[int], k_idx: Optional[int],
               distance: Optional[float] = None) -> None:
        sp = spida_poles[s_idx] if s_idx is not None else None
        kat = katapult_poles[k_idx] if k_idx is not None else None
        results.append(_make_pole(f"pole-{next(seq)}", tier, sp, kat, config, distance))
        if s_idx is not None:
            sp_claimed.add(s_idx)
        if k_idx is not None:
            kat_claimed.add(k_idx)

    # ==================== TIER 1 & 2: IDENTIFIER MATCHES ====================
    for tier, key in ((MatchTier.SCID_EXACT_MATCH, "scid"),
                      (MatchTier.POLE_NUMBER_MATCH, "pole_num")):
        for s_idx, sp in enumerate(spida_poles):
            sp_key = getattr(sp, key)
            if s_idx in sp_claimed or not sp_key:
                continue
            for k_idx, kat in enumerate(katapult_poles):
                if k_idx not in kat_claimed and getattr(kat, key) == sp_key:
                    _claim(tier, s_idx, k_idx)
                    break

    # ==================== TIER 3: COORDINATE (+ SPEC) MATCH ====================
    for s_idx, sp in enumerate(spida_poles):
        if s_idx in sp_claimed or not sp.coords:
            continue

        best: Optional[Tuple[int, float]] = None
        for k_idx, kat in enumerate(katapult_poles):
            if k_idx in kat_claimed or not kat.coords:
                continue
            dist = haversine_m(sp.coords, kat.coords)
            if dist < config.verified_threshold_m and (best is None or dist < best[1]):
                best = (k_idx, dist)
        if best is None:
            continue

        k_idx, dist = best
        spec_ok = specs_match(sp.spec, katapult_poles[k_idx].spec, config.height_tolerance_ft)
        if spec_ok:
            _claim(MatchTier.COORDINATE_SPEC_VERIFIED, s_idx, k_idx, dist)
        elif dist < config.direct_threshold_m:
            _claim(MatchTier.COORDINATE_DIRECT_MATCH, s_idx, k_idx, dist)
        # 1–5 m without agreeing specs is not enough evidence: leave both open

    # ==================== ORPHANS ====================
    for k_idx in range(len(katapult_poles)):
        if k_idx not in kat_claimed:
            _claim(MatchTier.UNMATCHED_KATAPULT, None, k_idx)
    for s_idx in range(len(spida_poles)):
        if s_idx not in sp_claimed:
            _claim(MatchTier.UNMATCHED_SPIDA, s_idx, None)

    results.sort(key=_sort_key)

    # ==================== MATCH STATISTICS ====================
    stats = ComparisonStats(
        total_spida_poles=len(spida_poles),
        total_katapult_poles=len(katapult_poles),
    )
    for pole in results:
        stats.matches_by_tier[pole.match_tier] += 1
    stats.total_matches = sum(n for tier, n in stats.matches_by_tier.items() if tier.is_match)
    stats.match_success_rate = _success_rate(
        stats.total_matches, stats.total_spida_poles, stats.total_katapult_poles
    )

    logger.info(
        "Tiered matching: SCID=%d pole#=%d coord<%gm=%d coord+spec=%d "
        "katapult-only=%d spida-only=%d rate=%s",
        stats.matches_by_tier[MatchTier.SCID_EXACT_MATCH],
        stats.matches_by_tier[MatchTier.POLE_NUMBER_MATCH],
        config.direct_threshold_m,
        stats.matches_by_tier[MatchTier.COORDINATE_DIRECT_MATCH],
        stats.matches_by_tier[MatchTier.COORDINATE_SPEC_VERIFIED],
        stats.matches_by_tier[MatchTier.UNMATCHED_KATAPULT],
        stats.matches_by_tier[MatchTier.UNMATCHED_SPIDA],
        stats.match_success_rate,
    )
    return results, stats


def compare(spida: dict, katapult: dict,
            config: MatchConfig = DEFAULT_CONFIG) -> Tuple[List[ProcessedPole], ComparisonStats]:
    """Parsed SPIDA + Katapult documents → matched poles and statistics."""
    return compare_poles(load_spida(spida, config), load_katapult(katapult, config), config)


# ---------------------------------------------------------------------------
# edits
# ---------------------------------------------------------------------------

def recalculate_mismatch_flags(pole: ProcessedPole,
                               config: MatchConfig = DEFAULT_CONFIG) -> ProcessedPole:
    """Re-run the field comparisons for the editable SPIDA mirrors.

    The Katapult side is the reference; SCID / pole # / coordinate flags are
    not editable and stay as they are.
    """
    if pole.katapult is None:
        raise ValueError(f"{pole.id} has no Katapult counterpart to compare against")
    if pole.spida is None:
        return dataclasses.replace(
            pole,
            is_spec_mismatch=False,
            is_existing_pct_mismatch=False,
            is_final_pct_mismatch=False,
            is_comm_drop_mismatch=False,
        )
    return dataclasses.replace(pole, **_editable_flags(pole, config))


def _parse_flag(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    text = (normalize_string(value) or "").lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    return None


def apply_edit(pole: ProcessedPole, field: str, new_val: Any,
               config: MatchConfig = DEFAULT_CONFIG) -> ProcessedPole:
    """Return *pole* with one editable SPIDA value replaced and flags refreshed.

    *new_val* is raw user input: ``"45-3 Southern Pine"``, ``"62.5%"``,
    ``"Yes"`` ...
    """
    if field == "spec":
        change = {"editable_spec": normalize_string(new_val)}
    elif field == "existing_pct":
        change = {"editable_existing_pct": normalize_number(new_val)}
    elif field == "final_pct":
        change = {"editable_final_pct": normalize_number(new_val)}
    elif field == "comm_drop":
        change = {"editable_comm_drop": _parse_flag(new_val)}
    else:
        raise ValueError(f"Unknown editable field {field!r}; expected one of {EDITABLE_FIELDS}")

    edited = dataclasses.replace(pole, is_edited=True, **change)
    return recalculate_mismatch_flags(edited, config)


# ---------------------------------------------------------------------------
# table view
# ---------------------------------------------------------------------------

def _fmt_flag(val: Optional[bool]) -> str | None:
    if val is None:
        return None
    return "Yes" if val else "No"


def to_frame(poles: Sequence[ProcessedPole]) -> pd.DataFrame:
    """One row per ProcessedPole; SPIDA columns show the (possibly edited) mirrors."""
    rows = []
    for pole in poles:
        sp, kat = pole.spida, pole.katapult
        rows.append({
            "ID": pole.id,
            "Match Tier": pole.match_tier.value,
            "SPIDA SCID #": sp.scid if sp else None,
            "Katapult SCID #": kat.scid if kat else None,
            "SPIDA Pole #": sp.pole_num if sp else None,
            "Katapult Pole #": kat.pole_num if kat else None,
            "SPIDA Spec": pole.editable_spec,
            "Katapult Spec": kat.spec if kat else None,
            "SPIDA Existing %": pole.editable_existing_pct,
            "Katapult Existing %": kat.existing_pct if kat else None,
            "SPIDA Final %": pole.editable_final_pct,
            "Katapult Final %": kat.final_pct if kat else None,
            "Com Drop? (SPIDA)": _fmt_flag(pole.editable_comm_drop),
            "Com Drop? (Kat)": _fmt_flag(kat.comm_drop if kat else None),
            "Match Distance (m)": round(pole.match_distance_m, 2) if pole.match_distance_m is not None else None,
            "Map Coord": pole.map_coords,
            "SCID Mismatch": pole.is_scid_mismatch,
            "Pole # Mismatch": pole.is_pole_num_mismatch,
            "Coord Mismatch": pole.is_coords_mismatch,
            "Spec Mismatch": pole.is_spec_mismatch,
            "Existing % Mismatch": pole.is_existing_pct_mismatch,
            "Final % Mismatch": pole.is_final_pct_mismatch,
            "Com Drop Mismatch": pole.is_comm_drop_mismatch,
            "Edited": pole.is_edited,
        })
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


FRAME_COLUMNS = [
    "ID", "Match Tier", "SPIDA SCID #", "Katapult SCID #", "SPIDA Pole #", "Katapult Pole #",
    "SPIDA Spec", "Katapult Spec", "SPIDA Existing %", "Katapult Existing %",
    "SPIDA Final %", "Katapult Final %", "Com Drop? (SPIDA)", "Com Drop? (Kat)",
    "Match Distance (m)", "Map Coord", "SCID Mismatch", "Pole # Mismatch", "Coord Mismatch",
    "Spec Mismatch", "Existing % Mismatch", "Final % Mismatch", "Com Drop Mismatch", "Edited",
]
