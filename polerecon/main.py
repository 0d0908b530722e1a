"""
main.py – command-line SPIDA ↔ Katapult comparer.
Launch with:
    python -m polerecon SPIDA.json KATAPULT.json
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from .compare import compare, to_frame
from .config import DEFAULT_CONFIG, MatchConfig
from .models import ComparisonStats, MatchTier

TIER_ICONS = {
    MatchTier.SCID_EXACT_MATCH: "🎯",
    MatchTier.POLE_NUMBER_MATCH: "🏷️ ",
    MatchTier.COORDINATE_DIRECT_MATCH: "📍",
    MatchTier.COORDINATE_SPEC_VERIFIED: "🔍",
    MatchTier.UNMATCHED_KATAPULT: "💜",
    MatchTier.UNMATCHED_SPIDA: "❌",
}


def _load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polerecon",
        description="Reconcile SPIDAcalc and Katapult pole data",
    )
    parser.add_argument("spida_file", type=Path, help="Path to SPIDAcalc exchange JSON")
    parser.add_argument("katapult_file", type=Path, help="Path to Katapult job JSON")
    parser.add_argument("--direct-threshold", type=float, default=DEFAULT_CONFIG.direct_threshold_m,
                        help="Coordinate match accepted without spec check below this (m, default: %(default)s)")
    parser.add_argument("--verified-threshold", type=float, default=DEFAULT_CONFIG.verified_threshold_m,
                        help="Coordinate match with spec check below this (m, default: %(default)s)")
    parser.add_argument("--height-tolerance", type=float, default=DEFAULT_CONFIG.height_tolerance_ft,
                        help="Spec height tolerance in feet (default: %(default)s)")
    parser.add_argument("--carrier", default=DEFAULT_CONFIG.carrier_name,
                        help="Communication carrier for drop detection (default: %(default)s)")
    parser.add_argument("--mismatches-only", action="store_true",
                        help="Only list poles with at least one mismatch")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> MatchConfig:
    return MatchConfig(
        direct_threshold_m=args.direct_threshold,
        verified_threshold_m=args.verified_threshold,
        height_tolerance_ft=args.height_tolerance,
        carrier_name=args.carrier,
    )


def print_summary(stats: ComparisonStats) -> None:
    print("\n📊 Tiered Matching Results:")
    for tier in MatchTier:
        print(f"   {TIER_ICONS[tier]} {tier.value}: {stats.matches_by_tier[tier]} poles")
    print(f"   ✅ Overall match rate: {stats.match_success_rate} "
          f"({stats.total_matches}/{stats.total_spida_poles})")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        spida = _load_json(args.spida_file)
        katapult = _load_json(args.katapult_file)
        poles, stats = compare(spida, katapult, config_from_args(args))
    except (OSError, json.JSONDecodeError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    print_summary(stats)

    if args.mismatches_only:
        poles = [p for p in poles if p.has_mismatch]
    df = to_frame(poles)
    if df.empty:
        print("\nNo poles to show.")
    else:
        with pd.option_context("display.max_rows", None, "display.max_columns", None,
                               "display.width", 200):
            print()
            print(df.drop(columns=["Map Coord"]).to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
