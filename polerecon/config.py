"""config.py – tunable thresholds for the SPIDA ↔ Katapult reconciliation.

Module constants are the defaults; a run takes its values from a
``MatchConfig``.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

EARTH_R = 6371000                        # metres – haversine radius
METRE_TO_FT = 0.3048

DIRECT_THRESHOLD_M = 1.0                 # coord match accepted without spec check
VERIFIED_THRESHOLD_M = 5.0               # coord match accepted only with spec check
HEIGHT_TOLERANCE_FT = 1
CARRIER_NAME = "Charter"

# Bare numbers inside this open interval are read as metres by to_feet().
# A 20 ft pole stored as a bare ``20`` is misread as 66 ft – known limitation.
METRE_HEIGHT_RANGE: Tuple[float, float] = (5, 30)


@dataclass(frozen=True)
class MatchConfig:
    direct_threshold_m: float = DIRECT_THRESHOLD_M
    verified_threshold_m: float = VERIFIED_THRESHOLD_M
    height_tolerance_ft: float = HEIGHT_TOLERANCE_FT
    carrier_name: str = CARRIER_NAME
    metre_height_range: Tuple[float, float] = METRE_HEIGHT_RANGE


DEFAULT_CONFIG = MatchConfig()
