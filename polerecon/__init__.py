"""polerecon – reconcile SPIDAcalc designs with Katapult field surveys."""

from .compare import apply_edit, compare, compare_poles, recalculate_mismatch_flags, to_frame
from .config import DEFAULT_CONFIG, MatchConfig
from .models import ComparisonStats, MatchTier, NormalizedPole, ProcessedPole

__all__ = [
    "apply_edit", "compare", "compare_poles", "recalculate_mismatch_flags", "to_frame",
    "DEFAULT_CONFIG", "MatchConfig",
    "ComparisonStats", "MatchTier", "NormalizedPole", "ProcessedPole",
]
