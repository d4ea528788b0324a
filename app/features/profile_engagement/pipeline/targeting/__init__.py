"""
Targeting package.

Snapshot value types plus the rule engine that derives lifecycle stage and
audience segments from them.
"""

from .segmenter import TargetingDiff, TargetingResult, derive_targeting, diff_targeting
from .snapshot import ProfileSnapshot, SnapshotMetrics

__all__ = [
    "ProfileSnapshot",
    "SnapshotMetrics",
    "TargetingDiff",
    "TargetingResult",
    "derive_targeting",
    "diff_targeting",
]
