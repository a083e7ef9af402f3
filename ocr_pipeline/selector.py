"""
Candidate Selector — Picks the representative text of a segment.

Readings are grouped by normalized key. Each group is scored by its best
confidence plus small bonuses for frequency and length, so that a slightly
less confident but consistent (or less truncated) reading can win.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

# Empirically tuned; adjustable.
FREQUENCY_WEIGHT = 0.05
LENGTH_WEIGHT_PER_CHAR = 0.005
LENGTH_BONUS_CAP = 0.05


@dataclass
class SegmentCandidate:
    """One reading belonging to a segment."""
    key: str            # Normalized comparison key
    text: str           # Display text (whitespace collapsed)
    confidence: float


@dataclass
class _GroupStats:
    count: int
    max_confidence: float
    text: str


def select_segment_text(candidates: List[SegmentCandidate]) -> Optional[Tuple[str, float]]:
    """
    Choose the output text for a segment.

    Returns:
        (display_text, confidence) of the winning group, where confidence is
        the group's raw maximum confidence, or None for no candidates.
    """
    if not candidates:
        return None

    groups: Dict[str, _GroupStats] = {}
    for c in candidates:
        stats = groups.setdefault(c.key, _GroupStats(0, 0.0, c.text))
        stats.count += 1
        if c.confidence > stats.max_confidence:
            stats.max_confidence = c.confidence
            stats.text = c.text

    total = len(candidates)
    best: Optional[_GroupStats] = None
    best_score = -1.0

    for stats in groups.values():
        frequency_bonus = (stats.count / total) * FREQUENCY_WEIGHT
        length_bonus = min(len(stats.text) * LENGTH_WEIGHT_PER_CHAR, LENGTH_BONUS_CAP)
        score = stats.max_confidence + frequency_bonus + length_bonus

        if score > best_score:
            best = stats
            best_score = score

    return best.text, best.max_confidence
