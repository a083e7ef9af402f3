"""
Similarity Metric — Text normalization and bounded edit-distance comparison.

Every higher layer compares OCR readings through `texts_are_similar`:
  - exact match
  - containment (absorbs edge-truncated reads)
  - conservative short-text path (one character of drift, equal lengths)
  - bounded Levenshtein distance for longer text
"""

import math
import re
import string
from typing import Optional, Sequence

_WHITESPACE_RE = re.compile(r"\s+")

CJK_PUNCTUATION = "，。！？：；、“”‘’《》（）【】—…～·"
EDGE_PUNCTUATION = string.punctuation + string.whitespace + CJK_PUNCTUATION

SHORT_TEXT_LENGTH = 6
CONTAINMENT_RATIO = 0.70
CONTAINMENT_MAX_LENGTH_DIFF = 2
EPSILON = 1e-9


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_text(text: str) -> str:
    """
    Build the comparison key for a reading.

    Example:
        "  《Hello,   World!》 " -> "hello, world"
    """
    return collapse_whitespace(text).strip(EDGE_PUNCTUATION).lower()


def levenshtein_bounded(a: Sequence[str], b: Sequence[str], max_distance: int) -> Optional[int]:
    """
    Levenshtein distance between two strings, or None once it is certain
    to exceed `max_distance`.

    Uses two rolling rows over the shorter string; rejects early when the
    length gap alone exceeds the bound, and aborts mid-way when a whole
    row is over the bound.
    """
    short, long_ = (a, b) if len(a) <= len(b) else (b, a)
    short_len = len(short)

    if len(long_) - short_len > max_distance:
        return None

    prev = list(range(short_len + 1))
    cur = [0] * (short_len + 1)

    for j, long_ch in enumerate(long_):
        cur[0] = j + 1
        row_min = cur[0]

        for i in range(short_len):
            cost = 0 if short[i] == long_ch else 1
            val = min(cur[i] + 1, prev[i + 1] + 1, prev[i] + cost)
            cur[i + 1] = val
            if val < row_min:
                row_min = val

        if row_min > max_distance:
            return None

        prev, cur = cur, prev

    distance = prev[short_len]
    return distance if distance <= max_distance else None


def texts_are_similar(a_key: str, b_key: str, threshold: float) -> bool:
    """
    Decide whether two normalized keys are readings of the same text.

    Args:
        a_key: Normalized text (see `normalize_text`).
        b_key: Normalized text.
        threshold: Similarity ratio in [0, 1]; 1.0 means exact match only
            for long text.

    Returns:
        True if the keys are considered the same on-screen text.
    """
    if a_key == b_key:
        return True

    a_len = len(a_key)
    b_len = len(b_key)
    min_len = min(a_len, b_len)
    max_len = max(a_len, b_len)

    if a_key in b_key or b_key in a_key:
        if (max_len - min_len) <= CONTAINMENT_MAX_LENGTH_DIFF or \
                min_len / max_len >= CONTAINMENT_RATIO:
            return True

    if min_len < SHORT_TEXT_LENGTH:
        if a_len != b_len:
            return False
        return levenshtein_bounded(a_key, b_key, 1) is not None

    threshold = clamp(threshold, 0.0, 1.0)
    max_distance = math.ceil((1.0 - threshold) * max_len)
    if max_distance == 0:
        return False

    distance = levenshtein_bounded(a_key, b_key, max_distance)
    if distance is None:
        return False

    return 1.0 - distance / max_len + EPSILON >= threshold


def clamp(value: float, low: float, high: float) -> float:
    """Clamp to [low, high]; NaN maps to `low`."""
    if math.isnan(value):
        return low
    return max(low, min(high, value))
