"""
Cue Analysis — Quality statistics over a generated subtitle track.

Flags the usual OCR artifacts: flicker cues that are too short, cues that
are too dense to read, URL-like watermarks and repeated prefixes.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .merger import text_looks_url_like
from .similarity import collapse_whitespace

FAST_READING_CPS = 30.0


@dataclass
class CueAnalysis:
    cue_count: int = 0
    min_duration_ms: Optional[int] = None
    avg_duration_ms: Optional[float] = None
    max_duration_ms: Optional[int] = None
    under_250ms: int = 0
    under_500ms: int = 0
    avg_cps: Optional[float] = None
    max_cps: Optional[float] = None
    over_30_cps: int = 0
    url_like_count: int = 0
    top_prefixes: List[Tuple[str, int]] = field(default_factory=list)


def analyze_cues(entries: List) -> CueAnalysis:
    durations = [e.end_time - e.start_time for e in entries if e.end_time > e.start_time]

    cps_values = []
    for e in entries:
        seconds = (e.end_time - e.start_time) / 1000.0
        if seconds <= 0:
            continue
        chars = len("".join(collapse_whitespace(e.text).split()))
        cps_values.append(chars / seconds)

    prefixes = Counter()
    for e in entries:
        text = collapse_whitespace(e.text)
        if text:
            prefixes[text[:4]] += 1

    return CueAnalysis(
        cue_count=len(entries),
        min_duration_ms=min(durations) if durations else None,
        avg_duration_ms=sum(durations) / len(durations) if durations else None,
        max_duration_ms=max(durations) if durations else None,
        under_250ms=sum(1 for d in durations if d < 250),
        under_500ms=sum(1 for d in durations if d < 500),
        avg_cps=sum(cps_values) / len(cps_values) if cps_values else None,
        max_cps=max(cps_values) if cps_values else None,
        over_30_cps=sum(1 for v in cps_values if v > FAST_READING_CPS),
        url_like_count=sum(1 for e in entries if text_looks_url_like(e.text)),
        top_prefixes=prefixes.most_common(3),
    )


def format_analysis(analysis: CueAnalysis) -> str:
    """One-line summary, e.g. "Subtitle analysis: 12 cues, min 480ms."."""
    parts = [f"{analysis.cue_count} cues"]
    if analysis.min_duration_ms is not None:
        parts.append(f"min {analysis.min_duration_ms}ms")
    if analysis.under_250ms:
        parts.append(f"{analysis.under_250ms} <250ms")
    if analysis.over_30_cps:
        parts.append(f"{analysis.over_30_cps} >30 CPS")
    if analysis.url_like_count:
        parts.append(f"{analysis.url_like_count} URL-like")

    prefix_part = ""
    if analysis.top_prefixes:
        top = ", ".join(f"{prefix}({count})" for prefix, count in analysis.top_prefixes)
        prefix_part = f" (top: {top})"

    return f"Subtitle analysis: {', '.join(parts)}{prefix_part}."
