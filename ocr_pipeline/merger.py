"""
Cue Cleaner — Turns closed segments into final subtitle entries.

Steps:
  1. Select each segment's text and derive its end time
  2. Optionally drop URL-like cues (watermarks, channel links)
  3. Optionally merge adjacent similar cues and renumber
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .ocr_worker import FrameObservation, frame_time_ms
from .selector import select_segment_text
from .similarity import EPSILON, clamp, normalize_text, texts_are_similar

logger = logging.getLogger(__name__)

RELAXED_MERGE_THRESHOLD = 0.80

URL_MARKERS = ("http://", "https://", "www.")
TLD_MARKERS = (".com", ".net", ".org", ".co", ".io", ".me", ".tv", ".app")

_TOKEN_EDGE_RE = re.compile(r"^[^a-z0-9.-]+|[^a-z0-9.-]+$", re.IGNORECASE)
_ALPHA_RE = re.compile(r"^[a-z]+$", re.IGNORECASE)
_HAS_ALPHA_RE = re.compile(r"[a-z]", re.IGNORECASE)


@dataclass
class SubtitleEntry:
    """A single subtitle cue (times in milliseconds)."""
    id: int
    text: str
    start_time: int
    end_time: int
    confidence: float

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time

    def __repr__(self):
        return (f"Sub#{self.id}({self.start_time}–{self.end_time}ms, "
                f"'{self.text[:50]}')")


class CueCleaner:
    """
    Builds and post-processes subtitle entries.

    Cleanup rules:
    1. End time = last sighting + typical sampling step (median delta)
    2. End times never precede or equal start times, nor overlap the next cue
    3. URL-like cues are dropped when filter_url_like is set
    4. Adjacent cues within max_gap_ms merge when their texts are similar,
       or when one is shorter than min_cue_duration_ms and they are roughly
       similar
    """

    def __init__(self, config):
        self.merge_similar = getattr(config, "merge_similar", True)
        self.similarity_threshold = (
            clamp(getattr(config, "similarity_threshold", 0.92), 0.80, 0.98)
            if self.merge_similar else 1.0
        )
        self.max_gap_ms = getattr(config, "max_gap_ms", 250)
        self.min_cue_duration_ms = getattr(config, "min_cue_duration_ms", 500)
        self.filter_url_like = getattr(config, "filter_url_like", True)

    def clean(self, segments, observations: Sequence[FrameObservation], fps: float) -> List[SubtitleEntry]:
        """
        Run the full cleanup pass.

        Args:
            segments: Closed SubtitleSegments in start-time order.
            observations: The observation stream the segments came from
                (used to infer the sampling step).
            fps: Frame rate for the index-based end-time fallback.

        Returns:
            Final, renumbered SubtitleEntry list.
        """
        entries = self.build_entries(segments, infer_frame_step_ms(observations), fps)
        built = len(entries)

        if self.filter_url_like:
            entries = self.drop_url_like(entries)

        if self.merge_similar and len(entries) > 1:
            entries = self.merge_adjacent(entries)

        logger.info(f"Cleanup: {len(segments)} segments → {built} cues → {len(entries)} final")
        return entries

    def build_entries(self, segments, frame_step_ms: Optional[int], fps: float) -> List[SubtitleEntry]:
        """Select text and derive timing for each segment."""
        entries: List[SubtitleEntry] = []

        for i, seg in enumerate(segments):
            selected = select_segment_text(seg.candidates)
            if selected is None:
                continue
            text, confidence = selected

            end_time = segment_end_time_ms(seg, frame_step_ms, fps)

            # Keep cues from running into the next segment
            if i + 1 < len(segments):
                next_start = segments[i + 1].start_time
                if seg.start_time < next_start < end_time:
                    end_time = next_start

            entries.append(SubtitleEntry(
                id=len(entries) + 1,
                text=text,
                start_time=seg.start_time,
                end_time=end_time,
                confidence=clamp(confidence, 0.0, 1.0),
            ))

        return entries

    @staticmethod
    def drop_url_like(entries: List[SubtitleEntry]) -> List[SubtitleEntry]:
        kept = [e for e in entries if not text_looks_url_like(e.text)]
        dropped = len(entries) - len(kept)
        if dropped:
            logger.debug(f"Dropped {dropped} URL-like cues")
        return kept

    def merge_adjacent(self, entries: List[SubtitleEntry]) -> List[SubtitleEntry]:
        """
        Merge each entry into the previous kept entry when they are close in
        time and show the same text. Running this twice changes nothing.
        """
        merged: List[SubtitleEntry] = []

        for sub in entries:
            if merged and self._should_merge(merged[-1], sub):
                prev = merged[-1]
                prev.end_time = max(prev.end_time, sub.end_time)
                if (sub.confidence > prev.confidence + EPSILON or
                        (abs(sub.confidence - prev.confidence) <= EPSILON and
                         len(sub.text) > len(prev.text))):
                    prev.text = sub.text
                prev.confidence = max(prev.confidence, sub.confidence)
                continue

            merged.append(SubtitleEntry(
                id=sub.id,
                text=sub.text,
                start_time=sub.start_time,
                end_time=sub.end_time,
                confidence=sub.confidence,
            ))

        for i, sub in enumerate(merged):
            sub.id = i + 1

        return merged

    def _should_merge(self, prev: SubtitleEntry, sub: SubtitleEntry) -> bool:
        gap = sub.start_time - prev.end_time
        if gap > self.max_gap_ms:
            return False

        prev_key = normalize_text(prev.text)
        sub_key = normalize_text(sub.text)

        if texts_are_similar(prev_key, sub_key, self.similarity_threshold):
            return True

        is_short = (prev.duration < self.min_cue_duration_ms or
                    sub.duration < self.min_cue_duration_ms)
        return is_short and texts_are_similar(prev_key, sub_key, RELAXED_MERGE_THRESHOLD)


def infer_frame_step_ms(observations: Sequence[FrameObservation]) -> Optional[int]:
    """
    Typical time between consecutive observations.

    Uses the median of positive deltas, which tolerates irregular sampling
    and dropped frames. Returns None with fewer than two usable deltas.
    """
    deltas = sorted(
        b.time_ms - a.time_ms
        for a, b in zip(observations, observations[1:])
        if b.time_ms > a.time_ms
    )
    if len(deltas) < 2:
        return None
    return deltas[len(deltas) // 2]


def segment_end_time_ms(seg, frame_step_ms: Optional[int], fps: float) -> int:
    """End time of a segment, always at least 1 ms after its start."""
    if frame_step_ms is not None:
        end_time = seg.last_seen_time + frame_step_ms
    else:
        end_time = frame_time_ms(seg.last_seen_frame_index + 1, fps)

    if end_time <= seg.start_time:
        end_time = seg.start_time + 1
    return end_time


def token_looks_like_domain(token: str) -> bool:
    """
    True for tokens shaped like `label.tld`, e.g. "example.com".

    The final label must be 2-6 letters; the one before it at least two
    characters with a letter in it.
    """
    cleaned = _TOKEN_EDGE_RE.sub("", token)
    parts = cleaned.split(".")
    if len(parts) < 2 or any(not p for p in parts):
        return False

    tld = parts[-1]
    if not 2 <= len(tld) <= 6 or not _ALPHA_RE.match(tld):
        return False

    domain = parts[-2]
    return len(domain) >= 2 and bool(_HAS_ALPHA_RE.search(domain))


def text_looks_url_like(text: str) -> bool:
    lower = text.lower()

    if any(marker in lower for marker in URL_MARKERS):
        return True
    if any(marker in lower for marker in TLD_MARKERS):
        return True

    return any(token_looks_like_domain(token) for token in lower.split())
