"""
Segment Stabilizer — Collapses per-frame OCR readings into segments.

A two-state machine (no active segment / active segment) driven one
observation at a time in frame order:
  - invalid frames (low confidence or empty text) only matter for gap timeouts
  - similar frames extend the active segment and may promote its baseline
  - a dissimilar frame followed shortly by a baseline match is an OCR
    glitch ("blip") and is absorbed
  - anything else closes the segment and opens a new one
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Iterable, Iterator, List, Optional, Sequence

from .ocr_worker import FrameObservation
from .selector import SegmentCandidate
from .similarity import EPSILON, clamp, collapse_whitespace, normalize_text, texts_are_similar

logger = logging.getLogger(__name__)

# Number of upcoming observations inspected before closing a segment on a
# dissimilar reading. A count, not a time window.
BLIP_LOOKAHEAD = 2

PROGRESS_EVERY = 100


@dataclass
class SubtitleSegment:
    """A run of observations judged to show the same on-screen text."""
    start_time: int
    last_seen_time: int
    last_seen_frame_index: int
    baseline_key: str
    baseline_confidence: float
    candidates: List[SegmentCandidate] = field(default_factory=list)

    @classmethod
    def open(cls, frame: FrameObservation, candidate: SegmentCandidate) -> "SubtitleSegment":
        return cls(
            start_time=frame.time_ms,
            last_seen_time=frame.time_ms,
            last_seen_frame_index=frame.frame_index,
            baseline_key=candidate.key,
            baseline_confidence=candidate.confidence,
            candidates=[candidate],
        )

    def touch(self, frame: FrameObservation):
        self.last_seen_time = frame.time_ms
        self.last_seen_frame_index = frame.frame_index

    def __repr__(self):
        return (f"SubtitleSegment({self.start_time}–{self.last_seen_time}ms, "
                f"'{self.baseline_key[:40]}', {len(self.candidates)} readings)")


class SegmentStabilizer:
    """
    Streaming segmenter over frame-ordered observations.

    Not thread-safe; one instance per run. The output depends on the input
    being sorted by frame_index.
    """

    def __init__(self, config):
        self.min_confidence = clamp(getattr(config, "min_confidence", 0.5), 0.0, 1.0)
        self.merge_similar = getattr(config, "merge_similar", True)
        self.similarity_threshold = (
            clamp(getattr(config, "similarity_threshold", 0.92), 0.80, 0.98)
            if self.merge_similar else 1.0
        )
        self.max_gap_ms = getattr(config, "max_gap_ms", 250)

        self._current: Optional[SubtitleSegment] = None

    def stabilize(
        self,
        observations: Sequence[FrameObservation],
        progress_cb: Optional[Callable[[int, int], None]] = None
    ) -> List[SubtitleSegment]:
        """
        Run the state machine over a complete observation list.

        Args:
            observations: FrameObservations sorted by frame_index.
            progress_cb: Optional (current, total) callback, called every
                100 observations.

        Returns:
            Closed segments in start-time order.
        """
        total = len(observations)
        segments: List[SubtitleSegment] = []

        def counted() -> Iterator[FrameObservation]:
            for i, obs in enumerate(observations):
                if progress_cb and i % PROGRESS_EVERY == 0:
                    progress_cb(i, total)
                yield obs

        segments.extend(self.iter_segments(counted()))

        logger.info(f"Stabilized {total} observations → {len(segments)} segments")
        return segments

    def iter_segments(self, observations: Iterable[FrameObservation]) -> Iterator[SubtitleSegment]:
        """Yield each segment as soon as it is closed."""
        self._current = None
        source = iter(observations)
        window: Deque[FrameObservation] = deque()

        def fill(size: int):
            while len(window) < size:
                try:
                    window.append(next(source))
                except StopIteration:
                    return

        fill(BLIP_LOOKAHEAD + 1)
        while window:
            frame = window.popleft()
            fill(BLIP_LOOKAHEAD)
            closed = self._step(frame, window)
            if closed is not None:
                yield closed

        if self._current is not None:
            closed, self._current = self._current, None
            yield closed

    # ── State machine ──

    def _step(self, frame: FrameObservation, upcoming: Sequence[FrameObservation]) -> Optional[SubtitleSegment]:
        """Advance by one observation; return the segment closed by it, if any."""
        candidate = self._candidate(frame)
        seg = self._current

        if candidate is None:
            if seg is not None and frame.time_ms - seg.last_seen_time > self.max_gap_ms:
                self._current = None
                return seg
            return None

        if seg is None:
            self._current = SubtitleSegment.open(frame, candidate)
            return None

        if frame.time_ms - seg.last_seen_time > self.max_gap_ms:
            self._current = SubtitleSegment.open(frame, candidate)
            return seg

        if self._similar(seg.baseline_key, candidate.key):
            seg.touch(frame)
            seg.candidates.append(candidate)
            if candidate.confidence > seg.baseline_confidence + EPSILON:
                seg.baseline_key = candidate.key
                seg.baseline_confidence = candidate.confidence
            return None

        if self._is_blip(seg, upcoming):
            logger.debug(
                f"Absorbed OCR blip at frame {frame.frame_index}: "
                f"'{candidate.text[:40]}' inside '{seg.baseline_key[:40]}'"
            )
            seg.touch(frame)
            return None

        self._current = SubtitleSegment.open(frame, candidate)
        return seg

    def _is_blip(self, seg: SubtitleSegment, upcoming: Sequence[FrameObservation]) -> bool:
        """True if a near-future valid reading matches the current baseline."""
        for i, nxt in enumerate(upcoming):
            if i >= BLIP_LOOKAHEAD:
                break
            candidate = self._candidate(nxt)
            if candidate is not None and self._similar(seg.baseline_key, candidate.key):
                return True
        return False

    def _candidate(self, frame: FrameObservation) -> Optional[SegmentCandidate]:
        """Build the candidate for a frame, or None if the frame is invalid."""
        display_text = collapse_whitespace(frame.text)
        key = normalize_text(display_text)
        if frame.confidence < self.min_confidence or not key:
            return None
        return SegmentCandidate(key=key, text=display_text, confidence=frame.confidence)

    def _similar(self, baseline_key: str, key: str) -> bool:
        if not self.merge_similar:
            return baseline_key == key
        return texts_are_similar(baseline_key, key, self.similarity_threshold)
