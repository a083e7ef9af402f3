"""
Pipeline Orchestrator — Coordinates the entire OCR subtitle pipeline.

Stages:
  1. Frame Extraction (FFmpeg)
  2. Frame OCR (RapidOCR, parallel workers)
  3. Segment Stabilization + Cue Cleanup
  4. Subtitle Output (SRT / VTT / TXT)
"""

import os
import time
import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .analysis import analyze_cues, format_analysis
from .cpu_throttle import CPUThrottle
from .errors import ConfigurationError
from .frame_extractor import FrameExtractor
from .merger import CueCleaner, SubtitleEntry
from .ocr_worker import (
    CancellationToken,
    EngineFactory,
    FrameObservation,
    FrameOCRScheduler,
    RapidOCREngine,
)
from .stabilizer import SegmentStabilizer
from .subtitle_writer import SubtitleWriter

logger = logging.getLogger(__name__)


@dataclass
class ProgressEvent:
    """Progress notification for one pipeline phase."""
    phase: str      # "extracting" | "ocr" | "generating" | "writing"
    current: int
    total: int
    message: str

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100 if self.current else 0
        return min(100, int(100 * self.current / self.total))


ProgressCallback = Optional[Callable[[ProgressEvent], None]]


def generate_subtitles(
    observations: Sequence[FrameObservation],
    fps: float,
    cleanup_config,
    progress_cb: ProgressCallback = None
) -> List[SubtitleEntry]:
    """
    Turn a frame-ordered observation stream into final subtitle entries.

    Args:
        observations: FrameObservations sorted by frame_index.
        fps: Frame rate of the observation indices.
        cleanup_config: CleanupConfig (or any object with the same fields).
        progress_cb: Optional ProgressEvent callback ("generating" phase).

    Raises:
        ConfigurationError: fps <= 0.
    """
    if fps <= 0:
        raise ConfigurationError("FPS must be greater than 0")

    total = len(observations)
    _report(progress_cb, ProgressEvent("generating", 0, total, "Generating subtitles..."))

    def on_frame(current: int, frames_total: int):
        _report(progress_cb, ProgressEvent(
            "generating", current, frames_total, f"Processing frame {current}..."
        ))

    segments = SegmentStabilizer(cleanup_config).stabilize(observations, progress_cb=on_frame)
    entries = CueCleaner(cleanup_config).clean(segments, observations, fps)

    _report(progress_cb, ProgressEvent(
        "generating", total, total, f"Generated {len(entries)} subtitles"
    ))
    return entries


class SubtitlePipeline:
    """
    Main pipeline orchestrator for burned-in subtitle extraction.

    Usage:
        config = load_config()
        pipeline = SubtitlePipeline(config)
        pipeline.process("video.mp4", "video.srt")
    """

    def __init__(self, config, engine_factory: Optional[EngineFactory] = None):
        self.config = config

        self.extractor = FrameExtractor(
            sample_fps=config.extraction.sample_fps,
            region=config.extraction.region,
            image_format=config.extraction.image_format
        )
        self.throttle = CPUThrottle(
            max_percent=config.max_cpu_percent,
            check_interval=config.threading.throttle_check_interval
        )
        self.scheduler = FrameOCRScheduler(
            engine_factory or self._default_engine_factory,
            workers=self._worker_count(),
            throttle=self.throttle
        )
        self.writer = SubtitleWriter()
        self._token: Optional[CancellationToken] = None

    def _default_engine_factory(self) -> RapidOCREngine:
        ocr = self.config.ocr
        return RapidOCREngine(
            det_model_path=ocr.det_model_path,
            rec_model_path=ocr.rec_model_path,
            rec_keys_path=ocr.rec_keys_path,
            threads=ocr.engine_threads
        )

    def _worker_count(self) -> int:
        workers = self.config.ocr.workers
        if workers <= 0:
            workers = os.cpu_count() or 4
            logger.info(f"Auto-detected {workers} OCR workers")
        return workers

    def cancel(self):
        """Cancel the running job, if any."""
        if self._token is not None:
            self._token.cancel()

    def process(
        self,
        video_path: Path,
        output_path: Path,
        progress_cb: ProgressCallback = None,
        token: Optional[CancellationToken] = None
    ) -> List[SubtitleEntry]:
        """
        Run the full subtitle extraction pipeline.

        Args:
            video_path: Path to the input video file.
            output_path: Path for the output subtitle file.
            progress_cb: Optional callback for progress updates.
            token: Optional cancellation token (one is created otherwise).

        Returns:
            List of generated SubtitleEntry objects.
        """
        video_path = Path(video_path)
        output_path = Path(output_path)
        start_time = time.monotonic()
        fps = self.config.extraction.sample_fps
        self._token = token or CancellationToken(job_id=video_path.stem)

        if fps <= 0:
            raise ConfigurationError("FPS must be greater than 0")

        logger.info(f"{'='*60}")
        logger.info(f"Frame OCR Subtitle Generator")
        logger.info(f"Input:   {video_path}")
        logger.info(f"Output:  {output_path}")
        logger.info(f"Sample:  {fps:g} fps, region {self.config.extraction.region}")
        logger.info(f"Workers: {self.scheduler.workers}")
        logger.info(f"{'='*60}")

        observations = self._load_cached_observations(video_path)
        if observations is None:
            observations = self._run_ocr(video_path, fps, progress_cb)
            self._save_cached_observations(video_path, observations)

        entries = generate_subtitles(observations, fps, self.config.cleanup, progress_cb)

        _report(progress_cb, ProgressEvent("writing", 0, 1, "Writing subtitles..."))
        self.writer.write(entries, output_path, self.config.output.format)
        _report(progress_cb, ProgressEvent("writing", 1, 1, "Done!"))

        elapsed = time.monotonic() - start_time
        logger.info(f"{'='*60}")
        logger.info(f"Pipeline complete in {elapsed:.1f}s")
        logger.info(f"  Observations: {len(observations)}")
        logger.info(f"  Subtitles: {len(entries)} entries")
        logger.info(f"  CPU throttles: {self.throttle.total_throttles}")
        logger.info(f"  {format_analysis(analyze_cues(entries))}")
        logger.info(f"  Output: {output_path}")
        logger.info(f"{'='*60}")

        preview = self.writer.write_preview(entries, max_entries=5)
        if preview:
            logger.info(f"Preview:\n{preview}")

        return entries

    def _run_ocr(self, video_path: Path, fps: float, progress_cb: ProgressCallback) -> List[FrameObservation]:
        _report(progress_cb, ProgressEvent("extracting", 0, 1, "Extracting frames from video..."))
        frames = self.extractor.extract(video_path, token=self._token)
        _report(progress_cb, ProgressEvent("extracting", 1, 1, f"Extracted {len(frames)} frames"))

        if not frames:
            return []

        frames_dir = frames[0].path.parent
        try:
            def on_frame(current: int, total: int):
                _report(progress_cb, ProgressEvent(
                    "ocr", current, total, f"OCR {current}/{total} frames"
                ))

            return self.scheduler.run(frames, fps, token=self._token, progress_cb=on_frame)
        finally:
            # Always clean up temp frames
            self.extractor.cleanup(frames_dir)

    # ── Caching ──

    def _file_hash(self, filepath: Path) -> str:
        """Compute SHA-256 hash of a file for cache keying."""
        sha = hashlib.sha256()
        with open(filepath, "rb") as f:
            while True:
                chunk = f.read(65536)
                if not chunk:
                    break
                sha.update(chunk)
        return sha.hexdigest()[:16]

    def _cache_path(self, video_path: Path) -> Path:
        """Cache file for a video's observations under the current extraction settings."""
        extraction = self.config.extraction
        settings = f"{extraction.sample_fps:g}|{extraction.region}"
        settings_hash = hashlib.sha256(settings.encode("utf-8")).hexdigest()[:8]
        cache_dir = Path(self.config.cache.directory)
        cache_dir.mkdir(parents=True, exist_ok=True)
        return cache_dir / f"{video_path.stem}_{self._file_hash(video_path)}_{settings_hash}.frames.json"

    def _load_cached_observations(self, video_path: Path) -> Optional[List[FrameObservation]]:
        if not self.config.cache.enabled:
            return None

        cache_file = self._cache_path(video_path)
        if not cache_file.exists():
            return None

        try:
            with open(cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            observations = [FrameObservation(**item) for item in data["observations"]]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable cache {cache_file.name}: {e}")
            return None

        logger.info(f"Cache hit: {cache_file.name} ({len(observations)} observations)")
        return observations

    def _save_cached_observations(self, video_path: Path, observations: List[FrameObservation]):
        if not self.config.cache.enabled:
            return

        cache_file = self._cache_path(video_path)
        cache_data = {
            "video": str(video_path),
            "sample_fps": self.config.extraction.sample_fps,
            "timestamp": time.time(),
            "observations": [asdict(obs) for obs in observations],
        }

        with open(cache_file, "w", encoding="utf-8") as f:
            json.dump(cache_data, f, ensure_ascii=False)

        logger.debug(f"Cache saved: {cache_file}")


def _report(cb: ProgressCallback, event: ProgressEvent):
    """Report progress to logger and optional callback."""
    logger.debug(f"[{event.phase}] {event.current}/{event.total} {event.message}")
    if cb:
        cb(event)
