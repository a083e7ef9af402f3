"""
OCR Worker — Parallel frame recognition.

Fans a frame list out over a fixed thread pool. Each worker builds its own
OCR engine from a factory (engines hold mutable model state and are never
shared) and processes one contiguous chunk of frames in order.

Failure model:
  - Engine construction failure is fatal for the whole batch
  - A frame that fails to decode or recognize is skipped and logged
  - Cancellation is cooperative: polled per chunk and per frame
"""

import math
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol

import cv2
import numpy as np

from .errors import (
    CancellationError,
    ConfigurationError,
    EngineInitializationError,
    FrameRecognitionError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameObservation:
    """One OCR pass over one frame."""
    frame_index: int
    time_ms: int
    text: str
    confidence: float

    def __repr__(self):
        return (f"FrameObservation(#{self.frame_index} @{self.time_ms}ms, "
                f"'{self.text[:40]}', conf={self.confidence:.2f})")


@dataclass(frozen=True)
class FrameImage:
    """A frame to recognize: either a path on disk or an already-decoded image."""
    frame_index: int
    path: Optional[Path] = None
    image: Optional[np.ndarray] = None


@dataclass
class TextRegion:
    """A text box reported by the OCR engine."""
    bbox_top: float
    text: str
    confidence: float


class OCREngine(Protocol):
    def recognize(self, image: np.ndarray) -> List[TextRegion]:
        ...


EngineFactory = Callable[[], OCREngine]
FrameProgressCallback = Optional[Callable[[int, int], None]]


class CancellationToken:
    """Cooperative cancellation flag for one job."""

    def __init__(self, job_id: str = "ocr"):
        self.job_id = job_id
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise CancellationError(self.job_id)


class RapidOCREngine:
    """
    OCR engine backed by RapidOCR (PP-OCR models on ONNX Runtime).

    With no explicit model paths the models bundled with the rapidocr
    package are used. Construct one instance per thread.
    """

    def __init__(
        self,
        det_model_path: Optional[str] = None,
        rec_model_path: Optional[str] = None,
        rec_keys_path: Optional[str] = None,
        threads: int = 1
    ):
        params = {
            "Global.log_level": "warning",
            "EngineConfig.onnxruntime.intra_op_num_threads": threads,
            "EngineConfig.onnxruntime.inter_op_num_threads": 1,
        }
        for key, value in (
            ("Det.model_path", det_model_path),
            ("Rec.model_path", rec_model_path),
            ("Rec.rec_keys_path", rec_keys_path),
        ):
            if not value:
                continue
            if not Path(value).exists():
                raise EngineInitializationError(
                    f"OCR model file not found: {value}\n"
                    f"Download PP-OCR models from: "
                    f"https://github.com/RapidAI/RapidOCR"
                )
            params[key] = str(value)

        try:
            from rapidocr import RapidOCR
            self._engine = RapidOCR(params=params)
        except Exception as e:
            raise EngineInitializationError(f"Failed to load RapidOCR: {e}") from e

    def recognize(self, image: np.ndarray) -> List[TextRegion]:
        result = self._engine(image)
        txts = getattr(result, "txts", None)
        if not txts:
            return []

        boxes = getattr(result, "boxes", None)
        scores = getattr(result, "scores", None)
        if scores is None:
            scores = [0.0] * len(txts)

        regions = []
        for i, text in enumerate(txts):
            top = float(np.min(np.asarray(boxes[i])[:, 1])) if boxes is not None else float(i)
            regions.append(TextRegion(bbox_top=top, text=str(text), confidence=float(scores[i])))
        return regions


def merge_regions(regions: List[TextRegion]) -> tuple:
    """
    Merge a frame's text regions into one reading.

    Regions are ordered top-to-bottom so stacked subtitle lines read in
    order. Returns (text, mean confidence of non-empty regions).
    """
    texts = []
    confidences = []
    for region in sorted(regions, key=lambda r: r.bbox_top):
        text = region.text.strip()
        if text:
            texts.append(text)
            confidences.append(region.confidence)

    if not texts:
        return "", 0.0
    return " ".join(texts), sum(confidences) / len(confidences)


class _ProgressCounter:
    """Frame counter shared by all workers."""

    def __init__(self, total: int, callback: FrameProgressCallback):
        self.total = total
        self._value = 0
        self._lock = threading.Lock()
        self._callback = callback

    def increment(self):
        with self._lock:
            self._value += 1
            current = self._value
            if self._callback:
                self._callback(current, self.total)

    @property
    def value(self) -> int:
        return self._value


class FrameOCRScheduler:
    """
    Runs OCR over a frame list with a pool of worker threads.

    Usage:
        scheduler = FrameOCRScheduler(lambda: RapidOCREngine(), workers=4)
        observations = scheduler.run(frames, fps=2.0, token=CancellationToken("job-1"))
    """

    def __init__(self, engine_factory: EngineFactory, workers: int = 1, throttle=None):
        self.engine_factory = engine_factory
        self.workers = max(1, int(workers))
        self.throttle = throttle

    def run(
        self,
        frames: List[FrameImage],
        fps: float,
        token: Optional[CancellationToken] = None,
        progress_cb: FrameProgressCallback = None
    ) -> List[FrameObservation]:
        """
        Recognize all frames.

        Args:
            frames: Frames in frame_index order.
            fps: Frame rate used to derive timestamps from frame indices.
            token: Cancellation token polled by the workers.
            progress_cb: Optional (processed, total) callback, called once
                per frame from worker threads.

        Returns:
            FrameObservations sorted by frame_index.

        Raises:
            ConfigurationError: fps <= 0.
            EngineInitializationError: A worker could not build its engine.
            CancellationError: The token was cancelled.
        """
        if fps <= 0:
            raise ConfigurationError("FPS must be greater than 0")

        if not frames:
            return []

        token = token or CancellationToken()
        total = len(frames)
        chunk_size = math.ceil(total / self.workers)
        chunks = [frames[i:i + chunk_size] for i in range(0, total, chunk_size)]
        counter = _ProgressCounter(total, progress_cb)
        abort = threading.Event()

        logger.info(
            f"Running OCR on {total} frames with {len(chunks)} workers "
            f"(chunk size {chunk_size})"
        )

        results: List[FrameObservation] = []
        fatal: Optional[BaseException] = None
        cancelled: Optional[CancellationError] = None

        with ThreadPoolExecutor(max_workers=len(chunks), thread_name_prefix="ocr") as executor:
            futures = [
                executor.submit(self._process_chunk, chunk, fps, token, abort, counter)
                for chunk in chunks
            ]
            try:
                for future in as_completed(futures):
                    try:
                        results.extend(future.result())
                    except CancellationError as e:
                        cancelled = cancelled or e
                    except Exception as e:
                        if fatal is None:
                            fatal = e
                            abort.set()
            except KeyboardInterrupt:
                token.cancel()
                raise

        if fatal is not None:
            raise fatal
        if cancelled is not None:
            logger.warning(f"OCR cancelled after {counter.value}/{total} frames")
            raise cancelled

        results.sort(key=lambda obs: obs.frame_index)

        logger.info(f"OCR complete: {len(results)} observations from {total} frames")
        return results

    def _process_chunk(
        self,
        chunk: List[FrameImage],
        fps: float,
        token: CancellationToken,
        abort: threading.Event,
        counter: _ProgressCounter
    ) -> List[FrameObservation]:
        """Worker body: build an engine, then recognize the chunk in order."""
        token.raise_if_cancelled()

        try:
            engine = self.engine_factory()
        except EngineInitializationError:
            raise
        except Exception as e:
            raise EngineInitializationError(f"Failed to create OCR engine: {e}") from e

        observations = []
        for frame in chunk:
            token.raise_if_cancelled()
            if abort.is_set():
                break

            try:
                observations.append(self._recognize_frame(engine, frame, fps))
            except FrameRecognitionError as e:
                logger.warning(f"Skipping frame: {e}")

            counter.increment()
            if self.throttle is not None:
                self.throttle.throttle_if_needed()

        return observations

    def _recognize_frame(self, engine: OCREngine, frame: FrameImage, fps: float) -> FrameObservation:
        image = self._load_image(frame)
        try:
            regions = engine.recognize(image)
        except Exception as e:
            raise FrameRecognitionError(frame.frame_index, f"recognition failed: {e}") from e

        text, confidence = merge_regions(regions)
        return FrameObservation(
            frame_index=frame.frame_index,
            time_ms=frame_time_ms(frame.frame_index, fps),
            text=text,
            confidence=confidence,
        )

    @staticmethod
    def _load_image(frame: FrameImage) -> np.ndarray:
        if frame.image is not None:
            return frame.image
        if frame.path is None:
            raise FrameRecognitionError(frame.frame_index, "no image or path")

        image = cv2.imread(str(frame.path))
        if image is None:
            raise FrameRecognitionError(frame.frame_index, f"could not decode {frame.path}")
        return image


def frame_time_ms(frame_index: int, fps: float) -> int:
    """Presentation time of a frame in milliseconds."""
    return int(round(frame_index * 1000.0 / fps))
