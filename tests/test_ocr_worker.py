"""
Tests for the parallel frame OCR scheduler.
"""

import threading

import numpy as np
import pytest
from ocr_pipeline.errors import (
    CancellationError,
    ConfigurationError,
    EngineInitializationError,
)
from ocr_pipeline.ocr_worker import (
    CancellationToken,
    FrameImage,
    FrameOCRScheduler,
    TextRegion,
    frame_time_ms,
    merge_regions,
)


class FakeEngine:
    """Reads the frame number back out of a 1x1 image."""

    def __init__(self, fail_on=(), on_frame=None):
        self.fail_on = set(fail_on)
        self.on_frame = on_frame
        self.seen = []

    def recognize(self, image):
        idx = int(image[0, 0])
        self.seen.append(idx)
        if self.on_frame:
            self.on_frame(idx)
        if idx in self.fail_on:
            raise RuntimeError("engine crashed")
        return [TextRegion(bbox_top=0.0, text=f"line {idx}", confidence=0.9)]


def make_frames(count):
    return [FrameImage(frame_index=i, image=np.full((1, 1), i, dtype=np.int32)) for i in range(count)]


class TestMergeRegions:

    def test_orders_top_to_bottom(self):
        text, conf = merge_regions([
            TextRegion(bbox_top=80.0, text="second line", confidence=0.8),
            TextRegion(bbox_top=10.0, text="first line", confidence=1.0),
        ])
        assert text == "first line second line"
        assert conf == pytest.approx(0.9)

    def test_ignores_blank_regions(self):
        text, conf = merge_regions([
            TextRegion(bbox_top=0.0, text="  ", confidence=0.1),
            TextRegion(bbox_top=5.0, text=" hello ", confidence=0.7),
        ])
        assert text == "hello"
        assert conf == pytest.approx(0.7)

    def test_empty(self):
        assert merge_regions([]) == ("", 0.0)


class TestFrameOCRScheduler:

    def test_results_sorted_by_frame_index(self):
        scheduler = FrameOCRScheduler(FakeEngine, workers=3)
        observations = scheduler.run(make_frames(10), fps=2.0)
        assert [o.frame_index for o in observations] == list(range(10))
        assert [o.time_ms for o in observations] == [i * 500 for i in range(10)]
        assert observations[3].text == "line 3"

    def test_one_engine_per_worker(self):
        engines = []
        lock = threading.Lock()

        def factory():
            engine = FakeEngine()
            with lock:
                engines.append(engine)
            return engine

        FrameOCRScheduler(factory, workers=3).run(make_frames(9), fps=1.0)
        assert len(engines) == 3
        # Each worker handles one contiguous chunk in order
        chunks = sorted(e.seen for e in engines)
        assert chunks == [[0, 1, 2], [3, 4, 5], [6, 7, 8]]

    def test_more_workers_than_frames(self):
        observations = FrameOCRScheduler(FakeEngine, workers=8).run(make_frames(2), fps=2.0)
        assert len(observations) == 2

    def test_failed_frame_is_skipped(self):
        progress = []
        scheduler = FrameOCRScheduler(lambda: FakeEngine(fail_on={2}), workers=1)
        observations = scheduler.run(
            make_frames(4), fps=2.0,
            progress_cb=lambda cur, total: progress.append((cur, total))
        )
        assert [o.frame_index for o in observations] == [0, 1, 3]
        assert progress[-1] == (4, 4)

    def test_missing_image_is_skipped(self):
        frames = make_frames(2) + [FrameImage(frame_index=2)]
        observations = FrameOCRScheduler(FakeEngine, workers=1).run(frames, fps=2.0)
        assert len(observations) == 2

    def test_undecodable_file_is_skipped(self, tmp_path):
        broken = tmp_path / "frame_000001.png"
        broken.write_bytes(b"not an image")
        frames = make_frames(1) + [FrameImage(frame_index=1, path=broken)]
        observations = FrameOCRScheduler(FakeEngine, workers=1).run(frames, fps=2.0)
        assert [o.frame_index for o in observations] == [0]

    def test_engine_factory_failure_is_fatal(self):
        def factory():
            raise ValueError("model missing")

        with pytest.raises(EngineInitializationError):
            FrameOCRScheduler(factory, workers=2).run(make_frames(4), fps=2.0)

    def test_cancelled_token(self):
        token = CancellationToken("job-1")
        token.cancel()
        with pytest.raises(CancellationError) as exc:
            FrameOCRScheduler(FakeEngine, workers=2).run(make_frames(4), fps=2.0, token=token)
        assert exc.value.job_id == "job-1"

    def test_cancel_during_run(self):
        token = CancellationToken("job-2")

        def factory():
            return FakeEngine(on_frame=lambda idx: token.cancel() if idx == 1 else None)

        with pytest.raises(CancellationError):
            FrameOCRScheduler(factory, workers=1).run(make_frames(6), fps=2.0, token=token)

    @pytest.mark.parametrize("fps", [0, -1.0])
    def test_invalid_fps(self, fps):
        with pytest.raises(ConfigurationError):
            FrameOCRScheduler(FakeEngine).run(make_frames(2), fps=fps)

    def test_empty_input(self):
        assert FrameOCRScheduler(FakeEngine, workers=4).run([], fps=2.0) == []

    def test_throttle_called_per_frame(self):
        class CountingThrottle:
            def __init__(self):
                self.calls = 0
                self._lock = threading.Lock()

            def throttle_if_needed(self):
                with self._lock:
                    self.calls += 1

        throttle = CountingThrottle()
        FrameOCRScheduler(FakeEngine, workers=2, throttle=throttle).run(make_frames(5), fps=2.0)
        assert throttle.calls == 5


class TestFrameTime:

    def test_rounds_to_nearest_ms(self):
        assert frame_time_ms(1, 3.0) == 333
        assert frame_time_ms(2, 3.0) == 667
        assert frame_time_ms(0, 29.97) == 0
