"""
Tests for FFmpeg frame extraction (FFmpeg itself is stubbed out).
"""

import subprocess

import pytest
from ocr_pipeline import frame_extractor
from ocr_pipeline.errors import CancellationError
from ocr_pipeline.frame_extractor import FrameExtractor
from ocr_pipeline.ocr_worker import CancellationToken


class FakeProcess:
    """Stands in for an ffmpeg Popen handle."""

    def __init__(self, cmd, frames=3, returncode=0, hang=False):
        self.cmd = cmd
        self.frames = frames
        self.hang = hang
        self.returncode = None
        self._final_code = returncode
        self.terminated = False
        self.killed = False

    def communicate(self, timeout=None):
        if self.hang:
            raise subprocess.TimeoutExpired(self.cmd, timeout)
        pattern = self.cmd[-1]
        for i in range(self.frames):
            with open(pattern % (i + 1), "wb") as f:
                f.write(b"png")
        self.returncode = self._final_code
        return "", "boom" if self._final_code else ""

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminated = True
        self.returncode = -15

    def kill(self):
        self.killed = True
        self.returncode = -9

    def wait(self):
        return self.returncode


@pytest.fixture
def extractor(monkeypatch):
    monkeypatch.setattr(FrameExtractor, "_verify_ffmpeg", lambda self: None)
    return FrameExtractor(sample_fps=2.0)


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"fake video")
    return path


@pytest.fixture
def frames_dir(monkeypatch, tmp_path):
    path = tmp_path / "frames"
    path.mkdir()
    monkeypatch.setattr(frame_extractor.tempfile, "mkdtemp", lambda prefix="": str(path))
    return path


def use_process(monkeypatch, **kwargs):
    created = []

    def popen(cmd, **_):
        proc = FakeProcess(cmd, **kwargs)
        created.append(proc)
        return proc

    monkeypatch.setattr(frame_extractor.subprocess, "Popen", popen)
    return created


class TestBuildFilter:

    def test_full_frame(self, monkeypatch):
        monkeypatch.setattr(FrameExtractor, "_verify_ffmpeg", lambda self: None)
        assert FrameExtractor(sample_fps=2.0).build_filter() == "fps=2"
        assert FrameExtractor(sample_fps=2.0, region=(0, 0, 1, 1)).build_filter() == "fps=2"

    def test_cropped(self, monkeypatch):
        monkeypatch.setattr(FrameExtractor, "_verify_ffmpeg", lambda self: None)
        extractor = FrameExtractor(sample_fps=4, region=(0.0, 0.75, 1.0, 0.25))
        assert extractor.build_filter() == "fps=4,crop=iw*1:ih*0.25:iw*0:ih*0.75"


class TestExtract:

    def test_frames_in_order(self, extractor, video, frames_dir, monkeypatch):
        created = use_process(monkeypatch, frames=3)
        frames = extractor.extract(video)
        assert [f.frame_index for f in frames] == [0, 1, 2]
        assert frames[0].path.name == "frame_000001.png"
        assert "fps=2" in created[0].cmd

    def test_missing_video(self, extractor, tmp_path):
        with pytest.raises(FileNotFoundError):
            extractor.extract(tmp_path / "missing.mp4")

    def test_ffmpeg_failure_cleans_up(self, extractor, video, frames_dir, monkeypatch):
        use_process(monkeypatch, frames=1, returncode=1)
        with pytest.raises(RuntimeError, match="boom"):
            extractor.extract(video)
        assert not frames_dir.exists()

    def test_cancellation_stops_ffmpeg(self, extractor, video, frames_dir, monkeypatch):
        created = use_process(monkeypatch, hang=True)
        token = CancellationToken("clip")
        token.cancel()
        with pytest.raises(CancellationError):
            extractor.extract(video, token=token)
        assert created[0].terminated
        assert not frames_dir.exists()
