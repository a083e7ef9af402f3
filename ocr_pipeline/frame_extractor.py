"""
Frame Extractor — FFmpeg-based frame sampling from video files.

Dumps frames at a fixed sampling rate (optionally cropped to the subtitle
region) as numbered images in a temporary directory, ready for OCR.
"""

import shutil
import subprocess
import tempfile
import logging
from pathlib import Path
from typing import List, Optional

from .errors import CancellationError
from .ocr_worker import CancellationToken, FrameImage

logger = logging.getLogger(__name__)

POLL_INTERVAL_SEC = 0.5


class FrameExtractor:
    """Samples video frames to image files using FFmpeg."""

    def __init__(
        self,
        sample_fps: float = 2.0,
        region: Optional[tuple] = None,
        image_format: str = "png"
    ):
        """
        Args:
            sample_fps: Frames per second to sample.
            region: Optional (x, y, width, height) crop, relative 0-1.
            image_format: Output image extension (png, jpg, bmp).
        """
        self.sample_fps = sample_fps
        self.region = region
        self.image_format = image_format
        self._verify_ffmpeg()

    def _verify_ffmpeg(self):
        """Check that FFmpeg is available on the system PATH."""
        try:
            result = subprocess.run(
                ["ffmpeg", "-version"],
                capture_output=True, text=True, timeout=10
            )
            if result.returncode != 0:
                raise RuntimeError("FFmpeg returned non-zero exit code")
            version_line = result.stdout.split("\n")[0]
            logger.debug(f"FFmpeg found: {version_line}")
        except FileNotFoundError:
            raise RuntimeError(
                "FFmpeg not found. Please install FFmpeg and add it to PATH.\n"
                "Download: https://ffmpeg.org/download.html"
            )

    def build_filter(self) -> str:
        """FFmpeg video filter chain for sampling and cropping."""
        filters = [f"fps={self.sample_fps:g}"]
        if self.region is not None:
            x, y, w, h = self.region
            if (x, y, w, h) != (0.0, 0.0, 1.0, 1.0):
                filters.append(f"crop=iw*{w:g}:ih*{h:g}:iw*{x:g}:ih*{y:g}")
        return ",".join(filters)

    def extract(self, video_path: Path, token: Optional[CancellationToken] = None) -> List[FrameImage]:
        """
        Extract frames from a video file.

        Args:
            video_path: Path to the input video file.
            token: Optional cancellation token; cancelling terminates FFmpeg.

        Returns:
            FrameImages ordered by frame_index (0-based sample number).

        Raises:
            RuntimeError: If FFmpeg extraction fails.
            FileNotFoundError: If the video file doesn't exist.
            CancellationError: If the token is cancelled mid-extraction.
        """
        video_path = Path(video_path)
        if not video_path.exists():
            raise FileNotFoundError(f"Video file not found: {video_path}")

        output_dir = Path(tempfile.mkdtemp(prefix="ocrsub_frames_"))
        pattern = output_dir / f"frame_%06d.{self.image_format}"

        cmd = [
            "ffmpeg",
            "-i", str(video_path),
            "-vf", self.build_filter(),
            "-an",                          # No audio
            "-loglevel", "error",
            "-y",
            str(pattern)
        ]

        logger.info(f"Extracting frames: {video_path.name} @ {self.sample_fps:g} fps → {output_dir}")
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        proc = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True)
        try:
            while True:
                try:
                    _, stderr = proc.communicate(timeout=POLL_INTERVAL_SEC)
                    break
                except subprocess.TimeoutExpired:
                    if token is not None and token.cancelled:
                        proc.terminate()
                        proc.wait()
                        raise CancellationError(token.job_id)
        except BaseException:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            self.cleanup(output_dir)
            raise

        if proc.returncode != 0:
            self.cleanup(output_dir)
            raise RuntimeError(f"FFmpeg frame extraction failed:\n{stderr}")

        frames = [
            FrameImage(frame_index=i, path=path)
            for i, path in enumerate(sorted(output_dir.glob(f"frame_*.{self.image_format}")))
        ]

        logger.info(f"Frames extracted: {len(frames)} images ({output_dir})")
        return frames

    @staticmethod
    def cleanup(frames_dir: Path):
        """Remove a temporary frame directory."""
        frames_dir = Path(frames_dir)
        if frames_dir.exists():
            shutil.rmtree(frames_dir, ignore_errors=True)
            logger.debug(f"Cleaned up temp frames: {frames_dir}")
