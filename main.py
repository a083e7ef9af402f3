"""
Frame OCR Subtitle Generator — CLI Entry Point

Usage:
    python main.py video.mp4
    python main.py video.mp4 -o subtitles.srt
    python main.py video.mp4 --format vtt --workers 4
    python main.py video.mp4 --region 0 0.75 1 0.25 --sample-fps 4
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import Optional

from config import AppConfig, load_config
from ocr_pipeline.errors import CancellationError, OCRPipelineError
from ocr_pipeline.orchestrator import ProgressEvent, SubtitlePipeline
from ocr_pipeline.subtitle_writer import SUPPORTED_FORMATS

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130

NOISY_LOGGERS = ("RapidOCR", "rapidocr", "onnxruntime")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Send pipeline logs to stdout and, optionally, a log file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-7s | %(name)-24s | %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def print_summary(video: Path, output: Path, config: AppConfig):
    x, y, w, h = config.extraction.region
    print("=" * 58)
    print("  Frame OCR Subtitle Generator")
    print("  Burned-in subtitles  ->  SRT / VTT / TXT  (offline)")
    print("=" * 58)
    print(f"  Input:     {video}")
    print(f"  Output:    {output}")
    print(f"  Sampling:  {config.extraction.sample_fps:g} fps")
    print(f"  Region:    x={x:g} y={y:g} w={w:g} h={h:g}")
    print(f"  Workers:   {config.ocr.workers or 'Auto'}")
    print(f"  Merge:     {'Similar' if config.cleanup.merge_similar else 'Exact only'}")
    print(f"  CPU Limit: {config.max_cpu_percent}%")
    print()


def print_progress(event: ProgressEvent):
    """Single-line progress bar, redrawn in place."""
    width = 30
    filled = width * event.percent // 100
    bar = "#" * filled + "-" * (width - filled)
    status = f"{event.phase}: {event.message}"
    print(f"\r  [{bar}] {event.percent:3d}%  {status:<50}", end="", flush=True)
    if event.phase == "writing" and event.percent >= 100:
        print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Frame OCR Subtitle Generator — Extract burned-in subtitles "
                    "from video frames into a subtitle file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py movie.mp4                          # SRT next to the video
  python main.py movie.mp4 -f vtt                   # WebVTT output
  python main.py movie.mp4 --region 0 0.75 1 0.25   # OCR only the bottom quarter
  python main.py movie.mp4 --sample-fps 4           # Finer timing, slower
  python main.py movie.mp4 --no-merge               # Exact-match segmentation only
        """
    )

    parser.add_argument("video", type=Path,
                        help="Input video file (.mp4, .mkv, .avi, .webm, ...)")
    parser.add_argument("-o", "--output", type=Path, default=None,
                        help="Output path (default: video name with the format's extension)")
    parser.add_argument("-f", "--format", default=None, choices=SUPPORTED_FORMATS,
                        help="Output format (default: from config.yaml, usually 'srt')")

    ocr = parser.add_argument_group("OCR")
    ocr.add_argument("-w", "--workers", type=int, default=None,
                     help="Parallel OCR workers (default: one per CPU core)")
    ocr.add_argument("--sample-fps", type=float, default=None,
                     help="Frames sampled per second of video (default: 2)")
    ocr.add_argument("--region", type=float, nargs=4, default=None,
                     metavar=("X", "Y", "W", "H"),
                     help="Subtitle region relative to the frame, each 0-1")
    ocr.add_argument("--max-cpu", type=int, default=None,
                     help="Throttle OCR workers above this CPU percent (default: 70)")
    ocr.add_argument("--no-cache", action="store_true",
                     help="Re-run OCR even if cached observations exist")

    cleanup = parser.add_argument_group("Cleanup")
    cleanup.add_argument("--min-confidence", type=float, default=None,
                         help="Ignore readings below this OCR confidence (default: 0.5)")
    cleanup.add_argument("--no-merge", action="store_true",
                         help="Only group identical readings; disable similarity merging")
    cleanup.add_argument("--keep-urls", action="store_true",
                         help="Keep cues that look like URLs or domain names")

    parser.add_argument("--config", type=Path, default=None,
                        help="Custom config.yaml")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="DEBUG logging")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only warnings and the final result")
    return parser


def run(args) -> int:
    """Run the pipeline for parsed arguments; returns the process exit code."""
    if not args.video.exists():
        print(f"Error: Video file not found: {args.video}")
        return EXIT_FAILED

    config = load_config(args.config)
    config.update_from_args(args)
    if args.no_cache:
        config.cache.enabled = False

    output_path = args.output or args.video.with_suffix(f".{config.output.format}")

    if args.verbose:
        log_level = "DEBUG"
    elif args.quiet:
        log_level = "WARNING"
    else:
        log_level = config.logging.level
    setup_logging(level=log_level, log_file=config.logging.file)

    if not args.quiet:
        print_summary(args.video, output_path, config)

    try:
        pipeline = SubtitlePipeline(config)
        entries = pipeline.process(
            args.video, output_path,
            progress_cb=None if args.quiet else print_progress
        )
    except (KeyboardInterrupt, CancellationError):
        print("\n\n  [WARN] Processing cancelled.")
        return EXIT_CANCELLED
    except OCRPipelineError as e:
        print(f"\n  [ERROR] {type(e).__name__}: {e}")
        return EXIT_FAILED
    except (FileNotFoundError, RuntimeError) as e:
        print(f"\n  [ERROR] {e}")
        return EXIT_FAILED
    except Exception as e:
        logging.exception("Unexpected error")
        print(f"\n  [ERROR] Unexpected error: {e}")
        return EXIT_FAILED

    print(f"\n  [OK] {len(entries)} subtitles saved to: {output_path}")
    return EXIT_OK


def main():
    sys.exit(run(build_parser().parse_args()))


if __name__ == "__main__":
    main()
