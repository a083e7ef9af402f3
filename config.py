"""
Configuration loader for the Frame OCR Subtitle Generator.
Loads from config.yaml and allows CLI argument overrides.
"""

import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


@dataclass
class ExtractionConfig:
    sample_fps: float = 2.0
    # Subtitle region, relative to the frame (0-1)
    region_x: float = 0.0
    region_y: float = 0.0
    region_width: float = 1.0
    region_height: float = 1.0
    image_format: str = "png"

    @property
    def region(self) -> Tuple[float, float, float, float]:
        return (self.region_x, self.region_y, self.region_width, self.region_height)


@dataclass
class OCRConfig:
    workers: int = 0  # 0 = auto-detect CPU cores
    det_model_path: Optional[str] = None
    rec_model_path: Optional[str] = None
    rec_keys_path: Optional[str] = None
    engine_threads: int = 1


@dataclass
class CleanupConfig:
    merge_similar: bool = True
    similarity_threshold: float = 0.92
    max_gap_ms: int = 250
    min_cue_duration_ms: int = 500
    filter_url_like: bool = True
    min_confidence: float = 0.5


@dataclass
class ThreadingConfig:
    max_cpu_percent: int = 70
    throttle_check_interval: float = 2.0


@dataclass
class CacheConfig:
    enabled: bool = True
    directory: str = "cache"


@dataclass
class OutputConfig:
    format: str = "srt"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    """Top-level application configuration."""
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)
    threading: ThreadingConfig = field(default_factory=ThreadingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def max_cpu_percent(self) -> int:
        return self.threading.max_cpu_percent

    def update_from_args(self, args):
        """Override config values from CLI arguments."""
        if getattr(args, "workers", None):
            self.ocr.workers = args.workers
        if getattr(args, "sample_fps", None):
            self.extraction.sample_fps = args.sample_fps
        if getattr(args, "min_confidence", None) is not None:
            self.cleanup.min_confidence = args.min_confidence
        if getattr(args, "no_merge", False):
            self.cleanup.merge_similar = False
        if getattr(args, "keep_urls", False):
            self.cleanup.filter_url_like = False
        if getattr(args, "format", None):
            self.output.format = args.format
        if getattr(args, "max_cpu", None):
            self.threading.max_cpu_percent = args.max_cpu
        if getattr(args, "region", None):
            x, y, w, h = args.region
            self.extraction.region_x, self.extraction.region_y = x, y
            self.extraction.region_width, self.extraction.region_height = w, h


def _dict_to_dataclass(cls, data: dict):
    """Convert a dict to a dataclass, ignoring unknown keys."""
    if data is None:
        return cls()
    field_names = {f.name for f in cls.__dataclass_fields__.values()}
    unknown = set(data) - field_names
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    filtered = {k: v for k, v in data.items() if k in field_names}
    return cls(**filtered)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.
    Falls back to defaults if file is missing.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning(f"Config file not found at {path}, using defaults.")
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    config = AppConfig(
        extraction=_dict_to_dataclass(ExtractionConfig, raw.get("extraction")),
        ocr=_dict_to_dataclass(OCRConfig, raw.get("ocr")),
        cleanup=_dict_to_dataclass(CleanupConfig, raw.get("cleanup")),
        threading=_dict_to_dataclass(ThreadingConfig, raw.get("threading")),
        cache=_dict_to_dataclass(CacheConfig, raw.get("cache")),
        output=_dict_to_dataclass(OutputConfig, raw.get("output")),
        logging=_dict_to_dataclass(LoggingConfig, raw.get("logging")),
    )

    logger.info(f"Configuration loaded from {path}")
    return config
