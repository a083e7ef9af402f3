"""
Tests for configuration loading and CLI overrides.
"""

import argparse

import pytest
from config import AppConfig, load_config


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "extraction:\n"
        "  sample_fps: 5\n"
        "  region_y: 0.75\n"
        "  region_height: 0.25\n"
        "cleanup:\n"
        "  similarity_threshold: 0.9\n"
        "  max_gap_ms: 400\n"
        "  bogus_key: 1\n"
        "output:\n"
        "  format: vtt\n",
        encoding="utf-8",
    )
    return path


class TestLoadConfig:

    def test_values_loaded(self, config_file):
        config = load_config(config_file)
        assert config.extraction.sample_fps == 5
        assert config.extraction.region == (0.0, 0.75, 1.0, 0.25)
        assert config.cleanup.similarity_threshold == 0.9
        assert config.cleanup.max_gap_ms == 400
        assert config.output.format == "vtt"

    def test_missing_sections_use_defaults(self, config_file):
        config = load_config(config_file)
        assert config.ocr.workers == 0
        assert config.cleanup.min_cue_duration_ms == 500
        assert config.cache.enabled is True

    def test_unknown_keys_ignored(self, config_file, caplog):
        config = load_config(config_file)
        assert not hasattr(config.cleanup, "bogus_key")
        assert "bogus_key" in caplog.text

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml")
        assert config == AppConfig()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == AppConfig()

    def test_bundled_defaults(self):
        config = load_config()
        assert config.cleanup.similarity_threshold == 0.92
        assert config.cleanup.merge_similar is True


class TestUpdateFromArgs:

    def test_overrides(self):
        config = AppConfig()
        args = argparse.Namespace(
            workers=3, sample_fps=4.0, min_confidence=0.0, no_merge=True,
            keep_urls=True, format="txt", max_cpu=50, region=[0.0, 0.8, 1.0, 0.2],
        )
        config.update_from_args(args)
        assert config.ocr.workers == 3
        assert config.extraction.sample_fps == 4.0
        assert config.cleanup.min_confidence == 0.0
        assert config.cleanup.merge_similar is False
        assert config.cleanup.filter_url_like is False
        assert config.output.format == "txt"
        assert config.max_cpu_percent == 50
        assert config.extraction.region == (0.0, 0.8, 1.0, 0.2)

    def test_unset_args_leave_config_alone(self):
        config = AppConfig()
        config.update_from_args(argparse.Namespace(
            workers=None, sample_fps=None, min_confidence=None, no_merge=False,
            keep_urls=False, format=None, max_cpu=None, region=None,
        ))
        assert config == AppConfig()
