"""
Smoke tests for configuration loading and validation.
"""

import os
import pytest

from main import load_config, validate_config


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_passes(self, valid_config):
        """A complete valid config passes validation."""
        is_valid, error = validate_config(valid_config)

        assert is_valid is True
        assert error is None

    @pytest.mark.parametrize("section", ["camera", "enhancement", "vision", "storage", "log_path", "log_level"])
    def test_missing_section(self, valid_config, section):
        """Each required section is checked."""
        del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert section in error.lower()

    def test_unknown_facing(self, valid_config):
        valid_config["camera"]["preferred_facing"] = "sideways"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "preferred_facing" in error

    def test_rear_alias_accepted(self, valid_config):
        valid_config["camera"]["preferred_facing"] = "rear"
        assert validate_config(valid_config) == (True, None)

    def test_invalid_resolution(self, valid_config):
        valid_config["camera"]["resolution"] = [1280]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "resolution" in error

    def test_unsupported_backend(self, valid_config):
        valid_config["camera"]["backend"] = "picamera2"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "backend" in error

    def test_unknown_profile(self, valid_config):
        valid_config["enhancement"]["profile"] = "huge"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "profile" in error

    @pytest.mark.parametrize("quality", [0, 1.5, -0.2, "high"])
    def test_jpeg_quality_range(self, valid_config, quality):
        valid_config["enhancement"]["jpeg_quality"] = quality

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "jpeg_quality" in error

    @pytest.mark.parametrize("width", [0, -10, 720.5, True])
    def test_target_width(self, valid_config, width):
        valid_config["enhancement"]["target_width"] = width

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "target_width" in error

    def test_color_mode(self, valid_config):
        valid_config["enhancement"]["color_mode"] = "hsv"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "color_mode" in error

    def test_vision_endpoint_must_be_url(self, valid_config):
        valid_config["vision"]["endpoint"] = "localhost:3000"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "endpoint" in error

    def test_disabled_vision_skips_endpoint(self, valid_config):
        valid_config["vision"] = {"enabled": False}
        assert validate_config(valid_config) == (True, None)

    def test_invalid_log_level(self, valid_config):
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error


class TestLoadConfig:
    """Tests for layered config loading."""

    def test_loads_default_only(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["camera"]["resolution"] == [640, 480]
        assert config["enhancement"]["profile"] == "standard"

    def test_local_overrides_merge(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("""
enhancement:
  profile: "compact"
log_level: "DEBUG"
""")
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["enhancement"]["profile"] == "compact"
        # untouched keys from default.yaml survive the merge
        assert config["enhancement"]["color_mode"] == "gray"
        assert config["log_level"] == "DEBUG"

    def test_explicit_path_applies_last(self, temp_config_dir, tmp_path):
        (temp_config_dir / "config.yaml").write_text("log_level: DEBUG\n")
        explicit = temp_config_dir / "site.yaml"
        explicit.write_text("log_level: WARNING\ncamera:\n  fps: 15\n")

        config = load_config(str(explicit))

        assert config["log_level"] == "WARNING"
        assert config["camera"]["fps"] == 15
        assert config["camera"]["resolution"] == [640, 480]

    def test_default_config_is_valid(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))
        assert validate_config(config) == (True, None)

    def test_checked_in_default_is_valid(self):
        path = os.path.join(os.path.dirname(__file__), "..", "config", "config.yaml")
        config = load_config(path)
        assert validate_config(config) == (True, None)
