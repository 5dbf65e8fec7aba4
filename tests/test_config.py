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

    @pytest.mark.parametrize("section", ["camera", "motion", "detector", "recording", "log_path", "log_level"])
    def test_missing_required_section(self, valid_config, section):
        """Each required section is checked."""
        del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert section in error.lower()

    def test_preprocess_is_optional(self, valid_config):
        del valid_config["preprocess"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_invalid_device_id_type(self, valid_config):
        """device_id with invalid type fails."""
        valid_config["camera"]["device_id"] = [1, 2, 3]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error.lower()

    def test_negative_device_id(self, valid_config):
        valid_config["camera"]["device_id"] = -1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error.lower()

    def test_string_device_id_valid(self, valid_config):
        """String device_id (RTSP URL or video file) is valid."""
        valid_config["camera"]["device_id"] = "rtsp://192.168.1.1/stream"

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_invalid_resolution_length(self, valid_config):
        valid_config["camera"]["resolution"] = [1920]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "resolution" in error.lower()

    def test_invalid_fps(self, valid_config):
        valid_config["camera"]["fps"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "fps" in error.lower()

    def test_invalid_camera_backend(self, valid_config):
        valid_config["camera"]["backend"] = "picamera2"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "backend" in error.lower()

    def test_invalid_rotation(self, valid_config):
        valid_config["camera"]["rotate"] = 45

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "rotate" in error.lower()

    def test_invalid_roi(self, valid_config):
        valid_config["preprocess"]["roi"] = [0, 0, 100]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "roi" in error.lower()

    def test_invalid_scale(self, valid_config):
        valid_config["preprocess"]["scale"] = 2.0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "scale" in error.lower()

    def test_invalid_motion_threshold(self, valid_config):
        valid_config["motion"]["threshold"] = 300

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "threshold" in error.lower()

    def test_invalid_min_height_factor(self, valid_config):
        valid_config["motion"]["min_height_factor"] = 1.5

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "min_height_factor" in error.lower()

    def test_negative_duration(self, valid_config):
        valid_config["detector"]["min_time_after_entry"] = -1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "min_time_after_entry" in error.lower()

    def test_boolean_is_not_a_duration(self, valid_config):
        valid_config["detector"]["exit_delay"] = True

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "exit_delay" in error.lower()

    def test_invalid_heuristic(self, valid_config):
        valid_config["detector"]["heuristic"] = "optical_flow"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "heuristic" in error.lower()

    def test_coverage_heuristic_valid(self, valid_config):
        valid_config["detector"]["heuristic"] = "coverage"

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_invalid_fourcc(self, valid_config):
        valid_config["recording"]["fourcc"] = "h264x"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "fourcc" in error.lower()

    def test_invalid_diagnostics_max_images(self, valid_config):
        valid_config["diagnostics"] = {"enabled": True, "max_images": 0}

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "max_images" in error.lower()

    def test_invalid_log_level(self, valid_config):
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error.lower()


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_yaml(self, temp_config_dir):
        """Config loads from default.yaml when only it exists."""
        config_path = str(temp_config_dir / "config.yaml")

        config = load_config(config_path)

        assert config["camera"]["backend"] == "opencv"
        assert config["camera"]["resolution"] == [640, 480]
        assert config["detector"]["min_time_after_entry"] == 60

    def test_local_overrides_merge(self, temp_config_dir):
        """Local config.yaml overrides default.yaml."""
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("""
camera:
  device_id: "rtsp://10.0.0.5/stream"
detector:
  min_time_after_entry: 90
""")

        config = load_config(str(config_yaml))

        assert config["camera"]["device_id"] == "rtsp://10.0.0.5/stream"
        assert config["detector"]["min_time_after_entry"] == 90

        # Original values preserved
        assert config["camera"]["fps"] == 1
        assert config["detector"]["heuristic"] == "edge_trend"

    def test_explicit_config_applied_last(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("""
motion:
  threshold: 30
""")
        explicit = temp_config_dir / "night.yaml"
        explicit.write_text("""
motion:
  threshold: 20
""")

        config = load_config(str(explicit))

        assert config["motion"]["threshold"] == 20
        assert config["motion"]["erode_iterations"] == 8

    def test_loaded_defaults_validate(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))

        is_valid, error = validate_config(config)

        assert is_valid is True, error

    def test_invalid_yaml_exits(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("camera: [unclosed")

        with pytest.raises(SystemExit):
            load_config(str(temp_config_dir / "config.yaml"))


class TestShippedDefaults:
    def test_default_yaml_is_valid(self):
        path = os.path.join(os.path.dirname(__file__), "..", "config", "default.yaml")

        config = load_config(path)
        is_valid, error = validate_config(config)

        assert is_valid is True, error
