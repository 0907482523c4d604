"""Tests for engine settings."""

import pytest
import toml
from pydantic import ValidationError

from demandcast.config import EngineSettings, SpectralSettings


class TestEngineSettings:
    """Tests for EngineSettings."""

    def test_defaults(self):
        """Every section is populated with documented defaults."""
        settings = EngineSettings()

        assert settings.spectral.window_size == 7
        assert settings.spectral.num_components == 3
        assert settings.cross_validation.num_folds == 5
        assert settings.monitor.error_threshold == 0.2
        assert settings.monitor.alert_cooldown_hours == 24
        assert settings.online_learning.window_size == 30
        assert settings.error_handling.max_retries == 3
        assert settings.data_quality.z_score_threshold == 3.0

    def test_from_dict_partial(self):
        """Missing keys keep their defaults."""
        settings = EngineSettings.from_dict({"spectral": {"window_size": 14}})

        assert settings.spectral.window_size == 14
        assert settings.spectral.num_components == 3

    def test_unknown_key_rejected(self):
        """Typos in settings are errors."""
        with pytest.raises(ValidationError):
            EngineSettings.from_dict({"spectral": {"windowsize": 14}})

    @pytest.mark.parametrize(
        "section,values",
        [
            ("spectral", {"window_size": 31}),
            ("cross_validation", {"num_folds": 1}),
            ("online_learning", {"window_size": 6}),
            ("monitor", {"error_threshold": 0}),
        ],
    )
    def test_out_of_range_rejected(self, section, values):
        """Values outside their documented ranges are rejected."""
        with pytest.raises(ValidationError):
            EngineSettings.from_dict({section: values})

    def test_toml_round_trip(self, tmp_path):
        """Settings written to TOML load back unchanged."""
        settings = EngineSettings.from_dict(
            {"spectral": SpectralSettings(window_size=10).model_dump(), "logging": {"level": "debug"}}
        )

        path = settings.to_toml(tmp_path / "engine.toml")

        assert EngineSettings.from_toml(path) == settings

    def test_from_toml_file(self, tmp_path):
        """A hand-written TOML file configures selected sections."""
        path = tmp_path / "engine.toml"
        path.write_text(
            "[monitor]\nerror_threshold = 0.15\nalert_cooldown_hours = 12\n\n"
            "[optimizer]\nparallel = false\n"
        )

        settings = EngineSettings.from_toml(path)

        assert settings.monitor.error_threshold == 0.15
        assert settings.monitor.alert_cooldown_hours == 12
        assert settings.optimizer.parallel is False

    def test_invalid_toml(self, tmp_path):
        """Malformed TOML raises a decode error."""
        path = tmp_path / "engine.toml"
        path.write_text("[monitor\nerror_threshold = ")

        with pytest.raises(toml.TomlDecodeError):
            EngineSettings.from_toml(path)
