"""
Unit tests for WizardConfig.
"""

import json

import pytest

from wingetwizard.config import MAX_SEARCH_LIMIT, WizardConfig


class TestWizardConfig:
    """Tests for WizardConfig."""

    def test_defaults(self, tmp_path):
        """Test default values."""
        config = WizardConfig(data_dir=tmp_path)

        assert config.default_source == "winget"
        assert config.output_tail_chars == 4000
        assert config.search_limit == 50
        assert config.config_file == tmp_path / "config.json"
        assert config.ai_settings_file == tmp_path / "ai_settings.json"

    def test_env_overrides(self, monkeypatch, tmp_path):
        """Test that environment variables supply defaults."""
        monkeypatch.setenv("WINGETWIZARD_WINGET", r"C:\Tools\winget.exe")
        monkeypatch.setenv("WINGETWIZARD_HOME", str(tmp_path))

        config = WizardConfig()

        assert config.winget_path == r"C:\Tools\winget.exe"
        assert config.data_dir == tmp_path

    @pytest.mark.parametrize("changes", [
        {"list_timeout_seconds": 0},
        {"lifecycle_timeout_seconds": -1},
        {"output_tail_chars": 0},
        {"search_limit": 0},
        {"search_limit": MAX_SEARCH_LIMIT + 1},
        {"default_source": "chocolatey"},
        {"winget_path": "  "},
    ])
    def test_invalid_values(self, tmp_path, changes):
        """Test that out-of-range values are rejected."""
        with pytest.raises(ValueError):
            WizardConfig(data_dir=tmp_path, **changes)

    def test_with_updates_returns_copy(self, tmp_path):
        """Test that updates do not modify the original."""
        config = WizardConfig(data_dir=tmp_path)
        updated = config.with_updates(search_limit=10)

        assert updated.search_limit == 10
        assert config.search_limit == 50

    def test_with_updates_validates(self, tmp_path):
        """Test that updates go through validation."""
        config = WizardConfig(data_dir=tmp_path)
        with pytest.raises(ValueError):
            config.with_updates(search_limit=-5)

    def test_with_updates_unknown_field(self, tmp_path):
        """Test that unknown fields are rejected."""
        with pytest.raises(ValueError, match="Unknown config fields: colour"):
            WizardConfig(data_dir=tmp_path).with_updates(colour="blue")

    def test_frozen(self, tmp_path):
        """Test that fields cannot be assigned."""
        config = WizardConfig(data_dir=tmp_path)
        with pytest.raises(Exception):
            config.search_limit = 5

    def test_save_and_load(self, tmp_path):
        """Test round trip through disk."""
        config = WizardConfig(data_dir=tmp_path, search_limit=25, default_source="msstore")
        config.save()

        loaded = WizardConfig.load(config.config_file)

        assert loaded == config
        assert json.loads(config.config_file.read_text())["search_limit"] == 25

    def test_load_missing_file(self, tmp_path):
        """Test that a missing file gives defaults."""
        assert WizardConfig.load(tmp_path / "nope.json").search_limit == 50

    def test_load_corrupt_file(self, tmp_path):
        """Test that an unreadable or invalid file gives defaults."""
        corrupt = tmp_path / "config.json"
        corrupt.write_text("{broken")
        assert WizardConfig.load(corrupt).search_limit == 50

        invalid = tmp_path / "invalid.json"
        invalid.write_text(json.dumps({"search_limit": -1}))
        assert WizardConfig.load(invalid).search_limit == 50

    def test_from_dict_ignores_unknown_keys(self, tmp_path):
        """Test that unknown keys in stored files are ignored."""
        config = WizardConfig.from_dict({"data_dir": str(tmp_path), "future_option": True})
        assert config.data_dir == tmp_path
