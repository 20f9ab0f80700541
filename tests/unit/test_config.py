"""Tests for emulator settings."""

import pytest

from mockaws.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        """Defaults apply when nothing is configured."""
        monkeypatch.chdir(tmp_path)
        for name in ("DATABASE_URL", "HOST", "PORT", "LOG_LEVEL"):
            monkeypatch.delenv(f"MOCKAWS_{name}", raising=False)

        settings = Settings()
        assert settings.database_url == "sqlite:///mockaws.sqlite"
        assert settings.host == "0.0.0.0"
        assert settings.port == 3000
        assert settings.log_level == "INFO"

    def test_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """MOCKAWS_ variables override defaults."""
        monkeypatch.setenv("MOCKAWS_DATABASE_URL", "sqlite://")
        monkeypatch.setenv("MOCKAWS_PORT", "8000")
        settings = Settings()
        assert settings.database_url == "sqlite://"
        assert settings.port == 8000

    def test_env_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        """Settings are read from a .env file in the working directory."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("MOCKAWS_LOG_LEVEL", raising=False)
        (tmp_path / ".env").write_text("MOCKAWS_LOG_LEVEL=DEBUG\nUNRELATED=1\n")
        assert Settings().log_level == "DEBUG"
