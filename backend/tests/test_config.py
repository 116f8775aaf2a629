"""Tests for environment-driven settings."""


class TestSettingsFromEnv:

    def test_defaults(self, monkeypatch):
        from dayhoff.config import DEFAULT_API_URL, DEFAULT_MODEL, Settings
        for name in ["ANTHROPIC_API_KEY", "CLAUDE_API_KEY", "CLAUDE_API_URL", "CLAUDE_MODEL",
                     "CLAUDE_TIMEOUT", "CLAUDE_MAX_TOKENS", "PROGRESS_STORE_DIR", "LOG_LEVEL"]:
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.api_key is None
        assert settings.ai_enabled is False
        assert settings.api_url == DEFAULT_API_URL
        assert settings.model == DEFAULT_MODEL
        assert settings.timeout == 30
        assert settings.progress_store_dir is None
        assert settings.log_level == "INFO"

    def test_overrides(self, monkeypatch):
        from dayhoff.config import Settings
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.setenv("CLAUDE_API_KEY", "sk-legacy")
        monkeypatch.setenv("CLAUDE_TIMEOUT", "12")
        monkeypatch.setenv("PROGRESS_STORE_DIR", "/tmp/progress")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = Settings.from_env()
        assert settings.api_key == "sk-legacy"
        assert settings.ai_enabled is True
        assert settings.timeout == 12
        assert settings.progress_store_dir == "/tmp/progress"
        assert settings.log_level == "DEBUG"

    def test_anthropic_key_preferred(self, monkeypatch):
        from dayhoff.config import Settings
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-primary")
        monkeypatch.setenv("CLAUDE_API_KEY", "sk-legacy")
        assert Settings.from_env().api_key == "sk-primary"


class TestConfigureLogging:

    def test_applies_level_and_format(self):
        import logging
        from unittest.mock import patch
        from dayhoff.config import LOG_FORMAT, configure_logging
        with patch("dayhoff.config.logging.basicConfig") as basic_config:
            configure_logging("debug")
        basic_config.assert_called_once_with(level=logging.DEBUG, format=LOG_FORMAT)

    def test_unknown_level_defaults_to_info(self):
        import logging
        from unittest.mock import patch
        from dayhoff.config import configure_logging
        with patch("dayhoff.config.logging.basicConfig") as basic_config:
            configure_logging("chatty")
        assert basic_config.call_args[1]["level"] == logging.INFO
