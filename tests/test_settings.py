"""
Tests for application settings
"""
import logging

import pytest
from pydantic import ValidationError

from config.settings import Settings, create_env_example, load_settings_from_file, setup_logging


class TestSettings:
    """Settings parsing"""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.domain == "https://bhumiconsultancy.in"
        assert settings.timezone == "Asia/Kolkata"
        assert settings.telegram_configured is False

    def test_placeholders_mean_unset(self):
        settings = Settings(
            _env_file=None,
            api_code="  ",
            telegram_bot_token="your_telegram_bot_token_here",
            telegram_chat_id="your_telegram_chat_id_here",
        )

        assert settings.api_code is None
        assert settings.telegram_bot_token is None
        assert settings.telegram_chat_id is None

    def test_telegram_configured(self):
        settings = Settings(_env_file=None, telegram_bot_token="123:abc", telegram_chat_id="-100")
        assert settings.telegram_configured is True

    def test_log_level(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, cors_origins="https://a.in, https://b.in,")
        assert settings.cors_origins_list == ["https://a.in", "https://b.in"]

    def test_trailing_slash_removed(self):
        settings = Settings(_env_file=None, domain="https://x.in/", upstream_api_url="http://api:8000/")

        assert settings.domain == "https://x.in"
        assert settings.upstream_api_url == "http://api:8000"

    def test_env_example_loads(self, tmp_path):
        path = tmp_path / ".env.example"
        create_env_example(str(path))

        settings = load_settings_from_file(str(path))

        assert settings.api_code == "change_me"
        assert settings.telegram_configured is False

    def test_setup_logging_creates_log_dir(self, tmp_path):
        log_file = tmp_path / "logs" / "api.log"
        settings = Settings(_env_file=None, log_file=log_file, log_level="WARNING")

        root_level = logging.getLogger().level
        setup_logging(settings)
        try:
            assert log_file.parent.is_dir()
            assert logging.getLogger().level == logging.WARNING
        finally:
            logging.getLogger().setLevel(root_level)
            for handler in logging.getLogger().handlers[:]:
                handler.close()
                logging.getLogger().removeHandler(handler)
