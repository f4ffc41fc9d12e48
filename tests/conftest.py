"""
Shared test fixtures.
"""
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from config.settings import Settings
from core.database import DatabaseManager
from core.notifications import ContactNotifier, RateLimiter
from core.service import seed_sample_data

API_CODE = "test-api-code"

# Before the sample certificate expires on 2025-05-15
FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def settings():
    """Settings isolated from the environment and .env"""
    return Settings(
        _env_file=None,
        api_code=API_CODE,
        database_url="sqlite://",
        domain="https://bhumiconsultancy.in",
        upstream_api_url="http://upstream.test",
        telegram_bot_token=None,
        telegram_chat_id=None,
        log_file=None,
    )


@pytest.fixture
def db_manager():
    """Empty in-memory database"""
    manager = DatabaseManager("sqlite://")
    manager.create_tables()
    yield manager
    manager.dispose()


@pytest.fixture
def seeded_db(db_manager):
    """In-memory database with the sample catalogue, John Doe and his certificate"""
    seed_sample_data(db_manager)
    return db_manager


@pytest.fixture
def clock():
    """Fixed clock"""
    return lambda: FIXED_NOW


@pytest.fixture
def bot():
    """Telegram bot mock"""
    mock = AsyncMock()
    mock.send_message = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def notifier(bot):
    """Notifier wired to the bot mock, without delays between retries"""
    return ContactNotifier(
        bot_token=None,
        chat_id="100500",
        rate_limiter=RateLimiter(min_interval=2.0),
        admin_url="https://bhumiconsultancy.in/admin",
        bot=bot,
        sleep=AsyncMock(),
    )


@pytest.fixture
def auth_headers():
    return {"X-API-Code": API_CODE}
