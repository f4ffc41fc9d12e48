"""
Tests for Telegram contact notifications
"""
from unittest.mock import AsyncMock

import pytest
from aiogram.exceptions import TelegramNetworkError, TelegramUnauthorizedError
from aiogram.methods import SendMessage

from config.settings import Settings
from core.notifications import (
    MAX_MESSAGE_LENGTH, ContactNotifier, RateLimiter, is_valid_contact, sanitize_text, truncate_message
)

CONTACT = {
    "name": "Priya Nair",
    "email": "priya@example.com",
    "phone": "+919800000000",
    "subject": "Training enquiry",
    "message": "Do you run weekend batches?",
}


def telegram_error(error_class, message="error"):
    return error_class(method=SendMessage(chat_id=1, text="x"), message=message)


class TestRateLimiter:
    """Rate limiter with an injected clock"""

    def test_first_event_allowed(self):
        assert RateLimiter(2.0, clock=lambda: 100.0).allow() is True

    def test_refuses_within_interval(self):
        now = [100.0]
        limiter = RateLimiter(2.0, clock=lambda: now[0])
        limiter.mark()

        now[0] = 101.5
        assert limiter.allow() is False

        now[0] = 102.0
        assert limiter.allow() is True

    def test_reset(self):
        limiter = RateLimiter(60.0, clock=lambda: 5.0)
        limiter.mark()
        limiter.reset()
        assert limiter.allow() is True


class TestMessageHelpers:
    """Sanitizing and truncation"""

    def test_sanitize_strips_control_characters(self):
        assert sanitize_text("  Hello\x00\x07 world\x7f ") == "Hello world"

    def test_sanitize_caps_length(self):
        assert len(sanitize_text("a" * 2000)) == 500

    def test_sanitize_blank(self):
        assert sanitize_text(None) == "N/A"
        assert sanitize_text("   ") == "N/A"

    def test_truncate_long_message(self):
        message = truncate_message("x" * 5000)

        assert len(message) <= MAX_MESSAGE_LENGTH
        assert message.endswith("[Message truncated due to length limit]")

    def test_short_message_untouched(self):
        assert truncate_message("hello") == "hello"

    def test_contact_validity(self):
        assert is_valid_contact(CONTACT)
        assert is_valid_contact({"name": "A", "subject": "B"})
        assert not is_valid_contact({"name": "A"})
        assert not is_valid_contact({"email": "a@b.co", "subject": "B"})
        assert not is_valid_contact(None)


class TestContactNotifier:
    """ContactNotifier with a mocked bot"""

    async def test_sends_plain_text_without_previews(self, notifier, bot):
        result = await notifier.notify(CONTACT)

        assert result.success is True
        bot.send_message.assert_awaited_once()

        kwargs = bot.send_message.await_args.kwargs
        assert kwargs["chat_id"] == "100500"
        assert kwargs["link_preview_options"].is_disabled is True
        assert "Priya Nair" in kwargs["text"]
        assert "📱 Phone: +919800000000" in kwargs["text"]
        assert "https://bhumiconsultancy.in/admin" in kwargs["text"]

    async def test_phone_line_omitted_when_absent(self, notifier, bot):
        await notifier.notify({**CONTACT, "phone": None})
        assert "Phone" not in bot.send_message.await_args.kwargs["text"]

    async def test_rate_limited(self, notifier, bot):
        assert (await notifier.notify(CONTACT)).success is True

        result = await notifier.notify(CONTACT)

        assert result.success is False
        assert result.reason == "rate_limited"
        assert bot.send_message.await_count == 1

    async def test_invalid_data(self, notifier, bot):
        result = await notifier.notify({"name": "", "email": ""})

        assert result.reason == "invalid_data"
        bot.send_message.assert_not_awaited()

    async def test_not_configured(self):
        notifier = ContactNotifier(bot_token=None, chat_id=None)

        result = await notifier.notify(CONTACT)

        assert result.success is False
        assert result.reason == "bot_not_configured"

    async def test_retries_with_backoff(self, bot):
        sleep = AsyncMock()
        notifier = ContactNotifier(bot_token=None, chat_id="1", bot=bot, sleep=sleep,
                                   max_retries=3, retry_delay=1.0)
        bot.send_message.side_effect = [
            telegram_error(TelegramNetworkError),
            telegram_error(TelegramNetworkError),
            None,
        ]

        result = await notifier.notify(CONTACT)

        assert result.success is True
        assert bot.send_message.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_gives_up_after_max_retries(self, bot):
        notifier = ContactNotifier(bot_token=None, chat_id="1", bot=bot, sleep=AsyncMock(), max_retries=3)
        bot.send_message.side_effect = telegram_error(TelegramNetworkError, "timeout")

        result = await notifier.notify(CONTACT)

        assert result.success is False
        assert result.reason == "telegram_api_error"
        assert bot.send_message.await_count == 3
        # A failed send does not start the rate limit window
        assert notifier.rate_limiter.allow() is True

    async def test_unauthorized_is_not_retried(self, bot):
        notifier = ContactNotifier(bot_token=None, chat_id="1", bot=bot, sleep=AsyncMock())
        bot.send_message.side_effect = telegram_error(TelegramUnauthorizedError, "Unauthorized")

        result = await notifier.notify(CONTACT)

        assert result.success is False
        assert bot.send_message.await_count == 1

    async def test_failure_is_logged_as_fallback(self, bot, caplog):
        notifier = ContactNotifier(bot_token=None, chat_id="1", bot=bot, sleep=AsyncMock(), max_retries=1)
        bot.send_message.side_effect = telegram_error(TelegramNetworkError, "timeout")

        with caplog.at_level("WARNING", logger="core.notifications"):
            await notifier.notify(CONTACT)

        assert "priya@example.com" in caplog.text

    async def test_send_test_message(self, notifier, bot):
        result = await notifier.send_test_message()

        assert result.success is True
        assert "TEST MESSAGE" in bot.send_message.await_args.kwargs["text"]

    async def test_send_test_message_bad_token(self, notifier, bot):
        bot.send_message.side_effect = telegram_error(TelegramUnauthorizedError)

        result = await notifier.send_test_message()

        assert result.success is False
        assert "TELEGRAM_BOT_TOKEN" in result.error

    async def test_status_records_last_notification(self, notifier):
        assert notifier.status()["lastNotificationTime"] is None

        await notifier.notify(CONTACT)

        status = notifier.status()
        assert status["botInitialized"] is True
        assert status["lastNotificationTime"] is not None

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            telegram_bot_token="your_telegram_bot_token_here",
            telegram_chat_id="42",
            notification_min_interval=5,
        )

        notifier = ContactNotifier.from_settings(settings)

        assert notifier.configured is False
        assert notifier.rate_limiter.min_interval == 5
        assert notifier.admin_url == "https://bhumiconsultancy.in/admin"

    async def test_close_keeps_injected_bot(self, notifier, bot):
        await notifier.close()
        bot.session.close.assert_not_called()
