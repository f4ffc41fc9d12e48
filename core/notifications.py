"""
Best-effort Telegram notifications about contact form submissions.
"""

import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Mapping, Optional
from zoneinfo import ZoneInfo

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.exceptions import TelegramAPIError, TelegramForbiddenError, TelegramUnauthorizedError
from aiogram.types import LinkPreviewOptions
from pydantic import BaseModel

from config.settings import Settings

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4096
MAX_FIELD_LENGTH = 500
TRUNCATION_NOTICE = "\n\n... [Message truncated due to length limit]"

CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')

TEST_MESSAGE = (
    "🤖 TEST MESSAGE\n\n"
    "Your Telegram notification bot is working. You will now receive alerts "
    "when someone contacts you through the website.\n\n"
    "✅ All systems operational"
)


class RateLimiter:
    """Refuses events closer than min_interval seconds to the last recorded one."""

    def __init__(self, min_interval: float = 2.0, clock: Callable[[], float] = time.monotonic):
        self.min_interval = min_interval
        self.clock = clock
        self.last_event: Optional[float] = None

    def allow(self) -> bool:
        if self.last_event is None:
            return True
        return self.clock() - self.last_event >= self.min_interval

    def mark(self) -> None:
        self.last_event = self.clock()

    def reset(self) -> None:
        self.last_event = None


class NotificationResult(BaseModel):
    """Outcome of a notification attempt."""
    success: bool
    reason: Optional[str] = None
    error: Optional[str] = None


def sanitize_text(value) -> str:
    """Strips control characters and caps the length of a message field."""
    if value is None or not str(value).strip():
        return "N/A"
    return CONTROL_CHARS.sub('', str(value).strip())[:MAX_FIELD_LENGTH]


def truncate_message(message: str) -> str:
    if len(message) <= MAX_MESSAGE_LENGTH:
        return message
    return message[:MAX_MESSAGE_LENGTH - 100] + TRUNCATION_NOTICE


def is_valid_contact(contact: Mapping) -> bool:
    """A notification needs a name and either an email or a subject."""
    if not isinstance(contact, Mapping):
        return False

    def present(key):
        return bool(str(contact.get(key) or "").strip())

    return present("name") and (present("email") or present("subject"))


class ContactNotifier:
    """Sends contact form submissions to a Telegram chat."""

    def __init__(self, bot_token: Optional[str], chat_id: Optional[str],
                 rate_limiter: Optional[RateLimiter] = None,
                 max_retries: int = 3,
                 retry_delay: float = 1.0,
                 timezone_name: str = "Asia/Kolkata",
                 admin_url: Optional[str] = None,
                 bot: Optional[Bot] = None,
                 sleep: Callable[[float], Awaitable] = asyncio.sleep):
        """
        Initializes the notifier.

        Args:
            bot_token: Telegram bot token
            chat_id: Chat that receives the notifications
            rate_limiter: Limiter shared by all sends of this notifier
            max_retries: Send attempts per notification
            retry_delay: Delay before the second attempt, doubled after each failure
            timezone_name: Timezone of the timestamp in the message
            admin_url: Admin panel link appended to the message
            bot: Pre-built bot, created lazily from the token when omitted
            sleep: Awaitable used between retries
        """
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.rate_limiter = rate_limiter or RateLimiter()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.tz = ZoneInfo(timezone_name)
        self.admin_url = admin_url
        self.sleep = sleep
        self.last_notification_at: Optional[datetime] = None

        self._bot = bot
        self._owns_bot = bot is None

    @classmethod
    def from_settings(cls, settings: Settings, bot: Optional[Bot] = None) -> "ContactNotifier":
        return cls(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            rate_limiter=RateLimiter(settings.notification_min_interval),
            max_retries=settings.notification_max_retries,
            retry_delay=settings.notification_retry_delay,
            timezone_name=settings.timezone,
            admin_url=f"{settings.domain}/admin",
            bot=bot,
        )

    @property
    def configured(self) -> bool:
        return bool(self.chat_id) and (self._bot is not None or bool(self.bot_token))

    def _get_bot(self) -> Bot:
        if self._bot is None:
            self._bot = Bot(token=self.bot_token, default=DefaultBotProperties(parse_mode=None))
            logger.info("Telegram bot initialized")
        return self._bot

    def _local_time(self) -> str:
        return datetime.now(timezone.utc).astimezone(self.tz).strftime('%d/%m/%Y, %H:%M:%S')

    def format_message(self, contact: Mapping) -> str:
        """Builds the plain-text notification for a contact submission."""
        lines = [
            "🔔 NEW CONTACT FORM SUBMISSION!",
            "",
            f"👤 Name: {sanitize_text(contact.get('name'))}",
            f"📧 Email: {sanitize_text(contact.get('email'))}",
        ]
        if contact.get("phone"):
            lines.append(f"📱 Phone: {sanitize_text(contact.get('phone'))}")
        lines.extend([
            f"📋 Subject: {sanitize_text(contact.get('subject'))}",
            "",
            "💬 Message:",
            sanitize_text(contact.get("message")),
            "",
            f"⏰ Time: {self._local_time()}",
        ])
        if self.admin_url:
            lines.extend(["", f"🔗 Check your admin panel: {self.admin_url}"])

        return truncate_message("\n".join(lines))

    async def _send_with_retry(self, text: str) -> None:
        """
        Sends a message, retrying with exponential backoff.

        Unauthorized and forbidden errors are raised immediately.
        """
        bot = self._get_bot()
        delay = self.retry_delay

        for attempt in range(1, self.max_retries + 1):
            try:
                await bot.send_message(
                    chat_id=self.chat_id,
                    text=text,
                    link_preview_options=LinkPreviewOptions(is_disabled=True),
                )
                return
            except (TelegramUnauthorizedError, TelegramForbiddenError):
                raise
            except TelegramAPIError as e:
                if attempt == self.max_retries:
                    raise
                logger.info(f"Telegram attempt {attempt} failed ({e}), retrying in {delay}s")
                await self.sleep(delay)
                delay *= 2

    def _log_fallback(self, contact, reason: str) -> None:
        if not isinstance(contact, Mapping):
            contact = {}
        logger.warning(
            "Contact submission not delivered to Telegram (%s): name=%s email=%s phone=%s subject=%s message=%s",
            reason,
            contact.get("name"),
            contact.get("email"),
            contact.get("phone"),
            contact.get("subject"),
            contact.get("message"),
        )

    async def notify(self, contact: Mapping) -> NotificationResult:
        """
        Notifies the configured chat about a contact submission.

        Never raises: every failure is logged together with the submission
        and reported in the result.

        Args:
            contact: name, email, phone, subject and message of the submission

        Returns:
            NotificationResult: success flag and, on failure, a reason
        """
        if not self.rate_limiter.allow():
            logger.info("Notification skipped: rate limited")
            return NotificationResult(success=False, reason="rate_limited")

        if not is_valid_contact(contact):
            self._log_fallback(contact, "invalid data")
            return NotificationResult(success=False, reason="invalid_data")

        if not self.configured:
            self._log_fallback(contact, "bot not configured")
            return NotificationResult(success=False, reason="bot_not_configured")

        try:
            await self._send_with_retry(self.format_message(contact))
        except TelegramUnauthorizedError as e:
            logger.error(f"Telegram rejected the bot token: {e}")
            self._log_fallback(contact, "invalid bot token")
            return NotificationResult(success=False, reason="telegram_api_error", error=str(e))
        except TelegramForbiddenError as e:
            logger.error(f"Bot is blocked or the chat ID is wrong: {e}")
            self._log_fallback(contact, "forbidden")
            return NotificationResult(success=False, reason="telegram_api_error", error=str(e))
        except Exception as e:
            logger.error(f"Failed to send Telegram notification: {e}")
            self._log_fallback(contact, str(e))
            return NotificationResult(success=False, reason="telegram_api_error", error=str(e))

        self.rate_limiter.mark()
        self.last_notification_at = datetime.now(timezone.utc)
        logger.info(f"Telegram notification sent for {sanitize_text(contact.get('email'))}")
        return NotificationResult(success=True)

    async def send_test_message(self) -> NotificationResult:
        """Sends a test message to the configured chat."""
        if not self.configured:
            return NotificationResult(
                success=False, reason="bot_not_configured",
                error="Check TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID"
            )

        try:
            await self._send_with_retry(TEST_MESSAGE)
        except TelegramUnauthorizedError:
            return NotificationResult(success=False, reason="telegram_api_error",
                                      error="Invalid bot token - check TELEGRAM_BOT_TOKEN")
        except TelegramForbiddenError:
            return NotificationResult(success=False, reason="telegram_api_error",
                                      error="Bot blocked or invalid chat ID - check TELEGRAM_CHAT_ID")
        except TelegramAPIError as e:
            return NotificationResult(success=False, reason="telegram_api_error", error=str(e))

        logger.info("Telegram test message sent")
        return NotificationResult(success=True)

    def status(self) -> Dict:
        return {
            "botInitialized": self._bot is not None,
            "tokenConfigured": bool(self.bot_token) or self._bot is not None,
            "chatIdConfigured": bool(self.chat_id),
            "lastNotificationTime": self.last_notification_at.isoformat() if self.last_notification_at else None,
        }

    async def close(self) -> None:
        """Closes the HTTP session of a bot created by this notifier."""
        if self._bot is not None and self._owns_bot:
            await self._bot.session.close()
            self._bot = None
