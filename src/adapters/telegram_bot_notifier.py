"""Telegram Bot API transport adapter.

Uses the Bot API for delivery so notifications can be routed via a bot chat.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any, Callable, Optional

from core.errors import SendError

LOGGER = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"


class TelegramBotTransport:
    """TransportPort implementation that sends messages via the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        timeout: float = 10.0,
        opener: Optional[Callable[..., Any]] = None,
    ) -> None:
        if not bot_token or not bot_token.strip():
            raise ValueError("bot token is required")
        self._bot_token = bot_token.strip()
        self._timeout = timeout
        self._opener = opener or urllib.request.urlopen

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{API_BASE}/bot{self._bot_token}/{method}"

    def _call(self, method: str, payload: Optional[dict] = None) -> Any:
        data = json.dumps(payload or {}).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        # We use a blocking HTTP call because sends are paced by the
        # dispatcher anyway; the adapter boundary makes it easy to swap for
        # an async client later.
        try:
            with self._opener(request, timeout=self._timeout) as response:
                body = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")
            raise SendError(f"Bot API {method} error {e.code}: {detail}") from e
        except (urllib.error.URLError, TimeoutError, ValueError) as e:
            raise SendError(f"Bot API {method} failed: {e}") from e

        if not isinstance(body, dict) or not body.get("ok"):
            description = body.get("description") if isinstance(body, dict) else body
            raise SendError(f"Bot API {method} rejected: {description}")
        return body.get("result")

    async def send_text(self, recipient: str, text: str) -> int:
        """Send plain text to a chat id and return the sent message id."""

        if not str(recipient).strip():
            raise SendError("recipient chat id is required")
        result = self._call(
            "sendMessage",
            {
                "chat_id": str(recipient).strip(),
                "text": text.strip(),
                "disable_web_page_preview": True,
            },
        )
        return int((result or {}).get("message_id", 0))

    async def ping(self) -> None:
        """Check the token with getMe and log the bot identity."""

        me = self._call("getMe") or {}
        LOGGER.info("Bot API ready as @%s (id=%s)", me.get("username"), me.get("id"))
