"""Telegram user-account transport adapter.

Sends notifications through the same Telethon session that reads channels.
The recipient "me" delivers to the account's Saved Messages.
"""

from __future__ import annotations

import logging
from typing import Union

from telethon import errors

from core.errors import SendError

LOGGER = logging.getLogger(__name__)


def _peer(recipient: str) -> Union[str, int]:
    value = str(recipient).strip()
    if value.lstrip("-").isdigit():
        return int(value)
    return value


class TelegramClientTransport:
    """TransportPort implementation backed by a Telethon client."""

    def __init__(self, client) -> None:
        self._client = client

    async def send_text(self, recipient: str, text: str) -> int:
        """Send plain text and return the sent message id."""

        try:
            message = await self._client.send_message(_peer(recipient), text.strip(), link_preview=False)
        except (errors.RPCError, ValueError, ConnectionError) as exc:
            raise SendError(f"send to {recipient}: {exc}") from exc
        return int(getattr(message, "id", 0) or 0)

    async def ping(self) -> None:
        try:
            me = await self._client.get_me()
        except (errors.RPCError, ConnectionError) as exc:
            raise SendError(f"get_me: {exc}") from exc
        if me is None:
            raise SendError("get_me: session is not authorized")
        LOGGER.info("Telegram account ready (id=%s)", getattr(me, "id", None))
