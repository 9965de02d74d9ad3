"""Interactive login for the Telethon session used by the scanner.

Login itself is delegated to Telethon (QR login or phone code); this module
only collects the inputs and stores the resulting .session file.
"""

import asyncio
import logging
import os
from getpass import getpass

import qrcode
from telethon import TelegramClient, errors

LOGGER = logging.getLogger(__name__)

LOGIN_METHODS = ("qr", "phone")
QR_ATTEMPTS = 3
QR_TIMEOUT = 120


def default_login_method() -> str:
    method = (os.getenv("LOGIN_METHOD") or "qr").strip().lower()
    return method if method in LOGIN_METHODS else "qr"


async def _login_with_qr(client: TelegramClient) -> None:
    login = await client.qr_login()
    for attempt in range(1, QR_ATTEMPTS + 1):
        code = qrcode.QRCode(border=1)
        code.add_data(login.url)
        code.make(fit=True)
        code.print_ascii(invert=True)
        print(f"Scan with Telegram > Settings > Devices ({attempt}/{QR_ATTEMPTS})")
        try:
            await login.wait(timeout=QR_TIMEOUT)
            return
        except asyncio.TimeoutError:
            LOGGER.warning("QR login token expired, issuing a new one")
            await login.recreate()
    raise RuntimeError(f"QR login not confirmed after {QR_ATTEMPTS} attempts")


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    await client.sign_in(phone=phone, code=input("Login code: ").strip())


async def authorize(client: TelegramClient, method: str = "qr") -> None:
    """Log the client in unless the stored session is already authorized."""

    if await client.is_user_authorized():
        LOGGER.info("Session already authorized")
        return

    login = _login_with_phone if method == "phone" else _login_with_qr
    try:
        await login(client)
    except errors.SessionPasswordNeededError:
        # Both flows end here when the account has a cloud password.
        await client.sign_in(password=os.getenv("2FA") or getpass("2FA password: "))

    me = await client.get_me()
    LOGGER.info("Logged in as %s", getattr(me, "first_name", None) or getattr(me, "id", "unknown"))
