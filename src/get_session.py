"""Interactive login for the user-account session.

Run directly to create the .session file. It prints the account's user id,
which is the id to list under ``authorized_users`` in keywords.json, and
checks the bot token when one is configured.
"""

import asyncio
import logging
import os
from getpass import getpass

import qrcode
from telethon import TelegramClient, errors

from client import build_bot_client, build_client

LOGGER = logging.getLogger(__name__)

QR_ATTEMPTS = 3
QR_TIMEOUT_SECONDS = 120

LOGIN_MENU = {"1": "qr", "2": "phone", "3": "exit"}


def _show_qr(url: str) -> None:
    code = qrcode.QRCode(border=1)
    code.add_data(url)
    code.make(fit=True)
    code.print_ascii(invert=True)


def _two_factor_password() -> str:
    return os.getenv("2FA") or getpass("2FA password: ")


async def _login_with_qr(client: TelegramClient) -> None:
    login = await client.qr_login()
    for attempt in range(1, QR_ATTEMPTS + 1):
        _show_qr(login.url)
        print("Scan with Telegram > Settings > Devices > Link Desktop Device")
        try:
            await login.wait(timeout=QR_TIMEOUT_SECONDS)
            return
        except asyncio.TimeoutError:
            if attempt == QR_ATTEMPTS:
                raise
            LOGGER.info("QR code expired, generating a new one (%s/%s)", attempt + 1, QR_ATTEMPTS)
            await login.recreate()


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    await client.sign_in(phone=phone, code=input("Login code: ").strip())


def _choose_method() -> str:
    configured = (os.getenv("LOGIN_METHOD") or "").strip().lower()
    if configured in ("qr", "phone"):
        return configured
    while True:
        print("\nHow do you want to log in?")
        print("[1] Scan a QR code")
        print("[2] Receive a login code")
        print("[3] Quit\n")
        method = LOGIN_MENU.get(input("nagwatch > ").strip())
        if method == "exit":
            raise SystemExit(0)
        if method:
            return method
        print("Please answer 1, 2 or 3.")


async def authorize(client: TelegramClient) -> None:
    """Log the user account in unless the session file is already authorized."""

    if await client.is_user_authorized():
        return
    login = _login_with_phone if _choose_method() == "phone" else _login_with_qr
    try:
        await login(client)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_two_factor_password())


async def _check_bot(token: str) -> None:
    bot = build_bot_client()
    await bot.start(bot_token=token)
    try:
        me = await bot.get_me()
        print(f"Bot token OK: @{me.username}. Open a chat with it and send /start.")
    finally:
        await bot.disconnect()


async def main() -> None:
    client = build_client()
    await client.connect()
    try:
        await authorize(client)
        me = await client.get_me()
        print(f"Logged in as {me.first_name} (user id {me.id})")
        print(f'Add "{me.id}" to authorized_users and admins in keywords.json to run the bot commands.')
        LOGGER.info("Session ready for user %s", me.id)
    finally:
        await client.disconnect()

    token = os.getenv("BOT_API")
    if token:
        await _check_bot(token)


if __name__ == "__main__":
    asyncio.run(main())
