"""Google Calendar token handling (refresh + at-rest encryption)"""

import os
import logging
from typing import Tuple

import aiohttp
from cryptography.fernet import Fernet

from app.core.config import ENCRYPTION_KEY

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"

ENCRYPTION_KEY_CONFIGURED = bool(ENCRYPTION_KEY)
if not ENCRYPTION_KEY_CONFIGURED:
    # Tokens encrypted with a per-process key cannot be read after a restart
    logger.error("ENCRYPTION_KEY not set; calendar refresh tokens cannot be stored")
cipher_suite = Fernet(ENCRYPTION_KEY or Fernet.generate_key())


class GoogleCalendarAuthError(Exception):
    """Token refresh against Google failed."""


class GoogleCalendarOAuth:
    """Refresh access tokens for organizers that connected Google Calendar"""

    def __init__(self):
        self.client_id = os.getenv("GOOGLE_CLIENT_ID")
        self.client_secret = os.getenv("GOOGLE_CLIENT_SECRET")

        if not all([self.client_id, self.client_secret]):
            logger.warning("Google Calendar OAuth credentials not configured")

    async def refresh_access_token(self, refresh_token: str) -> Tuple[str, int]:
        """
        Use refresh token to get new access token

        Args:
            refresh_token: Refresh token from initial auth

        Returns:
            Tuple of (new_access_token, expires_in_seconds)
        """
        async with aiohttp.ClientSession() as session:
            async with session.post(
                TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            ) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    logger.error(f"Token refresh failed: {error_text}")
                    raise GoogleCalendarAuthError(f"Failed to refresh token: {resp.status}")

                data = await resp.json()
                access_token = data.get("access_token")
                expires_in = data.get("expires_in", 3600)

                if not access_token:
                    raise GoogleCalendarAuthError("No access token in response")

                logger.info("Successfully refreshed access token")
                return access_token, expires_in

    @staticmethod
    def can_store_tokens() -> bool:
        return ENCRYPTION_KEY_CONFIGURED

    @staticmethod
    def encrypt_token(token: str) -> str:
        """Encrypt refresh token for storage"""
        return cipher_suite.encrypt(token.encode()).decode()

    @staticmethod
    def decrypt_token(encrypted_token: str) -> str:
        """Decrypt stored refresh token"""
        return cipher_suite.decrypt(encrypted_token.encode()).decode()


# Singleton instance
google_oauth = GoogleCalendarOAuth()
