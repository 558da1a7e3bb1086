"""
Google OAuth2 access tokens from a stored refresh token.
"""

from __future__ import annotations

import logging
from typing import Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class GoogleAuthenticator:
    """
    Exchanges the agent's refresh token for short-lived access tokens.

    The consent step that produced the refresh token happens outside this
    application; only the refresh grant is performed here. Access tokens are
    kept in memory until shortly before they expire.
    """

    TOKEN_URI = "https://oauth2.googleapis.com/token"
    EXPIRY_MARGIN_SECONDS = 60

    def __init__(self, client_id: str, client_secret: str, refresh_token: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self._access_token: Optional[str] = None
        self._expires_at: Optional[DateTime] = None

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, refreshing it when missing or expired.

        Raises:
            AuthenticationError: If the refresh grant fails
        """
        if not force_refresh and self._token_is_valid():
            return self._access_token

        return self._refresh()

    def _token_is_valid(self) -> bool:
        if not self._access_token or self._expires_at is None:
            return False
        return pendulum.now("UTC") < self._expires_at

    def _refresh(self) -> str:
        if not (self.client_id and self.client_secret and self.refresh_token):
            raise AuthenticationError(
                "Google credentials are incomplete: client_id, client_secret "
                "and refresh_token are required."
            )

        try:
            response = requests.post(
                self.TOKEN_URI,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=30,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"Failed to refresh Google access token: {exc}") from exc

        if "access_token" not in data:
            error = data.get("error_description") or data.get("error", "Unknown error")
            raise AuthenticationError(f"Authentication failed: {error}")

        expires_in = int(data.get("expires_in", 3600))
        self._access_token = data["access_token"]
        self._expires_at = pendulum.now("UTC").add(
            seconds=max(expires_in - self.EXPIRY_MARGIN_SECONDS, 0)
        )
        # Google rotates refresh tokens only occasionally
        self.refresh_token = data.get("refresh_token", self.refresh_token)

        logger.debug("Refreshed Google access token, valid until %s", self._expires_at)
        return self._access_token

    def clear_cache(self) -> None:
        """Forget the cached access token."""
        self._access_token = None
        self._expires_at = None
