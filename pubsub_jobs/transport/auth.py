"""
Access token providers.

Token acquisition is kept apart from request construction so transports
can be tested with a static token and production code can use
Application Default Credentials.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

import google.auth
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request

from pubsub_jobs.constants import PUBSUB_SCOPE
from pubsub_jobs.errors import AuthError

logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    """Supplies bearer tokens for Pub/Sub API calls."""

    async def get_access_token(self) -> str: ...


class StaticTokenProvider:
    """Returns a fixed token. Used with the emulator and in tests."""

    def __init__(self, token: str):
        if not token:
            raise AuthError("Static access token must not be empty")
        self._token = token

    async def get_access_token(self) -> str:
        return self._token


class GoogleTokenProvider:
    """
    Token provider backed by Google Application Default Credentials.

    Credentials are resolved lazily on first use and refreshed whenever
    the cached token is no longer valid. google-auth is synchronous, so
    resolution and refresh run in a worker thread.
    """

    def __init__(self, scopes: Sequence[str] = (PUBSUB_SCOPE,)):
        """
        Initialize the provider.

        Args:
            scopes: OAuth scopes requested for the credentials.
        """
        self._scopes = list(scopes)
        self._credentials = None
        self._lock = asyncio.Lock()

    async def get_access_token(self) -> str:
        """
        Get a valid access token.

        Returns:
            The bearer token.

        Raises:
            AuthError: If credentials cannot be found or refreshed.
        """
        async with self._lock:
            try:
                token = await asyncio.to_thread(self._refresh_if_needed)
            except GoogleAuthError as e:
                logger.error("Access token acquisition failed", extra={"error": str(e)})
                raise AuthError(f"Could not obtain access token: {e}") from e

        if not token:
            raise AuthError("Credentials returned an empty access token")
        return token

    def _refresh_if_needed(self) -> str | None:
        if self._credentials is None:
            self._credentials, project = google.auth.default(scopes=self._scopes)
            logger.debug("Loaded default credentials", extra={"project": project})

        if not self._credentials.valid:
            self._credentials.refresh(Request())
            logger.debug("Refreshed access token")

        return self._credentials.token
