"""
Rice Notes Backend — OAuth Identity Provider
==============================================

What:  The provider half of Google sign-in: consent URL, code exchange,
       profile lookup.
How:   OAuthProvider is the abstract interface; GoogleOAuthProvider talks to
       Google's endpoints with one shared httpx.AsyncClient.
Who:   Used only by TokenService. Tests substitute a fake provider or an
       httpx.MockTransport.

Resilience:
    - exchange_code is NOT retried: authorization codes are single-use, so a
      retry after a lost response would always fail anyway.
    - fetch_profile is idempotent and is retried with tenacity (exponential
      backoff with jitter) on transport errors and 5xx responses.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ricenotes.exceptions import CodeExchangeError, ProfileFetchError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
OAUTH_SCOPES = ("openid", "email", "profile")


@dataclass(frozen=True)
class IdentityClaims:
    """Profile returned by the identity provider after a successful exchange."""
    email: str
    name: str = ""
    picture: str = ""
    email_verified: bool = False


class _TransientProviderError(Exception):
    """Retryable profile fetch failure (5xx)."""


class OAuthProvider(ABC):
    @abstractmethod
    def authorization_url(self, state: str) -> str:
        """Consent page URL carrying `state`. Pure; no I/O."""
        ...

    @abstractmethod
    async def exchange_code(self, code: str) -> str:
        """
        Trade an authorization code for an access token.

        Raises:
            CodeExchangeError: Rejected code or provider unreachable.
        """
        ...

    @abstractmethod
    async def fetch_profile(self, access_token: str) -> IdentityClaims:
        """
        Load the signed-in user's profile.

        Raises:
            ProfileFetchError: Profile could not be retrieved.
        """
        ...


class GoogleOAuthProvider(OAuthProvider):
    """
    Google OAuth 2.0 web-server flow.

    Args:
        client_id / client_secret: OAuth client credentials
        redirect_url: Must match the redirect URI registered with Google
        client: Optional pre-built httpx.AsyncClient (tests inject one with a
                MockTransport); otherwise one is created with `timeout`
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        retry_attempts: int = 3,
        retry_min_wait: float = 0.5,
        retry_max_wait: float = 4.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._retry_attempts = retry_attempts
        self._retry_min_wait = retry_min_wait
        self._retry_max_wait = retry_max_wait

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "response_type": "code",
            "scope": " ".join(OAUTH_SCOPES),
            "access_type": "offline",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        data = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_url,
            "grant_type": "authorization_code",
        }
        try:
            response = await self._client.post(GOOGLE_TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            logger.error("Token endpoint unreachable: %s", type(e).__name__)
            raise CodeExchangeError(context={"error_type": type(e).__name__}) from e

        if response.status_code != 200:
            logger.warning("Code exchange rejected with status %d", response.status_code)
            raise CodeExchangeError(context={"status": response.status_code})

        try:
            access_token = response.json()["access_token"]
        except (ValueError, KeyError) as e:
            logger.error("Token response missing access_token")
            raise CodeExchangeError(context={"error": "malformed token response"}) from e

        return access_token

    async def fetch_profile(self, access_token: str) -> IdentityClaims:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((httpx.TransportError, _TransientProviderError)),
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential(
                    multiplier=self._retry_min_wait,
                    max=self._retry_max_wait,
                )
                + wait_random(0, self._retry_min_wait),
                before_sleep=before_sleep_log(logger, logging.WARNING),
            ):
                with attempt:
                    response = await self._client.get(
                        GOOGLE_USERINFO_URL,
                        headers={"Authorization": f"Bearer {access_token}"},
                    )
                    if response.status_code >= 500:
                        raise _TransientProviderError(f"userinfo returned {response.status_code}")
        except RetryError as e:
            cause = e.last_attempt.exception() if e.last_attempt else None
            logger.error(
                "Profile fetch failed after %d attempts: %s",
                self._retry_attempts,
                str(cause),
            )
            raise ProfileFetchError(context={"attempts": self._retry_attempts}) from e
        except httpx.HTTPError as e:
            logger.error("Profile fetch failed: %s", type(e).__name__)
            raise ProfileFetchError(context={"error_type": type(e).__name__}) from e

        if response.status_code != 200:
            logger.error("Userinfo request returned status %d", response.status_code)
            raise ProfileFetchError(context={"status": response.status_code})

        try:
            payload = response.json()
        except ValueError as e:
            raise ProfileFetchError(context={"error": "malformed userinfo response"}) from e

        return IdentityClaims(
            email=payload.get("email", ""),
            name=payload.get("name", ""),
            picture=payload.get("picture", ""),
            # v2 userinfo reports "verified_email"; OIDC userinfo uses "email_verified"
            email_verified=bool(payload.get("verified_email", payload.get("email_verified", False))),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
