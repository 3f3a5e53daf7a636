"""Google OAuth 2.0 authorization-code flow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from .http_client import EndpointSpec, HttpClientError, HttpJsonClient

logger = logging.getLogger(__name__)

AUTHORIZATION_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"


class AuthExchangeError(Exception):
    """Authorization code could not be exchanged for an access token."""
    pass


@dataclass(frozen=True)
class Credential:
    access_token: str
    scope: str = DRIVE_SCOPE


@dataclass
class GatewaySession:
    """Holds the credential shared by every workflow admitted by one serializer."""
    credential: Optional[Credential] = None

    @property
    def is_authenticated(self) -> bool:
        return self.credential is not None

    def clear(self) -> None:
        self.credential = None


class OAuthTokenManager:
    """Builds the consent redirect and exchanges authorization codes."""

    def __init__(
        self,
        http: HttpJsonClient,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scope: str = DRIVE_SCOPE,
        authorization_base_url: str = AUTHORIZATION_BASE_URL,
        token_url: str = TOKEN_URL,
    ):
        self.http = http
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.authorization_base_url = authorization_base_url
        self.token_url = token_url

    def build_authorization_url(self) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self.authorization_base_url}?{urlencode(params)}"

    async def exchange_code(self, code: Optional[str], session: GatewaySession) -> Credential:
        """
        Exchange an authorization code and store the token in ``session``.

        The session is only modified when the exchange succeeds.

        Raises:
            AuthExchangeError: Code missing, request failed, or no token returned
        """
        if not code:
            raise AuthExchangeError("authorization code missing")

        post_data = urlencode({
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        })
        spec = EndpointSpec.from_url(
            self.token_url,
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        try:
            response = await self.http.request(spec, post_data)
        except HttpClientError as e:
            logger.error(f"Token exchange failed: {e}")
            raise AuthExchangeError(f"token exchange failed: {e}") from e

        access_token = response.get("access_token") if isinstance(response, dict) else None
        if not access_token:
            logger.error("Token endpoint response did not include an access token")
            raise AuthExchangeError("token endpoint returned no access_token")

        credential = Credential(
            access_token=access_token,
            scope=response.get("scope") or self.scope,
        )
        session.credential = credential
        logger.info("Access token received")
        return credential
