"""
Token Manager - Bearer Credential Acquisition and Refresh

Supports:
- Password grant (client id + username + password + scope)
- Client-certificate grant (identity taken from the mutual-TLS session)
- Refresh-token grant, proactive refresh before long polling loops
- Token revoke (logout) and verify
- Legacy API-key login

Credential precedence for outgoing requests:
bearer access token > legacy API key > unauthenticated.

The current token is an immutable AccessToken value. Refresh builds a new
value and swaps it in under a lock, so concurrent readers never observe a
half-updated token.
"""

import re
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from ..errors import AuthenticationError
from ..logging import get_logger
from ..utils.config import DEFAULT_CLIENT_ID, DEFAULT_SCOPE
from ..utils.http import BackendClient
from .resources import (
    AuthorizeResponse,
    OAuthTokenResponse,
    UrlResource,
    VerifyTokenResponse,
    decode,
    expect_status,
)

logger = get_logger(__name__)

_DOTNET_DATE = re.compile(r"/Date\((\d+)\)/")


@dataclass(frozen=True)
class AccessToken:
    """Bearer credentials with their validity window."""
    access_token: str = ""
    refresh_token: str = ""
    expires: Optional[datetime] = None
    refresh_until: Optional[datetime] = None
    identity: str = ""
    scope: str = ""
    token_type: str = "Bearer"

    @property
    def valid_until(self) -> Optional[datetime]:
        return self.expires

    def is_expired(self, leeway: float = 0, now: Optional[datetime] = None) -> bool:
        """True when the token expires within ``leeway`` seconds. Unknown expiry never expires."""
        if self.expires is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now + timedelta(seconds=leeway) >= self.expires

    def can_refresh(self, now: Optional[datetime] = None) -> bool:
        if not self.refresh_token:
            return False
        if self.refresh_until is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now < self.refresh_until

    @classmethod
    def from_response(cls, response: OAuthTokenResponse, now: Optional[datetime] = None) -> "AccessToken":
        now = now or datetime.now(timezone.utc)
        if response.expires:
            expires = _from_epoch(response.expires)
        elif response.expires_in:
            expires = now + timedelta(seconds=response.expires_in)
        else:
            expires = None
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            expires=expires,
            refresh_until=_from_epoch(response.refresh_until) if response.refresh_until else None,
            identity=response.identity,
            scope=response.scope,
            token_type=response.token_type or "Bearer",
        )


@dataclass(frozen=True)
class APIKey:
    """Legacy API key with its validity, when the backend reports one."""
    key: str
    valid_until: Optional[datetime] = None


def _from_epoch(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def parse_valid_until(value: str) -> Optional[datetime]:
    """Parse the ``/Date(ms)/`` or ISO 8601 validity returned by legacy login."""
    if not value:
        return None
    match = _DOTNET_DATE.search(value)
    if match:
        return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class TokenManager:
    """
    Holds one connection's credentials and keeps the bearer token fresh.

    Usage:
        tokens = TokenManager(client, client_id="vcert-sdk")
        tokens.get_token_by_password("user", "secret")
        tokens.ensure_fresh(min_validity=300)
        headers = tokens.auth_headers()
    """

    def __init__(
        self,
        client: BackendClient,
        client_id: str = DEFAULT_CLIENT_ID,
        scope: str = DEFAULT_SCOPE,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        api_key: Optional[str] = None,
        refresh_leeway: float = 60,
    ):
        self.client = client
        self.client_id = client_id
        self.scope = scope
        self.refresh_leeway = refresh_leeway
        self._lock = threading.Lock()
        self._token: Optional[AccessToken] = None
        self._api_key: Optional[APIKey] = APIKey(api_key) if api_key else None

        if access_token or refresh_token:
            self._token = AccessToken(access_token=access_token or "", refresh_token=refresh_token or "")

    # =========================================================================
    # State
    # =========================================================================

    @property
    def token(self) -> Optional[AccessToken]:
        """Current token snapshot; replaced, never mutated."""
        return self._token

    @property
    def api_key(self) -> Optional[APIKey]:
        return self._api_key

    @property
    def valid_until(self) -> Optional[datetime]:
        token = self._token
        return token.valid_until if token else None

    def is_expired(self, leeway: Optional[float] = None) -> bool:
        token = self._token
        if token is None or not token.access_token:
            return True
        return token.is_expired(self.refresh_leeway if leeway is None else leeway)

    def _set_token(self, token: Optional[AccessToken]) -> None:
        with self._lock:
            self._token = token

    def auth_headers(self) -> Dict[str, str]:
        """Authentication header for the active scheme (may be empty)."""
        token = self._token
        if token is not None and token.access_token:
            return {"Authorization": f"Bearer {token.access_token}"}
        api_key = self._api_key
        if api_key is not None and api_key.key:
            return {"x-venafi-api-key": api_key.key}
        return {}

    # =========================================================================
    # Grants
    # =========================================================================

    def _grant(self, resource: UrlResource, payload: dict, grant: str) -> AccessToken:
        result = self.client.request("POST", resource.value, payload)
        expect_status(result, f"{grant} grant", (200,))
        response = decode(OAuthTokenResponse, result, f"{grant} grant")
        if not response.access_token:
            raise AuthenticationError("backend returned no access token", grant)
        token = AccessToken.from_response(response)
        self._set_token(token)
        logger.info(f"Obtained access token via {grant} grant for {token.identity or 'unknown identity'}")
        return token

    def get_token_by_password(
        self,
        username: str,
        password: str,
        scope: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> AccessToken:
        """Password grant."""
        if not username or not password:
            raise AuthenticationError("username and password are required", "password")
        payload = {
            "client_id": client_id or self.client_id,
            "username": username,
            "password": password,
            "scope": scope or self.scope,
        }
        return self._grant(UrlResource.AUTHORIZE_OAUTH, payload, "password")

    def get_token_by_certificate(
        self,
        scope: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> AccessToken:
        """Client-certificate grant; the session must carry a client identity."""
        payload = {"client_id": client_id or self.client_id}
        if scope or self.scope:
            payload["scope"] = scope or self.scope
        return self._grant(UrlResource.AUTHORIZE_CERTIFICATE, payload, "certificate")

    def refresh(self) -> AccessToken:
        """Refresh-token grant. Rotates both tokens."""
        token = self._token
        if token is None or not token.refresh_token:
            raise AuthenticationError("no refresh token available", "refresh")
        if not token.can_refresh():
            raise AuthenticationError("refresh token has expired", "refresh")
        payload = {"client_id": self.client_id, "refresh_token": token.refresh_token}
        refreshed = self._grant(UrlResource.REFRESH_ACCESS_TOKEN, payload, "refresh")
        if not refreshed.refresh_token:
            # Backends that do not rotate keep the previous refresh token valid
            refreshed = replace(refreshed, refresh_token=token.refresh_token, refresh_until=token.refresh_until)
            self._set_token(refreshed)
        return refreshed

    def ensure_fresh(self, min_validity: Optional[float] = None) -> Optional[AccessToken]:
        """
        Refresh the bearer token if it expires within ``min_validity`` seconds.

        Call before a long polling loop. API-key and unauthenticated
        connections are left as they are.
        """
        token = self._token
        if token is None:
            return None
        leeway = self.refresh_leeway if min_validity is None else min_validity
        if token.access_token and not token.is_expired(leeway):
            return token
        if token.refresh_token:
            logger.info("Access token expired or expiring, refreshing")
            return self.refresh()
        if not token.access_token:
            raise AuthenticationError("no access token and no refresh token", "refresh")
        # An expiring token without a refresh token is still used until rejected
        return token

    def revoke(self) -> None:
        """Revoke the current access token (logout)."""
        token = self._token
        if token is None or not token.access_token:
            raise AuthenticationError("no access token to revoke", "revoke")
        result = self.client.request("GET", UrlResource.REVOKE_ACCESS_TOKEN.value, headers=self.auth_headers())
        expect_status(result, "revoke access token", (200,))
        self._set_token(None)
        logger.info("Access token revoked")

    def verify(self) -> VerifyTokenResponse:
        """Ask the backend for the current token's identity and remaining validity."""
        result = self.client.request("GET", UrlResource.AUTHORIZE_VERIFY.value, headers=self.auth_headers())
        expect_status(result, "verify access token", (200,))
        return decode(VerifyTokenResponse, result, "verify access token")

    def authorize_api_key(self, username: str, password: str) -> APIKey:
        """Legacy login returning an API key."""
        if not username or not password:
            raise AuthenticationError("username and password are required", "api-key")
        result = self.client.request(
            "POST",
            UrlResource.AUTHORIZE.value,
            {"Username": username, "Password": password},
        )
        expect_status(result, "authorize", (200,))
        response = decode(AuthorizeResponse, result, "authorize")
        if not response.api_key:
            raise AuthenticationError("backend returned no API key", "api-key")
        api_key = APIKey(response.api_key, parse_valid_until(response.valid_until))
        with self._lock:
            self._api_key = api_key
        logger.info("Obtained legacy API key")
        return api_key
