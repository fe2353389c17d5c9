"""
Firebase Authentication backend.

End-user sign in goes through the Identity Toolkit REST API (the same API
the Firebase JS SDK uses): ``createAuthUri`` starts a redirect login,
``signInWithIdp`` completes it, and the Secure Token API refreshes ID tokens.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from ...core.exceptions import AuthenticationException, ConfigurationException, ValidationException
from ...models.session import AuthChangeEvent, Session
from ..session_storage import SessionFileStore
from .base import AuthBackend

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

# Statuses securetoken answers with for INVALID_REFRESH_TOKEN, TOKEN_EXPIRED and USER_DISABLED
REVOKED_STATUSES = (400, 401, 403)

PROVIDER_IDS = {
    "google": "google.com",
    "github": "github.com",
    "facebook": "facebook.com",
    "microsoft": "microsoft.com",
    "apple": "apple.com",
    "twitter": "twitter.com",
}


def _expiry(expires_in: Any) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))


def _error_code(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP_{response.status_code}"


class FirebaseAuthBackend(AuthBackend):
    """Session lifecycle against Firebase Authentication"""

    def __init__(
        self,
        api_key: Optional[str],
        storage: SessionFileStore,
        client: Optional[httpx.AsyncClient] = None,
        refresh_margin: int = 60,
        timeout: float = 10.0,
    ):
        super().__init__()
        if not api_key:
            raise ConfigurationException("FIREBASE_WEB_API_KEY not configured")
        self._api_key = api_key
        self._storage = storage
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._refresh_margin = refresh_margin
        self._session: Optional[Session] = None
        self._restored = False
        self._pending: Optional[Dict[str, str]] = None

    @property
    def current_session(self) -> Optional[Session]:
        return self._session

    async def _post(self, url: str, *, json: Optional[dict] = None, data: Optional[dict] = None) -> Dict[str, Any]:
        try:
            response = await self._client.post(url, params={"key": self._api_key}, json=json, data=data)
        except httpx.RequestError as e:
            logger.error(f"Error connecting to Firebase Authentication: {str(e)}")
            raise AuthenticationException(
                "Could not reach Firebase Authentication",
                details={"error": str(e)}
            )

        if response.status_code >= 400:
            code = _error_code(response)
            logger.warning(f"Firebase Authentication rejected request ({response.status_code}): {code}")
            raise AuthenticationException(
                f"Firebase Authentication rejected the request: {code}",
                details={"code": code, "status": response.status_code}
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.error(f"Unreadable Firebase Authentication response: {response.text[:200]}")
            raise AuthenticationException(
                "Firebase Authentication returned an unreadable response",
                details={"error": "response body is not a JSON object"}
            )
        return payload

    async def get_session(self) -> Optional[Session]:
        if not self._restored:
            self._session = await self._storage.load()
            self._restored = True

        if self._session is not None and self._session.expires_within(self._refresh_margin):
            await self.refresh_session()

        return self._session

    async def refresh_session(self) -> Session:
        """Exchange the refresh token for a new ID token"""
        if self._session is None:
            raise AuthenticationException("No session to refresh")

        try:
            payload = await self._post(
                SECURE_TOKEN_URL,
                data={"grant_type": "refresh_token", "refresh_token": self._session.refresh_token}
            )
        except AuthenticationException as e:
            if e.details.get("status") in REVOKED_STATUSES:
                # Refresh token revoked or user disabled: the session is gone
                await self._drop_session()
            raise

        try:
            session = self._session.model_copy(update={
                "user_id": payload.get("user_id", self._session.user_id),
                "access_token": payload["id_token"],
                "refresh_token": payload["refresh_token"],
                "expires_at": _expiry(payload["expires_in"]),
            })
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed token refresh response: {str(e)}")
            raise AuthenticationException("Malformed token refresh response", details={"error": str(e)})

        await self._persist(session)
        self._session = session
        self._emit(AuthChangeEvent.TOKEN_REFRESHED, session)
        return session

    async def _persist(self, session: Session) -> None:
        try:
            await self._storage.save(session)
        except OSError as e:
            logger.error(f"Could not save session to {self._storage.path}: {str(e)}")
            raise AuthenticationException("Could not save session", details={"error": str(e)})

    async def access_token(self) -> Optional[str]:
        """Current ID token, refreshed first when close to expiry"""
        session = await self.get_session()
        return session.access_token if session else None

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        provider_id = PROVIDER_IDS.get(provider.lower())
        if provider_id is None:
            raise ValidationException(
                f"Unsupported sign in provider: {provider}",
                details={"supported": sorted(PROVIDER_IDS)}
            )

        payload = await self._post(
            f"{IDENTITY_TOOLKIT_URL}:createAuthUri",
            json={"providerId": provider_id, "continueUri": redirect_to}
        )
        self._pending = {"session_id": payload["sessionId"], "provider": provider_id}
        logger.info(f"Started {provider_id} sign in")
        return payload["authUri"]

    async def exchange_redirect(self, callback_url: str) -> Session:
        if self._pending is None:
            raise AuthenticationException("No sign in in progress")

        pending = self._pending
        payload = await self._post(
            f"{IDENTITY_TOOLKIT_URL}:signInWithIdp",
            json={
                "requestUri": callback_url,
                "sessionId": pending["session_id"],
                "returnSecureToken": True,
                "returnIdpCredential": True,
            }
        )
        self._pending = None

        try:
            session = Session(
                user_id=payload["localId"],
                access_token=payload["idToken"],
                refresh_token=payload["refreshToken"],
                expires_at=_expiry(payload["expiresIn"]),
                email=payload.get("email"),
                provider=payload.get("providerId", pending["provider"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed sign in response: {str(e)}")
            raise AuthenticationException("Malformed sign in response", details={"error": str(e)})

        await self._persist(session)
        self._session = session
        self._restored = True
        logger.info(f"User {session.user_id} signed in with {session.provider}")
        self._emit(AuthChangeEvent.SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        self._pending = None
        await self._drop_session()

    async def _drop_session(self) -> None:
        had_session = self._session is not None
        self._session = None
        self._restored = True
        await self._storage.clear()
        if had_session:
            self._emit(AuthChangeEvent.SIGNED_OUT, None)

    async def aclose(self) -> None:
        await super().aclose()
        if self._owns_client:
            await self._client.aclose()
