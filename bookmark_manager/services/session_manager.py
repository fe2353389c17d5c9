"""
Session manager: the single owner of the current authentication identity
"""
import asyncio
import logging
from typing import Callable, List, Optional

from ..core.exceptions import BookmarkManagerException
from ..models.session import AuthChangeEvent, Session, SessionInfo
from .backend.base import AuthBackend, AuthCallback

logger = logging.getLogger(__name__)


class SessionManager:
    """Restores, tracks and ends the user's session"""

    def __init__(self, auth: AuthBackend, redirect_to: str):
        self._auth = auth
        self._redirect_to = redirect_to
        self._session: Optional[Session] = None
        self._ready = asyncio.Event()
        self._init_lock = asyncio.Lock()
        self._callbacks: List[AuthCallback] = []
        self._auth_subscription = auth.on_auth_state_change(self._handle_auth_change)

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def user_id(self) -> Optional[str]:
        return self._session.user_id if self._session else None

    @property
    def is_ready(self) -> bool:
        """True once the initial authentication check has finished"""
        return self._ready.is_set()

    def info(self) -> SessionInfo:
        if self._session is None:
            return SessionInfo(authenticated=False)
        return SessionInfo(
            authenticated=True,
            user_id=self._session.user_id,
            email=self._session.email,
            provider=self._session.provider,
        )

    async def initialize(self) -> Optional[Session]:
        """Restore the persisted session; runs the backend check only once"""
        async with self._init_lock:
            if self._ready.is_set():
                return self._session

            try:
                session = await self._auth.get_session()
            except BookmarkManagerException as e:
                logger.warning(f"Could not restore session, continuing signed out: {e.message}")
                session = None

            # A sign in that completed while restoring wins
            if self._session is None:
                self._session = session
            self._ready.set()

        if self._session:
            logger.info(f"Restored session for user {self._session.user_id}")
        else:
            logger.info("No persisted session")
        return self._session

    async def wait_ready(self) -> Optional[Session]:
        await self._ready.wait()
        return self._session

    def on_session_change(self, callback: AuthCallback) -> Callable[[], None]:
        """Register ``callback(event, session)``; returns a function that removes it"""
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def _handle_auth_change(self, event: AuthChangeEvent, session: Optional[Session]) -> None:
        self._session = session
        for callback in list(self._callbacks):
            callback(event, session)

    async def sign_in_with_provider(self, provider: str) -> str:
        """Start a redirect login; returns the URL the user must be sent to"""
        return await self._auth.sign_in_with_oauth(provider, self._redirect_to)

    async def complete_sign_in(self, callback_url: str) -> Session:
        return await self._auth.exchange_redirect(callback_url)

    async def sign_out(self) -> None:
        await self._auth.sign_out()
        # Backends emit SIGNED_OUT only when they held a session
        self._session = None

    def close(self) -> None:
        self._auth_subscription.unsubscribe()
        self._callbacks.clear()
