"""
Abstract capability interfaces for the managed backend.

The core services only talk to these three interfaces:

* ``AuthBackend`` - sessions, auth state notifications, redirect login
* ``TableBackend`` - row CRUD returning ``Outcome`` values instead of raising
* ``ChangeFeedBackend`` - live row change notifications

Firebase implementations live next to this module; tests use in-memory fakes.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from ...models.session import AuthChangeEvent, Session

logger = logging.getLogger(__name__)

AuthCallback = Callable[[AuthChangeEvent, Optional[Session]], None]


class BackendError(BaseModel):
    message: str
    code: Optional[str] = None
    details: Dict[str, Any] = {}


class Outcome(BaseModel):
    """Result-or-error value returned by every table operation"""
    data: List[Dict[str, Any]] = []
    error: Optional[BackendError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, rows: Optional[List[Dict[str, Any]]] = None) -> "Outcome":
        return cls(data=rows or [])

    @classmethod
    def failure(cls, message: str, code: Optional[str] = None, **details: Any) -> "Outcome":
        return cls(error=BackendError(message=message, code=code, details=details))


class AuthSubscription:
    """Handle returned by ``AuthBackend.on_auth_state_change``"""

    def __init__(self, backend: "AuthBackend", callback: AuthCallback):
        self._backend = backend
        self.callback = callback

    def unsubscribe(self) -> None:
        self._backend._remove_listener(self)


class AuthBackend(ABC):
    """Authentication capability"""

    def __init__(self):
        self._listeners: List[AuthSubscription] = []

    def on_auth_state_change(self, callback: AuthCallback) -> AuthSubscription:
        subscription = AuthSubscription(self, callback)
        self._listeners.append(subscription)
        return subscription

    def _remove_listener(self, subscription: AuthSubscription) -> None:
        if subscription in self._listeners:
            self._listeners.remove(subscription)

    def _emit(self, event: AuthChangeEvent, session: Optional[Session]) -> None:
        """Deliver an auth transition to every listener in registration order"""
        logger.info(f"Auth state changed: {event.value}")
        for subscription in list(self._listeners):
            subscription.callback(event, session)

    @abstractmethod
    async def get_session(self) -> Optional[Session]:
        """Return the persisted session (refreshed if needed) or None"""

    @abstractmethod
    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        """Start a redirect login and return the URL to navigate to"""

    @abstractmethod
    async def exchange_redirect(self, callback_url: str) -> Session:
        """Finish a redirect login from the URL the provider sent the user back to"""

    @abstractmethod
    async def sign_out(self) -> None:
        """Invalidate the current session"""

    async def aclose(self) -> None:
        self._listeners.clear()


class TableBackend(ABC):
    """Table data capability. Ordinary failures come back as ``Outcome.error``."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Outcome:
        ...

    @abstractmethod
    async def insert(self, table: str, rows: List[Dict[str, Any]]) -> Outcome:
        ...

    @abstractmethod
    async def update(self, table: str, patch: Dict[str, Any], filters: Dict[str, Any]) -> Outcome:
        ...

    @abstractmethod
    async def delete(self, table: str, filters: Dict[str, Any]) -> Outcome:
        ...


class ChangeType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    table: str
    type: ChangeType
    row: Dict[str, Any] = {}


ChangeHandler = Callable[[ChangeEvent], None]


class SubscriptionHandle:
    """Live feed subscription; events stop being delivered once inactive"""

    def __init__(self, table: str, event_filter: Dict[str, Any], handler: ChangeHandler):
        self.table = table
        self.event_filter = dict(event_filter)
        self.handler = handler
        self.active = True
        self.resource: Any = None

    def deliver(self, event: ChangeEvent) -> None:
        if self.active:
            self.handler(event)


class ChangeFeedBackend(ABC):
    """Live change feed capability"""

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        event_filter: Dict[str, Any],
        handler: ChangeHandler,
    ) -> SubscriptionHandle:
        ...

    @abstractmethod
    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        ...
