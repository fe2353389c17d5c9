"""
Live change listener scoped to the signed in user
"""
import logging
from typing import Callable, Optional

from ..core.config import settings
from .backend.base import ChangeEvent, ChangeFeedBackend, SubscriptionHandle

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]


class ChangeListener:
    """Holds at most one live feed subscription.

    Every event from the feed is reported as ``on_change(user_id)``; the
    event payload is never looked at.
    """

    def __init__(self, feed: ChangeFeedBackend, table_name: str = settings.BOOKMARKS_COLLECTION):
        self._feed = feed
        self._table_name = table_name
        self._handle: Optional[SubscriptionHandle] = None
        self._user_id: Optional[str] = None
        self._generation = 0

    @property
    def active_user_id(self) -> Optional[str]:
        return self._user_id if self._handle is not None else None

    async def subscribe(self, user_id: str, on_change: ChangeCallback) -> None:
        if self._handle is not None and self._user_id == user_id:
            return

        await self.unsubscribe()
        self._generation += 1
        generation = self._generation
        self._user_id = user_id

        def handle_event(event: ChangeEvent) -> None:
            if generation != self._generation or self._user_id != user_id:
                logger.debug(f"Dropped {event.type.value} event from a released subscription")
                return
            on_change(user_id)

        handle = await self._feed.subscribe(self._table_name, {"user_id": user_id}, handle_event)

        if generation != self._generation:
            # Released or replaced while the handshake was in flight
            await self._feed.unsubscribe(handle)
            return

        self._handle = handle
        logger.info(f"Listening for bookmark changes for user {user_id}")

    async def unsubscribe(self) -> None:
        self._generation += 1
        handle, self._handle = self._handle, None
        user_id, self._user_id = self._user_id, None
        if handle is not None:
            await self._feed.unsubscribe(handle)
            logger.info(f"Stopped listening for bookmark changes for user {user_id}")
