"""
Client-side bookmark cache, always replaced wholesale
"""
import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

from ..core.config import settings
from ..core.exceptions import BookmarkLoadException
from ..models.bookmark import Bookmark
from .backend.base import TableBackend

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load bookmarks."


class BookmarkStore:
    """Ordered (newest first) list of the current user's bookmarks"""

    def __init__(self, table: TableBackend, table_name: str = settings.BOOKMARKS_COLLECTION):
        self._table = table
        self._table_name = table_name
        self._bookmarks: Tuple[Bookmark, ...] = ()
        self._user_id: Optional[str] = None
        self._generation = 0

    @property
    def bookmarks(self) -> List[Bookmark]:
        return list(self._bookmarks)

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def get(self, bookmark_id: int) -> Optional[Bookmark]:
        for bookmark in self._bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def reset(self, user_id: Optional[str] = None) -> None:
        """Drop the cache; refreshes still in flight will be discarded"""
        self._generation += 1
        self._user_id = user_id
        self._bookmarks = ()

    async def refresh(self, user_id: str) -> List[Bookmark]:
        """
        Replace the cache with the server's bookmarks for ``user_id``

        Raises:
            BookmarkLoadException: if the backend call fails; the cache is untouched
        """
        if user_id != self._user_id:
            self.reset(user_id)
        generation = self._generation

        outcome = await self._table.select(
            self._table_name,
            filters={"user_id": user_id},
            order_by="id",
            descending=True,
        )

        if not outcome.ok:
            logger.error(f"Error loading bookmarks for user {user_id}: {outcome.error.message}")
            raise BookmarkLoadException(LOAD_FAILED_MESSAGE, details=outcome.error.model_dump())

        try:
            bookmarks = tuple(Bookmark(**row) for row in outcome.data)
        except ValidationError as e:
            logger.error(f"Malformed bookmark rows for user {user_id}: {e}")
            raise BookmarkLoadException(LOAD_FAILED_MESSAGE, details={"error": str(e)})

        if generation != self._generation:
            logger.debug(f"Discarding stale bookmark list for user {user_id}")
            return list(self._bookmarks)

        self._bookmarks = bookmarks
        logger.info(f"Loaded {len(bookmarks)} bookmarks for user {user_id}")
        return list(bookmarks)
