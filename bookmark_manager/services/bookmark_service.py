"""
Bookmark create, update and delete operations
"""
import logging
from typing import Dict, Tuple

from ..core.config import settings
from ..core.exceptions import BookmarkOperationException, ValidationException
from ..models.bookmark import Bookmark
from .backend.base import TableBackend

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Both fields are required."
INVALID_URL_MESSAGE = "URL must start with http:// or https://"
ALLOWED_URL_PREFIXES = ("http://", "https://")

ADD_FAILED_MESSAGE = "Failed to add bookmark."
UPDATE_FAILED_MESSAGE = "Failed to update bookmark."
DELETE_FAILED_MESSAGE = "Failed to delete bookmark."
ADDED_MESSAGE = "Bookmark added."
UPDATED_MESSAGE = "Bookmark updated."
DELETED_MESSAGE = "Bookmark deleted."


def validate_bookmark_fields(title: str, url: str) -> Tuple[str, str]:
    """
    Trim and check a title/url pair

    Returns:
        The trimmed (title, url)

    Raises:
        ValidationException: if either field is blank or the url is not http(s)
    """
    title = (title or "").strip()
    url = (url or "").strip()

    if not title or not url:
        raise ValidationException(REQUIRED_FIELDS_MESSAGE)

    if not url.startswith(ALLOWED_URL_PREFIXES):
        raise ValidationException(INVALID_URL_MESSAGE, details={"url": url})

    return title, url


class BookmarkService:
    """One backend round trip per operation.

    Update and delete match on the bookmark id only. Whether that row
    belongs to the caller is decided by the backend's owner policy.
    """

    def __init__(self, table: TableBackend, table_name: str = settings.BOOKMARKS_COLLECTION):
        self._table = table
        self._table_name = table_name

    async def create(self, user_id: str, title: str, url: str) -> Bookmark:
        title, url = validate_bookmark_fields(title, url)

        outcome = await self._table.insert(
            self._table_name,
            [{"title": title, "url": url, "user_id": user_id}]
        )
        if not outcome.ok or not outcome.data:
            self._log_failure("create", outcome)
            raise BookmarkOperationException(ADD_FAILED_MESSAGE, details=self._details(outcome))

        bookmark = Bookmark(**outcome.data[0])
        logger.info(f"Created bookmark {bookmark.id} for user {user_id}")
        return bookmark

    async def update(self, bookmark_id: int, title: str, url: str) -> None:
        title, url = validate_bookmark_fields(title, url)

        outcome = await self._table.update(
            self._table_name,
            {"title": title, "url": url},
            {"id": bookmark_id}
        )
        if not outcome.ok:
            self._log_failure("update", outcome)
            raise BookmarkOperationException(UPDATE_FAILED_MESSAGE, details=self._details(outcome))

        logger.info(f"Updated bookmark {bookmark_id} ({len(outcome.data)} rows)")

    async def delete(self, bookmark_id: int) -> None:
        outcome = await self._table.delete(self._table_name, {"id": bookmark_id})
        if not outcome.ok:
            self._log_failure("delete", outcome)
            raise BookmarkOperationException(DELETE_FAILED_MESSAGE, details=self._details(outcome))

        logger.info(f"Deleted bookmark {bookmark_id} ({len(outcome.data)} rows)")

    @staticmethod
    def _details(outcome) -> Dict:
        return outcome.error.model_dump() if outcome.error else {}

    @staticmethod
    def _log_failure(operation: str, outcome) -> None:
        reason = outcome.error.message if outcome.error else "no row returned"
        logger.error(f"Bookmark {operation} failed: {reason}")
