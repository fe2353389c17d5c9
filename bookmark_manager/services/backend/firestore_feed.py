"""
Firestore snapshot listeners as a live change feed
"""
import asyncio
import logging
from typing import Any, Dict

from google.cloud.firestore import FieldFilter

from ...core.exceptions import AuthorizationException
from .base import ChangeEvent, ChangeFeedBackend, ChangeHandler, ChangeType, SubscriptionHandle
from .firestore_policy import OwnerPolicy

logger = logging.getLogger(__name__)

CHANGE_TYPES = {
    "ADDED": ChangeType.INSERT,
    "MODIFIED": ChangeType.UPDATE,
    "REMOVED": ChangeType.DELETE,
}


class FirestoreChangeFeed(ChangeFeedBackend):
    """Runs one ``on_snapshot`` watch per subscription.

    Watch callbacks arrive on a Firestore background thread; events are
    handed to the event loop that opened the subscription.
    """

    def __init__(self, db, policy: OwnerPolicy):
        self._db = db
        self._policy = policy

    async def subscribe(
        self,
        table: str,
        event_filter: Dict[str, Any],
        handler: ChangeHandler,
    ) -> SubscriptionHandle:
        principal = await self._policy.principal()
        if principal is None or event_filter.get(self._policy.owner_field) != principal:
            raise AuthorizationException(
                "Change feed must be scoped to the signed in user",
                details={"table": table}
            )

        loop = asyncio.get_running_loop()
        handle = SubscriptionHandle(table, event_filter, handler)

        query = self._db.collection(table)
        for field, value in event_filter.items():
            query = query.where(filter=FieldFilter(field, "==", value))

        primed = False

        def on_snapshot(docs, changes, read_time):
            nonlocal primed
            # The first snapshot is the current result set, not a change
            if not primed:
                primed = True
                return
            if loop.is_closed():
                return
            for change in changes:
                event = ChangeEvent(
                    table=table,
                    type=CHANGE_TYPES.get(change.type.name, ChangeType.UPDATE),
                    row=change.document.to_dict() or {},
                )
                loop.call_soon_threadsafe(handle.deliver, event)

        handle.resource = query.on_snapshot(on_snapshot)
        logger.info(f"Watching {table} for user {principal}")
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        handle.active = False
        if handle.resource is not None:
            handle.resource.unsubscribe()
            handle.resource = None
            logger.info(f"Stopped watching {handle.table}")
