"""
Firestore implementation of the table data service
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore import FieldFilter, async_transactional

from ...core.exceptions import BookmarkManagerException
from .base import Outcome, TableBackend
from .firestore_policy import OwnerPolicy

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ("id",)


class FirestoreTableBackend(TableBackend):
    """Collections as tables, one document per row keyed by an integer id.

    Ids come from a counter document per collection, so they increase in
    creation order.
    """

    def __init__(self, db, policy: OwnerPolicy, counters_collection: str = "_counters"):
        """
        Args:
            db: firebase_admin async Firestore client
            policy: ownership rule applied to every operation
            counters_collection: collection holding the id counters
        """
        self._db = db
        self._policy = policy
        self._counters_collection = counters_collection

    def _owned_query(self, table: str, principal: str, filters: Optional[Dict[str, Any]]):
        query = self._db.collection(table).where(
            filter=FieldFilter(self._policy.owner_field, "==", principal)
        )
        for field, value in (filters or {}).items():
            query = query.where(filter=FieldFilter(field, "==", value))
        return query

    def _failure(self, operation: str, table: str, error: Exception) -> Outcome:
        logger.error(f"Error during {operation} on {table}: {str(error)}")
        return Outcome.failure(f"Failed to {operation} {table}", code="backend_error", error=str(error))

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Outcome:
        try:
            principal = await self._policy.principal()
            if principal is None:
                return Outcome.failure("Not authenticated", code="unauthenticated")

            query = self._owned_query(table, principal, filters)
            rows = [doc.to_dict() async for doc in query.stream()]
        except (GoogleAPIError, BookmarkManagerException) as e:
            return self._failure("select", table, e)

        # Sorted here rather than with order_by() so no composite index is needed
        if order_by:
            rows.sort(
                key=lambda row: (row.get(order_by) is None, row.get(order_by)),
                reverse=descending
            )

        logger.info(f"Retrieved {len(rows)} rows from {table} for user {principal}")
        return Outcome.success(rows)

    async def insert(self, table: str, rows: List[Dict[str, Any]]) -> Outcome:
        try:
            principal = await self._policy.principal()
            if principal is None:
                return Outcome.failure("Not authenticated", code="unauthenticated")

            for row in rows:
                if not self._policy.owns(row, principal):
                    logger.warning(f"Rejected insert into {table}: row not owned by {principal}")
                    return Outcome.failure("Row violates owner policy", code="forbidden")

            first_id = await self._allocate_ids(table, len(rows))
            batch = self._db.batch()
            inserted = []
            for offset, row in enumerate(rows):
                record = dict(row)
                record["id"] = first_id + offset
                record["created_at"] = datetime.now(timezone.utc)
                batch.set(self._db.collection(table).document(str(record["id"])), record)
                inserted.append(record)
            await batch.commit()
        except (GoogleAPIError, BookmarkManagerException) as e:
            return self._failure("insert into", table, e)

        logger.info(f"Inserted {len(inserted)} rows into {table}")
        return Outcome.success(inserted)

    async def _allocate_ids(self, table: str, count: int) -> int:
        """Reserve ``count`` consecutive ids and return the first one"""
        counter_ref = self._db.collection(self._counters_collection).document(table)

        @async_transactional
        async def allocate(transaction):
            snapshot = await counter_ref.get(transaction=transaction)
            next_id = (snapshot.to_dict() or {}).get("next_id", 1)
            transaction.set(counter_ref, {"next_id": next_id + count})
            return next_id

        return await allocate(self._db.transaction())

    async def update(self, table: str, patch: Dict[str, Any], filters: Dict[str, Any]) -> Outcome:
        immutable = [f for f in (*IMMUTABLE_FIELDS, self._policy.owner_field) if f in patch]
        if immutable:
            return Outcome.failure("Cannot change immutable fields", code="forbidden", fields=immutable)

        try:
            principal = await self._policy.principal()
            if principal is None:
                return Outcome.failure("Not authenticated", code="unauthenticated")

            updated = []
            async for doc in self._owned_query(table, principal, filters).stream():
                await doc.reference.update(patch)
                row = doc.to_dict()
                row.update(patch)
                updated.append(row)
        except (GoogleAPIError, BookmarkManagerException) as e:
            return self._failure("update", table, e)

        logger.info(f"Updated {len(updated)} rows in {table}")
        return Outcome.success(updated)

    async def delete(self, table: str, filters: Dict[str, Any]) -> Outcome:
        try:
            principal = await self._policy.principal()
            if principal is None:
                return Outcome.failure("Not authenticated", code="unauthenticated")

            deleted = []
            async for doc in self._owned_query(table, principal, filters).stream():
                await doc.reference.delete()
                deleted.append(doc.to_dict())
        except (GoogleAPIError, BookmarkManagerException) as e:
            return self._failure("delete from", table, e)

        logger.info(f"Deleted {len(deleted)} rows from {table}")
        return Outcome.success(deleted)
