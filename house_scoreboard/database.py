"""
Document store for the house scoreboard.

Collections of JSON documents persisted in SQLite, with push subscriptions
that deliver the full ordered snapshot of a collection after every change.
"""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set

import aiosqlite

from .errors import (
    ConcurrentModificationError,
    DocumentNotFoundError,
    StoreConfigurationError,
    StoreOperationError,
)

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
SnapshotCallback = Callable[[List[Document]], None]

# Keys owned by the store; never persisted inside the document body
METADATA_KEYS = ("id", "created_at", "version")


def clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop absent values and store metadata from a document body.

    @param fields: Raw field mapping
    @return: Copy without None, empty-string or metadata entries
    """
    return {
        key: value
        for key, value in fields.items()
        if value is not None and value != "" and key not in METADATA_KEYS
    }


class Subscription:
    """
    Long-lived observation of one collection.

    Every change to the collection schedules a delivery; deliveries for one
    subscription never overlap and collapse into the latest snapshot when the
    store changes faster than the callback runs.
    """

    def __init__(
        self,
        store: "DocumentStore",
        collection: str,
        order_by: str,
        descending: bool,
        callback: SnapshotCallback,
    ) -> None:
        self.store = store
        self.collection = collection
        self.order_by = order_by
        self.descending = descending
        self.active = True
        self.deliveries = 0
        self._callback = callback
        self._dirty = False
        self._task: Optional["asyncio.Task[None]"] = None

    def schedule(self) -> None:
        """Mark the collection changed and start a delivery if none is running."""
        if not self.active:
            return

        self._dirty = True
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self._deliver())

    async def _deliver(self) -> None:
        while self._dirty and self.active:
            self._dirty = False
            try:
                documents = await self.store.query(
                    self.collection, self.order_by, self.descending
                )
                if not self.active:
                    return
                self._callback(documents)
                self.deliveries += 1
            except Exception:
                logger.exception(
                    "Subscription to %s failed; no further snapshots will be delivered",
                    self.collection,
                )
                self.cancel()
                return

    async def wait(self) -> None:
        """Wait until the pending delivery, if any, has finished."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    def cancel(self) -> None:
        """Stop delivering snapshots. Safe to call more than once."""
        if not self.active:
            return

        self.active = False
        self.store._subscriptions.discard(self)

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()


class Collection:
    """One named collection of the document store."""

    def __init__(
        self,
        store: "DocumentStore",
        name: str,
    ) -> None:
        self.store = store
        self.name = name

    async def read_all(self) -> List[Document]:
        return await self.store.read_all(self.name)

    async def get(self, doc_id: str) -> Document:
        return await self.store.get(self.name, doc_id)

    async def query(
        self,
        order_by: str,
        descending: bool = False,
    ) -> List[Document]:
        return await self.store.query(self.name, order_by, descending)

    async def add(self, fields: Dict[str, Any]) -> str:
        return await self.store.add(self.name, fields)

    async def update(self, doc_id: str, fields: Dict[str, Any]) -> None:
        await self.store.update(self.name, doc_id, fields)

    async def update_many(
        self,
        updates: Dict[str, Dict[str, Any]],
        expected_versions: Optional[Dict[str, int]] = None,
    ) -> None:
        await self.store.update_many(self.name, updates, expected_versions)

    async def delete(self, doc_id: str) -> None:
        await self.store.delete(self.name, doc_id)

    def subscribe(
        self,
        order_by: str,
        callback: SnapshotCallback,
        descending: bool = False,
    ) -> Subscription:
        return self.store.subscribe(self.name, order_by, callback, descending)


class DocumentStore:
    """Manages document persistence and change notification."""

    def __init__(
        self,
        database: Optional[str],
    ) -> None:
        self.database = database or ""
        self._schema_ready = False
        self._subscriptions: Set[Subscription] = set()

    @property
    def configured(self) -> bool:
        return bool(self.database)

    def collection(self, name: str) -> Collection:
        return Collection(self, name)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Open a connection, creating the schema on first use.

        Database errors are re-raised as StoreOperationError.
        """
        if not self.configured:
            raise StoreConfigurationError(
                "Document store is not configured; set store.database or DB_PATH"
            )

        try:
            async with aiosqlite.connect(self.database) as db:
                if not self._schema_ready:
                    await self._create_schema(db)
                    self._schema_ready = True
                yield db
        except aiosqlite.Error as e:
            raise StoreOperationError(f"Store operation failed: {e}") from e

    async def _create_schema(
        self,
        db: aiosqlite.Connection,
    ) -> None:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            )
        """)
        await db.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_collection_doc
            ON documents(collection, doc_id)
        """)
        await db.commit()

    async def init_db(self) -> None:
        """
        Initialize the SQLite database schema.

        Raises StoreConfigurationError when no database is configured.
        """
        async with self._connect():
            pass

    @staticmethod
    def _row_to_document(row: Any) -> Document:
        doc_id, data, created_at, version = row
        document = json.loads(data)
        document["id"] = doc_id
        document["created_at"] = created_at
        document["version"] = version
        return document

    async def read_all(
        self,
        collection: str,
    ) -> List[Document]:
        """
        Read every document of a collection in insertion order.

        @param collection: Collection name
        @return: List of documents with id, created_at and version metadata
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT doc_id, data, created_at, version FROM documents "
                "WHERE collection = ? ORDER BY seq",
                (collection,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_document(row) for row in rows]

    async def get(
        self,
        collection: str,
        doc_id: str,
    ) -> Document:
        """
        Read one document.

        @param collection: Collection name
        @param doc_id: Document id
        @return: Document with id, created_at and version metadata
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT doc_id, data, created_at, version FROM documents "
                "WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            )
            row = await cursor.fetchone()

        if row is None:
            raise DocumentNotFoundError(collection, doc_id)
        return self._row_to_document(row)

    async def query(
        self,
        collection: str,
        order_by: str,
        descending: bool = False,
    ) -> List[Document]:
        """
        Read a collection ordered by one field.

        Documents without the field are left out. Ties keep insertion order.

        @param collection: Collection name
        @param order_by: Document field to order by
        @param descending: Order from highest to lowest when True
        @return: Ordered list of documents
        """
        direction = "DESC" if descending else "ASC"
        path = f"$.{order_by}"

        async with self._connect() as db:
            cursor = await db.execute(
                f"""
                SELECT doc_id, data, created_at, version
                FROM documents
                WHERE collection = ? AND json_extract(data, ?) IS NOT NULL
                ORDER BY json_extract(data, ?) {direction}, seq ASC
            """,
                (collection, path, path),
            )
            rows = await cursor.fetchall()
        return [self._row_to_document(row) for row in rows]

    async def add(
        self,
        collection: str,
        fields: Dict[str, Any],
    ) -> str:
        """
        Add a document, stamping its creation time.

        @param collection: Collection name
        @param fields: Document body; empty and None values are stripped
        @return: Store-assigned document id
        """
        doc_id = uuid.uuid4().hex
        created_at = datetime.now(timezone.utc).isoformat()
        body = json.dumps(clean_fields(fields))

        async with self._connect() as db:
            await db.execute(
                "INSERT INTO documents (collection, doc_id, data, created_at) "
                "VALUES (?, ?, ?, ?)",
                (collection, doc_id, body, created_at),
            )
            await db.commit()

        logger.debug("Added %s/%s", collection, doc_id)
        self._notify(collection)
        return doc_id

    async def _patch(
        self,
        db: aiosqlite.Connection,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        cursor = await db.execute(
            "SELECT data, version FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        )
        row = await cursor.fetchone()
        if row is None:
            raise DocumentNotFoundError(collection, doc_id)

        data, version = row
        if expected_version is not None and version != expected_version:
            raise ConcurrentModificationError(
                f"{collection}/{doc_id} is at version {version}, expected {expected_version}"
            )

        document = json.loads(data)
        for key, value in fields.items():
            if key in METADATA_KEYS:
                continue
            document[key] = value

        await db.execute(
            "UPDATE documents SET data = ?, version = version + 1 "
            "WHERE collection = ? AND doc_id = ?",
            (json.dumps(document), collection, doc_id),
        )

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
    ) -> None:
        """
        Patch fields of one document.

        @param collection: Collection name
        @param doc_id: Document id
        @param fields: Fields to overwrite
        """
        async with self._connect() as db:
            await self._patch(db, collection, doc_id, fields)
            await db.commit()

        logger.debug("Updated %s/%s: %s", collection, doc_id, sorted(fields))
        self._notify(collection)

    async def update_many(
        self,
        collection: str,
        updates: Dict[str, Dict[str, Any]],
        expected_versions: Optional[Dict[str, int]] = None,
    ) -> None:
        """
        Patch several documents in one transaction.

        Nothing is written if any document is missing or, when expected
        versions are given, if any document changed since it was read.

        @param collection: Collection name
        @param updates: Mapping of document id to fields to overwrite
        @param expected_versions: Optional mapping of document id to version
        """
        expected_versions = expected_versions or {}

        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                for doc_id, fields in updates.items():
                    await self._patch(
                        db, collection, doc_id, fields, expected_versions.get(doc_id)
                    )
            except Exception:
                await db.rollback()
                raise
            await db.commit()

        logger.debug("Updated %d documents in %s", len(updates), collection)
        self._notify(collection)

    async def delete(
        self,
        collection: str,
        doc_id: str,
    ) -> None:
        """
        Delete a document. Deleting a missing document does nothing.

        @param collection: Collection name
        @param doc_id: Document id
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            )
            await db.commit()
            deleted = cursor.rowcount

        if deleted:
            logger.debug("Deleted %s/%s", collection, doc_id)
            self._notify(collection)

    async def collection_counts(
        self,
        collections: List[str],
    ) -> Dict[str, int]:
        """
        Count the documents of each collection.

        @param collections: Collection names to count
        @return: Mapping of collection name to document count
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT collection, COUNT(*) FROM documents GROUP BY collection"
            )
            rows = await cursor.fetchall()

        counts = dict(rows)
        return {name: counts.get(name, 0) for name in collections}

    def subscribe(
        self,
        collection: str,
        order_by: str,
        callback: SnapshotCallback,
        descending: bool = False,
    ) -> Subscription:
        """
        Observe a collection.

        The first snapshot is delivered right away, then one after every
        change. Must be called from a running event loop.

        @param collection: Collection name
        @param order_by: Document field the snapshot is ordered by
        @param callback: Called with the full ordered list of documents
        @param descending: Order from highest to lowest when True
        @return: Subscription handle; cancel it to stop deliveries
        """
        subscription = Subscription(self, collection, order_by, descending, callback)
        self._subscriptions.add(subscription)
        subscription.schedule()
        return subscription

    def _notify(
        self,
        collection: str,
    ) -> None:
        for subscription in list(self._subscriptions):
            if subscription.collection == collection:
                subscription.schedule()

    async def flush_notifications(self) -> None:
        """Wait until every scheduled snapshot delivery has run."""
        while True:
            pending = [s for s in self._subscriptions if s._dirty or (
                s._task is not None and not s._task.done()
            )]
            if not pending:
                return
            for subscription in pending:
                await subscription.wait()
            await asyncio.sleep(0)

    def close(self) -> None:
        """Cancel every open subscription."""
        for subscription in list(self._subscriptions):
            subscription.cancel()
