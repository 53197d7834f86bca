"""
Typed repositories over the scoreboard collections.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .blob_store import BlobStore, UploadedFile, winner_photo_key
from .database import Collection, Document, DocumentStore, Subscription
from .errors import BlobStoreError, DocumentShapeError
from .models import EventResult, EventTemplate, House, Winner

logger = logging.getLogger(__name__)

HOUSES = "houses"
EVENTS = "events"
WINNERS = "winners"
EVENT_TEMPLATES = "eventTemplates"

COLLECTIONS = [HOUSES, EVENTS, WINNERS, EVENT_TEMPLATES]


class Repository:
    """
    Base repository for one entity kind.

    Subclasses set the collection name, the record type and the field
    subscriptions are ordered by.
    """

    collection_name = ""
    record_type: Any = None
    order_by = ""
    descending = False

    def __init__(
        self,
        store: DocumentStore,
    ) -> None:
        self.collection: Collection = store.collection(self.collection_name)

    def _convert(
        self,
        documents: List[Document],
    ) -> List[Any]:
        """
        Convert store documents to records, skipping malformed ones.

        @param documents: Raw documents from the store
        @return: List of typed records
        """
        records = []
        for doc in documents:
            try:
                records.append(self.record_type.from_document(doc))
            except DocumentShapeError as e:
                logger.warning(
                    "Skipping malformed %s document %s: %s",
                    self.collection_name,
                    doc.get("id"),
                    e,
                )
        return records

    async def get_all(self) -> List[Any]:
        return self._convert(await self.collection.read_all())

    async def get_ordered(self) -> List[Any]:
        return self._convert(
            await self.collection.query(self.order_by, self.descending)
        )

    def subscribe(
        self,
        callback: Callable[[List[Any]], None],
    ) -> Subscription:
        """
        Observe the collection as typed records.

        @param callback: Called with the full ordered list after every change
        @return: Subscription handle
        """
        return self.collection.subscribe(
            self.order_by,
            lambda documents: callback(self._convert(documents)),
            self.descending,
        )

    async def add(self, record: Any) -> str:
        return await self.collection.add(record.to_document())

    async def _patch(
        self,
        doc_id: str,
        fields: Dict[str, Any],
    ) -> None:
        """
        Patch a document only if the patched result is still a valid record.

        The write is guarded by the version that was validated, so a
        concurrent change raises ConcurrentModificationError.

        @param doc_id: Document id
        @param fields: Fields to overwrite
        """
        current = await self.collection.get(doc_id)
        self.record_type.from_document({**current, **fields})
        await self.collection.update_many(
            {doc_id: fields}, {doc_id: current["version"]}
        )


class HousesRepository(Repository):
    collection_name = HOUSES
    record_type = House
    order_by = "rank"

    async def update_score(self, house_id: str, score: int) -> None:
        await self.collection.update(house_id, {"score": score})

    async def update_rank(self, house_id: str, rank: int) -> None:
        await self.collection.update(house_id, {"rank": rank})

    async def apply_standings(
        self,
        houses: List[House],
    ) -> None:
        """
        Write score and rank of every house in one versioned transaction.

        Houses without an id are skipped. Raises ConcurrentModificationError
        if any house changed since it was read.

        @param houses: Houses carrying the versions they were read at
        """
        updates: Dict[str, Dict[str, Any]] = {}
        versions: Dict[str, int] = {}
        for house in houses:
            if not house.id:
                continue
            updates[house.id] = {"score": house.score, "rank": house.rank}
            if house.version is not None:
                versions[house.id] = house.version

        if updates:
            await self.collection.update_many(updates, versions)


class EventsRepository(Repository):
    collection_name = EVENTS
    record_type = EventResult
    order_by = "date"
    descending = True

    async def update(self, event_id: str, fields: Dict[str, Any]) -> None:
        """
        Patch an event result. House scores are not reconciled.

        @param event_id: Event document id
        @param fields: Fields to overwrite; points cannot be changed
        """
        if "points" in fields:
            raise DocumentShapeError("Points are fixed when an event is recorded")
        await self._patch(event_id, fields)

    async def delete(self, event_id: str) -> None:
        await self.collection.delete(event_id)


class EventTemplatesRepository(Repository):
    collection_name = EVENT_TEMPLATES
    record_type = EventTemplate
    order_by = "name"

    async def update(self, template_id: str, fields: Dict[str, Any]) -> None:
        await self._patch(template_id, fields)

    async def delete(self, template_id: str) -> None:
        await self.collection.delete(template_id)


class WinnersRepository(Repository):
    collection_name = WINNERS
    record_type = Winner
    order_by = "position"

    def __init__(
        self,
        store: DocumentStore,
        blob_store: Optional[BlobStore] = None,
    ) -> None:
        super().__init__(store)
        self.blob_store = blob_store

    async def update_photo(self, winner_id: str, image_url: str) -> None:
        await self.collection.update(winner_id, {"image": image_url})

    async def upload_photo(
        self,
        file: UploadedFile,
        winner_id: str,
    ) -> str:
        """
        Store a winner photo in the blob store.

        The winner document is not touched; pass the returned URL to
        update_photo to attach it. Nothing is stored for an unknown winner.

        @param file: Uploaded file name and bytes
        @param winner_id: Id of the winner the photo belongs to
        @return: Retrievable URL of the stored photo
        """
        if self.blob_store is None:
            raise BlobStoreError("No blob store configured for winner photos")
        await self.collection.get(winner_id)
        return await self.blob_store.upload(
            winner_photo_key(winner_id, file.filename), file.content
        )
