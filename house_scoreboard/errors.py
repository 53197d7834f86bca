"""
Error taxonomy for the house scoreboard.
"""


class ScoreboardError(Exception):
    """Base class for scoreboard failures."""


class StoreError(ScoreboardError):
    """Raised when the document store rejects an operation."""


class StoreConfigurationError(StoreError):
    """Raised for every store call when no database was configured."""


class StoreOperationError(StoreError):
    """Raised when a read or write against the backing database fails."""


class DocumentNotFoundError(StoreError):
    """Raised when reading or updating a document that does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"No document {doc_id!r} in collection {collection!r}")
        self.collection = collection
        self.doc_id = doc_id


class ConcurrentModificationError(StoreError):
    """Raised when a versioned write finds a document changed underneath it."""


class BlobStoreError(StoreError):
    """Raised when a photo cannot be written to the blob store."""


class DocumentShapeError(ScoreboardError):
    """Raised when a document cannot be converted into a typed record."""
