"""Blob Store Port - Domain interface for uploaded video files.

An upload only becomes a FileRef once the store has confirmed durable
storage; the COMPLETED transition requires such a confirmed FileRef.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod

from ...shorts.models import FileRef


class BlobStoreError(Exception):
    """Blob store operation failed."""
    pass


class BlobNotFoundError(BlobStoreError):
    """The referenced upload does not exist (never finished, or deleted)."""
    pass


class BlobStore(ABC):
    """Port interface for the video blob store.

    Example Usage:
        file_ref = await store.confirm(upload_id)
        ...
        await store.delete(file_ref)
    """

    @abstractmethod
    async def confirm(self, upload_id: str) -> FileRef:
        """Verify an upload is durably stored and return its reference.

        Args:
            upload_id: Identifier returned by the upload (storage key)

        Returns:
            FileRef: Confirmed reference (file_id, name, size, mime type)

        Raises:
            BlobNotFoundError: If nothing is stored under upload_id
            BlobStoreError: If the store is unavailable
        """
        pass

    @abstractmethod
    async def delete(self, file_ref: FileRef) -> bool:
        """Delete a stored file.

        Returns:
            bool: True if deleted, False if it did not exist

        Raises:
            BlobStoreError: If deletion fails

        Note:
            Idempotent: DeleteBlob effects may be dispatched more than once.
        """
        pass
