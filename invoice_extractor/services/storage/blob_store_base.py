"""
Abstract base class for PDF blob storage.

Defines the interface the pipeline depends on, so the SQLite-backed store
can be swapped for object storage (Azure Blob, S3, GridFS) or a test double.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator, Optional
from ...models.files import StoredFile


class BlobStoreBase(ABC):
    """
    Binary storage for uploaded PDFs, addressed by an opaque file id.

    Stored files are immutable: they are written once by put() and only
    removed by delete().
    """

    @abstractmethod
    def put(self, data: BinaryIO | bytes, filename: str, max_bytes: Optional[int] = None) -> StoredFile:
        """
        Stream bytes into storage under a newly minted file id.

        Args:
            data: Readable binary stream (or raw bytes)
            filename: Original file name, kept for display
            max_bytes: Reject the upload once more bytes than this are read

        Returns:
            Metadata of the stored file

        Raises:
            FileTooLarge: max_bytes was exceeded (nothing is stored)
            StorageWriteError: I/O failure (nothing is stored)
        """
        pass

    @abstractmethod
    def get(self, file_id: str) -> bytes:
        """
        Return the full content of a stored file.

        Raises:
            NotFound: No file with this id exists
        """
        pass

    @abstractmethod
    def iter_chunks(self, file_id: str) -> Iterator[bytes]:
        """
        Stream a stored file back chunk by chunk.

        Raises:
            NotFound: No file with this id exists (raised before iteration)
        """
        pass

    @abstractmethod
    def stat(self, file_id: str) -> Optional[StoredFile]:
        """
        Metadata lookup without transferring the body.

        Returns:
            StoredFile, or None if the id is unknown or malformed
        """
        pass

    @abstractmethod
    def delete(self, file_id: str) -> bool:
        """
        Remove a stored file.

        Returns:
            True if a file existed and was removed, False if it was absent
        """
        pass
