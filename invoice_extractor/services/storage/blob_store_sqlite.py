"""
SQLite-backed blob store for uploaded PDFs.

Bodies are split into fixed-size chunks (GridFS style) so uploads and
downloads never need the whole file in one buffer. The metadata row is
written last in the same transaction as the chunks, so readers never see
a partially stored file.
"""

import io
import sqlite3
from datetime import datetime, UTC
from typing import BinaryIO, Iterator, Optional
from loguru import logger
from .blob_store_base import BlobStoreBase
from .database import Database
from .ids import new_id, is_valid_id
from ...core.errors import FileTooLarge, InvoicePipelineError, NotFound, StorageWriteError
from ...models.files import StoredFile

DEFAULT_CHUNK_SIZE = 255 * 1024


class SQLiteBlobStore(BlobStoreBase):
    """
    Blob store persisting PDFs in two tables:

    - blob_files: one metadata row per file
    - blob_chunks: ordered chunks of the body, keyed by (file_id, n)
    """

    def __init__(self, db: Database, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Args:
            db: Connected database shared with the rest of the service
            chunk_size: Bytes per stored chunk
        """
        self.db = db
        self.chunk_size = chunk_size
        self._init_schema()

    def _init_schema(self):
        """Create blob tables if they don't exist"""
        with self.db.session() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS blob_files (
                    id TEXT PRIMARY KEY,
                    filename TEXT NOT NULL,
                    length INTEGER NOT NULL,
                    chunk_size INTEGER NOT NULL,
                    content_type TEXT NOT NULL DEFAULT 'application/pdf',
                    uploaded_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS blob_chunks (
                    file_id TEXT NOT NULL,
                    n INTEGER NOT NULL,
                    data BLOB NOT NULL,
                    PRIMARY KEY (file_id, n)
                )
            """)

    @staticmethod
    def _to_stored_file(row: sqlite3.Row) -> StoredFile:
        return StoredFile(
            id=row["id"],
            filename=row["filename"],
            length=row["length"],
            content_type=row["content_type"],
            uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
        )

    def put(self, data: BinaryIO | bytes, filename: str, max_bytes: Optional[int] = None) -> StoredFile:
        stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        file_id = new_id()
        uploaded_at = datetime.now(UTC)
        length = 0

        try:
            with self.db.session() as conn:
                n = 0
                while True:
                    chunk = stream.read(self.chunk_size)
                    if not chunk:
                        break
                    length += len(chunk)
                    if max_bytes is not None and length > max_bytes:
                        raise FileTooLarge(max_bytes)

                    conn.execute(
                        "INSERT INTO blob_chunks (file_id, n, data) VALUES (?, ?, ?)",
                        (file_id, n, sqlite3.Binary(chunk)),
                    )
                    n += 1

                conn.execute("""
                    INSERT INTO blob_files (id, filename, length, chunk_size, content_type, uploaded_at)
                    VALUES (?, ?, ?, ?, 'application/pdf', ?)
                """, (file_id, filename, length, self.chunk_size, uploaded_at.isoformat(timespec="microseconds")))
        except InvoicePipelineError:
            raise
        except (OSError, sqlite3.Error) as e:
            logger.error("Blob write failed: {error}", error=repr(e), filename=filename)
            raise StorageWriteError("Failed to store file", {"filename": filename}) from e

        logger.info("Stored file", file_id=file_id, filename=filename, length=length)
        return StoredFile(id=file_id, filename=filename, length=length, uploaded_at=uploaded_at)

    def stat(self, file_id: str) -> Optional[StoredFile]:
        if not is_valid_id(file_id):
            return None

        with self.db.session() as conn:
            row = conn.execute("""
                SELECT id, filename, length, content_type, uploaded_at
                FROM blob_files
                WHERE id = ?
            """, (file_id,)).fetchone()

        return self._to_stored_file(row) if row else None

    def get(self, file_id: str) -> bytes:
        if not is_valid_id(file_id):
            raise NotFound("file", str(file_id))

        with self.db.session() as conn:
            row = conn.execute("SELECT length FROM blob_files WHERE id = ?", (file_id,)).fetchone()
            if row is None:
                raise NotFound("file", file_id)
            chunks = conn.execute(
                "SELECT data FROM blob_chunks WHERE file_id = ? ORDER BY n",
                (file_id,),
            ).fetchall()

        return b"".join(bytes(chunk["data"]) for chunk in chunks)

    def iter_chunks(self, file_id: str) -> Iterator[bytes]:
        if self.stat(file_id) is None:
            raise NotFound("file", str(file_id))
        return self._stream(file_id)

    def _stream(self, file_id: str) -> Iterator[bytes]:
        # One short session per chunk so a slow reader never holds a connection
        n = 0
        while True:
            with self.db.session() as conn:
                row = conn.execute(
                    "SELECT data FROM blob_chunks WHERE file_id = ? AND n = ?",
                    (file_id, n),
                ).fetchone()
            if row is None:
                return
            yield bytes(row["data"])
            n += 1

    def delete(self, file_id: str) -> bool:
        if not is_valid_id(file_id):
            return False

        with self.db.session(immediate=True) as conn:
            cursor = conn.execute("DELETE FROM blob_files WHERE id = ?", (file_id,))
            deleted = cursor.rowcount > 0
            conn.execute("DELETE FROM blob_chunks WHERE file_id = ?", (file_id,))

        if deleted:
            logger.info("Deleted file", file_id=file_id)
        return deleted
