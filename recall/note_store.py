"""
Note store using SQLite.

The note store is the durable copy of every note:
- Identity (autoincrement id)
- Text
- Creation timestamp
- Pin state
- Embedding vector (packed float32), or NULL when not yet computed

Embeddings from different providers have different lengths; the store
does not check them. Dimension consistency is repaired lazily by the
retrieval engine.
"""

import sqlite3
import struct
from pathlib import Path
from typing import Optional

from .errors import StoreError
from .types import Note


def pack_embedding(embedding: Optional[list[float]]) -> Optional[bytes]:
    """Serialize a vector as big-endian float32."""
    if embedding is None:
        return None
    return struct.pack(f">{len(embedding)}f", *embedding)


def unpack_embedding(blob: Optional[bytes]) -> Optional[list[float]]:
    """Deserialize a big-endian float32 vector (None stays None)."""
    if blob is None:
        return None
    if len(blob) % 4:
        raise StoreError(f"Corrupt embedding: {len(blob)} bytes is not a whole number of float32 values")
    return list(struct.unpack(f">{len(blob) // 4}f", blob))


_COLUMNS = "id, text, timestamp, embedding, pinned"


class NoteStore:
    """
    SQLite-backed store for notes.

    All operations are synchronous and commit before returning. The store
    does no locking of its own: the retrieval engine is the sole mutator
    while its operations run.
    """

    def __init__(self, store_path: Path):
        """
        Args:
            store_path: Path to SQLite database file
        """
        self._db_path = store_path
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row

            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS notes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    text TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    embedding BLOB,
                    pinned INTEGER NOT NULL DEFAULT 0
                )
            """)

            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_notes_timestamp
                ON notes(timestamp)
            """)

            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_notes_pinned
                ON notes(pinned)
            """)

            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open note store at {self._db_path}: {e}") from e

    def _row_to_note(self, row: sqlite3.Row) -> Note:
        return Note(
            id=row["id"],
            text=row["text"],
            timestamp=row["timestamp"],
            embedding=unpack_embedding(row["embedding"]),
            pinned=bool(row["pinned"]),
        )

    def _query(self, where: str = "", params: tuple = ()) -> list[Note]:
        sql = f"SELECT {_COLUMNS} FROM notes {where} ORDER BY timestamp DESC, id DESC"
        try:
            cursor = self._conn.execute(sql, params)
            return [self._row_to_note(row) for row in cursor]
        except sqlite3.Error as e:
            raise StoreError(f"Note query failed: {e}") from e

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def insert(self, note: Note) -> Note:
        """
        Insert a new note.

        Args:
            note: The note to insert (its id is ignored)

        Returns:
            A copy of the note carrying the assigned id
        """
        try:
            cursor = self._conn.execute("""
                INSERT INTO notes (text, timestamp, embedding, pinned)
                VALUES (?, ?, ?, ?)
            """, (note.text, note.timestamp, pack_embedding(note.embedding), int(note.pinned)))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Insert failed: {e}") from e

        return Note(
            id=cursor.lastrowid,
            text=note.text,
            timestamp=note.timestamp,
            embedding=note.embedding,
            pinned=note.pinned,
        )

    def update(self, note: Note) -> bool:
        """
        Write back text, embedding and pin state of an existing note.

        The creation timestamp is never changed.

        Returns:
            True if the note was found and updated, False otherwise
        """
        if note.id is None:
            raise StoreError("Cannot update a note that was never inserted")
        try:
            cursor = self._conn.execute("""
                UPDATE notes
                SET text = ?, embedding = ?, pinned = ?
                WHERE id = ?
            """, (note.text, pack_embedding(note.embedding), int(note.pinned), note.id))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Update of note {note.id} failed: {e}") from e

        return cursor.rowcount > 0

    def delete(self, id: int) -> bool:
        """
        Delete a note.

        Returns:
            True if the note existed and was deleted
        """
        try:
            cursor = self._conn.execute("DELETE FROM notes WHERE id = ?", (id,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Delete of note {id} failed: {e}") from e

        return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get(self, id: int) -> Optional[Note]:
        """Get a note by id, or None."""
        notes = self._query("WHERE id = ?", (id,))
        return notes[0] if notes else None

    def all_notes(self) -> list[Note]:
        """All notes, newest first."""
        return self._query()

    def pinned_notes(self) -> list[Note]:
        """All pinned notes, regardless of embedding state."""
        return self._query("WHERE pinned = 1")

    def notes_with_embeddings(self) -> list[Note]:
        """Notes whose embedding has been computed."""
        return self._query("WHERE embedding IS NOT NULL")

    def unpinned_notes_with_embeddings(self) -> list[Note]:
        """Search candidates: unpinned notes with an embedding."""
        return self._query("WHERE embedding IS NOT NULL AND pinned = 0")

    def count(self) -> int:
        """Count all notes."""
        try:
            cursor = self._conn.execute("SELECT COUNT(*) FROM notes")
            return cursor.fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError(f"Count failed: {e}") from e

    def count_missing_embeddings(self) -> int:
        """Count notes still waiting for an embedding."""
        try:
            cursor = self._conn.execute(
                "SELECT COUNT(*) FROM notes WHERE embedding IS NULL"
            )
            return cursor.fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError(f"Count failed: {e}") from e

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()
