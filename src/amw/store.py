import json
import os
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import List, Tuple

from .logger import get_logger

logger = get_logger(__name__)


class StoreError(Exception):
    pass


class ConflictError(StoreError):
    pass


class NotFoundError(StoreError):
    pass


def _new_rev(generation: int = 1) -> str:
    return f"{generation}-{uuid.uuid4().hex}"


class DocumentStore:
    """
    Small embedded document store on top of one SQLite file.

    Documents live in named collections, are keyed by an opaque id and carry a
    revision token. Removing a document requires its current revision.
    Listings follow insertion order (SQLite rowid), whatever the ids look like.
    """

    def __init__(self, path: Path | str):
        self.path = str(path)
        self._con: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def open(self) -> "DocumentStore":
        if self._con is not None:
            return self
        try:
            if self.path != ":memory:":
                os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
            con = sqlite3.connect(self.path, check_same_thread=False)
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS docs (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    rev TEXT NOT NULL,
                    body TEXT NOT NULL,
                    PRIMARY KEY (collection, id)
                )
            """
            )
            con.commit()
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Cannot open store at {self.path}: {e}") from e
        self._con = con
        logger.debug("Opened document store %s", self.path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._con is not None:
                self._con.close()
                self._con = None
                logger.debug("Closed document store %s", self.path)

    def __enter__(self) -> "DocumentStore":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._con is None:
            raise StoreError("Store is not open")
        return self._con

    def insert(self, collection: str, doc_id: str, body: dict) -> str:
        rev = _new_rev()
        with self._lock:
            con = self._connection()
            try:
                with con:
                    con.execute(
                        "INSERT INTO docs (collection, id, rev, body) VALUES (?,?,?,?)",
                        (collection, doc_id, rev, json.dumps(body)),
                    )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Document {collection}/{doc_id} already exists") from e
            except sqlite3.Error as e:
                raise StoreError(f"Insert {collection}/{doc_id} failed: {e}") from e
        return rev

    def remove(self, collection: str, doc_id: str, rev: str) -> None:
        with self._lock:
            con = self._connection()
            try:
                with con:
                    row = con.execute(
                        "SELECT rev FROM docs WHERE collection=? AND id=?",
                        (collection, doc_id),
                    ).fetchone()
                    if row is None:
                        raise NotFoundError(f"Document {collection}/{doc_id} not found")
                    if row[0] != rev:
                        raise ConflictError(
                            f"Document {collection}/{doc_id} revision mismatch: "
                            f"have {row[0]}, got {rev}"
                        )
                    con.execute(
                        "DELETE FROM docs WHERE collection=? AND id=? AND rev=?",
                        (collection, doc_id, rev),
                    )
            except sqlite3.Error as e:
                raise StoreError(f"Remove {collection}/{doc_id} failed: {e}") from e

    def list_all(self, collection: str, descending: bool = True) -> List[Tuple[str, str, dict]]:
        order = "DESC" if descending else "ASC"
        with self._lock:
            con = self._connection()
            try:
                rows = con.execute(
                    f"SELECT id, rev, body FROM docs WHERE collection=? ORDER BY rowid {order}",
                    (collection,),
                ).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"Listing {collection} failed: {e}") from e
        out: List[Tuple[str, str, dict]] = []
        for doc_id, rev, body in rows:
            try:
                out.append((doc_id, rev, json.loads(body)))
            except ValueError as e:
                raise StoreError(f"Corrupt document {collection}/{doc_id}: {e}") from e
        return out

    def count(self, collection: str) -> int:
        with self._lock:
            con = self._connection()
            try:
                row = con.execute(
                    "SELECT COUNT(*) FROM docs WHERE collection=?", (collection,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"Counting {collection} failed: {e}") from e
        return row[0] if row and row[0] is not None else 0
