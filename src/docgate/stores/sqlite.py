"""
SQLite-backed document store.

A small reference implementation of :class:`docgate.core.protocols.DocumentStore`.
Each collection is a table of JSON documents keyed by a unique ``_id``;
filters, sorting, projection and updates are evaluated in Python by
:mod:`docgate.stores.matching`.  It is meant for tests, demos and small
deployments, not as a query engine.

Architecture::

    ┌──────────────────────────────────────────────────────────────┐
    │ SQLiteDocumentStore(path)                                     │
    │   conn: sqlite3.Connection  (one per store, RLock-guarded)    │
    │                                                               │
    │   collection("widgets", references={"owner": "users"})        │
    │     └─► SQLiteCollection ── query(filter) ─► SQLiteQuery      │
    │             insert_one / update_many / replace_one /          │
    │             delete_many                                       │
    └──────────────────────────────────────────────────────────────┘

    Table layout:  seq INTEGER PK (insertion order, tie-break)
                   id_key TEXT UNIQUE (canonical JSON of _id)
                   document TEXT (JSON)

All public coroutine methods hand their synchronous work to
:func:`asyncio.to_thread`; the lock is only taken inside those synchronous
sections, never across an ``await``.

Usage:
    >>> store = SQLiteDocumentStore(":memory:")
    >>> widgets = store.collection("widgets")
    >>> doc = await widgets.insert_one({"name": "bolt"})
    >>> await widgets.query({"name": "bolt"}).count()
    1

Tags:
    store, sqlite, document, reference-implementation
"""

from __future__ import annotations

import asyncio
import binascii
import copy
import json
import os
import re
import sqlite3
import threading
import time
from datetime import UTC, datetime
from typing import Any

from docgate.core.errors import DuplicateKeyError, InvalidQueryError, StoreError
from docgate.core.logging import get_logger
from docgate.stores.matching import (
    apply_update,
    match_query,
    normalize_update,
    project_document,
    sort_documents,
    validate_query,
)

logger = get_logger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS "{table}" (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id_key TEXT NOT NULL UNIQUE,
    document TEXT NOT NULL
)
"""


def generate_object_id() -> str:
    """24-char hex identifier: 4-byte timestamp followed by 8 random bytes."""
    ts = int(time.time())
    rand = binascii.b2a_hex(os.urandom(8)).decode("ascii")
    return f"{ts:08x}{rand}"


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds")


def _id_key(doc_id: Any) -> str:
    return json.dumps(doc_id, sort_keys=True)


class Document:
    """A stored document as handed out by :class:`SQLiteCollection`.

    ``to_json`` is the canonical serialization and always returns a fresh
    copy, so callers never see the store's state.
    """

    __slots__ = ("_data",)

    def __init__(self, data: dict[str, Any]):
        self._data = data

    @property
    def id(self) -> Any:
        return self._data.get("_id")

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def to_json(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Document):
            return self._data == other._data
        return NotImplemented

    def __repr__(self) -> str:
        return f"Document(_id={self.id!r})"


class SQLiteQuery:
    """Lazily executed query; options mirror a Mongoose ``Query``."""

    def __init__(self, collection: SQLiteCollection, conditions: dict[str, Any] | None = None):
        self._collection = collection
        self.conditions: dict[str, Any] = dict(conditions or {})
        self.sort_spec: dict[str, int] | None = None
        self.skip_count: int | None = None
        self.limit_count: int | None = None
        self.projection: dict[str, int] | None = None
        self.populate_fields: list[str] = []

    def sort(self, spec: dict[str, int]) -> SQLiteQuery:
        self.sort_spec = {k: int(v) for k, v in spec.items()}
        return self

    def skip(self, count: int) -> SQLiteQuery:
        if count < 0:
            raise InvalidQueryError("skip must be non-negative")
        self.skip_count = count
        return self

    def limit(self, count: int) -> SQLiteQuery:
        if count < 0:
            raise InvalidQueryError("limit must be non-negative")
        # Mongo treats limit(0) as "no limit"
        self.limit_count = count or None
        return self

    def project(self, spec: dict[str, int]) -> SQLiteQuery:
        self.projection = dict(spec)
        return self

    def populate(self, fields: list[str]) -> SQLiteQuery:
        self.populate_fields = [f for f in fields if f]
        return self

    def _select(self) -> list[dict[str, Any]]:
        docs = self._collection._matching(self.conditions)
        docs = sort_documents(docs, self.sort_spec)
        start = self.skip_count or 0
        end = start + self.limit_count if self.limit_count is not None else None
        return docs[start:end]

    def _run(self) -> list[Document]:
        docs = self._select()
        if self.populate_fields:
            docs = [self._collection._populate(d, self.populate_fields) for d in docs]
        return [Document(project_document(d, self.projection)) for d in docs]

    async def exec(self) -> list[Document]:
        return await asyncio.to_thread(self._run)

    async def exec_one(self) -> Document | None:
        if self.limit_count is None or self.limit_count > 1:
            self.limit_count = 1
        docs = await self.exec()
        return docs[0] if docs else None

    async def count(self) -> int:
        return await asyncio.to_thread(lambda: len(self._select()))


class SQLiteCollection:
    """One table of JSON documents.

    ``references`` maps a field name to the collection its values point at;
    only those fields can be populated.
    """

    def __init__(
        self,
        store: SQLiteDocumentStore,
        name: str,
        *,
        references: dict[str, str] | None = None,
        timestamps: bool = True,
    ):
        if not _NAME_RE.match(name):
            raise StoreError(f"Invalid collection name: {name!r}")
        self._store = store
        self._name = name
        self.references = dict(references or {})
        self.timestamps = timestamps
        with store.lock:
            store.conn.execute(CREATE_TABLE_SQL.format(table=name))
            store.conn.commit()

    @property
    def name(self) -> str:
        return self._name

    # ----- Reads -----

    def _rows(self) -> list[tuple[int, dict[str, Any]]]:
        with self._store.lock:
            rows = self._store.conn.execute(f'SELECT seq, document FROM "{self._name}" ORDER BY seq').fetchall()
        return [(seq, json.loads(doc)) for seq, doc in rows]

    def _matching(self, conditions: dict[str, Any]) -> list[dict[str, Any]]:
        validate_query(conditions)
        return [doc for _, doc in self._rows() if match_query(doc, conditions)]

    def _get(self, doc_id: Any) -> dict[str, Any] | None:
        with self._store.lock:
            row = self._store.conn.execute(
                f'SELECT document FROM "{self._name}" WHERE id_key = ?', (_id_key(doc_id),)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def _populate(self, doc: dict[str, Any], fields: list[str]) -> dict[str, Any]:
        for field_name in fields:
            target = self.references.get(field_name)
            if target is None or field_name not in doc:
                continue
            related = self._store.collection(target)
            value = doc[field_name]
            if isinstance(value, list):
                doc[field_name] = [d for d in (related._get(v) for v in value) if d is not None]
            else:
                doc[field_name] = related._get(value)
        return doc

    def query(self, conditions: dict[str, Any] | None = None) -> SQLiteQuery:
        return SQLiteQuery(self, conditions)

    # ----- Writes -----

    def _insert(self, document: dict[str, Any]) -> Document:
        doc = copy.deepcopy(document)
        if doc.get("_id") is None:
            doc["_id"] = generate_object_id()
        if self.timestamps:
            now = utc_timestamp()
            doc.setdefault("createdAt", now)
            doc["updatedAt"] = now
        try:
            with self._store.lock:
                self._store.conn.execute(
                    f'INSERT INTO "{self._name}" (id_key, document) VALUES (?, ?)',
                    (_id_key(doc["_id"]), json.dumps(doc)),
                )
                self._store.conn.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(f"Duplicate _id {doc['_id']!r} in {self._name}") from e
        except (TypeError, ValueError) as e:
            raise StoreError(f"Document is not storable: {e}") from e
        return Document(doc)

    def _write(self, doc: dict[str, Any]) -> None:
        if self.timestamps:
            doc["updatedAt"] = utc_timestamp()
        with self._store.lock:
            self._store.conn.execute(
                f'UPDATE "{self._name}" SET document = ? WHERE id_key = ?',
                (json.dumps(doc), _id_key(doc["_id"])),
            )
            self._store.conn.commit()

    def _update_many(self, conditions: dict[str, Any], update: dict[str, Any]) -> int:
        normalized = normalize_update(update)
        matched = self._matching(conditions)
        for doc in matched:
            self._write(apply_update(doc, normalized))
        return len(matched)

    def _replace(self, doc_id: Any, document: dict[str, Any]) -> Document | None:
        current = self._get(doc_id)
        if current is None:
            return None
        doc = copy.deepcopy(document)
        doc["_id"] = doc_id
        if self.timestamps and "createdAt" in current:
            doc.setdefault("createdAt", current["createdAt"])
        self._write(doc)
        return Document(doc)

    def _delete_many(self, conditions: dict[str, Any]) -> int:
        matched = self._matching(conditions)
        with self._store.lock:
            self._store.conn.executemany(
                f'DELETE FROM "{self._name}" WHERE id_key = ?',
                [(_id_key(doc["_id"]),) for doc in matched],
            )
            self._store.conn.commit()
        return len(matched)

    async def insert_one(self, document: dict[str, Any]) -> Document:
        return await asyncio.to_thread(self._insert, document)

    async def update_many(self, conditions: dict[str, Any], update: dict[str, Any]) -> int:
        return await asyncio.to_thread(self._update_many, conditions, update)

    async def replace_one(self, doc_id: Any, document: dict[str, Any]) -> Document | None:
        return await asyncio.to_thread(self._replace, doc_id, document)

    async def delete_many(self, conditions: dict[str, Any]) -> int:
        return await asyncio.to_thread(self._delete_many, conditions)


class SQLiteDocumentStore:
    """A SQLite database holding named document collections."""

    def __init__(self, path: str = ":memory:"):
        self.path = path
        self.conn = sqlite3.connect(path, check_same_thread=False)
        self.lock = threading.RLock()
        self._collections: dict[str, SQLiteCollection] = {}
        logger.debug("document_store_opened", path=path)

    def collection(
        self,
        name: str,
        *,
        references: dict[str, str] | None = None,
        timestamps: bool = True,
    ) -> SQLiteCollection:
        existing = self._collections.get(name)
        if existing is not None:
            if references:
                existing.references.update(references)
            return existing
        coll = SQLiteCollection(self, name, references=references, timestamps=timestamps)
        self._collections[name] = coll
        return coll

    def close(self) -> None:
        with self.lock:
            self.conn.close()
        logger.debug("document_store_closed", path=self.path)


__all__ = [
    "Document",
    "SQLiteQuery",
    "SQLiteCollection",
    "SQLiteDocumentStore",
    "generate_object_id",
]
