"""
Canonical protocols for the store boundary.

The data interface never imports a concrete store.  It talks to anything
that satisfies :class:`DocumentCollection`, and builds queries through the
fluent :class:`StoreQuery` it returns, the same shape as a Mongoose or
pymongo cursor.

Architecture::

    ModelInterface ──► DocumentCollection.query(filter)
                          │
                          ▼
                       StoreQuery .sort() .skip() .limit() .project() .populate()
                          │
                          ▼ await
                       exec() / exec_one() / count()  ──► StoredDocument(s)

Tags:
    protocols, store, document, docgate
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StoredDocument(Protocol):
    """A document handed out by a store.

    ``to_json`` is the canonical serialization; it must return fresh plain
    data that does not alias the store's internal state.
    """

    def to_json(self) -> dict[str, Any]: ...


class StoreQuery(Protocol):
    """Fluent, lazily executed query over one collection."""

    conditions: dict[str, Any]

    def sort(self, spec: dict[str, int]) -> StoreQuery: ...

    def skip(self, count: int) -> StoreQuery: ...

    def limit(self, count: int) -> StoreQuery: ...

    def project(self, spec: dict[str, int]) -> StoreQuery: ...

    def populate(self, fields: list[str]) -> StoreQuery: ...

    async def exec(self) -> list[StoredDocument]: ...

    async def exec_one(self) -> StoredDocument | None: ...

    async def count(self) -> int: ...


@runtime_checkable
class DocumentCollection(Protocol):
    """CRUD primitives of a single collection."""

    @property
    def name(self) -> str: ...

    def query(self, conditions: dict[str, Any] | None = None) -> StoreQuery: ...

    async def insert_one(self, document: dict[str, Any]) -> StoredDocument: ...

    async def update_many(self, conditions: dict[str, Any], update: dict[str, Any]) -> int:
        """Apply an update document to every match; return the match count."""
        ...

    async def replace_one(self, doc_id: Any, document: dict[str, Any]) -> StoredDocument | None: ...

    async def delete_many(self, conditions: dict[str, Any]) -> int: ...


class DocumentStore(Protocol):
    """A database holding named collections."""

    def collection(self, name: str, *, references: dict[str, str] | None = None) -> DocumentCollection: ...

    def close(self) -> None: ...


__all__ = [
    "StoredDocument",
    "StoreQuery",
    "DocumentCollection",
    "DocumentStore",
]
