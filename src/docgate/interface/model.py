"""
Data interface: binds the operation model to one document collection.

:class:`ModelInterface` turns a generic :class:`~docgate.core.query.Query`
into a store query, runs the CRUD and JSON-Patch operations against it, and
normalizes every failure into a
:class:`~docgate.core.errors.ModelInterfaceError` exactly once.

Results are the store's own documents; converting them to plain data is the
job of :meth:`ModelInterface.to_pojo` (and of
:class:`~docgate.interface.simple.SimpleModelInterface`, which applies it to
every result).

Architecture::

    Query ──► create_query() ──► StoreQuery ──► exec()/exec_one()/count()
                                                     │
    fields ─► create()/update() ─────────────────────┤ DocumentCollection
    patches ► patch() ── jsonpatch.apply_patch ──────┤
    query ──► delete() ──────────────────────────────┘
                 │
                 └─ any exception ─► wrap_error() ─► ModelInterfaceError

Concurrency:
    ``update(..., upsert=True)`` is count-then-insert.  Two requests racing
    on the same filter may both insert; use store-level upserts if that
    matters.  ``patch`` commits document by document, so a failure part-way
    leaves earlier documents patched.

Tags:
    data-interface, crud, json-patch, upsert, docgate
"""

from __future__ import annotations

import copy
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import jsonpatch
import jsonpointer

from docgate.core.errors import ModelInterfaceError, PatchError, wrap_error
from docgate.core.logging import get_logger
from docgate.core.protocols import DocumentCollection, StoredDocument, StoreQuery
from docgate.core.query import PatchOperation, Query
from docgate.stores.matching import apply_update, normalize_update

logger = get_logger(__name__)

T = TypeVar("T")

PatchLike = PatchOperation | dict[str, Any]


class ModelInterface:
    """CRUD and patch operations over one collection.

    Parameters:
        collection: Any :class:`~docgate.core.protocols.DocumentCollection`.
        name: Model name used in RPC method keys; defaults to the
            collection's name.
    """

    def __init__(self, collection: DocumentCollection, name: str | None = None):
        self.collection = collection
        self._name = name or collection.name

    @property
    def name(self) -> str:
        return self._name

    # ------------------------------------------------------------------ #
    # Plain-data conversion & error wrapping
    # ------------------------------------------------------------------ #

    @staticmethod
    def to_pojo(doc: Any) -> Any:
        """Convert a document (or list of documents) to plain data.

        Prefers the document's ``to_json``; documents converted that way
        also get an ``id`` alias equal to ``str(_id)``.  Falls back to
        a deep copy of ``to_object()``, then to a deep copy of the value.
        """
        if isinstance(doc, list):
            return [ModelInterface.to_pojo(d) for d in doc]
        if doc is None:
            return None

        to_json = getattr(doc, "to_json", None)
        if callable(to_json):
            pojo = copy.deepcopy(to_json())
            if isinstance(pojo, dict) and pojo.get("_id") is not None:
                pojo["id"] = str(pojo["_id"])
            return pojo

        to_object = getattr(doc, "to_object", None)
        if callable(to_object):
            return copy.deepcopy(to_object())

        return copy.deepcopy(doc)

    @staticmethod
    def wrap_error(error: BaseException) -> ModelInterfaceError:
        return wrap_error(error)

    async def _guard(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except ModelInterfaceError:
            logger.debug("operation_failed", operation=operation, collection=self.name)
            raise
        except Exception as e:
            logger.debug("operation_failed", operation=operation, collection=self.name)
            raise self.wrap_error(e) from e

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def create_query(self, q: Query | dict[str, Any]) -> StoreQuery:
        """Translate a generic Query into a store query (not yet executed)."""
        q = Query.from_dict(q)
        store_query = self.collection.query(q.query)
        if q.sort:
            store_query = store_query.sort(q.sort)
        if q.skip is not None:
            store_query = store_query.skip(q.skip)
        if q.limit is not None:
            store_query = store_query.limit(q.limit)
        if q.project:
            store_query = store_query.project(q.project)
        fields = q.populate_fields()
        if fields:
            store_query = store_query.populate(fields)
        return store_query

    async def find(self, q: Query | dict[str, Any]) -> list[StoredDocument]:
        return await self._guard("find", lambda: self.create_query(q).exec())

    async def find_one(self, q: Query | dict[str, Any]) -> StoredDocument | None:
        return await self._guard("findOne", lambda: self.create_query(q).exec_one())

    async def find_by_id(self, doc_id: Any) -> StoredDocument | None:
        return await self._guard("findById", lambda: self.collection.query({"_id": doc_id}).exec_one())

    async def count(self, q: Query | dict[str, Any]) -> int:
        return await self._guard("count", lambda: self.create_query(q).count())

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    async def create(self, fields: dict[str, Any]) -> StoredDocument:
        doc = await self._guard("create", lambda: self.collection.insert_one(dict(fields or {})))
        logger.debug("document_created", collection=self.name, id=getattr(doc, "id", None))
        return doc

    async def update(self, q: Query | dict[str, Any], fields: dict[str, Any], upsert: bool = False) -> None:
        """Apply ``fields`` to every document matching ``q``.

        With ``upsert`` and no match, insert one document seeded with the
        query's equality constraints, then updated by ``fields``.
        """

        async def _update() -> None:
            query = Query.from_dict(q)
            update = dict(fields or {})
            if upsert and await self.collection.query(query.query).count() == 0:
                seed = apply_update(query.equality_constraints(), normalize_update(update))
                await self.collection.insert_one(seed)
                logger.debug("document_upserted", collection=self.name)
                return
            matched = await self.collection.update_many(query.query, update)
            logger.debug("documents_updated", collection=self.name, matched=matched)

        await self._guard("update", _update)

    async def patch(self, q: Query | dict[str, Any], patches: list[PatchLike]) -> None:
        """Apply a JSON-Patch sequence to every document matching ``q``."""

        async def _patch() -> None:
            query = Query.from_dict(q)
            ops = [p.to_dict() if isinstance(p, PatchOperation) else dict(p) for p in patches or []]
            # full documents: a projection here would drop fields on write
            docs = await self.collection.query(query.query).exec()
            for doc in docs:
                source = doc.to_json()
                doc_id = source.get("_id")
                try:
                    patched = jsonpatch.apply_patch(source, ops)
                except (jsonpatch.JsonPatchException, jsonpointer.JsonPointerException) as e:
                    raise PatchError(
                        f"Could not apply patch to document {doc_id!r}: {e}",
                        inner_error=e,
                    ) from e
                await self.collection.replace_one(doc_id, patched)
            logger.debug("documents_patched", collection=self.name, matched=len(docs))

        await self._guard("patch", _patch)

    async def delete(self, q: Query | dict[str, Any]) -> None:
        deleted = await self._guard("delete", lambda: self.collection.delete_many(Query.from_dict(q).query))
        logger.debug("documents_deleted", collection=self.name, deleted=deleted)


__all__ = ["ModelInterface"]
