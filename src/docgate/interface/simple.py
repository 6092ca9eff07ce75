"""
Simple interface: plain data in, plain data out, one routing entry point.

:class:`SimpleModelInterface` wraps a
:class:`~docgate.interface.model.ModelInterface`.  Its operation methods
return plain dicts and lists (never store documents) and raise
:class:`~docgate.core.errors.ModelInterfaceError` on failure; that is the
calling convention RPC clients see.

:meth:`SimpleModelInterface.execute` is the dispatcher both protocol
adapters go through.  It never raises: every failure comes back as an
``{"error": ...}`` body.

Request bodies by operation::

    find / findOne / count   {"query": Query}
    findById                 {"id": ...}  or  {"query": {"query": {"_id": ...}}}
    create                   {"fields": {...}}
    update                   {"query": Query, "fields": {...}, "upsert": bool}
    patch                    {"query": Query, "patches": [JSON-Patch op, ...]}
    delete                   {"query": Query}

Response bodies::

    find → {"results": [...]}     findOne / findById → {"result": doc | None}
    count → {"count": n}          create → {"id": new_id}
    update / patch / delete → None
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from docgate.core.errors import ErrorKind, ModelInterfaceError
from docgate.core.logging import get_logger
from docgate.core.query import Operation, OperationRequest, OperationResponse, Query
from docgate.interface.model import ModelInterface, PatchLike

logger = get_logger(__name__)

Handler = Callable[["SimpleModelInterface", dict[str, Any]], Awaitable[dict[str, Any] | None]]


class SimpleModelInterface:
    """Plain-data facade and dispatcher over a :class:`ModelInterface`."""

    def __init__(self, model_interface: ModelInterface):
        self.model_interface = model_interface

    @property
    def name(self) -> str:
        return self.model_interface.name

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    async def find(self, query: Query | dict[str, Any]) -> list[dict[str, Any]]:
        return ModelInterface.to_pojo(await self.model_interface.find(query))

    async def find_one(self, query: Query | dict[str, Any]) -> dict[str, Any] | None:
        return ModelInterface.to_pojo(await self.model_interface.find_one(query))

    async def find_by_id(self, id: Any) -> dict[str, Any] | None:
        return ModelInterface.to_pojo(await self.model_interface.find_by_id(id))

    async def count(self, query: Query | dict[str, Any]) -> int:
        return await self.model_interface.count(query)

    async def create(self, fields: dict[str, Any]) -> dict[str, Any]:
        return ModelInterface.to_pojo(await self.model_interface.create(fields))

    async def update(self, query: Query | dict[str, Any], fields: dict[str, Any], upsert: bool = False) -> None:
        await self.model_interface.update(query, fields, upsert)

    async def patch(self, query: Query | dict[str, Any], patches: list[PatchLike]) -> None:
        await self.model_interface.patch(query, patches)

    async def delete(self, query: Query | dict[str, Any]) -> None:
        await self.model_interface.delete(query)

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    async def _find(self, body: dict[str, Any]) -> dict[str, Any]:
        return {"results": await self.find(body.get("query") or {})}

    async def _find_one(self, body: dict[str, Any]) -> dict[str, Any]:
        return {"result": await self.find_one(body.get("query") or {})}

    async def _find_by_id(self, body: dict[str, Any]) -> dict[str, Any]:
        doc_id = body.get("id")
        if doc_id is None:
            doc_id = ((body.get("query") or {}).get("query") or {}).get("_id")
        if doc_id is None:
            raise ModelInterfaceError("findById requires an id", kind=ErrorKind.BAD_REQUEST, http_code=400)
        return {"result": await self.find_by_id(doc_id)}

    async def _count(self, body: dict[str, Any]) -> dict[str, Any]:
        return {"count": await self.count(body.get("query") or {})}

    async def _create(self, body: dict[str, Any]) -> dict[str, Any]:
        created = await self.create(body.get("fields") or {})
        return {"id": created.get("_id") if isinstance(created, dict) else None}

    async def _update(self, body: dict[str, Any]) -> None:
        await self.update(body.get("query") or {}, body.get("fields") or {}, bool(body.get("upsert", False)))

    async def _patch(self, body: dict[str, Any]) -> None:
        await self.patch(body.get("query") or {}, body.get("patches") or [])

    async def _delete(self, body: dict[str, Any]) -> None:
        await self.delete(body.get("query") or {})

    DISPATCH: dict[Operation, Handler] = {
        Operation.FIND: _find,
        Operation.FIND_ONE: _find_one,
        Operation.FIND_BY_ID: _find_by_id,
        Operation.COUNT: _count,
        Operation.CREATE: _create,
        Operation.UPDATE: _update,
        Operation.PATCH: _patch,
        Operation.DELETE: _delete,
    }

    async def execute(self, request: OperationRequest | dict[str, Any]) -> OperationResponse:
        """Route a request by operation name. Never raises."""
        if isinstance(request, dict):
            request = OperationRequest(method=request.get("method"), body=request.get("body") or {})

        try:
            method = Operation(request.method)
        except ValueError:
            error = ModelInterfaceError(
                f"Unknown operation {request.method!r}",
                kind=ErrorKind.INVALID_METHOD,
                http_code=400,
            )
            return OperationResponse(method=None, body={"error": error})

        try:
            body = await self.DISPATCH[method](self, request.body or {})
        except Exception as e:
            return OperationResponse(method=method, body={"error": self.model_interface.wrap_error(e)})

        logger.debug("operation_executed", collection=self.name, method=method.value)
        return OperationResponse(method=method, body=body)


__all__ = ["SimpleModelInterface"]
