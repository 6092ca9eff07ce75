"""
RPC interface: exposes a collection's operations as named RPC methods.

Every operation of a :class:`~docgate.interface.simple.SimpleModelInterface`
is registered under ``"<prefix><modelName>:<operation>"``::

    RPCInterface(simple, server, method_prefix="db.")
        db.widgets:find       → simple.find(query)
        db.widgets:findOne    → simple.find_one(query)
        db.widgets:findById   → simple.find_by_id(id)
        db.widgets:count      → simple.count(query)
        db.widgets:create     → simple.create(fields)
        db.widgets:update     → simple.update(query, fields, upsert=False)
        db.widgets:patch      → simple.patch(query, patches)
        db.widgets:delete     → simple.delete(query)

``execute`` is not exposed.  The table is static; nothing is discovered by
introspection.

Tags:
    rpc, method-registry, docgate
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from docgate.core.logging import get_logger
from docgate.core.query import Operation
from docgate.interface.simple import SimpleModelInterface

logger = get_logger(__name__)

RPCMethod = Callable[..., Awaitable[Any]]

# Operation → SimpleModelInterface attribute
RPC_OPERATIONS: dict[Operation, str] = {
    Operation.FIND: "find",
    Operation.FIND_ONE: "find_one",
    Operation.FIND_BY_ID: "find_by_id",
    Operation.COUNT: "count",
    Operation.CREATE: "create",
    Operation.UPDATE: "update",
    Operation.PATCH: "patch",
    Operation.DELETE: "delete",
}


class MethodRegistry(Protocol):
    """Anything RPC methods can be registered into by name."""

    def register(self, name: str, method: RPCMethod) -> None: ...


class RPCInterface:
    """Registers one RPC method per operation of a simple interface."""

    def __init__(
        self,
        model_interface: SimpleModelInterface,
        registry: MethodRegistry,
        method_prefix: str | None = None,
    ):
        self.model_interface = model_interface
        self.registry = registry
        self.method_prefix = method_prefix or ""
        self.method_names: list[str] = []

        for operation, attr in RPC_OPERATIONS.items():
            name = f"{self.rpc_interface_method_prefix}{operation.value}"
            registry.register(name, getattr(model_interface, attr))
            self.method_names.append(name)

        logger.debug("rpc_methods_registered", collection=model_interface.name, count=len(self.method_names))

    @property
    def rpc_interface_method_prefix(self) -> str:
        return f"{self.method_prefix}{self.model_interface.name}:"


__all__ = ["RPCInterface", "RPC_OPERATIONS", "MethodRegistry", "RPCMethod"]
