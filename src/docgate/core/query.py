"""
Operation model: the vocabulary shared by every protocol adapter.

Defines the operation names, the engine-independent :class:`Query` shape,
JSON-Patch operations, and the request/response envelopes that flow through
:meth:`docgate.interface.simple.SimpleModelInterface.execute`.

Nothing in this module knows about HTTP, RPC, or any particular store.

Examples:
    >>> q = Query.from_dict({"query": {"age": {"$gte": 21}}, "sort": {"age": -1}, "limit": 10})
    >>> q.limit, q.skip
    (10, None)
    >>> q.populate_fields()
    []
    >>> Operation("findOne") is Operation.FIND_ONE
    True

Tags:
    operation-model, query, json-patch, docgate
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from docgate.core.errors import InvalidQueryError


class Operation(str, Enum):
    """The named data operations. Values are the wire names."""

    FIND = "find"
    FIND_ONE = "findOne"
    FIND_BY_ID = "findById"
    COUNT = "count"
    CREATE = "create"
    UPDATE = "update"
    PATCH = "patch"
    DELETE = "delete"


class JSONPatchOp(str, Enum):
    """RFC 6902 operation names."""

    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    MOVE = "move"
    COPY = "copy"
    TEST = "test"


@dataclass(frozen=True, slots=True)
class PatchOperation:
    """A single JSON-Patch step, e.g. ``replace /name``."""

    op: JSONPatchOp
    path: str
    value: Any = None
    from_: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatchOperation:
        return cls(
            op=JSONPatchOp(data["op"]),
            path=data["path"],
            value=data.get("value"),
            from_=data.get("from"),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"op": self.op.value, "path": self.path}
        if self.op in (JSONPatchOp.ADD, JSONPatchOp.REPLACE, JSONPatchOp.TEST):
            d["value"] = self.value
        if self.from_ is not None:
            d["from"] = self.from_
        return d


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any] | None:
    value = data.get(key)
    if not value:
        return None
    if not isinstance(value, dict):
        raise InvalidQueryError(f"{key} must be an object")
    return dict(value)


def _integer(data: dict[str, Any], key: str, minimum: int) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise InvalidQueryError(f"{key} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidQueryError(f"{key} must be an integer, got {value!r}") from e
    if number < minimum:
        raise InvalidQueryError(f"{key} must be >= {minimum}, got {number}")
    return number


@dataclass(frozen=True, slots=True)
class Query:
    """Engine-independent query.

    Attributes:
        query: Filter expression (Mongo-style). Always present, possibly empty.
        sort: Ordered ``field → 1|-1`` mapping; ``None`` means store order.
        skip: Documents to skip after sorting.
        limit: Maximum documents returned after skipping.
        populate: Related fields to expand, space-separated or a list.
        project: Field inclusion/exclusion map.
    """

    query: dict[str, Any] = field(default_factory=dict)
    sort: dict[str, int] | None = None
    skip: int | None = None
    limit: int | None = None
    populate: str | list[str] | None = None
    project: dict[str, int] | None = None

    @classmethod
    def from_dict(cls, data: Query | dict[str, Any] | None) -> Query:
        """Build a Query from its plain-data form. Unknown keys are ignored.

        Raises:
            InvalidQueryError: a part of ``data`` has the wrong shape, ``skip``
                is negative or ``limit`` is not positive.
        """
        if isinstance(data, Query):
            return data
        data = data or {}
        if not isinstance(data, dict):
            raise InvalidQueryError("Query must be an object")
        return cls(
            query=_mapping(data, "query") or {},
            sort=_mapping(data, "sort"),
            skip=_integer(data, "skip", minimum=0),
            limit=_integer(data, "limit", minimum=1),
            populate=data.get("populate") or None,
            project=_mapping(data, "project"),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"query": copy.deepcopy(self.query)}
        for key in ("sort", "skip", "limit", "populate", "project"):
            value = getattr(self, key)
            if value is not None:
                d[key] = copy.deepcopy(value)
        return d

    def populate_fields(self) -> list[str]:
        if not self.populate:
            return []
        if isinstance(self.populate, str):
            return [f for f in self.populate.split(" ") if f]
        return [f for f in self.populate if f]

    def equality_constraints(self) -> dict[str, Any]:
        """Fields pinned to a single value by the filter.

        ``{"a": 1, "b": {"$eq": 2}, "c": {"$gt": 3}, "$or": [...]}`` yields
        ``{"a": 1, "b": 2}``.  Used to seed documents created by an upsert.
        """
        seeded: dict[str, Any] = {}
        for key, cond in self.query.items():
            if key.startswith("$"):
                continue
            if isinstance(cond, dict):
                if any(k.startswith("$") for k in cond):
                    if "$eq" in cond:
                        seeded[key] = cond["$eq"]
                    continue
            seeded[key] = cond
        return seeded


@dataclass(slots=True)
class OperationRequest:
    """``{method, body}``: an operation addressed to the dispatcher."""

    method: Operation
    body: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"method": self.method.value, "body": self.body}


@dataclass(slots=True)
class OperationResponse:
    """``{method, body}``: the dispatcher's answer.

    ``body`` is one of ``{"result": ...}``, ``{"results": [...]}``,
    ``{"count": n}``, ``{"id": ...}``, ``{"error": ModelInterfaceError}`` or
    ``None`` for operations without a payload.
    """

    method: Operation | None
    body: dict[str, Any] | None = None

    @property
    def error(self):
        return self.body.get("error") if self.body else None


__all__ = [
    "Operation",
    "JSONPatchOp",
    "PatchOperation",
    "Query",
    "OperationRequest",
    "OperationResponse",
]
