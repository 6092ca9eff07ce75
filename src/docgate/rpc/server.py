"""
JSON-RPC 2.0 server: a method registry with a Starlette endpoint.

:class:`RPCServer` is the transport that :class:`~docgate.rpc.interface.RPCInterface`
registers into.  Messages follow JSON-RPC 2.0: single calls, batches and
notifications (no ``id``), with positional or named ``params``.

Error codes:
    ======  ===========================================================
    -32700  Parse error (body could not be decoded)
    -32600  Invalid request
    -32601  Method not found
    -32602  Invalid params (arguments do not fit the method signature)
    -32000  Operation failed; ``data`` is the wrapped error's ``to_dict()``
    ======  ===========================================================

Examples:
    >>> server = RPCServer()
    >>> server.register("echo", echo)
    >>> await server.handle({"jsonrpc": "2.0", "id": 1, "method": "echo", "params": ["hi"]})
    {'jsonrpc': '2.0', 'id': 1, 'result': 'hi'}

Tags:
    rpc, json-rpc, transport, docgate
"""

from __future__ import annotations

import inspect
from typing import Any

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from docgate.codec import Codec
from docgate.core.errors import CodecError, wrap_error
from docgate.core.logging import get_logger
from docgate.rpc.interface import RPCMethod

logger = get_logger(__name__)

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
OPERATION_ERROR = -32000


def _error(request_id: Any, code: int, message: str, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


class RPCServer:
    """Named-method registry answering JSON-RPC 2.0 messages.

    Parameters:
        codec: Decodes request bodies and encodes responses on the HTTP
            route.
        include_error_stack: Put the error stack into ``error.data``.
    """

    def __init__(self, codec: Codec | None = None, include_error_stack: bool = False):
        self.codec = codec or Codec()
        self.include_error_stack = include_error_stack
        self.methods: dict[str, RPCMethod] = {}

    def register(self, name: str, method: RPCMethod) -> None:
        if name in self.methods:
            raise ValueError(f"RPC method {name!r} is already registered")
        self.methods[name] = method

    async def handle(self, message: Any) -> dict[str, Any] | list[dict[str, Any]] | None:
        """Answer one message or a batch. Returns ``None`` when nothing is owed."""
        if isinstance(message, list):
            if not message:
                return _error(None, INVALID_REQUEST, "Empty batch")
            responses = [await self._handle_one(m) for m in message]
            return [r for r in responses if r is not None] or None
        return await self._handle_one(message)

    async def _handle_one(self, message: Any) -> dict[str, Any] | None:
        if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
            return _error(None, INVALID_REQUEST, "Invalid request")

        request_id = message.get("id")
        is_notification = "id" not in message
        name = message.get("method")
        params = message.get("params", [])

        if not isinstance(name, str) or not isinstance(params, (list, dict)):
            return _error(request_id, INVALID_REQUEST, "Invalid request")

        method = self.methods.get(name)
        if method is None:
            logger.info("rpc_method_not_found", method=name)
            return None if is_notification else _error(request_id, METHOD_NOT_FOUND, f"Method not found: {name}")

        args: list[Any] = params if isinstance(params, list) else []
        kwargs: dict[str, Any] = params if isinstance(params, dict) else {}
        try:
            inspect.signature(method).bind(*args, **kwargs)
        except TypeError as e:
            return None if is_notification else _error(request_id, INVALID_PARAMS, f"Invalid params: {e}")

        try:
            result = await method(*args, **kwargs)
        except Exception as e:
            wrapped = wrap_error(e)
            if is_notification:
                return None
            return _error(
                request_id,
                OPERATION_ERROR,
                wrapped.message,
                wrapped.to_dict(include_stack=self.include_error_stack),
            )

        if is_notification:
            return None
        return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

    async def endpoint(self, request: Request) -> Response:
        raw = await request.body()
        content_format = self.codec.header_to_serialization_format(request.headers, "content-type")
        try:
            message = self.codec.deserialize_object(raw, content_format.format)
        except CodecError as e:
            result: Any = _error(None, PARSE_ERROR, f"Parse error: {e}")
        else:
            result = await self.handle(message)

        if result is None:
            return Response(status_code=204)
        accept = self.codec.header_to_serialization_format(request.headers, "accept")
        return Response(self.codec.serialize_object(result, accept.format), media_type=accept.mime_type)

    def route(self, path: str = "/rpc") -> Route:
        return Route(path, self.endpoint, methods=["POST"], include_in_schema=False)


__all__ = [
    "RPCServer",
    "JSONRPC_VERSION",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "OPERATION_ERROR",
]
