"""
REST interface handler: HTTP ⇄ operation requests.

Maps an inbound Starlette ``Request`` onto an
:class:`~docgate.core.query.OperationRequest`, runs it through
:meth:`SimpleModelInterface.execute`, and maps the
:class:`~docgate.core.query.OperationResponse` back onto status, headers and
a content-negotiated body.

Verb mapping::

    POST   /            → create        201 + Location
    PUT    /[:id]       → update        204
    PATCH  /[:id]       → patch         204
    DELETE /[:id]       → delete        204
    GET    /            → find          200 {"results": [...]}
    GET    /:id         → findOne       200 {"result": ...} | 404
    HEAD   /            → count         200, X-Count: n
    HEAD   /:id         → findOne(_id, updatedAt)  200 X-Count: 1 | 404 | 304

The query string feeds the operation's Query: ``?limit=5&sort.age=-1``
sets ``body.query.limit`` and ``body.query.sort.age``;
``?query.name=bolt`` adds a filter.  Numbers and booleans are coerced.

Options are immutable values.  The handler holds defaults; a
:class:`RESTParseOptions` passed to :meth:`RESTInterfaceHandler.execute`
replaces the default parse options for that call.

Tags:
    rest, http, content-negotiation, conditional-get, docgate
"""

from __future__ import annotations

import email.utils
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote, urlsplit

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from docgate.codec import Codec, ExtractedFormat
from docgate.core.errors import (
    CodecError,
    HTTPMethodNotAllowedError,
    InvalidHTTPMethodError,
    ModelInterfaceError,
    RequestBodyTooLargeError,
    wrap_error,
)
from docgate.core.logging import get_logger
from docgate.core.query import Operation, OperationRequest, OperationResponse
from docgate.interface.simple import SimpleModelInterface

logger = get_logger(__name__)

OPERATION_TO_HTTP_METHOD: dict[Operation, str] = {
    Operation.CREATE: "POST",
    Operation.UPDATE: "PUT",
    Operation.DELETE: "DELETE",
    Operation.FIND: "GET",
    Operation.FIND_BY_ID: "GET",
    Operation.COUNT: "HEAD",
    Operation.FIND_ONE: "GET",
    Operation.PATCH: "PATCH",
}

HTTP_METHOD_TO_OPERATION: dict[str, Operation] = {
    "POST": Operation.CREATE,
    "PUT": Operation.UPDATE,
    "PATCH": Operation.PATCH,
    "DELETE": Operation.DELETE,
    "HEAD": Operation.COUNT,
    "GET": Operation.FIND_ONE,
}

# Every verb is routed to the handler so unsupported ones get a proper error
ROUTE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"]

_NUMBER_RE = re.compile(r"^-?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^-?\d+$")


@dataclass(frozen=True, slots=True)
class RESTParseOptions:
    """Per-call policy for turning an HTTP request into an operation.

    Attributes:
        skip_parse_body: Do not read the request body.
        upsert: Let ``PUT`` create a document when nothing matches.
        allowed_methods: Operations permitted over REST; ``None`` allows all.
            Others answer 405 with an ``Allow`` header.
        last_modified_field: Result field reported as ``Last-Modified``.
    """

    skip_parse_body: bool = False
    upsert: bool = False
    allowed_methods: frozenset[Operation] | None = None
    last_modified_field: str = "updatedAt"


@dataclass(frozen=True, slots=True)
class RESTInterfaceOptions:
    """Handler-wide settings, fixed at construction.

    Attributes:
        codec: Serializes bodies and negotiates formats.
        max_body_size: Largest accepted body in bytes (``None`` = no limit).
        parse_numbers: Coerce numeric query-string values.
        parse_booleans: Coerce ``true``/``false`` query-string values.
        parse_options: Default :class:`RESTParseOptions`.
        include_error_stack: Serialize the error stack in error bodies.
    """

    codec: Codec = field(default_factory=Codec)
    max_body_size: int | None = None
    parse_numbers: bool = True
    parse_booleans: bool = True
    parse_options: RESTParseOptions = field(default_factory=RESTParseOptions)
    include_error_stack: bool = False


DEFAULT_REST_INTERFACE_OPTIONS = RESTInterfaceOptions()


def allowed_http_methods(operations: frozenset[Operation] | set[Operation]) -> list[str]:
    """HTTP verbs for a set of operations, deduplicated, in operation order."""
    verbs: list[str] = []
    for op in Operation:
        if op in operations:
            verb = OPERATION_TO_HTTP_METHOD[op]
            if verb not in verbs:
                verbs.append(verb)
    return verbs


def _set_path(target: dict[str, Any], dotted_key: str, value: Any) -> None:
    parts = dotted_key.split(".")
    cur = target
    for part in parts[:-1]:
        if not isinstance(cur.get(part), dict):
            cur[part] = {}
        cur = cur[part]
    cur[parts[-1]] = value


def _parse_http_date(value: str) -> datetime | None:
    try:
        parsed = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        parsed = _parse_timestamp(value)
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class RESTInterfaceHandler:
    """Serve one collection over REST.

    Parameters:
        model_interface: The underlying :class:`SimpleModelInterface`.
        url_base: Base of the collection's endpoint, as a path
            (``/api/widgets``) or full URL (``https://example.com/widgets``).
            The path remainder after it is the document id.
        options: Handler-wide :class:`RESTInterfaceOptions`.
    """

    def __init__(
        self,
        model_interface: SimpleModelInterface,
        url_base: str,
        options: RESTInterfaceOptions = DEFAULT_REST_INTERFACE_OPTIONS,
    ):
        self.model_interface = model_interface
        self.url_base = url_base
        self.base_path = urlsplit(url_base).path.rstrip("/")
        self.options = options

    @property
    def codec(self) -> Codec:
        return self.options.codec

    def target_id(self, request: Request) -> str:
        path = request.url.path
        if self.base_path and path.startswith(self.base_path):
            path = path[len(self.base_path):]
        return path.strip("/")

    def header_to_serialization_format(self, request: Request, key: str) -> ExtractedFormat:
        return self.codec.header_to_serialization_format(request.headers, key)

    # ------------------------------------------------------------------ #
    # Request mapping
    # ------------------------------------------------------------------ #

    async def read_body(self, request: Request) -> bytes | None:
        limit = self.options.max_body_size
        declared = request.headers.get("content-length")
        if limit is not None and declared and declared.isdigit() and int(declared) > limit:
            raise RequestBodyTooLargeError(limit)

        chunks: list[bytes] = []
        size = 0
        async for chunk in request.stream():
            size += len(chunk)
            if limit is not None and size > limit:
                raise RequestBodyTooLargeError(limit)
            chunks.append(chunk)
        buf = b"".join(chunks)
        return buf or None

    def parse_query_string(self, request: Request) -> dict[str, Any]:
        parsed: dict[str, Any] = {}
        for key, raw in request.query_params.multi_items():
            value = self._coerce(raw)
            if key in parsed:
                existing = parsed[key]
                parsed[key] = existing + [value] if isinstance(existing, list) else [existing, value]
            else:
                parsed[key] = value
        return parsed

    def _coerce(self, value: str) -> Any:
        if self.options.parse_booleans and value in ("true", "false"):
            return value == "true"
        if self.options.parse_numbers:
            if _INTEGER_RE.match(value):
                return int(value)
            if _NUMBER_RE.match(value):
                return float(value)
        return value

    async def interface_request_from_http_request(
        self,
        request: Request,
        options: RESTParseOptions | None = None,
    ) -> OperationRequest:
        """Build the operation request an HTTP request stands for."""
        opts = options or self.options.parse_options

        target_id = self.target_id(request)
        has_pathname = bool(target_id)

        buf = None if opts.skip_parse_body else await self.read_body(request)

        http_method = request.method.upper()
        if http_method == "GET":
            method = Operation.FIND_ONE if has_pathname else Operation.FIND
        elif http_method in HTTP_METHOD_TO_OPERATION:
            method = HTTP_METHOD_TO_OPERATION[http_method]
        else:
            raise InvalidHTTPMethodError(http_method)

        if opts.allowed_methods is not None and method not in opts.allowed_methods:
            raise HTTPMethodNotAllowedError(http_method, allowed_http_methods(opts.allowed_methods))

        body: dict[str, Any] = {}

        # The path segment becomes the `_id` constraint
        if has_pathname:
            _set_path(body, "query.query._id", target_id)
            if method is Operation.COUNT:
                method = Operation.FIND_ONE
                _set_path(body, "query.project", {"_id": 1, opts.last_modified_field: 1})

        if method is Operation.UPDATE:
            body["upsert"] = opts.upsert

        if buf is not None:
            fmt = self.header_to_serialization_format(request, "content-type").format
            payload = self.codec.deserialize_object(buf, fmt)
            if payload is not None:
                if not isinstance(payload, dict):
                    raise CodecError("Request body must be an object")
                body = {**payload, **body}

        # Query string wins over the body
        for key, value in self.parse_query_string(request).items():
            _set_path(body, f"query.{key}", value)

        logger.debug("rest_request_mapped", http_method=http_method, method=method.value, target_id=target_id or None)
        return OperationRequest(method=method, body=body)

    # ------------------------------------------------------------------ #
    # Response mapping
    # ------------------------------------------------------------------ #

    async def execute(self, request: Request, options: RESTParseOptions | None = None) -> Response:
        """Run the operation an HTTP request stands for and build the response."""
        opts = options or self.options.parse_options
        try:
            interface_request = await self.interface_request_from_http_request(request, opts)
        except Exception as e:
            resp = OperationResponse(
                method=HTTP_METHOD_TO_OPERATION.get(request.method.upper()),
                body={"error": wrap_error(e)},
            )
        else:
            resp = await self.model_interface.execute(interface_request)

        response = self.build_response(request, resp, opts)
        logger.debug(
            "rest_response",
            http_method=request.method,
            method=resp.method.value if resp.method else None,
            status=response.status_code,
        )
        return response

    def build_response(self, request: Request, resp: OperationResponse, opts: RESTParseOptions) -> Response:
        body = resp.body
        is_head = request.method.upper() == "HEAD"
        headers: dict[str, str] = {}

        result = body.get("result") if isinstance(body, dict) else None
        if isinstance(result, dict) and result.get(opts.last_modified_field):
            last_modified = _parse_timestamp(result[opts.last_modified_field])
            if last_modified is not None:
                last_modified = last_modified.replace(microsecond=0)
                since_header = request.headers.get("if-modified-since")
                mod_since = _parse_http_date(since_header) if since_header else None
                if mod_since is not None and last_modified <= mod_since:
                    return Response(status_code=304)
                headers["Last-Modified"] = email.utils.format_datetime(last_modified.astimezone(UTC), usegmt=True)

        if body is None:
            return Response(status_code=204, headers=headers)

        if "result" in body and body["result"] is None:
            return Response(status_code=404, headers=headers)

        if resp.method is Operation.CREATE and body.get("id") is not None:
            location = request.url.replace(
                path=request.url.path.rstrip("/") + "/" + quote(str(body["id"]), safe=""),
                query="",
            )
            headers["Location"] = str(location)
            return Response(status_code=201, headers=headers)

        extracted = self.header_to_serialization_format(request, "accept")

        if "result" in body and is_head:
            headers["X-Count"] = "1" if body["result"] is not None else "0"
        elif "count" in body:
            headers["X-Count"] = str(body["count"])

        error = body.get("error")
        status_code = 200
        extra_headers: list[tuple[str, str]] = []
        if isinstance(error, ModelInterfaceError):
            status_code = error.http_code or 500
            for name, values in error.headers.items():
                for value in values if isinstance(values, list) else [values or ""]:
                    extra_headers.append((name, str(value)))
            body = {**body, "error": error.to_dict(include_stack=self.options.include_error_stack)}

        content = b"" if is_head else self.codec.serialize_object(body, extracted.format)
        response = Response(content=content, status_code=status_code, headers=headers, media_type=extracted.mime_type)
        for name, value in extra_headers:
            response.headers.append(name, value)
        return response

    # ------------------------------------------------------------------ #
    # Mounting
    # ------------------------------------------------------------------ #

    async def endpoint(self, request: Request) -> Response:
        return await self.execute(request)

    def routes(self, path: str | None = None) -> list[Route]:
        """Starlette routes for the collection root and ``/{id}``."""
        path = (path if path is not None else self.base_path).rstrip("/")
        return [
            Route(path or "/", self.endpoint, methods=ROUTE_METHODS, include_in_schema=False),
            Route(f"{path}/{{target_id:path}}", self.endpoint, methods=ROUTE_METHODS, include_in_schema=False),
        ]


__all__ = [
    "OPERATION_TO_HTTP_METHOD",
    "HTTP_METHOD_TO_OPERATION",
    "RESTParseOptions",
    "RESTInterfaceOptions",
    "DEFAULT_REST_INTERFACE_OPTIONS",
    "RESTInterfaceHandler",
    "allowed_http_methods",
]
