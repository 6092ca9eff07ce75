"""
Structured error types for the docgate operation layer.

Every failure that crosses the data-interface boundary is normalized into a
single exception type, :class:`ModelInterfaceError`.  Instead of probing an
error object for a marker field, callers check the *type*: an instance of
``ModelInterfaceError`` is already wrapped, anything else is not.  The
``kind`` tag then tells protocol adapters what went wrong without a deep
class hierarchy to walk.

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────────┐
        │                    ModelInterfaceError                         │
        │   (kind, message, http_code, inner_error, stack, headers)      │
        ├───────────────────────────────────────────────────────────────┤
        │                                                                │
        │  InvalidHTTPMethodError     HTTPMethodNotAllowedError          │
        │  (INVALID_METHOD, 405)      (METHOD_NOT_ALLOWED, 405, Allow)   │
        │                                                                │
        │  PatchError                 RequestBodyTooLargeError           │
        │  (PATCH, 422)               (BAD_REQUEST, 413)                 │
        └───────────────────────────────────────────────────────────────┘

        Raised by collaborators, wrapped at the boundary:

        StoreError (STORE, 500)     CodecError (BAD_REQUEST, 400)
          DuplicateKeyError  409
          InvalidQueryError  400
          InvalidUpdateError 400

Examples:
    Wrapping is idempotent:

    >>> err = wrap_error(ValueError("boom"))
    >>> wrap_error(err) is err
    True
    >>> err.http_code
    500

    Store errors keep their status:

    >>> wrap_error(DuplicateKeyError("Duplicate _id")).http_code
    409

Tags:
    error-handling, wrapped-error, http-status, docgate
"""

from __future__ import annotations

import traceback
from enum import Enum
from typing import Any

from docgate.core.logging import get_logger

logger = get_logger(__name__)


class ErrorKind(str, Enum):
    """Discriminator for :class:`ModelInterfaceError`."""

    INVALID_METHOD = "INVALID_METHOD"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    STORE = "STORE"
    PATCH = "PATCH"
    BAD_REQUEST = "BAD_REQUEST"
    INTERNAL = "INTERNAL"


class ModelInterfaceError(Exception):
    """
    The normalized error shape exposed at every boundary of the layer.

    Attributes:
        message: Human-readable description.
        kind: :class:`ErrorKind` tag.
        http_code: Status a REST adapter should answer with (default 500).
        inner_error: The original exception, when this one wraps another.
        stack: Formatted traceback of the original exception, if any.
        headers: Extra response headers (e.g. ``Allow``), singular or list
            values.
    """

    default_kind: ErrorKind = ErrorKind.INTERNAL
    default_http_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        http_code: int | None = None,
        inner_error: BaseException | None = None,
        stack: str | None = None,
        headers: dict[str, str | list[str]] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.http_code = http_code or self.default_http_code
        self.inner_error = inner_error
        self.stack = stack
        self.headers = headers or {}

        if inner_error is not None:
            self.__cause__ = inner_error

    def to_dict(self, *, include_stack: bool = False) -> dict[str, Any]:
        """Wire form of the error. Never carries a marker field."""
        result: dict[str, Any] = {
            "message": self.message,
            "httpCode": self.http_code,
            "kind": self.kind.value,
        }
        if self.inner_error is not None:
            result["innerError"] = {
                "type": type(self.inner_error).__name__,
                "message": str(self.inner_error),
            }
        if include_stack and self.stack:
            result["stack"] = self.stack
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, kind={self.kind.value}, http_code={self.http_code})"


class InvalidHTTPMethodError(ModelInterfaceError):
    """The HTTP verb has no operation mapped to it."""

    default_kind = ErrorKind.INVALID_METHOD
    default_http_code = 405

    def __init__(self, method: str):
        super().__init__(f"Invalid HTTP method {method}")
        self.method = method


class HTTPMethodNotAllowedError(ModelInterfaceError):
    """The verb maps to an operation that the configured policy excludes.

    ``allow`` is the list of HTTP verbs that *are* permitted; it becomes the
    ``Allow`` response header.
    """

    default_kind = ErrorKind.METHOD_NOT_ALLOWED
    default_http_code = 405

    def __init__(self, http_method: str, allow: list[str] | None = None):
        super().__init__(f"HTTP method {http_method} not allowed")
        self.http_method = http_method
        self.allow = list(allow or [])
        if allow is not None:
            self.headers = {"Allow": " ".join(self.allow)}


class PatchError(ModelInterfaceError):
    """A JSON-Patch operation could not be applied to a document."""

    default_kind = ErrorKind.PATCH
    default_http_code = 422


class RequestBodyTooLargeError(ModelInterfaceError):
    default_kind = ErrorKind.BAD_REQUEST
    default_http_code = 413

    def __init__(self, limit: int):
        super().__init__(f"Request body exceeds {limit} bytes")
        self.limit = limit


# =============================================================================
# COLLABORATOR ERRORS (raised by stores and codecs, wrapped at the boundary)
# =============================================================================


class StoreError(Exception):
    """Base class for errors raised by a document store."""

    error_kind = ErrorKind.STORE
    http_code = 500


class DuplicateKeyError(StoreError):
    """Unique ``_id`` constraint violated."""

    http_code = 409


class InvalidQueryError(StoreError):
    """Filter, sort or projection document is malformed."""

    http_code = 400


class InvalidUpdateError(StoreError):
    """Update document uses an unsupported operator."""

    http_code = 400


class CodecError(Exception):
    """Payload could not be serialized or deserialized."""

    error_kind = ErrorKind.BAD_REQUEST
    http_code = 400


# =============================================================================
# WRAPPING
# =============================================================================


def is_wrapped(error: BaseException) -> bool:
    return isinstance(error, ModelInterfaceError)


def wrap_error(error: BaseException) -> ModelInterfaceError:
    """Normalize any exception into a :class:`ModelInterfaceError`.

    Already-wrapped errors are returned unchanged.  Otherwise the original
    becomes ``inner_error``; its message and traceback are copied, and its
    ``http_code``/``error_kind`` attributes are honoured when it declares
    them.
    """
    if isinstance(error, ModelInterfaceError):
        return error

    stack = None
    if error.__traceback__ is not None:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))

    wrapped = ModelInterfaceError(
        str(error) or type(error).__name__,
        kind=getattr(error, "error_kind", ErrorKind.INTERNAL),
        http_code=getattr(error, "http_code", None),
        inner_error=error,
        stack=stack,
    )

    log = logger.error if wrapped.http_code >= 500 else logger.warning
    log(
        "error_wrapped",
        kind=wrapped.kind.value,
        http_code=wrapped.http_code,
        error_type=type(error).__name__,
        error=wrapped.message,
    )
    return wrapped


__all__ = [
    "ErrorKind",
    "ModelInterfaceError",
    "InvalidHTTPMethodError",
    "HTTPMethodNotAllowedError",
    "PatchError",
    "RequestBodyTooLargeError",
    "StoreError",
    "DuplicateKeyError",
    "InvalidQueryError",
    "InvalidUpdateError",
    "CodecError",
    "is_wrapped",
    "wrap_error",
]
