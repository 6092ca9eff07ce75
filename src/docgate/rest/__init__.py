"""REST protocol adapter."""

from docgate.rest.handler import (
    DEFAULT_REST_INTERFACE_OPTIONS,
    HTTP_METHOD_TO_OPERATION,
    OPERATION_TO_HTTP_METHOD,
    RESTInterfaceHandler,
    RESTInterfaceOptions,
    RESTParseOptions,
    allowed_http_methods,
)

__all__ = [
    "DEFAULT_REST_INTERFACE_OPTIONS",
    "HTTP_METHOD_TO_OPERATION",
    "OPERATION_TO_HTTP_METHOD",
    "RESTInterfaceHandler",
    "RESTInterfaceOptions",
    "RESTParseOptions",
    "allowed_http_methods",
]
