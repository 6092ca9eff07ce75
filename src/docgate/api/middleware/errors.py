"""
Error-handling middleware: renders escaped exceptions as wrapped errors.

Protocol adapters answer with their own error bodies; this handler only
sees what escapes them (a bug, or a failure outside the mapped paths).
The body has the same ``{"error": {...}}`` shape the adapters use.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from docgate.core.errors import wrap_error


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions."""
    wrapped = wrap_error(exc)
    debug = request.app.state.settings.debug
    body = wrapped.to_dict(include_stack=debug)
    if not debug and wrapped.http_code >= 500:
        body["message"] = "An unexpected error occurred."
        body.pop("innerError", None)
    return JSONResponse(status_code=wrapped.http_code, content={"error": body})
