"""HTTP application: FastAPI factory, dependencies and middleware."""

from docgate.api.app import create_app

__all__ = ["create_app"]
