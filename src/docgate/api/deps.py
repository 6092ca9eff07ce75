"""
FastAPI dependencies: shared singletons.

Usage::

    from docgate.api.deps import Settings

    @router.get("/things")
    def list_things(settings: Settings):
        ...
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from docgate.core.settings import GatewaySettings


@lru_cache(maxsize=1)
def get_settings() -> GatewaySettings:
    """Cached settings: loaded once per process."""
    return GatewaySettings()


Settings = Annotated[GatewaySettings, Depends(get_settings)]
