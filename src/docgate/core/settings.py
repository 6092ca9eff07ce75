"""Gateway settings.

Configuration for the REST and RPC surfaces, the reference SQLite store and
logging.  Every field can be overridden with an environment variable
prefixed ``DOCGATE_`` or from a ``.env`` file.

Order of precedence (highest → lowest):
    1. Environment variables (``DOCGATE_PORT``, ``DOCGATE_COLLECTIONS``, ...)
    2. ``.env`` file
    3. Defaults below

Examples:
    >>> settings = GatewaySettings(collections=["widgets"], upsert=True)
    >>> settings.rest_parse_options().upsert
    True
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from docgate.core.query import Operation


class GatewaySettings(BaseSettings):
    """Settings for a docgate deployment."""

    model_config = SettingsConfigDict(
        env_prefix="DOCGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Server ───────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8080, description="Bind port")
    debug: bool = Field(default=False, description="Expose error stacks and enable debug mode")

    # ── Observability ────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool | None = Field(default=None, description="JSON logs; None auto-detects from the TTY")

    # ── Storage ──────────────────────────────────────────────────────
    database_path: str = Field(default=":memory:", description="SQLite file backing the document store")
    collections: list[str] = Field(default=["documents"], description="Collections exposed by the gateway")

    # ── REST ─────────────────────────────────────────────────────────
    api_prefix: str = Field(default="/api", description="URL prefix for collection endpoints")
    allowed_methods: list[Operation] | None = Field(
        default=None,
        description="Operations reachable over REST; None allows all",
    )
    upsert: bool = Field(default=False, description="Allow PUT to create missing documents")
    last_modified_field: str = Field(default="updatedAt", description="Field reported as Last-Modified")
    default_format: str = Field(default="json", description="Serialization format when negotiation fails")
    max_body_size: int | None = Field(default=1_048_576, description="Largest accepted request body in bytes")

    # ── RPC ──────────────────────────────────────────────────────────
    rpc_path: str = Field(default="/rpc", description="Path of the JSON-RPC endpoint")
    rpc_method_prefix: str = Field(default="", description="Prefix prepended to every RPC method name")

    def rest_parse_options(self):
        """Build the default REST parse options for this deployment."""
        from docgate.rest.handler import RESTParseOptions

        return RESTParseOptions(
            upsert=self.upsert,
            allowed_methods=frozenset(self.allowed_methods) if self.allowed_methods is not None else None,
            last_modified_field=self.last_modified_field,
        )
