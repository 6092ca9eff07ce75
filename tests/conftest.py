"""
Shared pytest fixtures for docgate tests.

This module provides:
- An in-memory SQLite document store and a ``widgets`` collection
- The data interface, simple interface and REST handler over it
- A FastAPI ``TestClient`` for the full application

Usage:
    Fixtures are auto-discovered by pytest::

        def test_something(simple_interface, client):
            ...
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from docgate.api.app import create_app
from docgate.core.logging import clear_context
from docgate.core.settings import GatewaySettings
from docgate.interface import ModelInterface, SimpleModelInterface
from docgate.rest.handler import RESTInterfaceHandler
from docgate.stores.sqlite import SQLiteCollection, SQLiteDocumentStore


@pytest.fixture(autouse=True)
def clean_log_context() -> Generator[None, None, None]:
    clear_context()
    yield
    clear_context()


@pytest.fixture
def store() -> Generator[SQLiteDocumentStore, None, None]:
    s = SQLiteDocumentStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def collection(store: SQLiteDocumentStore) -> SQLiteCollection:
    return store.collection("widgets")


@pytest.fixture
def model_interface(collection: SQLiteCollection) -> ModelInterface:
    return ModelInterface(collection)


@pytest.fixture
def simple_interface(model_interface: ModelInterface) -> SimpleModelInterface:
    return SimpleModelInterface(model_interface)


@pytest.fixture
def rest_handler(simple_interface: SimpleModelInterface) -> RESTInterfaceHandler:
    return RESTInterfaceHandler(simple_interface, "/api/widgets")


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(collections=["widgets"], api_prefix="/api", _env_file=None)


@pytest.fixture
def client(settings: GatewaySettings, store: SQLiteDocumentStore) -> TestClient:
    return TestClient(create_app(settings=settings, store=store))
