"""Reference document stores."""

from docgate.stores.sqlite import Document, SQLiteCollection, SQLiteDocumentStore, SQLiteQuery, generate_object_id

__all__ = [
    "Document",
    "SQLiteCollection",
    "SQLiteDocumentStore",
    "SQLiteQuery",
    "generate_object_id",
]
