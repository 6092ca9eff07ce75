"""Tests for the SQLite reference document store."""

from __future__ import annotations

import re

import pytest

from docgate.core.errors import DuplicateKeyError, InvalidQueryError, StoreError
from docgate.core.protocols import DocumentCollection, StoredDocument
from docgate.stores.sqlite import Document, SQLiteDocumentStore, generate_object_id


class TestObjectId:
    def test_shape(self):
        assert re.fullmatch(r"[0-9a-f]{24}", generate_object_id())

    def test_unique(self):
        assert len({generate_object_id() for _ in range(200)}) == 200


class TestCollection:
    def test_satisfies_protocols(self, collection):
        assert isinstance(collection, DocumentCollection)
        assert isinstance(Document({"_id": 1}), StoredDocument)

    def test_invalid_name(self, store):
        with pytest.raises(StoreError):
            store.collection("bad name; drop")

    def test_collection_is_cached(self, store):
        assert store.collection("widgets") is store.collection("widgets")

    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_timestamps(self, collection):
        doc = await collection.insert_one({"name": "bolt"})
        data = doc.to_json()
        assert re.fullmatch(r"[0-9a-f]{24}", data["_id"])
        assert data["createdAt"] == data["updatedAt"]

    @pytest.mark.asyncio
    async def test_explicit_id_and_duplicate(self, collection):
        await collection.insert_one({"_id": "fixed", "n": 1})
        with pytest.raises(DuplicateKeyError):
            await collection.insert_one({"_id": "fixed", "n": 2})

    @pytest.mark.asyncio
    async def test_to_json_is_a_copy(self, collection):
        doc = await collection.insert_one({"name": "bolt", "spec": {"w": 1}})
        doc.to_json()["spec"]["w"] = 99
        assert doc.to_json()["spec"]["w"] == 1

    @pytest.mark.asyncio
    async def test_query_options(self, collection):
        for n in range(10):
            await collection.insert_one({"n": n, "even": n % 2 == 0})
        docs = await collection.query({"even": True}).sort({"n": -1}).skip(1).limit(2).exec()
        assert [d["n"] for d in docs] == [6, 4]
        assert await collection.query({"even": True}).count() == 5
        assert await collection.query({}).skip(8).count() == 2

    @pytest.mark.asyncio
    async def test_exec_one_and_projection(self, collection):
        await collection.insert_one({"_id": "x", "name": "bolt", "qty": 3})
        doc = await collection.query({"_id": "x"}).project({"qty": 1}).exec_one()
        assert doc.to_json() == {"_id": "x", "qty": 3}
        assert await collection.query({"_id": "nope"}).exec_one() is None

    @pytest.mark.asyncio
    async def test_update_many_refreshes_updated_at(self, collection):
        created = await collection.insert_one({"_id": "x", "qty": 1})
        created_at = created["createdAt"]
        matched = await collection.update_many({"_id": "x"}, {"$inc": {"qty": 4}})
        doc = await collection.query({"_id": "x"}).exec_one()
        assert matched == 1
        assert doc["qty"] == 5
        assert doc["createdAt"] == created_at
        assert doc["updatedAt"] >= created_at

    @pytest.mark.asyncio
    async def test_replace_keeps_identity(self, collection):
        created = await collection.insert_one({"_id": "x", "qty": 1})
        await collection.replace_one("x", {"_id": "other", "name": "new"})
        doc = await collection.query({"_id": "x"}).exec_one()
        assert doc["name"] == "new"
        assert "qty" not in doc.to_json()
        assert doc["createdAt"] == created["createdAt"]
        assert await collection.replace_one("missing", {}) is None

    @pytest.mark.asyncio
    async def test_delete_many(self, collection):
        for n in range(4):
            await collection.insert_one({"n": n})
        deleted = await collection.delete_many({"n": {"$lt": 2}})
        assert deleted == 2
        assert await collection.query({}).count() == 2

    @pytest.mark.asyncio
    async def test_bad_filter_rejected_on_empty_collection(self, collection):
        with pytest.raises(InvalidQueryError):
            await collection.query({"qty": {"$near": 1}}).exec()
        with pytest.raises(InvalidQueryError):
            await collection.query({"$where": "1"}).count()
        with pytest.raises(InvalidQueryError):
            await collection.delete_many({"qty": {"$near": 1}})

    @pytest.mark.asyncio
    async def test_populate_follows_references(self, store):
        users = store.collection("users")
        widgets = store.collection("widgets", references={"owner": "users"})
        await users.insert_one({"_id": "u1", "name": "ada"})
        await widgets.insert_one({"_id": "w1", "owner": "u1"})
        doc = await widgets.query({"_id": "w1"}).populate(["owner"]).exec_one()
        assert doc["owner"]["name"] == "ada"


class TestStoreFile:
    @pytest.mark.asyncio
    async def test_persists_to_disk(self, tmp_path):
        path = str(tmp_path / "docs.db")
        first = SQLiteDocumentStore(path)
        await first.collection("widgets").insert_one({"_id": "keep"})
        first.close()

        second = SQLiteDocumentStore(path)
        try:
            assert await second.collection("widgets").query({"_id": "keep"}).count() == 1
        finally:
            second.close()
