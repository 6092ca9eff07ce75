"""Tests for the JSON-RPC 2.0 server."""

from __future__ import annotations

import pytest
import yaml

from docgate.rpc import RPCInterface, RPCServer
from docgate.rpc.server import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    OPERATION_ERROR,
    PARSE_ERROR,
)


@pytest.fixture
def server(simple_interface) -> RPCServer:
    s = RPCServer()
    RPCInterface(simple_interface, s)
    return s


def _call(method, params=None, id=1):
    msg = {"jsonrpc": "2.0", "id": id, "method": method}
    if params is not None:
        msg["params"] = params
    return msg


class TestHandle:
    @pytest.mark.asyncio
    async def test_positional_and_named_params(self, server):
        created = await server.handle(_call("widgets:create", [{"name": "bolt"}]))
        new_id = created["result"]["_id"]

        by_pos = await server.handle(_call("widgets:findById", [new_id], id=2))
        by_name = await server.handle(_call("widgets:findById", {"id": new_id}, id=3))
        assert by_pos["id"] == 2
        assert by_pos["result"] == by_name["result"] == created["result"]

    @pytest.mark.asyncio
    async def test_update_signature(self, server):
        await server.handle(_call("widgets:update", [{"query": {"name": "x"}}, {"qty": 2}, True]))
        count = await server.handle(_call("widgets:count", [{"query": {"name": "x"}}]))
        assert count["result"] == 1

    @pytest.mark.asyncio
    async def test_unknown_method(self, server):
        resp = await server.handle(_call("widgets:explode", []))
        assert resp["error"]["code"] == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_invalid_params(self, server):
        resp = await server.handle(_call("widgets:find", [{}, {}, {}]))
        assert resp["error"]["code"] == INVALID_PARAMS

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message",
        [{"id": 1, "method": "widgets:find"}, {"jsonrpc": "2.0", "id": 1}, "nope", {"jsonrpc": "2.0", "id": 1, "method": "widgets:find", "params": 3}],
    )
    async def test_invalid_request(self, server, message):
        resp = await server.handle(message)
        assert resp["error"]["code"] == INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_operation_error_carries_wrapped_error(self, server):
        await server.handle(_call("widgets:create", [{"_id": "dup"}]))
        resp = await server.handle(_call("widgets:create", [{"_id": "dup"}]))
        assert resp["error"]["code"] == OPERATION_ERROR
        assert resp["error"]["data"]["httpCode"] == 409
        assert resp["error"]["data"]["kind"] == "STORE"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["widgets:update", "widgets:patch", "widgets:delete"])
    async def test_malformed_query_on_mutation_is_client_error(self, server, method):
        params = {"widgets:update": [{"query": 5}, {"a": 1}], "widgets:patch": [{"query": 5}, []]}
        resp = await server.handle(_call(method, params.get(method, [{"query": 5}])))
        assert resp["error"]["code"] == OPERATION_ERROR
        assert resp["error"]["data"]["httpCode"] == 400

    @pytest.mark.asyncio
    async def test_notification_returns_nothing(self, server):
        assert await server.handle({"jsonrpc": "2.0", "method": "widgets:create", "params": [{"n": 1}]}) is None
        count = await server.handle(_call("widgets:count", [{}]))
        assert count["result"] == 1

    @pytest.mark.asyncio
    async def test_batch(self, server):
        resp = await server.handle(
            [
                _call("widgets:create", [{"n": 1}], id=1),
                {"jsonrpc": "2.0", "method": "widgets:create", "params": [{"n": 2}]},
                _call("widgets:count", [{}], id=2),
            ]
        )
        assert [r["id"] for r in resp] == [1, 2]
        assert resp[1]["result"] == 2

    @pytest.mark.asyncio
    async def test_empty_batch(self, server):
        assert (await server.handle([]))["error"]["code"] == INVALID_REQUEST


class TestEndpoint:
    def test_parse_error(self, client):
        resp = client.post("/rpc", content=b"{oops", headers={"Content-Type": "application/json"})
        assert resp.json()["error"]["code"] == PARSE_ERROR

    def test_notification_is_204(self, client):
        resp = client.post("/rpc", json={"jsonrpc": "2.0", "method": "widgets:create", "params": [{"n": 1}]})
        assert resp.status_code == 204

    def test_yaml_round_trip(self, client):
        body = yaml.safe_dump({"jsonrpc": "2.0", "id": 7, "method": "widgets:count", "params": [{}]})
        resp = client.post(
            "/rpc",
            content=body.encode(),
            headers={"Content-Type": "application/yaml", "Accept": "application/yaml"},
        )
        assert resp.headers["content-type"].startswith("application/yaml")
        assert yaml.safe_load(resp.content) == {"jsonrpc": "2.0", "id": 7, "result": 0}

    def test_get_not_allowed(self, client):
        assert client.get("/rpc").status_code == 405
