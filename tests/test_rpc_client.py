# tests/test_rpc_client.py
"""
Unit tests for the JSON-RPC client
"""
import json

import pytest

from solana_alert_bot_bundle.alert_bot.rpc_client import ChainRpcClient, RpcError, RpcRateLimited

from conftest import FakeResponse

URL = "https://rpc.example.invalid"


def _client(session, **kw):
    return ChainRpcClient(URL, session=session, min_interval=0, backoff_base=0.001, **kw)


class TestCall:
    """Single calls"""

    @pytest.mark.asyncio
    async def test_returns_result(self, fake_session):
        fake_session.post.return_value = FakeResponse(200, json.dumps({"jsonrpc": "2.0", "id": 1, "result": [{"signature": "s"}]}))

        sigs = await _client(fake_session).get_signatures_for_address("mint", limit=1)

        assert sigs == [{"signature": "s"}]
        body = fake_session.post.call_args.kwargs["json"]
        assert body["method"] == "getSignaturesForAddress"
        assert body["params"] == ["mint", {"limit": 1}]

    @pytest.mark.asyncio
    async def test_rpc_error_object(self, fake_session):
        fake_session.post.return_value = FakeResponse(200, json.dumps({"error": {"code": -32602, "message": "Invalid param"}}))

        with pytest.raises(RpcError) as exc:
            await _client(fake_session).call("getAccountInfo", ["x"])

        assert exc.value.code == -32602
        assert not isinstance(exc.value, RpcRateLimited)

    @pytest.mark.asyncio
    async def test_http_429_after_retries(self, fake_session):
        fake_session.post.return_value = FakeResponse(429, "", headers={})

        with pytest.raises(RpcRateLimited):
            await _client(fake_session, max_retries=2).call("getHealth")

        assert fake_session.post.call_count == 2

    @pytest.mark.asyncio
    async def test_unconfigured(self, fake_session, monkeypatch):
        monkeypatch.delenv("HELIUS_RPC_URL", raising=False)
        monkeypatch.delenv("SOLANA_RPC_URL", raising=False)
        client = ChainRpcClient(session=fake_session)

        assert client.configured is False
        with pytest.raises(RpcError):
            await client.call("getHealth")


class TestBatch:
    """Batched calls"""

    @pytest.mark.asyncio
    async def test_results_in_request_order(self, fake_session):
        fake_session.post.return_value = FakeResponse(200, json.dumps([
            {"id": 2, "result": {"slot": 2}},
            {"id": 1, "result": {"slot": 1}},
            {"id": 3, "error": {"code": -32009, "message": "not found"}},
        ]))

        out = await _client(fake_session).batch([("getTransaction", ["a"]), ("getTransaction", ["b"]), ("getTransaction", ["c"])])

        assert out == [{"slot": 1}, {"slot": 2}, None]

    @pytest.mark.asyncio
    async def test_batch_429_is_not_retried(self, fake_session):
        fake_session.post.return_value = FakeResponse(429, "")

        with pytest.raises(RpcRateLimited):
            await _client(fake_session).batch([("getTransaction", ["a"])])

        assert fake_session.post.call_count == 1

    @pytest.mark.asyncio
    async def test_rate_limited_entry(self, fake_session):
        fake_session.post.return_value = FakeResponse(200, json.dumps([
            {"id": 1, "error": {"code": 429, "message": "Too many requests"}},
        ]))

        with pytest.raises(RpcRateLimited):
            await _client(fake_session).batch([("getTransaction", ["a"])])


class TestDas:
    """Helius DAS getAssetsByCreator"""

    @pytest.mark.asyncio
    async def test_object_params(self, fake_session):
        fake_session.post.return_value = FakeResponse(200, json.dumps({"result": {"items": [{"id": "x"}]}}))

        items = await _client(fake_session).get_assets_by_creator("Creator", limit=5)

        assert items == [{"id": "x"}]
        assert fake_session.post.call_args.kwargs["json"]["params"] == {
            "creatorAddress": "Creator", "onlyVerified": False, "page": 1, "limit": 5,
        }
