"""HttpGatewayClient 测试 -- 使用 httpx.MockTransport 模拟 gateway"""

import json

import httpx
import pytest
from missioncontrol.transport import (
    GatewayCallError,
    GatewayConnectError,
    HttpGatewayClient,
)


def _client(handler, token: str = "") -> HttpGatewayClient:
    return HttpGatewayClient(
        gateway_url="http://gateway.test/",
        gateway_token=token,
        transport=httpx.MockTransport(handler),
    )


def _healthy_handler(rpc_response: httpx.Response | None = None, seen: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if request.url.path == "/health":
            return httpx.Response(200, json={"ok": True})
        return rpc_response or httpx.Response(200, json={"result": {"accepted": True}})

    return handler


class TestConnect:
    async def test_connect_success(self):
        client = _client(_healthy_handler())
        assert client.gateway_url == "http://gateway.test"
        assert not client.is_connected()

        await client.connect()

        assert client.is_connected()
        await client.close()
        assert not client.is_connected()

    async def test_connect_non_2xx_raises(self):
        client = _client(lambda request: httpx.Response(500))

        with pytest.raises(GatewayConnectError) as exc_info:
            await client.connect()

        assert "HTTP 500" in str(exc_info.value)
        assert exc_info.value.recoverable is True
        assert not client.is_connected()
        await client.close()

    async def test_connect_network_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(GatewayConnectError) as exc_info:
            await client.connect()

        assert exc_info.value.gateway_url == "http://gateway.test"
        await client.close()

    async def test_bearer_token_sent(self):
        seen: list[httpx.Request] = []
        client = _client(_healthy_handler(seen=seen), token="s3cret")

        await client.connect()

        assert seen[0].headers["Authorization"] == "Bearer s3cret"
        await client.close()


class TestCall:
    async def test_call_before_connect_raises(self):
        client = _client(_healthy_handler())
        with pytest.raises(GatewayConnectError):
            await client.call("chat.send", {})

    async def test_call_returns_result(self):
        seen: list[httpx.Request] = []
        client = _client(_healthy_handler(seen=seen))
        await client.connect()

        result = await client.call(
            "chat.send",
            {"sessionKey": "dm:a1", "message": "hi", "idempotencyKey": "dispatch-1"},
        )

        assert result == {"accepted": True}
        rpc = seen[-1]
        assert rpc.method == "POST"
        assert rpc.url.path == "/rpc"
        assert json.loads(rpc.content) == {
            "method": "chat.send",
            "params": {"sessionKey": "dm:a1", "message": "hi", "idempotencyKey": "dispatch-1"},
        }
        await client.close()

    async def test_error_body_raises_call_error(self):
        client = _client(
            _healthy_handler(httpx.Response(200, json={"error": {"message": "unknown session"}}))
        )
        await client.connect()

        with pytest.raises(GatewayCallError) as exc_info:
            await client.call("chat.send", {})

        assert exc_info.value.method == "chat.send"
        assert "unknown session" in str(exc_info.value)
        await client.close()

    async def test_http_error_raises_call_error(self):
        client = _client(_healthy_handler(httpx.Response(502)))
        await client.connect()

        with pytest.raises(GatewayCallError):
            await client.call("chat.send", {})
        # 调用失败不影响连接状态
        assert client.is_connected()
        await client.close()

    async def test_connection_lost_during_call(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/health":
                return httpx.Response(200)
            raise httpx.ConnectError("reset", request=request)

        client = _client(handler)
        await client.connect()

        with pytest.raises(GatewayConnectError):
            await client.call("chat.send", {})
        assert not client.is_connected()
        await client.close()
