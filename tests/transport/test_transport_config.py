"""TransportConfig 与客户端工厂测试"""

from missioncontrol.transport import (
    EchoGatewayClient,
    HttpGatewayClient,
    TransportConfig,
    create_gateway_client,
    load_transport_config,
)


class TestLoadTransportConfig:
    def test_defaults(self, monkeypatch):
        for name in ("MC_GATEWAY_URL", "MC_GATEWAY_TOKEN", "MC_GATEWAY_MODE", "MC_GATEWAY_TIMEOUT_S"):
            monkeypatch.delenv(name, raising=False)

        config = load_transport_config()

        assert config.gateway_url == "http://127.0.0.1:18789"
        assert config.gateway_token.get_secret_value() == ""
        assert config.mode == "http"
        assert config.timeout_s == 30

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MC_GATEWAY_URL", "http://gw:9000")
        monkeypatch.setenv("MC_GATEWAY_TOKEN", "tok")
        monkeypatch.setenv("MC_GATEWAY_MODE", "echo")
        monkeypatch.setenv("MC_GATEWAY_TIMEOUT_S", "5")

        config = load_transport_config()

        assert config.gateway_url == "http://gw:9000"
        assert config.gateway_token.get_secret_value() == "tok"
        assert "tok" not in repr(config)
        assert config.mode == "echo"
        assert config.timeout_s == 5

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("MC_GATEWAY_MODE", "websocket")
        monkeypatch.setenv("MC_GATEWAY_TIMEOUT_S", "0")

        config = load_transport_config()

        assert config.mode == "http"
        assert config.timeout_s == 30

    def test_non_numeric_timeout_falls_back(self, monkeypatch):
        monkeypatch.setenv("MC_GATEWAY_TIMEOUT_S", "soon")
        assert load_transport_config().timeout_s == 30


class TestCreateGatewayClient:
    def test_http_mode(self):
        client = create_gateway_client(TransportConfig(gateway_url="http://gw:1/"))
        assert isinstance(client, HttpGatewayClient)
        assert client.gateway_url == "http://gw:1"

    def test_echo_mode(self):
        assert isinstance(create_gateway_client(TransportConfig(mode="echo")), EchoGatewayClient)


class TestEchoGatewayClient:
    async def test_records_and_echoes(self):
        client = EchoGatewayClient()
        await client.connect()
        assert client.is_connected()

        result = await client.call("chat.send", {"sessionKey": "dm:a"})

        assert result["success"] is True
        assert result["echo"]["params"] == {"sessionKey": "dm:a"}
        assert client.calls == [("chat.send", {"sessionKey": "dm:a"})]
        await client.close()
        assert not client.is_connected()
