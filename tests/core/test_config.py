"""配置 getter 测试 -- 调用时读取环境变量"""

import pytest
from missioncontrol.core.config import (
    DEFAULT_SSE_HEARTBEAT_INTERVAL,
    get_api_token,
    get_ledger_path,
    get_sse_heartbeat_interval,
)


class TestSseHeartbeatInterval:
    def test_default(self, monkeypatch):
        monkeypatch.delenv("MC_SSE_HEARTBEAT_INTERVAL", raising=False)
        assert get_sse_heartbeat_interval() == DEFAULT_SSE_HEARTBEAT_INTERVAL == 15

    def test_read_at_call_time(self, monkeypatch):
        monkeypatch.setenv("MC_SSE_HEARTBEAT_INTERVAL", "5")
        assert get_sse_heartbeat_interval() == 5
        monkeypatch.setenv("MC_SSE_HEARTBEAT_INTERVAL", "30")
        assert get_sse_heartbeat_interval() == 30

    @pytest.mark.parametrize("value", ["soon", "0", "-3", "1.5"])
    def test_invalid_values_fall_back(self, monkeypatch, value):
        monkeypatch.setenv("MC_SSE_HEARTBEAT_INTERVAL", value)
        assert get_sse_heartbeat_interval() == 15


class TestPaths:
    def test_ledger_path_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MC_LEDGER_PATH", str(tmp_path / "ledger.json"))
        assert get_ledger_path() == tmp_path / "ledger.json"

    def test_ledger_path_from_status_dir(self, monkeypatch, tmp_path):
        monkeypatch.delenv("MC_LEDGER_PATH", raising=False)
        monkeypatch.setenv("SQUAD_STATUS_PATH", str(tmp_path))
        assert get_ledger_path() == tmp_path / "INITIATIVES.json"

    def test_blank_api_token_disables_auth(self, monkeypatch):
        monkeypatch.setenv("MC_API_TOKEN", "")
        assert get_api_token() is None
