"""HttpTransport / RemoteFallbackClient のユニットテスト（respx モック）"""

import json

import httpx
import pytest
import respx
from k1s0_statsig import (
    HttpTransport,
    RemoteFallbackClient,
    StatsigError,
    StatsigErrorCodes,
    StatsigUser,
)

SECRET = "secret-test"
API = "http://statsig-api.test/v1"


@respx.mock
async def test_dispatch_sends_sdk_headers() -> None:
    """SDK ヘッダーを付与して JSON を POST すること。"""
    route = respx.post(f"{API}/check_gate").mock(return_value=httpx.Response(200, json={}))
    transport = HttpTransport(SECRET)
    resp = await transport.dispatch(f"{API}/check_gate", {"a": 1}, 5000)
    await transport.shutdown()

    assert resp.json() == {}
    request = route.calls.last.request
    assert request.headers["STATSIG-API-KEY"] == SECRET
    assert request.headers["STATSIG-SDK-TYPE"] == "py-k1s0-server"
    assert int(request.headers["STATSIG-CLIENT-TIME"]) > 0
    assert json.loads(request.content) == {"a": 1}


@respx.mock
async def test_dispatch_http_error() -> None:
    """4xx/5xx は HTTP_ERROR になること。"""
    respx.post(f"{API}/get_config").mock(return_value=httpx.Response(401, text="unauthorized"))
    transport = HttpTransport(SECRET)
    with pytest.raises(StatsigError) as exc_info:
        await transport.dispatch(f"{API}/get_config", {}, 5000)
    assert exc_info.value.code == StatsigErrorCodes.HTTP_ERROR
    assert "401" in str(exc_info.value)


@respx.mock
async def test_dispatch_timeout_is_network_error() -> None:
    """タイムアウトは NETWORK_ERROR になること。"""
    respx.post(f"{API}/get_config").mock(side_effect=httpx.ReadTimeout("timed out"))
    transport = HttpTransport(SECRET)
    with pytest.raises(StatsigError) as exc_info:
        await transport.dispatch(f"{API}/get_config", {}, 10)
    assert exc_info.value.code == StatsigErrorCodes.NETWORK_ERROR
    assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)


@respx.mock
async def test_dispatch_after_shutdown_uses_new_client() -> None:
    """shutdown 後も再初期化に備えて送信できること。"""
    respx.post(f"{API}/check_gate").mock(return_value=httpx.Response(200, json={"value": False}))
    transport = HttpTransport(SECRET)
    await transport.dispatch(f"{API}/check_gate", {}, 5000)
    await transport.shutdown()
    resp = await transport.dispatch(f"{API}/check_gate", {}, 5000)
    assert resp.json() == {"value": False}
    await transport.shutdown()


@respx.mock
async def test_remote_get_config_ignores_non_object_value() -> None:
    """value がオブジェクトでないレスポンスは空の値として扱うこと。"""
    respx.post(f"{API}/get_config").mock(
        return_value=httpx.Response(200, json={"value": [1, 2], "rule_id": "r"})
    )
    remote = RemoteFallbackClient(HttpTransport(SECRET), API + "/")
    config = await remote.get_config(StatsigUser(user_id="u1"), "c")
    assert config.value == {}
    assert config.rule_id == "r"


@respx.mock
async def test_remote_check_gate_rejects_non_object_response() -> None:
    """オブジェクト以外のレスポンスはゲート評価の失敗になること。"""
    respx.post(f"{API}/check_gate").mock(return_value=httpx.Response(200, json=[True]))
    remote = RemoteFallbackClient(HttpTransport(SECRET), API)
    with pytest.raises(StatsigError) as exc_info:
        await remote.check_gate(StatsigUser(user_id="u1"), "g")
    assert exc_info.value.code == StatsigErrorCodes.HTTP_ERROR


async def test_dispatch_unserializable_body_is_network_error() -> None:
    """JSON 化できないボディは NETWORK_ERROR になること。"""
    transport = HttpTransport(SECRET)
    with pytest.raises(StatsigError) as exc_info:
        await transport.dispatch(f"{API}/get_config", {"user": {"custom": {"d": object()}}}, 5000)
    await transport.shutdown()
    assert exc_info.value.code == StatsigErrorCodes.NETWORK_ERROR
    assert isinstance(exc_info.value.__cause__, TypeError)
