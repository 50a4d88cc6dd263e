from __future__ import annotations

import asyncio

import httpx

from wledpro.core import MockWledDevice, WledHttpClient


def _request(device: MockWledDevice, method: str, path: str, **kwargs):
    async def _send():
        transport = httpx.ASGITransport(app=device.app)
        async with httpx.AsyncClient(
            transport=transport, base_url="http://wled-mock"
        ) as client:
            return await client.request(method, path, **kwargs)

    return asyncio.run(_send())


def test_client_reads_mock_device():
    device = MockWledDevice(name="Bench", mac_address="AA:BB:CC:00:11:22")
    client = WledHttpClient(transport=httpx.ASGITransport(app=device.app))

    report = asyncio.run(client.fetch("wled-mock"))

    assert report.identity == "aabbcc001122"
    assert report.name == "Bench"
    assert report.attributes["led_count"] == 30
    assert report.attributes["brightness"] == 128


def test_state_and_info_routes():
    device = MockWledDevice(name="Bench")

    state = _request(device, "GET", "/json/state")
    info = _request(device, "GET", "/json/info")
    combined = _request(device, "GET", "/json")

    assert state.json()["bri"] == 128
    assert info.json()["name"] == "Bench"
    assert combined.json() == {"state": state.json(), "info": info.json()}


def test_post_applies_state():
    device = MockWledDevice()

    response = _request(
        device,
        "POST",
        "/json/state",
        json={"on": False, "bri": 300, "seg": [{"fx": 7}]},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert device.on is False
    assert device.brightness == 255
    assert device.effect == 7
    assert device.palette == 0


def test_post_toggles_power():
    device = MockWledDevice(on=True)

    _request(device, "POST", "/json", json={"on": "t"})

    assert device.on is False


def test_bad_requests_are_rejected():
    device = MockWledDevice()

    assert _request(device, "GET", "/nothing").status_code == 404
    assert _request(device, "DELETE", "/json/state").status_code == 405
    invalid = _request(device, "POST", "/json/state", json={"bri": "lots"})
    assert invalid.status_code == 422
    assert device.brightness == 128


def test_serves_over_tcp():
    device = MockWledDevice(name="Bench", host="127.0.0.1", port=0)

    async def _run():
        await device.start()
        try:
            client = WledHttpClient(transport=httpx.AsyncHTTPTransport())
            return await client.fetch(f"127.0.0.1:{device.port}")
        finally:
            await device.stop()

    report = asyncio.run(_run())

    assert device.port != 0
    assert report.name == "Bench"
