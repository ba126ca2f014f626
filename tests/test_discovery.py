# pylint: disable=redefined-outer-name
# pylint: disable=missing-class-docstring
# pylint: disable=missing-function-docstring
# pylint: disable=protected-access

import asyncio
import logging

import netifaces
import pytest

from conftest import reply, silent
from wizctl import (
    DiscoveredLight,
    DiscoveryCollector,
    RetryPolicy,
    discover,
    discover_on_all_interfaces,
)
from wizctl import discovery


def registration_reply(mac: str, module_name: str = "ESP01_SHRGB1C_31") -> bytes:
    return reply(
        {
            "method": "registration",
            "env": "pro",
            "result": {"mac": mac, "success": True, "moduleName": module_name},
        }
    )


def lights_answering(*macs):
    def respond(_message, _count):
        return [registration_reply(mac) for mac in macs]

    return respond


@pytest.mark.asyncio
async def test_distinct_lights_are_collected(fake_bulb):
    bulb = await fake_bulb(lights_answering("a8bb50000001", "a8bb50000002"))

    lights = await discover(
        "127.0.0.1", timeout=0.2, retry=RetryPolicy.none(), port=bulb.port
    )

    assert lights == [
        DiscoveredLight("127.0.0.1", "a8bb50000001", "ESP01_SHRGB1C_31"),
        DiscoveredLight("127.0.0.1", "a8bb50000002", "ESP01_SHRGB1C_31"),
    ]
    assert bulb.messages == [
        {
            "method": "registration",
            "params": {
                "phoneMac": "AAAAAAAAAAAA",
                "register": False,
                "phoneIp": "1.2.3.4",
                "id": "1",
            },
        }
    ]


@pytest.mark.asyncio
async def test_duplicate_replies_are_dropped(fake_bulb):
    bulb = await fake_bulb(lights_answering("a8bb50000001", "a8bb50000001"))

    lights = await discover(
        "127.0.0.1",
        timeout=0.3,
        retry=RetryPolicy.fixed(count=2, interval=0.05),
        port=bulb.port,
    )

    assert len(lights) == 1
    assert lights[0].mac == "a8bb50000001"
    # Each repeat broadcast was answered again
    assert len(bulb.received) == 3


@pytest.mark.asyncio
async def test_malformed_replies_are_ignored(fake_bulb):
    bulb = await fake_bulb(
        lambda message, count: [
            b"garbage",
            b"[" * 60000,
            reply([1, 2, 3]),
            reply({"result": {"success": True}}),
            reply({"result": {"mac": 12}}),
            registration_reply("a8bb50000003"),
        ]
    )

    lights = await discover(
        "127.0.0.1", timeout=0.2, retry=RetryPolicy.none(), port=bulb.port
    )

    assert [light.mac for light in lights] == ["a8bb50000003"]


@pytest.mark.asyncio
async def test_one_bad_reply_does_not_stop_listening(fake_bulb, monkeypatch):
    bulb = await fake_bulb(lights_answering("a8bb50000008", "a8bb50000009"))
    original_from_json = DiscoveredLight.from_json

    def from_json(response, ip):
        light = original_from_json(response, ip)
        if light.mac == "a8bb50000008":
            raise KeyError(light.mac)
        return light

    monkeypatch.setattr(DiscoveredLight, "from_json", staticmethod(from_json))

    lights = await discover(
        "127.0.0.1", timeout=0.2, retry=RetryPolicy.none(), port=bulb.port
    )

    assert [light.mac for light in lights] == ["a8bb50000009"]


@pytest.mark.asyncio
async def test_nothing_found_is_not_an_error(fake_bulb):
    bulb = await fake_bulb(silent)

    lights = await discover(
        "127.0.0.1",
        timeout=0.4,
        retry=RetryPolicy.exponential(count=2, initial_interval=0.05),
        port=bulb.port,
    )

    assert not lights
    assert len(bulb.received) == 3


@pytest.mark.asyncio
async def test_no_broadcast_after_window_closes(fake_bulb):
    bulb = await fake_bulb(silent)

    started = asyncio.get_running_loop().time()
    await discover(
        "127.0.0.1",
        timeout=0.3,
        retry=RetryPolicy.fixed(count=100, interval=0.05),
        port=bulb.port,
    )
    finished = asyncio.get_running_loop().time()

    assert finished - started >= 0.29
    assert 1 < len(bulb.received) < 101
    first = bulb.received[0][1]
    assert all(received - first < 0.3 + 0.05 for _, received in bulb.received)


class RecordingTransport:
    def __init__(self):
        self.sent = []

    def send(self, data, addr):
        self.sent.append((data, addr))


@pytest.mark.asyncio
async def test_rebroadcast_is_suppressed_once_window_has_elapsed():
    transport = RecordingTransport()
    collector = DiscoveryCollector(
        transport,
        "255.255.255.255",
        38899,
        2.0,
        RetryPolicy.fixed(count=4, interval=0.01),
        logging.getLogger(__name__),
    )
    collector.started_at = asyncio.get_running_loop().time() - 2.0

    await collector.rebroadcast()

    assert not transport.sent
    assert collector.broadcasts_sent == 0


@pytest.mark.asyncio
async def test_rebroadcast_follows_retry_policy():
    transport = RecordingTransport()
    collector = DiscoveryCollector(
        transport,
        "192.168.1.255",
        38899,
        10.0,
        RetryPolicy.exponential(count=3, initial_interval=0.01, max_interval=0.02),
        logging.getLogger(__name__),
    )
    collector.started_at = asyncio.get_running_loop().time()

    await collector.rebroadcast()

    assert len(transport.sent) == 3
    assert all(addr == ("192.168.1.255", 38899) for _, addr in transport.sent)


def test_discovered_light_from_json():
    light = DiscoveredLight.from_json(
        {
            "method": "registration",
            "result": {
                "mac": "a8bb50000004",
                "moduleName": "ESP03_SHRGB1W_01",
                "fwVersion": "1.25.0",
            },
        },
        "192.168.1.100",
    )

    assert light == DiscoveredLight(
        ip="192.168.1.100",
        mac="a8bb50000004",
        module_name="ESP03_SHRGB1W_01",
        fw_version="1.25.0",
    )


def test_discovered_light_without_result():
    light = DiscoveredLight.from_json({"mac": "a8bb50000005"}, "10.0.0.5")
    assert light.mac == "a8bb50000005"
    assert light.module_name is None


def test_interface_addresses(monkeypatch):
    addresses = {
        "lo": {netifaces.AF_INET: [{"addr": "127.0.0.1"}]},
        "eth0": {
            netifaces.AF_INET: [
                {"addr": "192.168.1.20", "broadcast": "192.168.1.255"},
                {"addr": "169.254.3.4"},
            ]
        },
        "wlan0": {netifaces.AF_INET: [{"addr": "10.0.0.7"}]},
        "tun0": {},
    }
    monkeypatch.setattr(netifaces, "interfaces", lambda: list(addresses))
    monkeypatch.setattr(netifaces, "ifaddresses", lambda name: addresses[name])

    assert discovery.get_interface_addresses() == ["192.168.1.20", "10.0.0.7"]


@pytest.mark.asyncio
async def test_all_interfaces_are_merged(fake_bulb, monkeypatch):
    bulb = await fake_bulb(lights_answering("a8bb50000006", "a8bb50000007"))
    # 192.0.2.1 is a documentation address that can't be bound
    monkeypatch.setattr(
        discovery,
        "get_interface_addresses",
        lambda: ["127.0.0.1", "192.0.2.1", "127.0.0.1"],
    )

    lights = await discover_on_all_interfaces(
        timeout=0.2,
        retry=RetryPolicy.none(),
        port=bulb.port,
        broadcast_address="127.0.0.1",
    )

    assert [light.mac for light in lights] == ["a8bb50000006", "a8bb50000007"]
    assert len(bulb.received) == 2
