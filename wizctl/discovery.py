"""Broadcast discovery of lights on the local network.

Discovery uses a single total window: the initial broadcast, any
repeats and all of the replies share one deadline. This differs from
send(), where every attempt gets its own timeout."""

import asyncio
from dataclasses import dataclass
from ipaddress import IPv4Address
import json
import logging
from typing import Any, Dict, List, Optional, Set

import netifaces

from .constants import (
    DEFAULT_BROADCAST_ADDRESS,
    DEFAULT_DISCOVERY_TIMEOUT,
    DISCOVERY_PHONE_IP,
    DISCOVERY_PHONE_MAC,
    DISCOVERY_RETRIES,
    FIRST_DISCOVERY_INTERVAL,
    KEY_FW_VERSION,
    KEY_MAC,
    KEY_MODULE_NAME,
    KEY_RESULT,
    MAX_BACKOFF,
    METHOD_REGISTRATION,
    WIZ_PORT,
)
from .exceptions import WizConnectionError, WizError
from .protocol import make_message
from .retry import RetryPolicy
from .transport import Address, WizTransport

_LOGGER = logging.getLogger(__name__)

DEFAULT_DISCOVERY_RETRY = RetryPolicy.exponential(
    count=DISCOVERY_RETRIES,
    initial_interval=FIRST_DISCOVERY_INTERVAL,
    max_interval=MAX_BACKOFF,
)


@dataclass
class DiscoveredLight:
    """A light that answered a registration broadcast"""

    ip: str
    mac: str
    module_name: Optional[str] = None
    fw_version: Optional[str] = None

    @staticmethod
    def from_json(response: Dict[str, Any], ip: str) -> "DiscoveredLight":
        """Decodes a registration reply received from ip"""
        if not isinstance(response, dict):
            raise ValueError(f"expected a JSON object, got {type(response).__name__}")
        result = response.get(KEY_RESULT)
        if not isinstance(result, dict):
            result = response
        mac = result.get(KEY_MAC) or ""
        if not isinstance(mac, str):
            raise ValueError(f"mac should be a string, got {mac!r}")
        return DiscoveredLight(
            ip=ip,
            mac=mac,
            module_name=result.get(KEY_MODULE_NAME),
            fw_version=result.get(KEY_FW_VERSION),
        )


def registration_message() -> Dict[str, Any]:
    return make_message(
        METHOD_REGISTRATION,
        {
            "phoneMac": DISCOVERY_PHONE_MAC,
            "register": False,
            "phoneIp": DISCOVERY_PHONE_IP,
            "id": "1",
        },
    )


class DiscoveryCollector:
    """Broadcasts a registration request and gathers the distinct
    replies that arrive before the window closes"""

    started_at: Optional[float] = None
    broadcasts_sent: int = 0
    seen_macs: Set[str]
    lights: List[DiscoveredLight]

    def __init__(
        self,
        transport: WizTransport,
        broadcast_address: str,
        port: int,
        timeout: float,
        retry: RetryPolicy,
        logger: logging.Logger,
    ):
        self.transport = transport
        self.broadcast_address = broadcast_address
        self.port = port
        self.timeout = timeout
        self.retry = retry
        self.logger = logger
        self.payload = bytes(json.dumps(registration_message()), "utf-8")
        self.seen_macs = set()
        self.lights = []

    @property
    def address(self) -> Address:
        return (self.broadcast_address, self.port)

    def elapsed(self) -> float:
        """Seconds since the window opened"""
        assert self.started_at is not None
        return asyncio.get_running_loop().time() - self.started_at

    def broadcast(self):
        self.transport.send(self.payload, self.address)
        self.broadcasts_sent += 1
        self.logger.debug(
            "Broadcast %d to %s:%d", self.broadcasts_sent, *self.address
        )

    async def rebroadcast(self):
        """Repeats the broadcast according to the retry policy, giving up
        as soon as the window has closed"""
        interval = self.retry.interval
        for _ in range(self.retry.max_retries):
            await asyncio.sleep(interval)
            if self.elapsed() >= self.timeout:
                self.logger.debug("Window closed, skipping remaining broadcasts")
                return
            try:
                self.broadcast()
            except WizConnectionError as exc:
                self.logger.warning("Repeat broadcast failed: %s", exc)
                return
            interval = self.retry.next_interval(interval)

    async def listen(self):
        while True:
            data, addr = await self.transport.receive()
            try:
                self.handle_datagram(data, addr)
            except Exception as exc:  # pylint: disable=broad-except
                self.logger.debug("Ignoring reply from %s: %r", addr[0], exc)

    def handle_datagram(self, data: bytes, addr: Address):
        try:
            response = json.loads(data.decode("utf-8"))
            light = DiscoveredLight.from_json(response, addr[0])
        except (ValueError, RecursionError) as exc:
            self.logger.debug("Ignoring malformed reply from %s: %s", addr[0], exc)
            return

        if not light.mac:
            self.logger.debug("Ignoring reply without mac from %s", addr[0])
            return
        if light.mac in self.seen_macs:
            self.logger.debug("Duplicate reply from %s", light.mac)
            return

        self.seen_macs.add(light.mac)
        self.lights.append(light)
        self.logger.debug(
            "Found %s at %s, %d so far", light.mac, light.ip, len(self.lights)
        )

    async def collect(self) -> List[DiscoveredLight]:
        """Runs the whole discovery window and returns the lights found,
        in the order their first reply arrived"""
        self.started_at = asyncio.get_running_loop().time()
        tasks = [asyncio.create_task(self.listen())]
        try:
            self.broadcast()
            if self.retry.enabled:
                tasks.append(asyncio.create_task(self.rebroadcast()))
            await asyncio.sleep(self.timeout)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        return list(self.lights)


async def discover(
    broadcast_address: str = DEFAULT_BROADCAST_ADDRESS,
    timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
    retry: Optional[RetryPolicy] = None,
    port: int = WIZ_PORT,
    local_address: str = "0.0.0.0",
    logger: Optional[logging.Logger] = None,
) -> List[DiscoveredLight]:
    """Broadcasts a registration request and collects the replies that
    arrive within timeout seconds, deduplicated by mac address.

    retry controls the repeat broadcasts sent during the window; it
    defaults to DEFAULT_DISCOVERY_RETRY, and RetryPolicy.none() sends a
    single broadcast. An empty list simply means nothing answered.
    Raises WizConnectionError if the broadcast socket can't be set up."""
    if retry is None:
        retry = DEFAULT_DISCOVERY_RETRY
    logger = logger or _LOGGER

    transport = await WizTransport.open(broadcast=True, local_address=local_address)
    async with transport:
        collector = DiscoveryCollector(
            transport, broadcast_address, port, timeout, retry, logger
        )
        logger.info(
            "Broadcasting to %s:%d, collecting responses for %gs",
            broadcast_address,
            port,
            timeout,
        )
        lights = await collector.collect()

    logger.info("Discovery complete: %d light(s)", len(lights))
    return lights


def get_interface_addresses() -> List[str]:
    """Returns the IPv4 addresses of the local interfaces, leaving out
    loopback and link-local addresses"""
    addresses = []
    for ifname in netifaces.interfaces():
        for addrinfo in netifaces.ifaddresses(ifname).get(netifaces.AF_INET, []):
            if not (ip_str := addrinfo.get("addr")):
                continue
            ip_addr = IPv4Address(ip_str)
            if ip_addr.is_loopback or ip_addr.is_link_local:
                continue
            addresses.append(ip_str)
    return addresses


async def discover_on_all_interfaces(
    timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
    retry: Optional[RetryPolicy] = None,
    port: int = WIZ_PORT,
    broadcast_address: str = DEFAULT_BROADCAST_ADDRESS,
    logger: Optional[logging.Logger] = None,
) -> List[DiscoveredLight]:
    """Runs discover() from each local interface concurrently and merges
    the results, deduplicated by mac address. An interface on which
    discovery fails is logged and skipped"""
    logger = logger or _LOGGER

    async def discover_from(local_address: str) -> List[DiscoveredLight]:
        try:
            return await discover(
                broadcast_address,
                timeout,
                retry,
                port,
                local_address=local_address,
                logger=logger,
            )
        except WizError as exc:
            logger.warning("Discovery from %s failed: %s", local_address, exc)
            return []

    addresses = get_interface_addresses()
    logger.debug("Discovering from interfaces %s", addresses)
    results = await asyncio.gather(*(discover_from(addr) for addr in addresses))

    all_lights: List[DiscoveredLight] = []
    seen_macs: Set[str] = set()
    for lights in results:
        for light in lights:
            if light.mac not in seen_macs:
                seen_macs.add(light.mac)
                all_lights.append(light)
    return all_lights
