# pylint: disable=redefined-outer-name
# pylint: disable=missing-class-docstring
# pylint: disable=missing-function-docstring

import asyncio
import json
import time
from typing import Any, Callable, Dict, List, Tuple

import pytest_asyncio

# Given a request and how many requests have been received so far
# (including this one), returns the datagrams to send back
Responder = Callable[[Dict[str, Any], int], List[bytes]]


def reply(obj: Any) -> bytes:
    return bytes(json.dumps(obj), "utf-8")


def silent(_message, _count) -> List[bytes]:
    return []


def echo_result(result: Dict[str, Any]) -> Responder:
    def respond(message, _count):
        return [reply({"method": message["method"], "env": "pro", "result": result})]

    return respond


class FakeBulb(asyncio.DatagramProtocol):
    """A light that lives on 127.0.0.1 and answers from a script"""

    transport = None

    def __init__(self, responder: Responder, reply_delay: float = 0):
        self.responder = responder
        self.reply_delay = reply_delay
        self.received: List[Tuple[Dict[str, Any], float]] = []

    def __repr__(self):
        return f"FakeBulb(port={self.port}, received={len(self.received)})"

    @property
    def port(self) -> int:
        return self.transport.get_extra_info("sockname")[1]

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return [message for message, _ in self.received]

    def connection_made(self, transport):
        self.transport = transport

    def connection_lost(self, exc):
        pass

    def datagram_received(self, data, addr):
        message = json.loads(data)
        self.received.append((message, time.monotonic()))
        for datagram in self.responder(message, len(self.received)):
            if self.reply_delay:
                asyncio.get_running_loop().call_later(
                    self.reply_delay, self._send, datagram, addr
                )
            else:
                self._send(datagram, addr)

    def _send(self, datagram, addr):
        if self.transport is not None and not self.transport.is_closing():
            self.transport.sendto(datagram, addr)


@pytest_asyncio.fixture
async def fake_bulb():
    """Returns a coroutine that starts a FakeBulb"""
    transports = []

    async def start(responder: Responder, reply_delay: float = 0) -> FakeBulb:
        loop = asyncio.get_running_loop()
        transport, bulb = await loop.create_datagram_endpoint(
            lambda: FakeBulb(responder, reply_delay), local_addr=("127.0.0.1", 0)
        )
        transports.append(transport)
        return bulb

    yield start

    for transport in transports:
        transport.close()
