"""Point-to-point request/response exchange with a single light.

Every call to send() owns its own ephemeral socket. Each attempt gets
the full per-attempt timeout; only silence is retried. Any explicit
reply from the light, including an error reply, ends the call."""

import asyncio
from enum import Enum
import json
import logging
from typing import Any, Dict, Optional

from .constants import (
    DEFAULT_TIMEOUT,
    ERROR_CODE_METHOD_NOT_FOUND,
    FIRST_SEND_INTERVAL,
    KEY_CODE,
    KEY_ERROR,
    KEY_MESSAGE,
    KEY_METHOD,
    KEY_PARAMS,
    MAX_BACKOFF,
    MAX_SEND_DATAGRAMS,
    RESULT_GRACE_PERIOD,
    WIZ_PORT,
)
from .exceptions import (
    WizConnectionError,
    WizMethodNotFoundError,
    WizResponseError,
    WizTimeoutError,
)
from .retry import RetryPolicy
from .transport import Address, WizTransport

_LOGGER = logging.getLogger(__name__)

DEFAULT_SEND_RETRY = RetryPolicy.exponential(
    count=MAX_SEND_DATAGRAMS - 1,
    initial_interval=FIRST_SEND_INTERVAL,
    max_interval=MAX_BACKOFF,
)


def make_message(method: str, params: Optional[Dict[str, Any]] = None):
    """Returns {"method": method, "params": params}"""
    return {KEY_METHOD: method, KEY_PARAMS: params or {}}


class OutcomeState(Enum):
    PENDING = 0
    SUCCEEDED = 1
    FAILED = 2


class Outcome:
    """Holds the terminal result of a request. It can be assigned exactly
    once; whichever of the listener, the attempt loop or the fallback
    gets there first wins, and later assignments are ignored."""

    state: OutcomeState = OutcomeState.PENDING
    _value: Any = None
    _error: Optional[BaseException] = None

    def __init__(self):
        self._decided = asyncio.Event()

    @property
    def pending(self) -> bool:
        return self.state == OutcomeState.PENDING

    def succeed(self, value: Any) -> bool:
        """Records a successful result. Returns False if the outcome
        was already decided"""
        if not self.pending:
            return False
        self.state = OutcomeState.SUCCEEDED
        self._value = value
        self._decided.set()
        return True

    def fail(self, exc: BaseException) -> bool:
        """Records a failure. Returns False if the outcome was already
        decided"""
        if not self.pending:
            return False
        self.state = OutcomeState.FAILED
        self._error = exc
        self._decided.set()
        return True

    async def wait(self, timeout: float) -> bool:
        """Waits up to timeout seconds for the outcome to be decided.
        Returns True if it was"""
        if not self.pending:
            return True
        try:
            await asyncio.wait_for(self._decided.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def result(self) -> Any:
        """Returns the value, or raises the recorded exception"""
        if self.state == OutcomeState.PENDING:
            raise asyncio.InvalidStateError("outcome is not decided yet")
        if self._error is not None:
            raise self._error
        return self._value


class PendingRequest:
    """The state of one send() call: attempt count, current retry
    interval and the outcome slot"""

    attempt: int = 0

    def __init__(
        self,
        transport: WizTransport,
        ip: str,
        port: int,
        message: Dict[str, Any],
        timeout: float,
        retry: RetryPolicy,
        logger: logging.Logger,
    ):
        self.transport = transport
        self.ip = ip
        self.port = port
        self.method = message.get(KEY_METHOD, "unknown")
        self.payload = bytes(json.dumps(message), "utf-8")
        self.timeout = timeout
        self.retry = retry
        self.interval = retry.interval
        self.logger = logger
        self.outcome = Outcome()

    @property
    def address(self) -> Address:
        return (self.ip, self.port)

    def timeout_error(self) -> WizTimeoutError:
        return WizTimeoutError(self.ip, self.timeout, self.attempt)

    async def listen(self):
        """Feeds inbound datagrams to handle_datagram until the outcome
        is decided"""
        while self.outcome.pending:
            data, addr = await self.transport.receive()
            self.handle_datagram(data, addr)

    def handle_datagram(self, data: bytes, addr: Address):
        if not self.outcome.pending:
            self.logger.debug("Ignoring late reply from %s", addr[0])
            return

        try:
            text = data.decode("utf-8")
            self.logger.debug("Received from %s: %s", addr[0], text)
            response = json.loads(text)
            if not isinstance(response, dict):
                raise ValueError(
                    f"expected a JSON object, got {type(response).__name__}"
                )
        except (ValueError, RecursionError) as exc:
            self.logger.error("Failed to parse response: %s", exc)
            error = WizResponseError(
                f"Failed to parse response from {self.ip}",
                raw_response=data,
                cause=exc,
            )
            self.outcome.fail(error)
            return

        if KEY_ERROR in response:
            self._handle_error_response(response[KEY_ERROR], data)
            return

        self.logger.info("Success: %s response from %s", self.method, self.ip)
        self.outcome.succeed(response)

    def _handle_error_response(self, error: Any, data: bytes):
        code = None
        error_msg = "Unknown error"
        if isinstance(error, dict):
            code = error.get(KEY_CODE)
            error_msg = error.get(KEY_MESSAGE) or error_msg
        self.logger.error(
            "Error response: code=%s, message=%s", code, error_msg
        )

        if code == ERROR_CODE_METHOD_NOT_FOUND:
            self.outcome.fail(WizMethodNotFoundError(self.method, self.ip))
            return

        self.outcome.fail(
            WizResponseError(
                f"Error from light: {error_msg}",
                raw_response=data,
                error_code=code,
            )
        )

    async def run_attempts(self):
        """Transmits the request until the outcome is decided or the
        retry policy is exhausted"""
        max_attempts = self.retry.total_attempts

        while self.outcome.pending and self.attempt < max_attempts:
            self.attempt += 1
            try:
                self.transport.send(self.payload, self.address)
            except WizConnectionError as exc:
                self.outcome.fail(exc)
                return
            self.logger.debug("Attempt %d/%d sent", self.attempt, max_attempts)

            if await self.outcome.wait(self.timeout):
                return
            self.logger.debug(
                "Attempt %d timed out after %gs", self.attempt, self.timeout
            )

            if self.attempt >= max_attempts:
                self.logger.error(
                    "Timeout after %d attempts to %s", self.attempt, self.ip
                )
                self.outcome.fail(self.timeout_error())
                return

            self.logger.debug("Waiting %gs before retry", self.interval)
            # A late reply to an earlier attempt still counts
            if await self.outcome.wait(self.interval):
                return
            self.interval = self.retry.next_interval(self.interval)


async def send(
    ip: str,
    message: Dict[str, Any],
    port: int = WIZ_PORT,
    timeout: float = DEFAULT_TIMEOUT,
    retry: Optional[RetryPolicy] = None,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """Sends message to the light at ip:port and returns its parsed reply.

    timeout applies to each attempt separately, so the worst case
    duration is roughly timeout * attempts + the sum of the retry
    intervals. retry defaults to DEFAULT_SEND_RETRY; pass
    RetryPolicy.none() for a single attempt.

    Raises WizTimeoutError, WizConnectionError, WizMethodNotFoundError
    or WizResponseError.

    Any reply received on the socket satisfies the request; it is not
    matched against the method that was sent."""
    if retry is None:
        retry = DEFAULT_SEND_RETRY
    logger = logger or _LOGGER

    transport = await WizTransport.open()
    async with transport:
        request = PendingRequest(transport, ip, port, message, timeout, retry, logger)
        logger.info("Sending %s to %s:%d", request.method, ip, port)
        logger.debug("Request: %s", request.payload.decode("utf-8"))

        listener = asyncio.create_task(request.listen())
        try:
            await request.run_attempts()
            if not await request.outcome.wait(RESULT_GRACE_PERIOD):
                # run_attempts always decides the outcome, so this
                # should be unreachable
                logger.error(
                    "No result for %s after %d attempts", ip, request.attempt
                )
                error = request.timeout_error()
                request.outcome.fail(error)
                raise error
            return request.outcome.result()
        finally:
            listener.cancel()
            await asyncio.gather(listener, return_exceptions=True)

