from typing import Optional


class WizError(Exception):
    """Base class for all errors raised by this package"""


class WizConnectionError(WizError):
    """The local socket could not be opened or could not send"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        if cause is not None:
            message = f"{message} (caused by: {cause})"
        super().__init__(message)


class WizTimeoutError(WizError):
    """The light didn't respond to any of the attempts"""

    def __init__(self, ip: str, timeout: float, retry_count: int = 0):
        self.ip = ip
        self.timeout = timeout
        self.retry_count = retry_count
        super().__init__(
            f"Light at {ip} did not respond after {retry_count} attempts "
            f"({timeout:g}s timeout)"
        )


class WizMethodNotFoundError(WizError):
    """The light firmware rejected the method"""

    def __init__(self, method: str, ip: str):
        self.method = method
        self.ip = ip
        super().__init__(f'Method "{method}" not supported by light at {ip}')


class WizResponseError(WizError):
    """The light returned an error, or a reply we couldn't make sense of"""

    def __init__(
        self,
        message: str,
        *,
        raw_response: Optional[bytes] = None,
        error_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.raw_response = raw_response
        self.error_code = error_code
        self.cause = cause
        parts = [message]
        if error_code is not None:
            parts.append(f"(code: {error_code})")
        if raw_response is not None:
            parts.append(f"(response: {raw_response!r})")
        super().__init__(" ".join(parts))
