"""Exception types raised by the Truelist client and CLI."""


class TruelistError(Exception):
    """Base class for every error the client raises."""


class TransportError(TruelistError):
    """The HTTP exchange could not be built or completed."""


class CancelledError(TransportError):
    """The caller cancelled the call (or its deadline passed)."""


class AuthError(TruelistError):
    """The service rejected the API key (HTTP 401)."""

    def __init__(self, message: str = "unauthorized — check your API key"):
        super().__init__(message)


class RateLimitedError(TruelistError):
    """The service throttled the request (HTTP 429)."""

    def __init__(self, message: str = "rate limited — too many requests"):
        super().__init__(message)


class ApiError(TruelistError):
    """Any other non-2xx response."""

    def __init__(self, status_code: int, body: bytes = b""):
        self.status_code = status_code
        self.body = body
        text = body.decode("utf-8", errors="replace")
        super().__init__(f"API error (status {status_code}): {text}")


class DecodeError(TruelistError):
    """The response body did not have the expected shape."""


class ConfigError(TruelistError):
    """Credentials are missing or the config file cannot be written."""


class InputError(TruelistError):
    """The batch input source could not be read."""


class OutputError(TruelistError):
    """The batch output file could not be written."""
