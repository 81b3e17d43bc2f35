"""Truelist API client: authenticated transport plus the verify and account calls."""

import json
import logging
import threading
import time
from typing import Any, Optional, Tuple

import requests

from . import __version__
from .cancel import CancelToken
from .errors import (
    ApiError,
    AuthError,
    CancelledError,
    DecodeError,
    RateLimitedError,
    TransportError,
)
from .models import AccountInfo, ValidationResult
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.truelist.io"
DEFAULT_TIMEOUT = 30.0  # seconds, for the whole exchange
POLL_INTERVAL = 0.05
CHUNK_SIZE = 8192
USER_AGENT = f"truelist-cli/{__version__}"

VERIFY_PATH = "/api/v1/verify"
ACCOUNT_PATH = "/api/v1/account"


class Client:
    """One instance per CLI invocation; safe to share between threads."""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("API key required")
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.limiter = limiter or RateLimiter()
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            }
        )

    def __repr__(self) -> str:
        return f"Client(base_url={self.base_url!r})"

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # --------------------------
    # Transport
    # --------------------------

    def send(
        self,
        method: str,
        path: str,
        body: Any = None,
        cancel: Optional[CancelToken] = None,
    ) -> Tuple[bytes, int]:
        """Perform one authenticated request and return (body, status).

        Any completed exchange is returned as-is, whatever its status code.
        Only failures to build, send or read the request raise.

        The exchange runs on a worker thread so the caller can give up on it
        as soon as ``cancel`` fires or the overall timeout passes, even while
        the server is still sending.
        """
        data = None
        if body is not None:
            try:
                data = json.dumps(body)
            except (TypeError, ValueError) as e:
                raise TransportError(f"failed to marshal request body: {e}") from e

        timeout = self.timeout
        if cancel is not None:
            cancel.raise_if_cancelled()
            remaining = cancel.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)

        url = self.base_url + path
        logger.debug("%s %s", method, url)
        exchange = _Exchange(self.session, method, url, data, timeout)
        worker = threading.Thread(target=exchange.run, name="truelist-request", daemon=True)
        worker.start()

        while not exchange.done.wait(POLL_INTERVAL):
            if cancel is not None and cancel.cancelled:
                exchange.abort()
                raise CancelledError("request cancelled")
            if time.monotonic() >= exchange.deadline:
                exchange.abort()
                raise TransportError(f"request failed: no complete response within {exchange.timeout:g}s")

        if cancel is not None and cancel.cancelled:
            raise CancelledError("request cancelled")
        if exchange.error is not None:
            raise exchange.error
        logger.debug("%s %s -> %d (%d bytes)", method, path, exchange.status, len(exchange.content))
        return exchange.content, exchange.status

    # --------------------------
    # Operations
    # --------------------------

    def validate(self, email: str, cancel: Optional[CancelToken] = None) -> ValidationResult:
        """Verify a single email address."""
        self.limiter.acquire(cancel)
        body, status = self.send("POST", VERIFY_PATH, {"email": email}, cancel)

        if status == 401:
            raise AuthError()
        if status == 429:
            raise RateLimitedError()
        _check_status(status, body)

        return ValidationResult.from_payload(_decode(body), fallback_email=email)

    def whoami(self, cancel: Optional[CancelToken] = None) -> AccountInfo:
        """Check the API key and return the account it belongs to."""
        self.limiter.acquire(cancel)
        body, status = self.send("GET", ACCOUNT_PATH, cancel=cancel)

        if status == 401:
            raise AuthError()
        # 429 here is reported as a plain ApiError carrying the status.
        _check_status(status, body)

        return AccountInfo.from_payload(_decode(body))


def _check_status(status: int, body: bytes) -> None:
    if status < 200 or status >= 300:
        raise ApiError(status, body)


def _decode(body: bytes) -> Any:
    try:
        return json.loads(body)
    except ValueError as e:
        raise DecodeError(f"failed to parse response: {e}") from e


class _Exchange:
    """One streamed HTTP exchange, run off the caller's thread.

    The body is read in chunks so an abort or the overall deadline is noticed
    between chunks instead of after the whole response.
    """

    def __init__(self, session: requests.Session, method: str, url: str, data: Optional[str], timeout: float):
        self.session = session
        self.method = method
        self.url = url
        self.data = data
        self.timeout = timeout
        self.deadline = time.monotonic() + timeout
        self.done = threading.Event()
        self.aborted = threading.Event()
        self.response: Optional[requests.Response] = None
        self.content = b""
        self.status = 0
        self.error: Optional[BaseException] = None

    def abort(self) -> None:
        self.aborted.set()
        r = self.response
        if r is not None:
            r.close()

    def run(self) -> None:
        try:
            self._run()
        except Exception as e:
            self.error = e
        finally:
            self.done.set()

    def _run(self) -> None:
        try:
            r = self.session.request(
                self.method, self.url, data=self.data, timeout=self.timeout, stream=True
            )
        except requests.RequestException as e:
            self.error = TransportError(f"request failed: {e}")
            self.error.__cause__ = e
            return

        self.response = r
        chunks = []
        try:
            for chunk in r.iter_content(CHUNK_SIZE):
                if self.aborted.is_set():
                    return
                if time.monotonic() >= self.deadline:
                    self.error = TransportError(
                        f"request failed: no complete response within {self.timeout:g}s"
                    )
                    return
                chunks.append(chunk)
        except requests.RequestException as e:
            self.error = TransportError(f"failed to read response: {e}")
            self.error.__cause__ = e
            return
        finally:
            r.close()

        self.content = b"".join(chunks)
        self.status = r.status_code
