"""Tests for the Truelist API client (transport, validate, whoami)."""

import json
import threading
import time
from unittest.mock import Mock

import pytest
import requests

from conftest import make_response
from truelist.cancel import CancelToken
from truelist.client import ACCOUNT_PATH, DEFAULT_BASE_URL, VERIFY_PATH, Client
from truelist.errors import (
    ApiError,
    AuthError,
    CancelledError,
    DecodeError,
    RateLimitedError,
    TransportError,
    TruelistError,
)
from truelist.models import AccountInfo, ValidationResult
from truelist.ratelimit import RateLimiter

VALID_BODY = {
    "email": "user@example.com",
    "state": "valid",
    "sub_state": "email_ok",
    "free_email": True,
    "role": False,
    "disposable": False,
}


class TestClientSetup:
    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            Client("")

    def test_default_base_url(self):
        assert Client("tk_test").base_url == DEFAULT_BASE_URL

    def test_trailing_slash_stripped(self):
        assert Client("tk_test", base_url="http://localhost:8080/").base_url == "http://localhost:8080"

    def test_headers(self, client):
        headers = client.session.headers
        assert headers["Authorization"] == "Bearer tk_test"
        assert headers["Content-Type"] == "application/json"
        assert headers["Accept"] == "application/json"
        assert headers["User-Agent"].startswith("truelist-cli/")

    def test_api_key_not_in_repr(self, client):
        assert "tk_test" not in repr(client)

    def test_each_client_has_its_own_limiter(self):
        assert Client("a").limiter is not Client("b").limiter


class TestSend:
    """Transport returns any completed exchange untouched."""

    def test_post_serializes_body(self, client, session):
        session.request.return_value = make_response(200, b"ok")
        body, status = client.send("POST", "/x", {"email": "a@b.co"})
        assert (body, status) == (b"ok", 200)
        method, url = session.request.call_args.args
        assert method == "POST"
        assert url == "https://mock.truelist.test/x"
        assert json.loads(session.request.call_args.kwargs["data"]) == {"email": "a@b.co"}
        assert session.request.call_args.kwargs["timeout"] == 30.0
        assert session.request.call_args.kwargs["stream"] is True

    def test_non_2xx_is_not_an_error(self, client, session):
        session.request.return_value = make_response(503, b"down")
        assert client.send("GET", "/x") == (b"down", 503)

    def test_unserializable_body(self, client, session):
        with pytest.raises(TransportError, match="marshal"):
            client.send("POST", "/x", {"bad": object()})
        session.request.assert_not_called()

    def test_connection_failure(self, client, session):
        session.request.side_effect = requests.ConnectionError("no route")
        with pytest.raises(TransportError, match="request failed"):
            client.send("GET", "/x")

    def test_timeout_is_transport_error(self, client, session):
        session.request.side_effect = requests.Timeout("slow")
        with pytest.raises(TransportError) as exc_info:
            client.send("GET", "/x")
        assert not isinstance(exc_info.value, CancelledError)

    def test_timeout_capped_by_deadline(self, client, session):
        client.send("GET", "/x", cancel=CancelToken(timeout=5.0))
        assert session.request.call_args.kwargs["timeout"] <= 5.0

    def test_timeout_after_deadline_is_cancellation(self, client, session):
        token = CancelToken(timeout=5.0)

        def slow(*args, **kwargs):
            token.cancel()
            raise requests.Timeout("slow")

        session.request.side_effect = slow
        with pytest.raises(CancelledError):
            client.send("GET", "/x", cancel=token)

    def test_cancelled_before_send(self, client, session):
        token = CancelToken()
        token.cancel()
        with pytest.raises(CancelledError):
            client.send("GET", "/x", cancel=token)
        session.request.assert_not_called()

    def test_body_read_failure(self, client, session):
        r = Mock()
        r.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("cut")
        session.request.return_value = r
        with pytest.raises(TransportError, match="failed to read response"):
            client.send("GET", "/x")
        r.close.assert_called_once()


class TestValidate:
    def test_success(self, client, session):
        session.request.return_value = make_response(200, dict(VALID_BODY, suggestion="user@example.org"))
        result = client.validate("user@example.com")
        assert result == ValidationResult(
            email="user@example.com",
            state="valid",
            sub_state="email_ok",
            free_email=True,
            role=False,
            disposable=False,
            suggestion="user@example.org",
        )
        method, url = session.request.call_args.args
        assert method == "POST"
        assert url.endswith(VERIFY_PATH)

    def test_missing_email_falls_back_to_input(self, client, session):
        body = dict(VALID_BODY)
        del body["email"]
        session.request.return_value = make_response(200, body)
        assert client.validate("typed@example.com").email == "typed@example.com"

    def test_empty_email_falls_back_to_input(self, client, session):
        session.request.return_value = make_response(200, dict(VALID_BODY, email=""))
        assert client.validate("typed@example.com").email == "typed@example.com"

    def test_unauthorized(self, client, session):
        session.request.return_value = make_response(401, b'{"error":"bad key"}')
        with pytest.raises(AuthError, match="check your API key"):
            client.validate("user@example.com")

    def test_server_rate_limit(self, client, session):
        session.request.return_value = make_response(429, b"slow down")
        with pytest.raises(RateLimitedError) as exc_info:
            client.validate("user@example.com")
        assert not isinstance(exc_info.value, (ApiError, CancelledError))

    def test_other_status(self, client, session):
        session.request.return_value = make_response(500, b"boom")
        with pytest.raises(ApiError) as exc_info:
            client.validate("user@example.com")
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == b"boom"
        assert "status 500" in str(exc_info.value)

    def test_non_json_body(self, client, session):
        session.request.return_value = make_response(200, b"<html>oops</html>")
        with pytest.raises(DecodeError):
            client.validate("user@example.com")

    def test_wrong_shape(self, client, session):
        session.request.return_value = make_response(200, b"[1, 2]")
        with pytest.raises(DecodeError):
            client.validate("user@example.com")

    def test_wrong_field_type(self, client, session):
        session.request.return_value = make_response(200, dict(VALID_BODY, free_email="yes"))
        with pytest.raises(DecodeError):
            client.validate("user@example.com")

    def test_state_is_case_insensitive(self, client, session):
        session.request.return_value = make_response(200, dict(VALID_BODY, state="RISKY"))
        result = client.validate("user@example.com")
        assert result.state == "RISKY"
        assert result.category == "risky"

    def test_consumes_a_token(self, session, clock):
        limiter = RateLimiter(capacity=5, clock=clock, sleep=clock.sleep)
        session.request.return_value = make_response(200, VALID_BODY)
        c = Client("tk_test", session=session, limiter=limiter)
        c.validate("user@example.com")
        c.validate("user@example.com")
        assert limiter.tokens == 3

    def test_cancel_while_rate_limited(self, session):
        limiter = RateLimiter(capacity=1, window=60.0)
        c = Client("tk_test", session=session, limiter=limiter)
        session.request.return_value = make_response(200, VALID_BODY)
        c.validate("user@example.com")
        with pytest.raises(CancelledError):
            c.validate("user@example.com", CancelToken(timeout=0.05))
        assert session.request.call_count == 1

    def test_all_errors_share_a_base(self):
        for cls in (TransportError, AuthError, RateLimitedError, ApiError, DecodeError):
            assert issubclass(cls, TruelistError)


class TestWhoami:
    def test_success(self, client, session):
        session.request.return_value = make_response(200, {"email": "u@x.com", "plan": "pro", "credits": 500})
        info = client.whoami()
        assert info == AccountInfo(email="u@x.com", plan="pro", credits=500)
        method, url = session.request.call_args.args
        assert method == "GET"
        assert url.endswith(ACCOUNT_PATH)
        assert session.request.call_args.kwargs["data"] is None

    def test_unauthorized(self, client, session):
        session.request.return_value = make_response(401, b"")
        with pytest.raises(AuthError):
            client.whoami()

    def test_rate_limit_is_generic_api_error(self, client, session):
        session.request.return_value = make_response(429, b"slow down")
        with pytest.raises(ApiError) as exc_info:
            client.whoami()
        assert exc_info.value.status_code == 429

    def test_bad_credits(self, client, session):
        session.request.return_value = make_response(200, {"email": "u@x.com", "plan": "pro", "credits": "lots"})
        with pytest.raises(DecodeError):
            client.whoami()

    def test_malformed(self, client, session):
        session.request.return_value = make_response(200, b"not json")
        with pytest.raises(DecodeError):
            client.whoami()


class TestSlowServer:
    """Cancellation and the overall timeout against a real, slow endpoint."""

    def test_cancel_aborts_in_flight_request(self, slow_server):
        c = Client("tk_test", base_url=slow_server)
        token = CancelToken()
        threading.Timer(0.1, token.cancel).start()
        start = time.monotonic()
        with pytest.raises(CancelledError):
            c.validate("a@b.co", token)
        assert time.monotonic() - start < 1.0

    def test_deadline_aborts_in_flight_request(self, slow_server):
        c = Client("tk_test", base_url=slow_server)
        start = time.monotonic()
        with pytest.raises(CancelledError):
            c.validate("a@b.co", CancelToken(timeout=0.2))
        assert time.monotonic() - start < 1.0

    def test_trickling_body_hits_total_timeout(self, slow_server):
        c = Client("tk_test", base_url=slow_server, timeout=0.5)
        start = time.monotonic()
        with pytest.raises(TransportError, match="no complete response within 0.5s") as exc_info:
            c.whoami()
        assert not isinstance(exc_info.value, CancelledError)
        assert time.monotonic() - start < 2.0
