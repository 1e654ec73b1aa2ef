"""Tests for upstream error classification."""

import asyncio

import httpx
import pytest

from agent_router.core.error_classification import (
    ErrorKind,
    UpstreamError,
    classify_error,
    describe_error,
    is_retryable_error,
)


def _http_status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://gateway.test/v1/messages")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class TestStatusClassification:
    @pytest.mark.parametrize(
        "status,kind",
        [
            (400, ErrorKind.BAD_REQUEST),
            (401, ErrorKind.AUTH),
            (403, ErrorKind.AUTH),
            (429, ErrorKind.RATE_LIMIT),
            (500, ErrorKind.SERVER),
            (502, ErrorKind.SERVER),
            (503, ErrorKind.SERVER),
            (504, ErrorKind.SERVER),
        ],
    )
    def test_status_codes(self, status, kind):
        assert classify_error(UpstreamError(status=status)).kind is kind
        assert classify_error({"status": status}).kind is kind
        assert classify_error(_http_status_error(status)).kind is kind

    def test_string_status(self):
        assert classify_error({"status": "503"}).kind is ErrorKind.SERVER

    def test_unlisted_status_is_unknown(self):
        assert classify_error(UpstreamError(status=404)).kind is ErrorKind.UNKNOWN
        assert classify_error(_http_status_error(418)).kind is ErrorKind.UNKNOWN

    def test_status_code_attribute(self):
        class SdkError(Exception):
            status_code = 429

        assert classify_error(SdkError("slow down")).kind is ErrorKind.RATE_LIMIT


class TestCodeClassification:
    @pytest.mark.parametrize(
        "code,kind",
        [
            ("ECONNRESET", ErrorKind.NETWORK),
            ("ETIMEDOUT", ErrorKind.NETWORK),
            ("ECONNREFUSED", ErrorKind.NETWORK),
            ("rate_limit_exceeded", ErrorKind.RATE_LIMIT),
            ("invalid_api_key", ErrorKind.AUTH),
            ("authentication_error", ErrorKind.AUTH),
            ("invalid_request_error", ErrorKind.BAD_REQUEST),
        ],
    )
    def test_top_level_code(self, code, kind):
        result = classify_error(UpstreamError(code=code))
        assert result.kind is kind
        assert result.identifier == code

    def test_nested_error_code(self):
        error = {"error": {"code": "rate_limit_exceeded", "message": "slow down"}}
        assert classify_error(error).kind is ErrorKind.RATE_LIMIT

    def test_type_field(self):
        error = UpstreamError("overloaded", type="rate_limit_error")
        assert classify_error(error).kind is ErrorKind.RATE_LIMIT

    def test_numeric_code_treated_as_status(self):
        assert classify_error({"code": 503}).kind is ErrorKind.SERVER

    def test_status_wins_over_code(self):
        error = UpstreamError(status=401, code="ECONNRESET")
        assert classify_error(error).kind is ErrorKind.AUTH

    def test_unknown_code(self):
        result = classify_error(UpstreamError(code="SOMETHING_ELSE"))
        assert result.kind is ErrorKind.UNKNOWN
        assert result.identifier == "SOMETHING_ELSE"


class TestTransportClassification:
    def test_httpx_timeout(self):
        result = classify_error(httpx.ReadTimeout("read timed out"))
        assert result.kind is ErrorKind.NETWORK
        assert result.identifier == "ETIMEDOUT"

    def test_httpx_connect_error(self):
        assert classify_error(httpx.ConnectError("refused")).identifier == "ECONNREFUSED"

    def test_httpx_other_transport_error(self):
        assert classify_error(httpx.RemoteProtocolError("closed")).identifier == "ECONNRESET"

    def test_asyncio_timeout(self):
        result = classify_error(asyncio.TimeoutError())
        assert result.kind is ErrorKind.NETWORK
        assert result.identifier == "ETIMEDOUT"

    def test_builtin_connection_errors(self):
        assert classify_error(ConnectionResetError()).kind is ErrorKind.NETWORK
        assert classify_error(TimeoutError()).identifier == "ETIMEDOUT"


class TestRetryability:
    @pytest.mark.parametrize(
        "kind,retryable",
        [
            (ErrorKind.NETWORK, True),
            (ErrorKind.RATE_LIMIT, True),
            (ErrorKind.SERVER, True),
            (ErrorKind.AUTH, False),
            (ErrorKind.BAD_REQUEST, False),
            (ErrorKind.UNKNOWN, False),
        ],
    )
    def test_kind_retryable(self, kind, retryable):
        assert kind.retryable is retryable

    def test_plain_exception_is_not_retryable(self):
        assert not is_retryable_error(ValueError("boom"))

    def test_none_is_unknown(self):
        assert classify_error(None).kind is ErrorKind.UNKNOWN


class TestDescribeError:
    def test_prefers_code(self):
        assert describe_error(UpstreamError("msg", code="ETIMEDOUT")) == "ETIMEDOUT"

    def test_falls_back_to_message(self):
        assert describe_error(ValueError("boom")) == "boom"
        assert describe_error(ValueError()) == "ValueError"

    def test_mapping_message(self):
        assert describe_error({"message": "bad things"}) == "bad things"
