"""Tests for verify.py module."""

import httpx
import pytest

from s3verify.errors import VerificationMismatch
from s3verify.models import Expectation, ResponseRecord
from s3verify.verify import (
    response_header_name,
    verify_body,
    verify_headers,
    verify_response,
    verify_status,
)


def record(status=200, headers=None, body=b"") -> ResponseRecord:
    return ResponseRecord(status_code=status, headers=httpx.Headers(headers or {}), body=body)


class TestVerifyStatus:
    """Tests for verify_status function."""

    def test_matching_status(self):
        verify_status(record(304), 304)

    def test_mismatch_message(self):
        with pytest.raises(VerificationMismatch) as exc_info:
            verify_status(record(200), 304)

        assert str(exc_info.value) == "Unexpected Response Status Code: wanted 304, got 200"
        assert exc_info.value.check == "status"
        assert exc_info.value.expected == 304
        assert exc_info.value.actual == 200


class TestVerifyHeaders:
    """Tests for verify_headers function."""

    def test_override_parameter_maps_to_header(self):
        """response-content-type is checked against Content-Type."""
        verify_headers(
            record(headers={"Content-Type": "image/gif"}),
            {"response-content-type": "image/gif"},
        )

    def test_missing_header(self):
        with pytest.raises(VerificationMismatch, match="Missing Header Content-Type") as exc_info:
            verify_headers(record(), {"response-content-type": "image/gif"})

        assert exc_info.value.header == "Content-Type"
        assert exc_info.value.actual is None

    def test_wrong_value(self):
        with pytest.raises(VerificationMismatch, match="Unexpected Header Value Received for ETag"):
            verify_headers(record(headers={"ETag": '"abc"'}), {"ETag": '"def"'})

    def test_case_insensitive_names(self):
        verify_headers(record(headers={"etag": '"abc"'}), {"ETag": '"abc"'})

    def test_extra_headers_ignored(self):
        verify_headers(record(headers={"ETag": '"abc"', "Server": "x"}), {"ETag": '"abc"'})

    @pytest.mark.parametrize(
        "parameter,header",
        [
            ("response-content-type", "Content-Type"),
            ("response-content-language", "Content-Language"),
            ("response-expires", "Expires"),
            ("response-cache-control", "Cache-Control"),
            ("response-content-disposition", "Content-Disposition"),
            ("response-content-encoding", "Content-Encoding"),
            ("ETag", "ETag"),
        ],
    )
    def test_response_header_name(self, parameter, header):
        assert response_header_name(parameter) == header


class TestVerifyBody:
    """Tests for verify_body function."""

    def test_exact_match(self):
        verify_body(record(body=b"\x00\x01"), b"\x00\x01")

    def test_mismatch_previews_long_bodies(self):
        with pytest.raises(VerificationMismatch, match="Unexpected Body Received") as exc_info:
            verify_body(record(body=b"a" * 200), b"b" * 200)

        assert "(200 bytes)" in str(exc_info.value)
        assert exc_info.value.check == "body"


class TestVerifyResponse:
    """Tests for verify_response function."""

    def test_all_checks_pass(self):
        verify_response(
            record(304, {"ETag": '"abc"'}),
            Expectation(status=304, headers={"ETag": '"abc"'}, body=b""),
        )

    def test_body_skipped_when_none(self):
        verify_response(record(412, body=b"<Error/>"), Expectation(status=412))

    def test_headers_checked_before_status(self):
        """With both wrong, the header mismatch is reported."""
        with pytest.raises(VerificationMismatch) as exc_info:
            verify_response(
                record(500),
                Expectation(status=200, headers={"response-content-type": "image/gif"}),
            )
        assert exc_info.value.check == "header"

    def test_status_checked_before_body(self):
        with pytest.raises(VerificationMismatch) as exc_info:
            verify_response(record(200, body=b"data"), Expectation(status=304, body=b""))
        assert exc_info.value.check == "status"
