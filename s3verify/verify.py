"""Response verification.

Checks run in a fixed order: headers, then status, then body. The first
failing check is raised; the order only decides which mismatch is reported
when several would fail.
"""

from typing import Mapping, Optional

import httpx

from s3verify.errors import VerificationMismatch
from s3verify.models import Expectation, ResponseRecord

# Query parameters of GetObject that ask the server to echo a value back
# under a different response header.
# http://docs.aws.amazon.com/AmazonS3/latest/API/RESTObjectGET.html
RESPONSE_OVERRIDE_HEADERS = {
    "response-content-type": "Content-Type",
    "response-content-language": "Content-Language",
    "response-expires": "Expires",
    "response-cache-control": "Cache-Control",
    "response-content-disposition": "Content-Disposition",
    "response-content-encoding": "Content-Encoding",
}

# Bodies longer than this are summarised in mismatch messages
PREVIEW_BYTES = 64


def response_header_name(name: str) -> str:
    """Map a response-* override parameter to the header it sets."""
    return RESPONSE_OVERRIDE_HEADERS.get(name.lower(), name)


def verify_status(response: ResponseRecord, expected_status: int) -> None:
    if response.status_code != expected_status:
        raise VerificationMismatch(
            f"Unexpected Response Status Code: wanted {expected_status}, "
            f"got {response.status_code}",
            check="status",
            expected=expected_status,
            actual=response.status_code,
        )


def verify_headers(response: ResponseRecord, expected_headers: Mapping[str, str]) -> None:
    """Check only the headers the caller asked about.

    Keys may be plain header names or response-* override parameters.
    """
    headers = httpx.Headers(response.headers)
    for key, value in expected_headers.items():
        header_name = response_header_name(key)
        actual: Optional[str] = headers.get(header_name)
        if actual is None:
            raise VerificationMismatch(
                f"Missing Header {header_name}: wanted {value!r}",
                check="header",
                expected=value,
                actual=None,
                header=header_name,
            )
        if actual != value:
            raise VerificationMismatch(
                f"Unexpected Header Value Received for {header_name}: "
                f"wanted {value!r}, got {actual!r}",
                check="header",
                expected=value,
                actual=actual,
                header=header_name,
            )


def _preview(body: bytes) -> str:
    if len(body) <= PREVIEW_BYTES:
        return repr(body)
    return f"{body[:PREVIEW_BYTES]!r}... ({len(body)} bytes)"


def verify_body(response: ResponseRecord, expected_body: bytes) -> None:
    if response.body != expected_body:
        raise VerificationMismatch(
            f"Unexpected Body Received: wanted {_preview(expected_body)}, "
            f"got {_preview(response.body)}",
            check="body",
            expected=expected_body,
            actual=response.body,
        )


def verify_response(response: ResponseRecord, expected: Expectation) -> None:
    """Compare a response with its expectation.

    Raises:
        VerificationMismatch: For the first check that fails.
    """
    verify_headers(response, expected.headers)
    verify_status(response, expected.status)
    if expected.body is not None:
        verify_body(response, expected.body)
