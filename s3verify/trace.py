"""HTTP trace observer.

Logs each request under test and its response at debug level, with the
access key and the signature stripped from the Authorization header.
"""

import logging
import re
from typing import Mapping

from s3verify.models import ResponseRecord, SignedRequest

logger = logging.getLogger(__name__)

CREDENTIAL_PATTERN = re.compile(r"Credential=([^/]+)/")
SIGNATURE_PATTERN = re.compile(r"Signature=([0-9a-f]+)")

# Statuses whose bodies are not worth logging
QUIET_STATUSES = frozenset({200, 204, 206})

MAX_BODY_LOG = 2000


def redact_authorization(value: str) -> str:
    """Blank out the access key and signature of a SigV4 Authorization value."""
    value = CREDENTIAL_PATTERN.sub("Credential=**REDACTED**/", value)
    return SIGNATURE_PATTERN.sub("Signature=**REDACTED**", value)


def format_headers(headers: Mapping[str, str]) -> list[str]:
    lines = []
    for key, value in headers.items():
        if key.lower() == "authorization":
            value = redact_authorization(value)
        lines.append(f"{key}: {value}")
    return lines


def _decode_body(body: bytes) -> str:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        text = body.decode("latin-1")
    if len(text) > MAX_BODY_LOG:
        text = text[:MAX_BODY_LOG] + "\n... [truncated]"
    return text


class TraceObserver:
    """Request observer that writes a redacted HTTP trace to the log."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def on_request(self, request: SignedRequest) -> None:
        lines = [f"{request.method} {request.url} HTTP/1.1"]
        lines.extend(format_headers(request.headers))
        self.log.debug("---------START-HTTP---------\n%s", "\n".join(lines))

    def on_response(self, request: SignedRequest, response: ResponseRecord) -> None:
        lines = [f"HTTP/1.1 {response.status_code} {response.reason}".rstrip()]
        lines.extend(format_headers(response.headers))
        if response.status_code not in QUIET_STATUSES and response.body:
            lines.append("")
            lines.append(_decode_body(response.body))
        self.log.debug("%s\n---------END-HTTP---------", "\n".join(lines))
