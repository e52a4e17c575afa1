"""Data models for the S3 compliance verifier."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

import httpx

from s3verify.errors import SigningError


class ResultStatus(Enum):
    """Status of a test case or of the whole suite.

    ERROR marks a case whose setup failed, so no request was attempted.
    """

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


class Phase(Enum):
    """Phase of a test case in which a failure occurred."""

    SETUP = "setup"
    REQUEST = "request"
    VERIFY = "verify"
    CLEANUP = "cleanup"


@dataclass(frozen=True)
class ServerConfig:
    """Endpoint and credentials for a single verification run."""

    endpoint_url: str
    access_key: str
    secret_key: str
    region: str = "us-east-1"
    addressing_style: str = "path"
    workers: int = 8
    verify_ssl: bool = True
    timeout: float = 60.0

    @property
    def scheme(self) -> str:
        return urlsplit(self.endpoint_url).scheme or "https"

    @property
    def host(self) -> str:
        """Host (and non-default port) of the endpoint."""
        return urlsplit(self.endpoint_url).netloc


@dataclass(frozen=True)
class RequestDescriptor:
    """Description of one S3 request before it is signed."""

    method: str
    bucket: str = ""
    object_name: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    content_sha256: Optional[str] = None


class SignedRequest:
    """A request carrying its SigV4 Authorization header.

    Holds its own copy of the headers taken at signing time. It can be
    sent once; a second send raises SigningError.
    """

    def __init__(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes,
        timestamp: datetime,
        authorization: str,
        canonical_request: str = "",
        string_to_sign: str = "",
    ):
        self.method = method
        self.url = url
        self.headers = dict(headers)
        self.body = body
        self.timestamp = timestamp
        self.authorization = authorization
        self.canonical_request = canonical_request
        self.string_to_sign = string_to_sign
        self._sent = False

    @property
    def sent(self) -> bool:
        return self._sent

    def mark_sent(self) -> None:
        """Record that the request went out.

        Raises:
            SigningError: If the request has been sent before.
        """
        if self._sent:
            raise SigningError(
                f"{self.method} {self.url} was already sent; sign a fresh descriptor"
            )
        self._sent = True

    def __repr__(self) -> str:
        return f"SignedRequest({self.method} {self.url})"


@dataclass
class ResponseRecord:
    """A fully buffered HTTP response."""

    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""
    reason: str = ""


@dataclass
class ObjectInfo:
    """An object created as a fixture."""

    key: str
    body: bytes = b""
    etag: str = ""
    last_modified: Optional[datetime] = None
    content_type: str = "binary/octet-stream"

    @property
    def size(self) -> int:
        return len(self.body)


@dataclass
class FixtureResult:
    """Outcome of one unit operation in a fixture batch."""

    index: int
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Expectation:
    """Expected status, headers and body of a response.

    A body of None means the body is not compared.
    """

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None


@dataclass
class Exchange:
    """A request under test together with what it must return."""

    request: RequestDescriptor
    expected: Expectation


@dataclass
class CaseOutcome:
    """Result of running a single test case."""

    case_id: str
    case_name: str
    status: ResultStatus
    phase: Optional[Phase] = None
    error: Optional[BaseException] = None
    cleanup_error: Optional[BaseException] = None
    duration_seconds: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status == ResultStatus.PASS

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    @property
    def cleanup_message(self) -> Optional[str]:
        return str(self.cleanup_error) if self.cleanup_error is not None else None
