"""AWS Signature Version 4 request signing.

Turns a RequestDescriptor into a SignedRequest carrying the Host,
X-Amz-Date, X-Amz-Content-Sha256 and Authorization headers. Signing is a
pure function of the descriptor, the credentials and the timestamp handed
in by the caller; the module never reads the clock.

References:
    - https://docs.aws.amazon.com/AmazonS3/latest/API/sig-v4-header-based-auth.html
"""

import hashlib
import hmac
from datetime import datetime, timezone
from typing import Mapping, Optional
from urllib.parse import quote

from s3verify.errors import SigningError
from s3verify.models import RequestDescriptor, ServerConfig, SignedRequest

ALGORITHM = "AWS4-HMAC-SHA256"
KEY_PREFIX = "AWS4"
SCOPE_TERMINATOR = "aws4_request"
SERVICE_NAME = "s3"
EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
SCOPE_DATE_FORMAT = "%Y%m%d"

# Headers the transport may add or rewrite after signing
UNSIGNED_HEADERS = frozenset(
    ["authorization", "user-agent", "content-length", "expect", "transfer-encoding"]
)

# RFC 3986 unreserved characters are the only ones left unescaped
_UNRESERVED = "-_.~"

# Path segments that URL normalization removes
DOT_SEGMENTS = frozenset([".", ".."])


def uri_encode(value: str) -> str:
    """Percent-encode everything except unreserved characters."""
    return quote(value, safe=_UNRESERVED)


def payload_hash(body: Optional[bytes]) -> str:
    """Return the hex SHA-256 of a request body.

    Raises:
        SigningError: If the body is not bytes-like.
    """
    if body is None:
        return EMPTY_SHA256
    if not isinstance(body, (bytes, bytearray, memoryview)):
        raise SigningError(
            f"Cannot hash request body of type {type(body).__name__}; expected bytes"
        )
    return hashlib.sha256(body).hexdigest()


def canonical_uri(bucket: str, object_name: str, addressing_style: str = "path") -> str:
    """Build the canonical (and wire) path for a bucket/object pair.

    Raises:
        SigningError: If the object name has a "." or ".." segment, which
            the HTTP client would collapse before sending.
    """
    segments = []
    if bucket and addressing_style != "virtual":
        segments.append(bucket)
    if object_name:
        object_segments = object_name.split("/")
        if any(segment in DOT_SEGMENTS for segment in object_segments):
            raise SigningError(
                f"Object name {object_name!r} has a dot segment and cannot be sent as signed"
            )
        segments.extend(object_segments)
    if not segments:
        return "/"
    return "/" + "/".join(uri_encode(segment) for segment in segments)


def canonical_query_string(query: Mapping[str, Optional[str]]) -> str:
    """Encode and sort query parameters, keeping `key=` for empty values."""
    pairs = sorted(
        (uri_encode(str(key)), uri_encode("" if value is None else str(value)))
        for key, value in query.items()
    )
    return "&".join(f"{key}={value}" for key, value in pairs)


def _trim_header_value(value: str) -> str:
    return " ".join(str(value).split())


def canonical_headers(headers: Mapping[str, str]) -> tuple[str, str]:
    """Return the canonical header block and the signed header list.

    Raises:
        SigningError: If two header names differ only in case.
    """
    lowered: dict[str, str] = {}
    for name, value in headers.items():
        lower_name = name.lower()
        if lower_name in UNSIGNED_HEADERS:
            continue
        if lower_name in lowered:
            raise SigningError(f"Duplicate header in request descriptor: {name}")
        lowered[lower_name] = _trim_header_value(value)

    names = sorted(lowered)
    block = "".join(f"{name}:{lowered[name]}\n" for name in names)
    return block, ";".join(names)


def derive_signing_key(secret_key: str, date: str, region: str, service: str = SERVICE_NAME) -> bytes:
    """Derive the SigV4 signing key via the HMAC-SHA256 chain."""
    key = (KEY_PREFIX + secret_key).encode("utf-8")
    for part in (date, region, service, SCOPE_TERMINATOR):
        key = hmac.new(key, part.encode("utf-8"), hashlib.sha256).digest()
    return key


def _request_host(credentials: ServerConfig, bucket: str) -> str:
    if bucket and credentials.addressing_style == "virtual":
        return f"{bucket}.{credentials.host}"
    return credentials.host


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def sign_request(
    descriptor: RequestDescriptor,
    credentials: ServerConfig,
    timestamp: datetime,
    region: Optional[str] = None,
) -> SignedRequest:
    """Sign a request descriptor with SigV4.

    Args:
        descriptor: The request to sign. It is not modified.
        credentials: Endpoint, access key and secret key.
        timestamp: Request time; naive values are taken as UTC.
        region: Region for the credential scope (defaults to credentials.region).

    Returns:
        A SignedRequest ready to be executed exactly once.

    Raises:
        SigningError: If the descriptor cannot be signed.
    """
    if not descriptor.method:
        raise SigningError("Request descriptor has no HTTP method")

    region = region or credentials.region
    when = _as_utc(timestamp)
    amz_date = when.strftime(AMZ_DATE_FORMAT)
    scope_date = when.strftime(SCOPE_DATE_FORMAT)
    method = descriptor.method.upper()

    # Content hash: explicit value, then a header supplied by the caller, then the body
    headers = {
        name: value
        for name, value in descriptor.headers.items()
        if name.lower() not in ("host", "x-amz-date", "authorization")
    }
    content_sha256 = descriptor.content_sha256
    hash_headers = [name for name in headers if name.lower() == "x-amz-content-sha256"]
    if len(hash_headers) > 1:
        raise SigningError(f"Duplicate header in request descriptor: {hash_headers[-1]}")
    for name in hash_headers:
        header_hash = headers.pop(name)
        content_sha256 = content_sha256 or header_hash
    if content_sha256 is None:
        content_sha256 = payload_hash(descriptor.body)
    elif descriptor.body is not None and not isinstance(
        descriptor.body, (bytes, bytearray, memoryview)
    ):
        raise SigningError(
            f"Cannot send request body of type {type(descriptor.body).__name__}; expected bytes"
        )

    host = _request_host(credentials, descriptor.bucket)
    headers["Host"] = host
    headers["X-Amz-Date"] = amz_date
    headers["X-Amz-Content-Sha256"] = content_sha256

    path = canonical_uri(descriptor.bucket, descriptor.object_name, credentials.addressing_style)
    query = canonical_query_string(descriptor.query)
    header_block, signed_headers = canonical_headers(headers)

    canonical_request = "\n".join(
        [method, path, query, header_block, signed_headers, content_sha256]
    )

    scope = f"{scope_date}/{region}/{SERVICE_NAME}/{SCOPE_TERMINATOR}"
    canonical_hash = hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()
    string_to_sign = f"{ALGORITHM}\n{amz_date}\n{scope}\n{canonical_hash}"

    signing_key = derive_signing_key(credentials.secret_key, scope_date, region)
    signature = hmac.new(
        signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
    ).hexdigest()

    authorization = (
        f"{ALGORITHM} Credential={credentials.access_key}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )
    headers["Authorization"] = authorization

    url = f"{credentials.scheme}://{host}{path}"
    if query:
        url = f"{url}?{query}"

    return SignedRequest(
        method=method,
        url=url,
        headers=headers,
        body=bytes(descriptor.body) if descriptor.body is not None else b"",
        timestamp=when,
        authorization=authorization,
        canonical_request=canonical_request,
        string_to_sign=string_to_sign,
    )
