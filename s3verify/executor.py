"""Sends signed requests and buffers their responses.

The executor performs no retries: a transport failure is surfaced to the
caller as TransportError and the caller decides what to do with it.
"""

import logging
from typing import Optional, Protocol

import httpx

from s3verify.errors import TransportError
from s3verify.models import ResponseRecord, ServerConfig, SignedRequest

logger = logging.getLogger(__name__)


class RequestObserver(Protocol):
    """Receives every request before it is sent and every response after.

    Observers get the real header values; redaction is their job.
    """

    def on_request(self, request: SignedRequest) -> None: ...

    def on_response(self, request: SignedRequest, response: ResponseRecord) -> None: ...


def _read_raw(response: httpx.Response) -> bytes:
    """Body bytes as sent, without content-encoding decoding."""
    # Responses built in memory (e.g. by a MockTransport) arrive already read
    if response.is_stream_consumed:
        return response.content
    return b"".join(response.iter_raw())


def build_http_client(config: ServerConfig) -> httpx.Client:
    """Build the httpx client used for requests under test."""
    return httpx.Client(
        timeout=config.timeout,
        verify=config.verify_ssl,
        follow_redirects=False,
    )


class RequestExecutor:
    """Executes SignedRequests over an httpx client."""

    def __init__(
        self,
        http_client: httpx.Client,
        observer: Optional[RequestObserver] = None,
    ):
        """Initialize the executor.

        Args:
            http_client: httpx client (or one with a MockTransport in tests)
            observer: Optional request/response observer for tracing
        """
        self.http_client = http_client
        self.observer = observer

    def execute(self, signed: SignedRequest) -> ResponseRecord:
        """Send a signed request and return the fully read response.

        Args:
            signed: A request produced by sign_request; it is consumed.

        Returns:
            ResponseRecord with status, headers and the raw body bytes.

        Raises:
            SigningError: If the request was already sent.
            TransportError: If no response was received.
        """
        signed.mark_sent()
        request = httpx.Request(
            signed.method,
            signed.url,
            headers=signed.headers,
            content=signed.body or None,
        )

        self._notify("on_request", signed)

        try:
            response = self.http_client.send(request, stream=True)
            try:
                body = _read_raw(response)
            finally:
                response.close()
        except httpx.RequestError as e:
            raise TransportError(
                f"{signed.method} {signed.url} failed: {type(e).__name__}: {e}",
                method=signed.method,
                url=signed.url,
            ) from e

        record = ResponseRecord(
            status_code=response.status_code,
            headers=response.headers,
            body=body,
            reason=response.reason_phrase,
        )
        logger.debug("%s %s -> %d", signed.method, signed.url, record.status_code)

        self._notify("on_response", signed, record)
        return record

    def _notify(self, hook: str, *args) -> None:
        if self.observer is None:
            return
        try:
            getattr(self.observer, hook)(*args)
        except Exception:
            logger.warning("Request observer %s failed", hook, exc_info=True)
