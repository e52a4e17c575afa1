"""Exception hierarchy for the S3 compliance verifier.

Only configuration errors (see s3verify.config.ConfigError) stop a run.
Every error below is confined to the test case that raised it.
"""

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from s3verify.orchestrator import BatchResult


class S3VerifyError(Exception):
    """Base class for verifier errors."""


class SigningError(S3VerifyError):
    """A request descriptor could not be signed, or a signature was reused."""


class TransportError(S3VerifyError):
    """The request never produced a response (connect, timeout, TLS)."""

    def __init__(self, message: str, method: str = "", url: str = ""):
        super().__init__(message)
        self.method = method
        self.url = url


class VerificationMismatch(S3VerifyError):
    """A response diverged from what the operation should return.

    Attributes:
        check: Which check failed: "status", "header" or "body".
        expected: The expected value.
        actual: The value received.
        header: Header name for header mismatches.
    """

    def __init__(
        self,
        message: str,
        check: str,
        expected: Any = None,
        actual: Any = None,
        header: Optional[str] = None,
    ):
        super().__init__(message)
        self.check = check
        self.expected = expected
        self.actual = actual
        self.header = header


class FixtureError(S3VerifyError):
    """One or more unit operations of a fixture batch failed."""

    phase = "fixture"

    def __init__(self, batch: "BatchResult", message: Optional[str] = None):
        self.batch = batch
        failed = batch.errors
        if message is None:
            first_index, first_error = failed[0] if failed else (-1, None)
            message = (
                f"{self.phase} failed for {len(failed)} of {len(batch)} item(s); "
                f"first failure at index {first_index}: {first_error}"
            )
        super().__init__(message)

    @property
    def first_index(self) -> int:
        failed = self.batch.errors
        return failed[0][0] if failed else -1


class FixtureSetupError(FixtureError):
    """Creating fixtures failed."""

    phase = "fixture setup"


class FixtureCleanupError(FixtureError):
    """Deleting fixtures failed for at least one item."""

    phase = "fixture cleanup"
