"""Runs one compliance case through Setup, Sign+Execute, Verify and Cleanup.

The earliest failing phase decides the outcome. Cleanup runs whenever
setup succeeded; a cleanup failure is recorded next to the primary error
and only becomes the primary error when nothing else failed.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from s3verify.errors import VerificationMismatch
from s3verify.executor import RequestExecutor
from s3verify.fixtures import SharedFixtures
from s3verify.models import CaseOutcome, Exchange, Phase, ResultStatus, ServerConfig
from s3verify.signing import sign_request
from s3verify.verify import verify_response

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CaseContext:
    """Everything a case may use, passed explicitly to each phase."""

    config: ServerConfig
    executor: RequestExecutor
    fixture_client: Any = None
    shared: Optional[SharedFixtures] = None
    clock: Callable[[], datetime] = field(default=utc_now)

    @property
    def workers(self) -> int:
        return self.config.workers


class ComplianceCase(ABC):
    """One registered check of an S3 operation.

    Subclasses build the requests under test in exchanges(); setup() and
    cleanup() manage whatever fixtures those requests need.
    """

    case_id: str = ""
    name: str = ""
    description: str = ""
    uses_shared_fixtures: bool = False

    def setup(self, ctx: CaseContext) -> Any:
        """Create fixtures and return the state later phases need."""
        return None

    @abstractmethod
    def exchanges(self, ctx: CaseContext, state: Any) -> Iterable[Exchange]:
        """Yield the requests under test with their expected responses."""

    def cleanup(self, ctx: CaseContext, state: Any) -> None:
        """Remove fixtures created by setup()."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.case_id}>"


def run_exchange(ctx: CaseContext, exchange: Exchange) -> None:
    """Sign, send and verify one request.

    Raises:
        SigningError, TransportError: The request could not be made.
        VerificationMismatch: The response was not the expected one.
    """
    signed = sign_request(exchange.request, ctx.config, ctx.clock())
    response = ctx.executor.execute(signed)
    verify_response(response, exchange.expected)


def run_case(case: ComplianceCase, ctx: CaseContext) -> CaseOutcome:
    """Run a case and classify its outcome.

    Args:
        case: The case to run.
        ctx: Shared run context.

    Returns:
        CaseOutcome: PASS, FAIL (request, verify or cleanup failure) or
        ERROR (setup failed, nothing was sent, cleanup skipped).
    """
    start_time = time.monotonic()

    def outcome(status, phase=None, error=None, cleanup_error=None) -> CaseOutcome:
        return CaseOutcome(
            case_id=case.case_id,
            case_name=case.name,
            status=status,
            phase=phase,
            error=error,
            cleanup_error=cleanup_error,
            duration_seconds=time.monotonic() - start_time,
        )

    try:
        state = case.setup(ctx)
    except Exception as e:
        logger.info("%s: setup failed: %s", case.case_id, e)
        return outcome(ResultStatus.ERROR, Phase.SETUP, e)

    phase: Optional[Phase] = None
    error: Optional[BaseException] = None
    try:
        for exchange in case.exchanges(ctx, state):
            run_exchange(ctx, exchange)
    except VerificationMismatch as e:
        phase, error = Phase.VERIFY, e
    except Exception as e:
        phase, error = Phase.REQUEST, e

    cleanup_error: Optional[BaseException] = None
    try:
        case.cleanup(ctx, state)
    except Exception as e:
        cleanup_error = e
        logger.warning("%s: cleanup failed: %s", case.case_id, e)

    if error is not None:
        logger.info("%s: %s failed: %s", case.case_id, phase.value, error)
        return outcome(ResultStatus.FAIL, phase, error, cleanup_error)
    if cleanup_error is not None:
        return outcome(ResultStatus.FAIL, Phase.CLEANUP, cleanup_error)
    return outcome(ResultStatus.PASS)
