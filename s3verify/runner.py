"""Suite runner.

Runs the registered cases against one endpoint, strictly one after
another in registration order, managing:
- Shared fixture creation and teardown
- The case context handed to every case
- Reporter callbacks
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from s3verify.case_runner import CaseContext, ComplianceCase, run_case, utc_now
from s3verify.executor import RequestExecutor
from s3verify.fixtures import SharedFixtures
from s3verify.models import CaseOutcome, Phase, ResultStatus, ServerConfig

logger = logging.getLogger(__name__)

# Objects in the shared bucket
DEFAULT_SHARED_OBJECTS = 3


@dataclass
class SuiteResult:
    """Result of running the suite against one endpoint."""

    endpoint: str
    outcomes: list[CaseOutcome]
    total_duration: float
    setup_error: Optional[BaseException] = None
    cleanup_error: Optional[BaseException] = None
    timestamp: str = field(default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()))

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == ResultStatus.PASS)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == ResultStatus.FAIL)

    @property
    def errors(self) -> int:
        return sum(1 for o in self.outcomes if o.status == ResultStatus.ERROR)

    @property
    def all_passed(self) -> bool:
        """True when every case passed; a shared teardown failure does not change it."""
        return bool(self.outcomes) and all(o.passed for o in self.outcomes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        cases = {}
        for outcome in self.outcomes:
            cases[outcome.case_id] = {
                "name": outcome.case_name,
                "status": outcome.status.value,
                "phase": outcome.phase.value if outcome.phase else None,
                "error_message": outcome.error_message,
                "cleanup_error": outcome.cleanup_message,
                "duration_seconds": round(outcome.duration_seconds, 3),
            }

        return {
            "timestamp": self.timestamp,
            "endpoint": self.endpoint,
            "cases": cases,
            "shared_fixtures": {
                "setup_error": str(self.setup_error) if self.setup_error else None,
                "cleanup_error": str(self.cleanup_error) if self.cleanup_error else None,
            },
            "summary": {
                "total_cases": len(self.outcomes),
                "passed": self.passed,
                "failed": self.failed,
                "errors": self.errors,
                "all_passed": self.all_passed,
                "duration_seconds": round(self.total_duration, 3),
            },
        }


class SuiteRunner:
    """Runs compliance cases against a single endpoint.

    Coordinates:
    - Creating the shared bucket and objects when a case needs them
    - Running each case to completion (cleanup included) before the next
    - Removing the shared fixtures at the end
    - Calling reporter callbacks for progress
    """

    def __init__(
        self,
        config: ServerConfig,
        cases: Sequence[ComplianceCase],
        executor: RequestExecutor,
        fixture_client: Any,
        reporter: Optional[Any] = None,
        shared_objects: int = DEFAULT_SHARED_OBJECTS,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the suite runner.

        Args:
            config: Endpoint and credentials
            cases: Cases in the order they must run
            executor: Executor for the requests under test
            fixture_client: boto3 S3 client used for fixtures
            reporter: Optional reporter for progress callbacks
            shared_objects: Number of objects in the shared bucket
            clock: Source of request timestamps
        """
        self.config = config
        self.cases = list(cases)
        self.executor = executor
        self.fixture_client = fixture_client
        self.reporter = reporter
        self.shared_objects = shared_objects
        self.clock = clock

    def run(self) -> SuiteResult:
        """Run every case.

        Returns:
            SuiteResult with one outcome per case, in registration order.
        """
        start_time = time.time()
        total = len(self.cases)
        outcomes: list[CaseOutcome] = []

        if self.reporter:
            self.reporter.on_suite_start(self.config, total)

        shared, setup_error = self._create_shared_fixtures()
        ctx = CaseContext(
            config=self.config,
            executor=self.executor,
            fixture_client=self.fixture_client,
            shared=shared,
            clock=self.clock,
        )

        try:
            for index, case in enumerate(self.cases, start=1):
                if self.reporter:
                    self.reporter.on_case_start(index, total, case)

                if case.uses_shared_fixtures and shared is None:
                    outcome = CaseOutcome(
                        case_id=case.case_id,
                        case_name=case.name,
                        status=ResultStatus.ERROR,
                        phase=Phase.SETUP,
                        error=setup_error,
                    )
                else:
                    outcome = run_case(case, ctx)

                outcomes.append(outcome)
                logger.info("[%02d/%d] %s: %s", index, total, case.name, outcome.status.value)

                if self.reporter:
                    self.reporter.on_case_complete(index, total, outcome)
        finally:
            cleanup_error = self._teardown_shared_fixtures(shared)

        result = SuiteResult(
            endpoint=self.config.endpoint_url,
            outcomes=outcomes,
            total_duration=time.time() - start_time,
            setup_error=setup_error,
            cleanup_error=cleanup_error,
        )

        if self.reporter:
            self.reporter.on_suite_complete(result)

        return result

    def _create_shared_fixtures(self) -> tuple[Optional[SharedFixtures], Optional[BaseException]]:
        if not any(case.uses_shared_fixtures for case in self.cases):
            return None, None
        try:
            return SharedFixtures.create(self.fixture_client, self.config, self.shared_objects), None
        except Exception as e:
            logger.error("Shared fixture setup failed: %s", e)
            return None, e

    def _teardown_shared_fixtures(self, shared: Optional[SharedFixtures]) -> Optional[BaseException]:
        if shared is None:
            return None
        try:
            shared.teardown(self.fixture_client, self.config.workers)
        except Exception as e:
            logger.error("Shared fixture teardown failed: %s", e)
            return e
        return None

