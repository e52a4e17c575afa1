"""Base reporter interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from s3verify.case_runner import ComplianceCase
    from s3verify.models import CaseOutcome, ServerConfig
    from s3verify.runner import SuiteResult


class Reporter(ABC):
    """Abstract base class for suite result reporters."""

    @abstractmethod
    def on_suite_start(self, config: "ServerConfig", total: int) -> None:
        """Called before the first case runs."""
        pass

    @abstractmethod
    def on_case_start(self, index: int, total: int, case: "ComplianceCase") -> None:
        """Called when a test case starts."""
        pass

    @abstractmethod
    def on_case_complete(self, index: int, total: int, outcome: "CaseOutcome") -> None:
        """Called when a test case completes, cleanup included."""
        pass

    @abstractmethod
    def on_suite_complete(self, result: "SuiteResult") -> None:
        """Called when all testing is complete."""
        pass


class CompositeReporter(Reporter):
    """Reporter that delegates to multiple reporters.

    Allows using both ConsoleReporter and JsonReporter simultaneously.
    """

    def __init__(self, reporters: list[Reporter]):
        self._reporters = reporters

    def on_suite_start(self, config, total: int) -> None:
        for reporter in self._reporters:
            reporter.on_suite_start(config, total)

    def on_case_start(self, index: int, total: int, case) -> None:
        for reporter in self._reporters:
            reporter.on_case_start(index, total, case)

    def on_case_complete(self, index: int, total: int, outcome) -> None:
        for reporter in self._reporters:
            reporter.on_case_complete(index, total, outcome)

    def on_suite_complete(self, result) -> None:
        for reporter in self._reporters:
            reporter.on_suite_complete(result)
