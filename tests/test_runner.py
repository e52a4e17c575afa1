"""Tests for runner.py module.

Tests the suite runner that coordinates shared fixtures, case execution
and reporter callbacks.
"""

from unittest.mock import Mock, patch

import pytest

from s3verify.case_runner import ComplianceCase
from s3verify.errors import FixtureCleanupError, FixtureSetupError
from s3verify.models import CaseOutcome, Phase, ResultStatus, ServerConfig
from s3verify.orchestrator import BatchResult, run_unit
from s3verify.runner import SuiteResult, SuiteRunner


class RecordingCase(ComplianceCase):
    """Case that records its run order and yields no requests."""

    def __init__(self, case_id, log, shared=False, fail_setup=False):
        self.case_id = case_id
        self.name = case_id.title()
        self.uses_shared_fixtures = shared
        self.log = log
        self.fail_setup = fail_setup

    def setup(self, ctx):
        self.log.append(f"{self.case_id}:setup")
        if self.fail_setup:
            raise RuntimeError("setup broke")

    def exchanges(self, ctx, state):
        self.log.append(f"{self.case_id}:run:{ctx.shared is not None}")
        return []

    def cleanup(self, ctx, state):
        self.log.append(f"{self.case_id}:cleanup")


def failed_batch(message):
    def boom():
        raise RuntimeError(message)

    return BatchResult([run_unit(0, boom)])


class TestSuiteResult:
    """Tests for SuiteResult dataclass."""

    def outcome(self, case_id, status):
        return CaseOutcome(case_id=case_id, case_name=case_id, status=status)

    def test_counts(self):
        result = SuiteResult(
            endpoint="http://localhost:9000",
            outcomes=[
                self.outcome("a", ResultStatus.PASS),
                self.outcome("b", ResultStatus.FAIL),
                self.outcome("c", ResultStatus.ERROR),
            ],
            total_duration=1.0,
        )

        assert (result.passed, result.failed, result.errors) == (1, 1, 1)
        assert result.all_passed is False

    def test_all_passed(self):
        result = SuiteResult("e", [self.outcome("a", ResultStatus.PASS)], 1.0)
        assert result.all_passed is True

    def test_empty_run_did_not_pass(self):
        assert SuiteResult("e", [], 0.0).all_passed is False

    def test_to_dict(self):
        failure = CaseOutcome(
            case_id="b",
            case_name="B",
            status=ResultStatus.FAIL,
            phase=Phase.VERIFY,
            error=RuntimeError("bad status"),
            cleanup_error=RuntimeError("left a bucket"),
            duration_seconds=0.12345,
        )
        result = SuiteResult("http://localhost:9000", [failure], 2.0)

        data = result.to_dict()

        assert data["endpoint"] == "http://localhost:9000"
        assert data["cases"]["b"] == {
            "name": "B",
            "status": "fail",
            "phase": "verify",
            "error_message": "bad status",
            "cleanup_error": "left a bucket",
            "duration_seconds": 0.123,
        }
        assert data["summary"]["total_cases"] == 1
        assert data["summary"]["all_passed"] is False
        assert data["shared_fixtures"] == {"setup_error": None, "cleanup_error": None}


class TestSuiteRunner:
    """Tests for SuiteRunner.run."""

    @pytest.fixture
    def shared(self) -> Mock:
        return Mock(name="shared-fixtures")

    def runner(self, config, cases, reporter=None):
        return SuiteRunner(
            config,
            cases,
            executor=Mock(),
            fixture_client=Mock(),
            reporter=reporter,
        )

    def test_cases_run_sequentially_in_order(self, server_config: ServerConfig, shared):
        log = []
        cases = [RecordingCase("one", log), RecordingCase("two", log, shared=True)]

        with patch("s3verify.runner.SharedFixtures.create", return_value=shared):
            result = self.runner(server_config, cases).run()

        assert log == [
            "one:setup", "one:run:True", "one:cleanup",
            "two:setup", "two:run:True", "two:cleanup",
        ]
        assert [o.case_id for o in result.outcomes] == ["one", "two"]
        assert result.all_passed
        shared.teardown.assert_called_once()

    def test_no_shared_fixtures_when_unused(self, server_config: ServerConfig):
        log = []

        with patch("s3verify.runner.SharedFixtures.create") as create:
            self.runner(server_config, [RecordingCase("one", log)]).run()

        create.assert_not_called()
        assert log[1] == "one:run:False"

    def test_case_failure_does_not_stop_suite(self, server_config: ServerConfig):
        log = []
        cases = [RecordingCase("one", log, fail_setup=True), RecordingCase("two", log)]

        result = self.runner(server_config, cases).run()

        assert [o.status for o in result.outcomes] == [ResultStatus.ERROR, ResultStatus.PASS]
        assert "two:cleanup" in log

    def test_shared_setup_failure_errors_dependent_cases(self, server_config: ServerConfig):
        log = []
        cases = [RecordingCase("own", log), RecordingCase("uses", log, shared=True)]
        error = FixtureSetupError(failed_batch("create failed"))

        with patch("s3verify.runner.SharedFixtures.create", side_effect=error):
            result = self.runner(server_config, cases).run()

        own, uses = result.outcomes
        assert own.status == ResultStatus.PASS
        assert uses.status == ResultStatus.ERROR
        assert uses.phase == Phase.SETUP
        assert uses.error is error
        assert result.setup_error is error
        assert not any(entry.startswith("uses:") for entry in log)

    def test_shared_teardown_failure_recorded(self, server_config: ServerConfig, shared):
        shared.teardown.side_effect = FixtureCleanupError(failed_batch("delete failed"))
        cases = [RecordingCase("uses", [], shared=True)]

        with patch("s3verify.runner.SharedFixtures.create", return_value=shared):
            result = self.runner(server_config, cases).run()

        assert isinstance(result.cleanup_error, FixtureCleanupError)
        assert result.all_passed

    def test_reporter_callbacks(self, server_config: ServerConfig):
        reporter = Mock()
        cases = [RecordingCase("one", []), RecordingCase("two", [])]

        result = self.runner(server_config, cases, reporter=reporter).run()

        reporter.on_suite_start.assert_called_once_with(server_config, 2)
        assert [c.args[:2] for c in reporter.on_case_start.call_args_list] == [(1, 2), (2, 2)]
        assert [c.args[2] for c in reporter.on_case_complete.call_args_list] == result.outcomes
        reporter.on_suite_complete.assert_called_once_with(result)
