"""Tests for case_runner.py module.

Phase classification, cleanup independence, and a full conditional GET
case against an in-memory server behind httpx.MockTransport.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from unittest.mock import Mock

import httpx
import pytest

from s3verify.case_runner import CaseContext, ComplianceCase, run_case, run_exchange
from s3verify.cases import GetObjectIfModifiedSinceCase
from s3verify.errors import TransportError, VerificationMismatch
from s3verify.models import (
    Exchange,
    Expectation,
    Phase,
    RequestDescriptor,
    ResultStatus,
    ServerConfig,
)

LAST_MODIFIED = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
FIXED_NOW = datetime(2024, 3, 2, tzinfo=timezone.utc)


class ScriptedCase(ComplianceCase):
    """Case whose phases raise or record as configured."""

    case_id = "scripted"
    name = "Scripted"

    def __init__(self, setup_error=None, cleanup_error=None, expected_status=200):
        self.setup_error = setup_error
        self.cleanup_error = cleanup_error
        self.expected_status = expected_status
        self.cleaned_up = False

    def setup(self, ctx):
        if self.setup_error:
            raise self.setup_error
        return "state"

    def exchanges(self, ctx, state):
        yield Exchange(
            RequestDescriptor(method="GET", bucket="bucket"),
            Expectation(status=self.expected_status),
        )

    def cleanup(self, ctx, state):
        self.cleaned_up = True
        if self.cleanup_error:
            raise self.cleanup_error


def make_ctx(config, executor, fixture_client=None) -> CaseContext:
    return CaseContext(
        config=config,
        executor=executor,
        fixture_client=fixture_client,
        clock=lambda: FIXED_NOW,
    )


class TestRunCaseOutcomes:
    """Tests for outcome classification in run_case."""

    def test_pass(self, server_config: ServerConfig, mock_executor):
        case = ScriptedCase()
        ctx = make_ctx(server_config, mock_executor(lambda request: httpx.Response(200)))

        outcome = run_case(case, ctx)

        assert outcome.status == ResultStatus.PASS
        assert outcome.phase is None
        assert outcome.error is None
        assert case.cleaned_up

    def test_setup_failure_is_error_and_skips_request(self, server_config: ServerConfig, mock_executor):
        requests = []
        case = ScriptedCase(setup_error=RuntimeError("no bucket"))
        ctx = make_ctx(server_config, mock_executor(lambda request: requests.append(request)))

        outcome = run_case(case, ctx)

        assert outcome.status == ResultStatus.ERROR
        assert outcome.phase == Phase.SETUP
        assert str(outcome.error) == "no bucket"
        assert requests == []
        assert not case.cleaned_up

    def test_verify_failure_runs_cleanup(self, server_config: ServerConfig, mock_executor):
        case = ScriptedCase(expected_status=304)
        ctx = make_ctx(server_config, mock_executor(lambda request: httpx.Response(200)))

        outcome = run_case(case, ctx)

        assert outcome.status == ResultStatus.FAIL
        assert outcome.phase == Phase.VERIFY
        assert "wanted 304, got 200" in outcome.error_message
        assert case.cleaned_up

    def test_transport_failure_is_request_phase(self, server_config: ServerConfig, mock_executor):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        case = ScriptedCase()
        outcome = run_case(case, make_ctx(server_config, mock_executor(handler)))

        assert outcome.status == ResultStatus.FAIL
        assert outcome.phase == Phase.REQUEST
        assert isinstance(outcome.error, TransportError)
        assert case.cleaned_up

    def test_primary_error_kept_when_cleanup_also_fails(self, server_config: ServerConfig, mock_executor):
        case = ScriptedCase(expected_status=404, cleanup_error=RuntimeError("bucket not empty"))
        ctx = make_ctx(server_config, mock_executor(lambda request: httpx.Response(200)))

        outcome = run_case(case, ctx)

        assert outcome.status == ResultStatus.FAIL
        assert outcome.phase == Phase.VERIFY
        assert outcome.cleanup_message == "bucket not empty"

    def test_cleanup_only_failure_fails_case(self, server_config: ServerConfig, mock_executor):
        case = ScriptedCase(cleanup_error=RuntimeError("bucket not empty"))
        ctx = make_ctx(server_config, mock_executor(lambda request: httpx.Response(200)))

        outcome = run_case(case, ctx)

        assert outcome.status == ResultStatus.FAIL
        assert outcome.phase == Phase.CLEANUP
        assert outcome.error_message == "bucket not empty"
        assert outcome.cleanup_error is None

    def test_request_uses_context_clock(self, server_config: ServerConfig, mock_executor):
        dates = []

        def handler(request):
            dates.append(request.headers["x-amz-date"])
            return httpx.Response(200)

        run_case(ScriptedCase(), make_ctx(server_config, mock_executor(handler)))

        assert dates == ["20240302T000000Z"]


class InMemoryObjects:
    """Minimal object store shared by a Mock boto3 client and a MockTransport handler."""

    def __init__(self, honor_conditionals=True):
        self.objects = {}
        self.honor_conditionals = honor_conditionals
        self.client = Mock()
        self.client.put_object.side_effect = self.put_object
        self.client.head_object.side_effect = self.head_object

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[Key] = Body
        return {}

    def head_object(self, Bucket, Key):
        return {"ETag": '"etag"', "LastModified": LAST_MODIFIED, "ContentType": "binary/octet-stream"}

    def handler(self, request: httpx.Request) -> httpx.Response:
        key = request.url.path.split("/", 2)[2]
        body = self.objects[key]
        since = request.headers.get("if-modified-since")
        if self.honor_conditionals and since and parsedate_to_datetime(since) >= LAST_MODIFIED:
            return httpx.Response(304)
        return httpx.Response(200, content=body)


class TestConditionalGetEndToEnd:
    """GetObject (If-Modified-Since) through setup, request, verify and cleanup."""

    def test_compliant_server_passes(self, server_config: ServerConfig, mock_executor):
        store = InMemoryObjects()
        ctx = make_ctx(server_config, mock_executor(store.handler), store.client)

        outcome = run_case(GetObjectIfModifiedSinceCase(), ctx)

        assert outcome.status == ResultStatus.PASS, outcome.error_message
        store.client.delete_bucket.assert_called_once()
        assert store.client.delete_object.call_count == 1

    def test_server_ignoring_condition_fails_on_status(self, server_config: ServerConfig, mock_executor):
        store = InMemoryObjects(honor_conditionals=False)
        ctx = make_ctx(server_config, mock_executor(store.handler), store.client)

        outcome = run_case(GetObjectIfModifiedSinceCase(), ctx)

        assert outcome.status == ResultStatus.FAIL
        assert outcome.phase == Phase.VERIFY
        assert outcome.error_message == "Unexpected Response Status Code: wanted 304, got 200"
        store.client.delete_bucket.assert_called_once()

    @pytest.mark.parametrize("failing_call", ["create_bucket", "put_object"])
    def test_fixture_failure_is_error(self, server_config: ServerConfig, mock_executor, failing_call):
        store = InMemoryObjects()
        getattr(store.client, failing_call).side_effect = RuntimeError("fixture down")
        requests = []
        ctx = make_ctx(server_config, mock_executor(lambda r: requests.append(r)), store.client)

        outcome = run_case(GetObjectIfModifiedSinceCase(), ctx)

        assert outcome.status == ResultStatus.ERROR
        assert outcome.phase == Phase.SETUP
        assert requests == []


class TestResponseOverrideEndToEnd:
    """response-content-type sent as a query parameter and checked as Content-Type."""

    def exchange(self):
        return Exchange(
            RequestDescriptor(
                method="GET",
                bucket="bucket",
                object_name="key",
                query={"response-content-type": "image/gif"},
            ),
            Expectation(status=200, headers={"response-content-type": "image/gif"}),
        )

    def test_echoing_server_passes(self, server_config: ServerConfig, mock_executor):
        def handler(request):
            content_type = request.url.params["response-content-type"]
            return httpx.Response(200, headers={"Content-Type": content_type}, content=b"x")

        run_exchange(make_ctx(server_config, mock_executor(handler)), self.exchange())

    def test_server_omitting_header_fails(self, server_config: ServerConfig, mock_executor):
        ctx = make_ctx(server_config, mock_executor(lambda request: httpx.Response(200, content=b"x")))

        with pytest.raises(VerificationMismatch) as exc_info:
            run_exchange(ctx, self.exchange())

        assert exc_info.value.header == "Content-Type"
        assert str(exc_info.value).startswith("Missing Header Content-Type")
