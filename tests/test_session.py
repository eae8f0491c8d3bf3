"""Tests for TestSession — session span, counters and lifecycle."""

import logging
import unittest

import pytest
from unittest.mock import MagicMock, patch

from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from ciotel import tags
from ciotel.git import GitData
from ciotel.resolver import CITags
from ciotel.session import DEFAULT_SERVICE_NAME, TestSession, run


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def session_kwargs(ci_tags, span_exporter, log_exporter, monkeypatch):
    monkeypatch.delenv("OTEL_SERVICE_NAME", raising=False)
    return dict(
        session_name="unit",
        framework="pytest",
        ci_tags=ci_tags,
        span_exporter=span_exporter,
        log_exporter=log_exporter,
        install_global=False,
    )


def spans_named(exporter, prefix):
    return [s for s in exporter.get_finished_spans() if s.name.startswith(prefix)]


class TestSessionSpan:
    def test_empty_session(self, session_kwargs, span_exporter):
        with TestSession(**session_kwargs) as session:
            pass

        assert session.total == 0
        session_span = spans_named(span_exporter, "session(unit)")[0]
        assert session_span.attributes["test.session.total"] == 0
        assert session_span.attributes[tags.TEST_STATUS] == "pass"
        assert session_span.attributes[tags.TEST_FRAMEWORK] == "pytest"
        assert session_span.attributes[tags.BRANCH] == "main"
        assert session_span.status.status_code == StatusCode.OK

    def test_service_name_from_repository(self, session_kwargs, span_exporter):
        with TestSession(**session_kwargs) as session:
            assert session.service_name() == "project"
        resource = span_exporter.get_finished_spans()[0].resource
        assert resource.attributes["service.name"] == "project"

    def test_explicit_service_name(self, session_kwargs):
        session = TestSession(service_name="checkout-tests", **session_kwargs)
        assert session.service_name() == "checkout-tests"

    def test_default_service_name(self, session_kwargs):
        session_kwargs["ci_tags"] = CITags(env={}, git_data_fn=GitData)
        session = TestSession(**session_kwargs)
        assert session.service_name() == DEFAULT_SERVICE_NAME


    def test_unparsable_repository_url_used_as_is(self, session_kwargs):
        local = GitData(commit_sha="abc123", repository_url="repo with spaces")
        session_kwargs["ci_tags"] = CITags(env={}, git_data_fn=lambda: local)
        session = TestSession(**session_kwargs)
        assert session.service_name() == "repo with spaces"


class TestResultTracking:
    def test_tracks_outcomes(self, session_kwargs, span_exporter):
        with TestSession(**session_kwargs) as session:
            with session.start_test("test_passes"):
                pass

            try:
                with session.start_test("test_fails"):
                    raise RuntimeError("intentional")
            except RuntimeError:
                pass

            try:
                with session.start_test("test_skipped"):
                    raise unittest.SkipTest("not today")
            except unittest.SkipTest:
                pass

        assert session.passed == 1
        assert session.failed == 1
        assert session.skipped == 1
        assert session.total == 3

        session_span = spans_named(span_exporter, "session(")[0]
        assert session_span.attributes["test.session.failed"] == 1
        assert session_span.attributes[tags.TEST_STATUS] == "fail"
        assert session_span.status.status_code == StatusCode.ERROR

    def test_unentered_case_not_counted(self, session_kwargs):
        with TestSession(**session_kwargs) as session:
            session.start_test("test_never_run")
            with session.start_test("test_runs"):
                pass

        assert session.total == 1
        assert session.total == session.passed + session.failed + session.skipped

    def test_tests_are_children_of_session(self, session_kwargs, span_exporter):
        with TestSession(**session_kwargs) as session:
            with session.start_test("test_child", suite="suite"):
                pass

        session_span = spans_named(span_exporter, "session(")[0]
        child = spans_named(span_exporter, "suite.test_child")[0]
        assert child.parent.span_id == session_span.context.span_id
        assert child.attributes[tags.TEST_FRAMEWORK] == "pytest"

    def test_suite_defaults_to_caller_module(self, session_kwargs, span_exporter):
        with TestSession(**session_kwargs) as session:
            case = session.start_test("test_auto_suite")
            with case:
                pass

        assert case.suite == __name__
        assert spans_named(span_exporter, f"{__name__}.test_auto_suite")

    def test_suite_through_wrapper(self, session_kwargs):
        def start(session, name):
            return session.start_test(name, skip_frames=2)

        with TestSession(**session_kwargs) as session:
            with start(session, "test_wrapped") as case:
                pass
        assert case.suite == __name__

    @pytest.mark.asyncio
    async def test_async_session(self, session_kwargs, span_exporter):
        async with TestSession(**session_kwargs) as session:
            async with session.start_test("test_async"):
                pass
        assert session.passed == 1
        assert spans_named(span_exporter, "session(unit)")


class TestLifecycle:
    def test_flushes_and_shuts_down(self, session_kwargs):
        with patch("ciotel.session.TracerProvider.shutdown") as shutdown:
            with TestSession(**session_kwargs):
                pass
        shutdown.assert_called_once()

    def test_error_inside_session_propagates(self, session_kwargs, span_exporter):
        with pytest.raises(KeyError):
            with TestSession(**session_kwargs):
                raise KeyError("setup")
        session_span = spans_named(span_exporter, "session(")[0]
        assert session_span.status.status_code == StatusCode.ERROR

    def test_logger_handler_removed(self, session_kwargs):
        logger = logging.getLogger("ciotel.test_results")
        before = list(logger.handlers)
        with TestSession(**session_kwargs):
            assert len(logger.handlers) == len(before) + 1
        assert logger.handlers == before


class TestRun:
    def test_returns_main_result(self, session_kwargs):
        main = MagicMock(return_value=0)
        assert run(main, **session_kwargs) == 0
        (session,), _ = main.call_args
        assert isinstance(session, TestSession)

    def test_system_exit_converted(self, session_kwargs, span_exporter):
        def main(session):
            with session.start_test("test_one", suite="s"):
                pass
            raise SystemExit(3)

        assert run(main, **session_kwargs) == 3
        assert spans_named(span_exporter, "s.test_one")

    def test_system_exit_without_code(self, session_kwargs):
        def main(session):
            raise SystemExit()

        assert run(main, **session_kwargs) == 0
