"""TestSession — top-level context manager for an instrumented test run."""

import logging
import sys
import unittest

from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import StatusCode

from ciotel import tags
from ciotel.config import CiotelConfig
from ciotel.resolver import CITags
from ciotel.spans import service_name_from_repository_url
from ciotel.test_case import TestCase

TRACER_VERSION = "0.1.0"

DEFAULT_SERVICE_NAME = "ciotel"

log = logging.getLogger(__name__)


class TestSession:
    """Context manager (sync or async) that sets up OTEL for a test run.

    Usage::

        with TestSession(session_name="unit", framework="pytest") as session:
            with session.start_test("test_login", suite="tests.test_auth") as test:
                run_login_checks()
    """

    __test__ = False

    def __init__(self, *, service_name="", session_name="", otlp_endpoint="",
                 otlp_insecure=True, environment="", framework="",
                 ci_tags=None, span_exporter=None, log_exporter=None,
                 skip_exceptions=(unittest.SkipTest,), install_global=True):
        self._config = CiotelConfig(
            service_name=service_name,
            session_name=session_name,
            otlp_endpoint=otlp_endpoint,
            otlp_insecure=otlp_insecure,
            environment=environment,
            framework=framework,
        )
        self._ci_tags = ci_tags if ci_tags is not None else CITags()
        self._span_exporter = span_exporter
        self._log_exporter = log_exporter
        self._skip_exceptions = tuple(skip_exceptions)
        self._install_global = install_global
        self._provider = None
        self._log_provider = None
        self._log_handler = None
        self._logger = None
        self._tracer = None
        self._session_span = None
        self._session_ctx = None
        self._passed = 0
        self._failed = 0
        self._skipped = 0
        self._total = 0

    @property
    def config(self):
        return self._config

    @property
    def ci_tags(self):
        return self._ci_tags

    def service_name(self):
        """Explicit service name, else the repository name, else a default.

        A repository URL whose name cannot be extracted is used as is.
        """
        if self._config.service_name:
            return self._config.service_name
        repository_url, found = self._ci_tags.lookup(tags.REPOSITORY_URL)
        if found:
            return service_name_from_repository_url(repository_url) or repository_url
        return DEFAULT_SERVICE_NAME

    def __enter__(self):
        self._start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._finish(exc_val)
        return False

    async def __aenter__(self):
        self._start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self._finish(exc_val)
        return False

    def _start(self):
        cfg = self._config
        # Preload CI and git tags before anything is traced
        self._ci_tags.ensure_resolved()

        resource = Resource.create({
            "service.name": self.service_name(),
            "telemetry.sdk.name": "ciotel",
            "deployment.environment": cfg.environment,
        })

        # Set up OTEL tracing
        self._provider = TracerProvider(resource=resource)
        exporter = self._span_exporter or OTLPSpanExporter(
            endpoint=cfg.otlp_endpoint, insecure=cfg.otlp_insecure
        )
        self._provider.add_span_processor(BatchSpanProcessor(exporter))
        self._tracer = self._provider.get_tracer("ciotel", TRACER_VERSION)

        # Set up OTEL logging (emits error logs for failed tests, correlated with traces)
        self._log_provider = LoggerProvider(resource=resource)
        log_exporter = self._log_exporter or OTLPLogExporter(
            endpoint=cfg.otlp_endpoint, insecure=cfg.otlp_insecure
        )
        self._log_provider.add_log_record_processor(BatchLogRecordProcessor(log_exporter))
        self._log_handler = LoggingHandler(
            level=logging.ERROR, logger_provider=self._log_provider
        )
        self._logger = logging.getLogger("ciotel.test_results")
        self._logger.addHandler(self._log_handler)
        self._logger.setLevel(logging.ERROR)

        if self._install_global:
            trace.set_tracer_provider(self._provider)
            set_logger_provider(self._log_provider)

        session_attrs = {tags.TEST_FRAMEWORK: cfg.framework}
        self._ci_tags.for_each(session_attrs.__setitem__)
        self._session_span = self._tracer.start_span(
            f"session({cfg.session_name})", attributes=session_attrs
        )
        self._session_ctx = trace.set_span_in_context(self._session_span)
        log.debug("Started test session %s for service %s",
                  cfg.session_name, self.service_name())

    def _finish(self, exc_val):
        span = self._session_span
        span.set_attribute("test.session.total", self._total)
        span.set_attribute("test.session.passed", self._passed)
        span.set_attribute("test.session.failed", self._failed)
        span.set_attribute("test.session.skipped", self._skipped)
        if exc_val is not None or self._failed:
            span.set_attribute(tags.TEST_STATUS, tags.Status.FAIL.value)
            span.set_status(StatusCode.ERROR, str(exc_val) if exc_val else None)
        else:
            span.set_attribute(tags.TEST_STATUS, tags.Status.PASS.value)
            span.set_status(StatusCode.OK)
        if exc_val is not None:
            span.record_exception(exc_val)
        span.end()

        # Flush telemetry
        self._provider.force_flush()
        self._log_provider.force_flush()
        self._logger.removeHandler(self._log_handler)
        self._provider.shutdown()
        self._log_provider.shutdown()

    def start_test(self, name, *, suite=None, framework=None,
                   test_type=tags.TYPE_TEST, skip_frames=1):
        """Create a TestCase context manager for a single test.

        ``suite`` defaults to the module of the caller, ``skip_frames``
        levels up the stack; raise it when calling through a wrapper.
        """
        if suite is None:
            suite = sys._getframe(skip_frames).f_globals.get("__name__", "")
        case = TestCase(
            self._tracer,
            self._session_ctx,
            self._ci_tags,
            self._record_result,
            logger=self._logger,
            name=name,
            suite=suite,
            framework=framework or self._config.framework,
            test_type=test_type,
            skip_exceptions=self._skip_exceptions,
        )
        return case

    def _record_result(self, status):
        """Called by TestCase on exit to track outcome counts."""
        self._total += 1
        if status is tags.Status.PASS:
            self._passed += 1
        elif status is tags.Status.FAIL:
            self._failed += 1
        else:
            self._skipped += 1

    @property
    def passed(self):
        return self._passed

    @property
    def failed(self):
        return self._failed

    @property
    def skipped(self):
        return self._skipped

    @property
    def total(self):
        return self._total


def run(main, **options):
    """Run ``main(session)`` inside a TestSession and return its exit code.

    A ``SystemExit`` raised by ``main`` (as ``unittest.main`` does) is turned
    into its code; telemetry is flushed either way.
    """
    with TestSession(**options) as session:
        try:
            return main(session)
        except SystemExit as exc:
            return 0 if exc.code is None else exc.code
