"""Shared test fixtures for ciotel tests."""

import pytest
from unittest.mock import MagicMock

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.sdk.resources import Resource

from ciotel.git import GitData
from ciotel.resolver import CITags


@pytest.fixture
def otel_setup():
    """Set up an in-memory OTEL tracer for testing.

    Returns (tracer, exporter) without touching the global tracer provider,
    so tests don't interfere with each other.
    """
    exporter = InMemorySpanExporter()
    resource = Resource.create({"service.name": "test-service"})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    tracer = provider.get_tracer("ciotel-test", "0.1.0")
    yield tracer, exporter
    exporter.clear()
    provider.shutdown()


@pytest.fixture
def git_data():
    """A fully populated local git snapshot."""
    return GitData(
        source_root="/home/dev/project",
        repository_url="https://github.com/acme/project.git",
        commit_sha="abc123",
        branch="main",
        author_name="Ada Author",
        author_email="ada@example.com",
        author_date="2024-01-02T03:04:05+00:00",
        committer_name="Carl Committer",
        committer_email="carl@example.com",
        committer_date="2024-01-02T04:05:06+00:00",
        commit_message="Fix flaky login test",
    )


@pytest.fixture
def ci_tags(git_data):
    """CITags resolved from an empty environment and the git_data fixture."""
    return CITags(env={}, git_data_fn=lambda: git_data)


@pytest.fixture
def log_exporter():
    """Stand-in OTLP log exporter so sessions never dial a collector."""
    return MagicMock()
