"""Span helpers."""

import re

from ciotel import tags

_REPO_NAME = re.compile(r"/([a-zA-Z0-9\\\-_.]*)$")


def service_name_from_repository_url(url: str) -> str:
    """Repository name from its URL, e.g. ``org/repo.git`` gives ``repo``."""
    match = _REPO_NAME.search(url)
    if not match:
        return ""
    name = match.group(1)
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name


def start_test_span(tracer, parent_ctx, name, suite, framework,
                    test_type=tags.TYPE_TEST, **extra_attrs):
    """Start a test span as a child of ``parent_ctx``.

    The span is not made current; the caller ends it.
    """
    attrs = {
        tags.TEST_NAME: name,
        tags.TEST_SUITE: suite,
        tags.TEST_FRAMEWORK: framework,
        tags.TEST_TYPE: test_type,
    }
    attrs.update(extra_attrs)
    return tracer.start_span(f"{suite}.{name}", context=parent_ctx, attributes=attrs)
