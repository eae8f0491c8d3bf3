"""Normalization passes applied to tags extracted from a CI provider."""

import os
import re
from pathlib import Path

from ciotel import tags
from ciotel.sensitive import filter_sensitive_info

_RE_REFS = re.compile(r"^refs/(heads/)?")
_RE_ORIGIN = re.compile(r"^origin/")
_RE_TAGS = re.compile(r"^tags/")


def normalize_ref(name: str) -> str:
    """Reduce a git ref to its short name.

    ``refs/`` and an optional ``heads/`` are stripped first, then ``origin/``,
    then ``tags/``, so ``refs/heads/origin/tags/main`` becomes ``main``.
    """
    return _RE_TAGS.sub("", _RE_ORIGIN.sub("", _RE_REFS.sub("", name)))


def is_ref_a_tag(ref: str) -> bool:
    return "tags/" in ref


def expand_workspace_path(path: str) -> str:
    """Expand a leading ``~`` to the current user's home directory.

    Only ``~`` on its own or followed by a separator is expanded. Anything
    else, or a home directory that cannot be resolved, returns ``path`` as is.
    """
    if not path.startswith("~"):
        return path
    rest = path[1:]
    if rest and rest[0] not in (os.sep, "/"):
        return path
    try:
        home = str(Path.home())
    except (KeyError, RuntimeError):
        return path
    return home + rest


def drop_empty(mapping: dict) -> dict:
    return {k: v for k, v in mapping.items() if v != ""}


def normalize_provider_tags(extracted: dict) -> dict:
    """Apply ref, URL and workspace normalization, then drop empty values."""
    result = dict(extracted)
    if result.get(tags.TAG):
        result[tags.TAG] = normalize_ref(result[tags.TAG])
        result.pop(tags.BRANCH, None)
    if result.get(tags.BRANCH):
        result[tags.BRANCH] = normalize_ref(result[tags.BRANCH])
    if result.get(tags.REPOSITORY_URL):
        result[tags.REPOSITORY_URL] = filter_sensitive_info(result[tags.REPOSITORY_URL])
    if result.get(tags.WORKSPACE_PATH):
        result[tags.WORKSPACE_PATH] = expand_workspace_path(result[tags.WORKSPACE_PATH])
    return drop_empty(result)
