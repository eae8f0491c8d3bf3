"""Resolution and caching of the CI, git and host tags attached to test spans."""

import logging
import platform
import threading

from ciotel import tags
from ciotel.git import get_git_data
from ciotel.normalize import drop_empty
from ciotel.providers import provider_tags
from ciotel.sensitive import filter_sensitive_info

log = logging.getLogger(__name__)


def runtime_tags() -> dict:
    """Operating system and interpreter tags for the current process."""
    return {
        tags.OS_PLATFORM: platform.system().lower(),
        tags.OS_VERSION: platform.release(),
        tags.OS_ARCHITECTURE: platform.machine(),
        tags.RUNTIME_NAME: platform.python_implementation(),
        tags.RUNTIME_VERSION: platform.python_version(),
    }


def resolve_tags(env=None, git_data_fn=get_git_data) -> dict:
    """Compute the full tag mapping.

    CI provider tags come first. Workspace, repository URL, commit SHA and
    branch fall back to the local git data when missing. Authorship and
    commit message are only taken from git when its HEAD is the commit the
    CI provider reported.
    """
    result = provider_tags(env)
    result.update(runtime_tags())

    git_data = git_data_fn()
    fallback = {
        tags.WORKSPACE_PATH: git_data.source_root,
        tags.REPOSITORY_URL: filter_sensitive_info(git_data.repository_url),
        tags.COMMIT_SHA: git_data.commit_sha,
        tags.BRANCH: git_data.branch,
    }
    if result.get(tags.TAG):
        # a tag build carries no branch
        del fallback[tags.BRANCH]
    for key, value in fallback.items():
        if not result.get(key):
            result[key] = value

    sha = result.get(tags.COMMIT_SHA)
    if sha and sha == git_data.commit_sha:
        details = {
            tags.COMMIT_AUTHOR_NAME: git_data.author_name,
            tags.COMMIT_AUTHOR_EMAIL: git_data.author_email,
            tags.COMMIT_AUTHOR_DATE: git_data.author_date,
            tags.COMMIT_COMMITTER_NAME: git_data.committer_name,
            tags.COMMIT_COMMITTER_EMAIL: git_data.committer_email,
            tags.COMMIT_COMMITTER_DATE: git_data.committer_date,
            tags.COMMIT_MESSAGE: git_data.commit_message,
        }
        for key, value in details.items():
            if not result.get(key):
                result[key] = value
    elif git_data.found:
        log.debug("Local HEAD %s differs from CI commit %s", git_data.commit_sha, sha)

    return drop_empty(result)


class CITags:
    """Lazily resolved, read-only view over the tags of this test process.

    Construct one at startup and hand it to whatever attaches tags to spans.
    Resolution runs on first access; concurrent first accesses may each
    compute the mapping, and the last one stored wins.
    """

    def __init__(self, env=None, git_data_fn=None):
        self._env = env
        self._git_data_fn = git_data_fn or get_git_data
        self._tags = None
        self._lock = threading.Lock()

    def ensure_resolved(self):
        with self._lock:
            if self._tags is not None:
                return
        resolved = resolve_tags(self._env, self._git_data_fn)
        with self._lock:
            self._tags = resolved

    def for_each(self, visit):
        """Call ``visit(key, value)`` once per tag, in no particular order."""
        self.ensure_resolved()
        with self._lock:
            items = list(self._tags.items())
        for key, value in items:
            visit(key, value)

    def lookup(self, key):
        """Return ``(value, True)`` for a known tag, ``("", False)`` otherwise."""
        self.ensure_resolved()
        with self._lock:
            if key in self._tags:
                return self._tags[key], True
        return "", False

    def as_dict(self) -> dict:
        self.ensure_resolved()
        with self._lock:
            return dict(self._tags)
