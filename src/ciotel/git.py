"""Local git working copy metadata, used when CI variables are missing."""

import logging
import subprocess
from dataclasses import dataclass

log = logging.getLogger(__name__)

# author name, email, date, committer name, email, date, raw body
_SHOW_FORMAT = "%an%x00%ae%x00%aI%x00%cn%x00%ce%x00%cI%x00%B"


@dataclass(frozen=True)
class GitData:
    """Snapshot of the local repository. Empty strings mean unknown."""

    source_root: str = ""
    repository_url: str = ""
    commit_sha: str = ""
    branch: str = ""
    author_name: str = ""
    author_email: str = ""
    author_date: str = ""
    committer_name: str = ""
    committer_email: str = ""
    committer_date: str = ""
    commit_message: str = ""

    @property
    def found(self) -> bool:
        return bool(self.commit_sha)


def _git(*args, cwd=None) -> str:
    return subprocess.check_output(
        ["git", *args], cwd=cwd, text=True, stderr=subprocess.DEVNULL
    ).strip()


def _remote_url(cwd=None) -> str:
    try:
        return _git("ls-remote", "--get-url", cwd=cwd)
    except (OSError, subprocess.SubprocessError):
        log.debug("No remote configured for repository", exc_info=True)
        return ""


def get_git_data(cwd=None) -> GitData:
    """Read commit, branch and authorship of the repository containing ``cwd``.

    Never raises: when git is missing or ``cwd`` is not inside a repository,
    an empty :class:`GitData` is returned.
    """
    try:
        source_root = _git("rev-parse", "--show-toplevel", cwd=cwd)
        commit_sha = _git("rev-parse", "HEAD", cwd=cwd)
        branch = _git("rev-parse", "--abbrev-ref", "HEAD", cwd=cwd)
        details = _git("show", "-s", f"--format={_SHOW_FORMAT}", cwd=cwd)
    except (OSError, subprocess.SubprocessError):
        log.debug("Unable to read git metadata", exc_info=True)
        return GitData()

    fields = details.split("\x00", 6)
    fields += [""] * (7 - len(fields))
    (author_name, author_email, author_date,
     committer_name, committer_email, committer_date, message) = fields

    return GitData(
        source_root=source_root,
        repository_url=_remote_url(cwd),
        commit_sha=commit_sha,
        # detached HEAD
        branch="" if branch == "HEAD" else branch,
        author_name=author_name,
        author_email=author_email,
        author_date=author_date,
        committer_name=committer_name,
        committer_email=committer_email,
        committer_date=committer_date,
        commit_message=message.strip(),
    )
