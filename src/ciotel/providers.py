"""CI provider detection and per-provider tag extraction.

Each extractor reads a fixed set of environment variables and returns raw
tags. Unset variables read as empty strings; :func:`provider_tags` normalizes
the result and drops anything left empty.
"""

import logging
import os
import re

from ciotel import tags
from ciotel.normalize import is_ref_a_tag, normalize_provider_tags, normalize_ref

log = logging.getLogger(__name__)

_RE_JOB_NAME_VARS = re.compile(r"/[^/]+=[^/]*")


def _first(env, *keys):
    """Value of the first key present in ``env``, even if it is empty."""
    for key in keys:
        if key in env:
            return env[key]
    return ""


def _ref(branch_or_tag):
    if is_ref_a_tag(branch_or_tag):
        return {tags.TAG: branch_or_tag}
    return {tags.BRANCH: branch_or_tag}


def extract_appveyor(env):
    url = "https://ci.appveyor.com/project/{}/builds/{}".format(
        env.get("APPVEYOR_REPO_NAME", ""), env.get("APPVEYOR_BUILD_ID", "")
    )
    result = {
        tags.PROVIDER_NAME: "appveyor",
        tags.WORKSPACE_PATH: env.get("APPVEYOR_BUILD_FOLDER", ""),
        tags.PIPELINE_ID: env.get("APPVEYOR_BUILD_ID", ""),
        tags.PIPELINE_NAME: env.get("APPVEYOR_REPO_NAME", ""),
        tags.PIPELINE_NUMBER: env.get("APPVEYOR_BUILD_NUMBER", ""),
        tags.PIPELINE_URL: url,
        tags.JOB_URL: url,
    }
    # Repository coordinates are only meaningful for GitHub-hosted projects.
    if env.get("APPVEYOR_REPO_PROVIDER") == "github":
        result.update({
            tags.REPOSITORY_URL: "https://github.com/{}.git".format(
                env.get("APPVEYOR_REPO_NAME", "")
            ),
            tags.COMMIT_SHA: env.get("APPVEYOR_REPO_COMMIT", ""),
            tags.BRANCH: _first(
                env, "APPVEYOR_PULL_REQUEST_HEAD_REPO_BRANCH", "APPVEYOR_REPO_BRANCH"
            ),
            tags.TAG: env.get("APPVEYOR_REPO_TAG_NAME", ""),
        })
    return result


def extract_azure_pipelines(env):
    base_url = "{}{}/_build/results?buildId={}".format(
        env.get("SYSTEM_TEAMFOUNDATIONSERVERURI", ""),
        env.get("SYSTEM_TEAMPROJECTID", ""),
        env.get("BUILD_BUILDID", ""),
    )
    job_url = "{}&view=logs&j={}&t={}".format(
        base_url, env.get("SYSTEM_JOBID", ""), env.get("SYSTEM_TASKINSTANCEID", "")
    )
    result = {
        tags.PROVIDER_NAME: "azurepipelines",
        tags.WORKSPACE_PATH: env.get("BUILD_SOURCESDIRECTORY", ""),
        tags.PIPELINE_ID: env.get("BUILD_BUILDID", ""),
        tags.PIPELINE_NAME: env.get("BUILD_DEFINITIONNAME", ""),
        tags.PIPELINE_NUMBER: env.get("BUILD_BUILDID", ""),
        tags.PIPELINE_URL: base_url,
        tags.JOB_URL: job_url,
        tags.REPOSITORY_URL: _first(
            env, "SYSTEM_PULLREQUEST_SOURCEREPOSITORYURI", "BUILD_REPOSITORY_URI"
        ),
        tags.COMMIT_SHA: _first(
            env, "SYSTEM_PULLREQUEST_SOURCECOMMITID", "BUILD_SOURCEVERSION"
        ),
    }
    result.update(_ref(_first(
        env,
        "SYSTEM_PULLREQUEST_SOURCEBRANCH",
        "BUILD_SOURCEBRANCH",
        "BUILD_SOURCEBRANCHNAME",
    )))
    return result


def extract_bitbucket(env):
    url = "https://bitbucket.org/{}/addon/pipelines/home#!/results/{}".format(
        env.get("BITBUCKET_REPO_FULL_NAME", ""), env.get("BITBUCKET_BUILD_NUMBER", "")
    )
    return {
        tags.PROVIDER_NAME: "bitbucket",
        tags.BRANCH: env.get("BITBUCKET_BRANCH", ""),
        tags.COMMIT_SHA: env.get("BITBUCKET_COMMIT", ""),
        tags.REPOSITORY_URL: env.get("BITBUCKET_GIT_SSH_ORIGIN", ""),
        tags.TAG: env.get("BITBUCKET_TAG", ""),
        tags.JOB_URL: url,
        tags.PIPELINE_ID: env.get("BITBUCKET_PIPELINE_UUID", "").strip("{}"),
        tags.PIPELINE_NAME: env.get("BITBUCKET_REPO_FULL_NAME", ""),
        tags.PIPELINE_NUMBER: env.get("BITBUCKET_BUILD_NUMBER", ""),
        tags.PIPELINE_URL: url,
        tags.WORKSPACE_PATH: env.get("BITBUCKET_CLONE_DIR", ""),
    }


def extract_buildkite(env):
    return {
        tags.PROVIDER_NAME: "buildkite",
        tags.BRANCH: env.get("BUILDKITE_BRANCH", ""),
        tags.COMMIT_SHA: env.get("BUILDKITE_COMMIT", ""),
        tags.REPOSITORY_URL: env.get("BUILDKITE_REPO", ""),
        tags.TAG: env.get("BUILDKITE_TAG", ""),
        tags.PIPELINE_ID: env.get("BUILDKITE_BUILD_ID", ""),
        tags.PIPELINE_NAME: env.get("BUILDKITE_PIPELINE_SLUG", ""),
        tags.PIPELINE_NUMBER: env.get("BUILDKITE_BUILD_NUMBER", ""),
        tags.PIPELINE_URL: env.get("BUILDKITE_BUILD_URL", ""),
        tags.JOB_URL: "{}#{}".format(
            env.get("BUILDKITE_BUILD_URL", ""), env.get("BUILDKITE_JOB_ID", "")
        ),
        tags.WORKSPACE_PATH: env.get("BUILDKITE_BUILD_CHECKOUT_PATH", ""),
    }


def extract_circle_ci(env):
    return {
        tags.PROVIDER_NAME: "circleci",
        tags.BRANCH: env.get("CIRCLE_BRANCH", ""),
        tags.COMMIT_SHA: env.get("CIRCLE_SHA1", ""),
        tags.REPOSITORY_URL: env.get("CIRCLE_REPOSITORY_URL", ""),
        tags.TAG: env.get("CIRCLE_TAG", ""),
        tags.PIPELINE_ID: env.get("CIRCLE_WORKFLOW_ID", ""),
        tags.PIPELINE_NAME: env.get("CIRCLE_PROJECT_REPONAME", ""),
        tags.PIPELINE_NUMBER: env.get("CIRCLE_BUILD_NUM", ""),
        tags.PIPELINE_URL: env.get("CIRCLE_BUILD_URL", ""),
        tags.JOB_URL: env.get("CIRCLE_BUILD_URL", ""),
        tags.WORKSPACE_PATH: env.get("CIRCLE_WORKING_DIRECTORY", ""),
    }


def extract_github_actions(env):
    checks_url = "https://github.com/{}/commit/{}/checks".format(
        env.get("GITHUB_REPOSITORY", ""), env.get("GITHUB_SHA", "")
    )
    result = {
        tags.PROVIDER_NAME: "github",
        tags.COMMIT_SHA: env.get("GITHUB_SHA", ""),
        tags.REPOSITORY_URL: "https://github.com/{}.git".format(
            env.get("GITHUB_REPOSITORY", "")
        ),
        tags.JOB_URL: checks_url,
        tags.PIPELINE_ID: env.get("GITHUB_RUN_ID", ""),
        tags.PIPELINE_NAME: env.get("GITHUB_WORKFLOW", ""),
        tags.PIPELINE_NUMBER: env.get("GITHUB_RUN_NUMBER", ""),
        tags.PIPELINE_URL: checks_url,
        tags.WORKSPACE_PATH: env.get("GITHUB_WORKSPACE", ""),
    }
    result.update(_ref(_first(env, "GITHUB_HEAD_REF", "GITHUB_REF")))
    return result


def extract_gitlab(env):
    return {
        tags.PROVIDER_NAME: "gitlab",
        tags.BRANCH: env.get("CI_COMMIT_BRANCH", ""),
        tags.COMMIT_SHA: env.get("CI_COMMIT_SHA", ""),
        tags.REPOSITORY_URL: env.get("CI_REPOSITORY_URL", ""),
        tags.TAG: env.get("CI_COMMIT_TAG", ""),
        tags.STAGE_NAME: env.get("CI_JOB_STAGE", ""),
        tags.JOB_NAME: env.get("CI_JOB_NAME", ""),
        tags.JOB_URL: env.get("CI_JOB_URL", ""),
        tags.PIPELINE_ID: env.get("CI_PIPELINE_ID", ""),
        tags.PIPELINE_NAME: env.get("CI_PROJECT_PATH", ""),
        tags.PIPELINE_NUMBER: env.get("CI_PIPELINE_IID", ""),
        tags.PIPELINE_URL: env.get("CI_PIPELINE_URL", "").replace(
            "/-/pipelines/", "/pipelines/"
        ),
        tags.WORKSPACE_PATH: env.get("CI_PROJECT_DIR", ""),
    }


def clean_jenkins_job_name(job_name, branch=""):
    """Strip the branch segment and ``key=value`` segments from a job name.

    ``job/main/KEY=value`` with branch ``origin/main`` becomes ``job``.
    """
    if branch:
        segment = re.escape("/" + normalize_ref(branch)) + r"(?=/|$)"
        job_name = re.sub(segment, "", job_name)
    return _RE_JOB_NAME_VARS.sub("", job_name)


def extract_jenkins(env):
    branch_or_tag = env.get("GIT_BRANCH", "")
    result = {
        tags.PROVIDER_NAME: "jenkins",
        tags.COMMIT_SHA: env.get("GIT_COMMIT", ""),
        tags.REPOSITORY_URL: env.get("GIT_URL", ""),
        tags.PIPELINE_ID: env.get("BUILD_TAG", ""),
        tags.PIPELINE_NUMBER: env.get("BUILD_NUMBER", ""),
        tags.PIPELINE_URL: env.get("BUILD_URL", ""),
        tags.WORKSPACE_PATH: env.get("WORKSPACE", ""),
    }
    result.update(_ref(branch_or_tag))
    name = env.get("JOB_NAME", "")
    if name:
        name = clean_jenkins_job_name(name, result.get(tags.BRANCH, ""))
    result[tags.PIPELINE_NAME] = name
    return result


def extract_teamcity(env):
    return {
        tags.PROVIDER_NAME: "teamcity",
        tags.REPOSITORY_URL: env.get("BUILD_VCS_URL", ""),
        tags.COMMIT_SHA: env.get("BUILD_VCS_NUMBER", ""),
        tags.WORKSPACE_PATH: env.get("BUILD_CHECKOUTDIR", ""),
        tags.PIPELINE_ID: env.get("BUILD_ID", ""),
        tags.PIPELINE_NUMBER: env.get("BUILD_NUMBER", ""),
        tags.PIPELINE_URL: "{}/viewLog.html?buildId={}".format(
            env.get("SERVER_URL", ""), env.get("BUILD_ID", "")
        ),
    }


def extract_travis(env):
    return {
        tags.PROVIDER_NAME: "travisci",
        tags.BRANCH: _first(env, "TRAVIS_PULL_REQUEST_BRANCH", "TRAVIS_BRANCH"),
        tags.COMMIT_SHA: env.get("TRAVIS_COMMIT", ""),
        tags.REPOSITORY_URL: "https://github.com/{}.git".format(
            env.get("TRAVIS_REPO_SLUG", "")
        ),
        tags.TAG: env.get("TRAVIS_TAG", ""),
        tags.JOB_URL: env.get("TRAVIS_JOB_WEB_URL", ""),
        tags.PIPELINE_ID: env.get("TRAVIS_BUILD_ID", ""),
        tags.PIPELINE_NAME: env.get("TRAVIS_REPO_SLUG", ""),
        tags.PIPELINE_NUMBER: env.get("TRAVIS_BUILD_NUMBER", ""),
        tags.PIPELINE_URL: env.get("TRAVIS_BUILD_WEB_URL", ""),
        tags.WORKSPACE_PATH: env.get("TRAVIS_BUILD_DIR", ""),
    }


def extract_bitrise(env):
    return {
        tags.PROVIDER_NAME: "bitrise",
        tags.PIPELINE_ID: env.get("BITRISE_BUILD_SLUG", ""),
        tags.PIPELINE_NAME: env.get("BITRISE_APP_TITLE", ""),
        tags.PIPELINE_NUMBER: env.get("BITRISE_BUILD_NUMBER", ""),
        tags.PIPELINE_URL: env.get("BITRISE_BUILD_URL", ""),
        tags.WORKSPACE_PATH: env.get("BITRISE_SOURCE_DIR", ""),
        tags.REPOSITORY_URL: env.get("GIT_REPOSITORY_URL", ""),
        tags.COMMIT_SHA: _first(env, "BITRISE_GIT_COMMIT", "GIT_CLONE_COMMIT_HASH"),
        tags.BRANCH: _first(env, "BITRISEIO_GIT_BRANCH_DEST", "BITRISE_GIT_BRANCH"),
        tags.TAG: env.get("BITRISE_GIT_TAG", ""),
    }


# Checked in order; the first detector variable present selects the provider.
PROVIDERS = (
    ("APPVEYOR", extract_appveyor),
    ("TF_BUILD", extract_azure_pipelines),
    ("BITBUCKET_COMMIT", extract_bitbucket),
    ("BUILDKITE", extract_buildkite),
    ("CIRCLECI", extract_circle_ci),
    ("GITHUB_SHA", extract_github_actions),
    ("GITLAB_CI", extract_gitlab),
    ("JENKINS_URL", extract_jenkins),
    ("TEAMCITY_VERSION", extract_teamcity),
    ("TRAVIS", extract_travis),
    ("BITRISE_BUILD_SLUG", extract_bitrise),
)


def detect_provider(env=None):
    """Return the ``(detector, extractor)`` pair of the active provider, if any."""
    env = os.environ if env is None else env
    for detector, extract in PROVIDERS:
        if detector in env:
            return detector, extract
    return None


def provider_tags(env=None) -> dict:
    """Extract and normalize tags for the CI provider found in ``env``.

    Returns an empty dict when no provider is detected.
    """
    env = os.environ if env is None else env
    detected = detect_provider(env)
    if detected is None:
        log.debug("No CI provider detected")
        return {}
    detector, extract = detected
    log.debug("Detected CI provider from %s", detector)
    return normalize_provider_tags(extract(env))
