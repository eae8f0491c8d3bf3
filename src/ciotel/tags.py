"""Tag keys attached to test spans, and the values some of them take."""

from enum import Enum

# CI
PROVIDER_NAME = "ci.provider.name"
PIPELINE_ID = "ci.pipeline.id"
PIPELINE_NAME = "ci.pipeline.name"
PIPELINE_NUMBER = "ci.pipeline.number"
PIPELINE_URL = "ci.pipeline.url"
JOB_NAME = "ci.job.name"
JOB_URL = "ci.job.url"
STAGE_NAME = "ci.stage.name"
WORKSPACE_PATH = "ci.workspace_path"

# Git
REPOSITORY_URL = "git.repository_url"
COMMIT_SHA = "git.commit.sha"
BRANCH = "git.branch"
TAG = "git.tag"
COMMIT_MESSAGE = "git.commit.message"
COMMIT_AUTHOR_NAME = "git.commit.author.name"
COMMIT_AUTHOR_EMAIL = "git.commit.author.email"
COMMIT_AUTHOR_DATE = "git.commit.author.date"
COMMIT_COMMITTER_NAME = "git.commit.committer.name"
COMMIT_COMMITTER_EMAIL = "git.commit.committer.email"
COMMIT_COMMITTER_DATE = "git.commit.committer.date"

# Host and interpreter
OS_PLATFORM = "os.platform"
OS_VERSION = "os.version"
OS_ARCHITECTURE = "os.architecture"
RUNTIME_NAME = "runtime.name"
RUNTIME_VERSION = "runtime.version"

# Test
TEST_NAME = "test.name"
TEST_SUITE = "test.suite"
TEST_FRAMEWORK = "test.framework"
TEST_STATUS = "test.status"
TEST_TYPE = "test.type"
TEST_SKIP_REASON = "test.skip_reason"

TYPE_TEST = "test"
TYPE_BENCHMARK = "benchmark"
TEST_TYPES = (TYPE_TEST, TYPE_BENCHMARK)


class Status(Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"
