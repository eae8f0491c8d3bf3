"""ciotel — OpenTelemetry spans for test executions, tagged with CI and git metadata."""

from ciotel.config import CiotelConfig
from ciotel.resolver import CITags
from ciotel.session import TestSession, run
from ciotel.tags import Status

__all__ = ["CITags", "CiotelConfig", "Status", "TestSession", "run"]
