"""Configuration for ciotel test sessions."""

import os
from dataclasses import dataclass


@dataclass
class CiotelConfig:
    """Configuration for an instrumented test session.

    Constructor arguments take precedence over environment variables.
    ``service_name`` stays empty when neither is given; the session then
    derives it from the repository URL.
    """

    service_name: str = ""
    session_name: str = ""
    otlp_endpoint: str = ""
    otlp_insecure: bool = True
    environment: str = ""
    framework: str = ""

    def __post_init__(self):
        # Apply env var defaults for fields left at their zero-value
        if not self.service_name:
            self.service_name = os.environ.get("OTEL_SERVICE_NAME", "")
        if not self.session_name:
            self.session_name = os.environ.get("CIOTEL_SESSION_NAME", "tests")
        if not self.otlp_endpoint:
            self.otlp_endpoint = os.environ.get(
                "OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317"
            )
        if not self.environment:
            self.environment = os.environ.get("CIOTEL_ENVIRONMENT", "development")
        if not self.framework:
            self.framework = os.environ.get("CIOTEL_TEST_FRAMEWORK", "unittest")
        insecure_env = os.environ.get("OTEL_EXPORTER_OTLP_INSECURE")
        if insecure_env is not None and self.otlp_insecure is True:
            self.otlp_insecure = insecure_env.lower() not in ("false", "0", "no")

    @classmethod
    def from_env(cls, **overrides):
        """Create config primarily from environment variables, with optional overrides."""
        return cls(**overrides)
