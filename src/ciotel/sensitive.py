"""Credential scrubbing for repository URLs."""

import re

_CREDENTIALS = re.compile(r"(https?://)[^/]*@")


def filter_sensitive_info(url: str) -> str:
    """Drop the userinfo segment after an http(s) scheme, keeping the rest."""
    return _CREDENTIALS.sub(r"\1", url)
