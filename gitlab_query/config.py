# Copyright 2023-present Kensho Technologies, LLC.
"""Process-wide GitLab connection settings, read once at startup."""
from dataclasses import dataclass
import os
from typing import Mapping, Optional

from .exceptions import ConfigurationError


HOST_ENV_VAR = "GITLAB_HOST"
TOKEN_ENV_VAR = "GITLAB_API_TOKEN"
VERIFY_SSL_ENV_VAR = "GITLAB_VERIFY_SSL"
PAGE_SIZE_ENV_VAR = "GITLAB_PAGE_SIZE"
TIMEOUT_ENV_VAR = "GITLAB_TIMEOUT"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100  # GitLab rejects larger per_page values
DEFAULT_TIMEOUT = 30.0

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


def _parse_bool(name: str, raw_value: str) -> bool:
    normalized = raw_value.strip().lower()
    if normalized in _TRUE_STRINGS:
        return True
    elif normalized in _FALSE_STRINGS:
        return False
    raise ConfigurationError(f"Invalid boolean value for {name}: {raw_value!r}.")


def _parse_page_size(raw_value: str) -> int:
    try:
        page_size = int(raw_value)
    except ValueError:
        raise ConfigurationError(f"Invalid integer value for {PAGE_SIZE_ENV_VAR}: {raw_value!r}.")

    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ConfigurationError(
            f"{PAGE_SIZE_ENV_VAR} must be between 1 and {MAX_PAGE_SIZE}, got {page_size}."
        )
    return page_size


def _parse_timeout(raw_value: str) -> float:
    try:
        timeout = float(raw_value)
    except ValueError:
        raise ConfigurationError(f"Invalid number value for {TIMEOUT_ENV_VAR}: {raw_value!r}.")

    if timeout <= 0:
        raise ConfigurationError(f"{TIMEOUT_ENV_VAR} must be positive, got {timeout}.")
    return timeout


@dataclass(frozen=True)
class GitlabConfig:
    """Immutable connection settings shared by every API call in a process.

    The host may be given either as a bare host name ("gitlab.example.com"), in which case HTTPS is
    assumed, or as a base URL ("http://localhost:8080").
    """

    host: str
    token: str
    verify_ssl: bool = True
    page_size: int = DEFAULT_PAGE_SIZE
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        """Reject settings that cannot possibly produce a working client."""
        if not self.host or not self.host.strip():
            raise ConfigurationError("The GitLab host must be a non-empty string.")
        if not self.token or not self.token.strip():
            raise ConfigurationError("The GitLab API token must be a non-empty string.")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ConfigurationError(
                f"Page size must be between 1 and {MAX_PAGE_SIZE}, got {self.page_size}."
            )

    @property
    def base_url(self) -> str:
        """Return the scheme-qualified URL of the GitLab instance, without a trailing slash."""
        host = self.host.strip().rstrip("/")
        if "://" not in host:
            host = "https://" + host
        return host

    @property
    def api_url(self) -> str:
        """Return the root URL of the GitLab REST API (v4)."""
        return self.base_url + "/api/v4"

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "GitlabConfig":
        """Construct the configuration from environment variables.

        Args:
            environ: mapping to read the settings from. Defaults to os.environ.

        Returns:
            GitlabConfig built from GITLAB_HOST and GITLAB_API_TOKEN, plus the optional
            GITLAB_VERIFY_SSL, GITLAB_PAGE_SIZE and GITLAB_TIMEOUT settings

        Raises:
            ConfigurationError: if a required setting is missing or any setting is malformed
        """
        if environ is None:
            environ = os.environ

        missing = [name for name in (HOST_ENV_VAR, TOKEN_ENV_VAR) if not environ.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable(s): {', '.join(missing)}."
            )

        verify_ssl = True
        raw_verify_ssl = environ.get(VERIFY_SSL_ENV_VAR)
        if raw_verify_ssl:
            verify_ssl = _parse_bool(VERIFY_SSL_ENV_VAR, raw_verify_ssl)

        page_size = DEFAULT_PAGE_SIZE
        raw_page_size = environ.get(PAGE_SIZE_ENV_VAR)
        if raw_page_size:
            page_size = _parse_page_size(raw_page_size)

        timeout = DEFAULT_TIMEOUT
        raw_timeout = environ.get(TIMEOUT_ENV_VAR)
        if raw_timeout:
            timeout = _parse_timeout(raw_timeout)

        return cls(
            host=environ[HOST_ENV_VAR],
            token=environ[TOKEN_ENV_VAR],
            verify_ssl=verify_ssl,
            page_size=page_size,
            timeout=timeout,
        )
