"""
shipit configuration.

Settings are read from an optional TOML file and overlaid by ``SHIPIT_*``
environment variables (environment wins). Everything is validated up front so
that a bad regex or a missing URL aborts the run before any request is made.

Example ``shipit.toml``:

    bitbucket_url = "https://bitbucket.example.com"
    bitbucket_api_token = "..."
    merge_trigger = "^:shipit:$"
    check_comments = true

    jenkins_username = "ci-bot"
    jenkins_password = "..."
    jenkins_retry_trigger = "^ci/"
    jenkins_retry_limit = 3
"""

import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from shipit.exceptions import ConfigurationError

ENV_PREFIX = "SHIPIT_"
CONFIG_PATH_ENV = "SHIPIT_CONFIG"

DEFAULT_MERGE_TRIGGER = r"^:shipit:$"
DEFAULT_RETRY_LIMIT = 10
DEFAULT_MAX_CONCURRENCY = 8
DEFAULT_JENKINS_MAX_CONCURRENCY = 4
DEFAULT_REQUEST_TIMEOUT = 30.0

_KEYS = (
    "bitbucket_url",
    "bitbucket_api_token",
    "merge_trigger",
    "check_description",
    "check_comments",
    "check_own_prs",
    "check_approved_prs",
    "jenkins_username",
    "jenkins_password",
    "jenkins_retry_trigger",
    "jenkins_retry_limit",
    "jenkins_retry_backoff_seconds",
    "jenkins_max_concurrency",
    "max_concurrency",
    "cycle_timeout_seconds",
    "request_timeout_seconds",
)

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


@dataclass(frozen=True)
class JenkinsConfig:
    """Settings for the optional build retry subsystem."""

    username: str
    password: str = field(repr=False)
    retry_trigger: re.Pattern[str]
    retry_limit: int = DEFAULT_RETRY_LIMIT
    retry_backoff_seconds: float = 0.0
    max_concurrency: int = DEFAULT_JENKINS_MAX_CONCURRENCY


@dataclass(frozen=True)
class Config:
    """Resolved, validated settings for one run."""

    bitbucket_url: str
    merge_trigger: re.Pattern[str]
    bitbucket_api_token: str | None = field(default=None, repr=False)
    check_description: bool = True
    check_comments: bool = False
    check_own_prs: bool = True
    check_approved_prs: bool = False
    jenkins: JenkinsConfig | None = None
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    cycle_timeout_seconds: float | None = None
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def retry_enabled(self) -> bool:
        return self.jenkins is not None


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """
    Load and validate configuration.

    Args:
        path: TOML file to read. When None, ``$SHIPIT_CONFIG`` is used if set,
            otherwise only the environment is consulted.
        environ: Environment mapping (default: ``os.environ``)

    Returns:
        Validated Config

    Raises:
        ConfigurationError: If the file is unreadable or any setting is invalid
    """
    env = os.environ if environ is None else environ

    if path is None and env.get(CONFIG_PATH_ENV):
        path = Path(env[CONFIG_PATH_ENV]).expanduser()

    data: dict[str, Any] = {}
    if path is not None:
        data.update(_read_file(path))
    data.update(_read_env(env))

    return config_from_mapping(data)


def config_from_mapping(data: Mapping[str, Any]) -> Config:
    """
    Build a Config from already-merged raw settings.

    Args:
        data: Raw values keyed by setting name; strings are accepted for every type

    Returns:
        Validated Config

    Raises:
        ConfigurationError: If any setting is invalid
    """
    unknown = sorted(set(data) - set(_KEYS))
    if unknown:
        raise ConfigurationError(f"Unknown setting(s): {', '.join(unknown)}")

    bitbucket_url = _require_str(data, "bitbucket_url").rstrip("/")
    parsed = urlparse(bitbucket_url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigurationError(f"bitbucket_url must be an http(s) URL, got {bitbucket_url!r}")

    request_timeout = _float_with_default(data, "request_timeout_seconds", DEFAULT_REQUEST_TIMEOUT)
    if request_timeout <= 0:
        raise ConfigurationError("request_timeout_seconds must be > 0")

    cycle_timeout = _optional_float(data, "cycle_timeout_seconds")
    if cycle_timeout is not None and cycle_timeout <= 0:
        raise ConfigurationError("cycle_timeout_seconds must be > 0 if provided")

    max_concurrency = _int_with_default(data, "max_concurrency", DEFAULT_MAX_CONCURRENCY)
    if max_concurrency < 1:
        raise ConfigurationError("max_concurrency must be >= 1")

    return Config(
        bitbucket_url=bitbucket_url,
        bitbucket_api_token=_optional_str(data, "bitbucket_api_token"),
        merge_trigger=_compile_regex(
            _str_with_default(data, "merge_trigger", DEFAULT_MERGE_TRIGGER), "merge_trigger"
        ),
        check_description=_bool_with_default(data, "check_description", True),
        check_comments=_bool_with_default(data, "check_comments", False),
        check_own_prs=_bool_with_default(data, "check_own_prs", True),
        check_approved_prs=_bool_with_default(data, "check_approved_prs", False),
        jenkins=_parse_jenkins(data),
        max_concurrency=max_concurrency,
        cycle_timeout_seconds=cycle_timeout,
        request_timeout_seconds=request_timeout,
    )


def _parse_jenkins(data: Mapping[str, Any]) -> JenkinsConfig | None:
    username = _optional_str(data, "jenkins_username")
    password = _optional_str(data, "jenkins_password")
    trigger = _optional_str(data, "jenkins_retry_trigger")

    retry_limit = _int_with_default(data, "jenkins_retry_limit", DEFAULT_RETRY_LIMIT)
    if retry_limit < 0:
        raise ConfigurationError("jenkins_retry_limit must be >= 0")
    backoff = _float_with_default(data, "jenkins_retry_backoff_seconds", 0.0)
    if backoff < 0:
        raise ConfigurationError("jenkins_retry_backoff_seconds must be >= 0")
    max_concurrency = _int_with_default(
        data, "jenkins_max_concurrency", DEFAULT_JENKINS_MAX_CONCURRENCY
    )
    if max_concurrency < 1:
        raise ConfigurationError("jenkins_max_concurrency must be >= 1")

    # Still compile a lone trigger so a typo is reported even while retries are off.
    retry_trigger = (
        _compile_regex(trigger, "jenkins_retry_trigger") if trigger is not None else None
    )
    if username is None or password is None or retry_trigger is None:
        return None

    return JenkinsConfig(
        username=username,
        password=password,
        retry_trigger=retry_trigger,
        retry_limit=retry_limit,
        retry_backoff_seconds=backoff,
        max_concurrency=max_concurrency,
    )


def _read_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e

    for key, value in data.items():
        if isinstance(value, dict):
            raise ConfigurationError(f"[{key}] tables are not supported; use top-level keys")
    return data


def _read_env(env: Mapping[str, str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for key in _KEYS:
        value = env.get(f"{ENV_PREFIX}{key.upper()}")
        if value is not None and value != "":
            values[key] = value
    return values


def _compile_regex(pattern: str, key: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"{key} is not a valid regular expression: {e}") from e


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{key} is required and must be a non-empty string")
    return value.strip()


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"{key} must be a non-empty string if provided")
    return value


def _str_with_default(data: Mapping[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"{key} must be a non-empty string")
    return value


def _bool_with_default(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_STRINGS:
            return True
        if normalized in _FALSE_STRINGS:
            return False
    raise ConfigurationError(f"{key} must be a boolean")


def _int_with_default(data: Mapping[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ConfigurationError(f"{key} must be an integer")


def _float_with_default(data: Mapping[str, Any], key: str, default: float) -> float:
    value = _optional_float(data, key)
    return default if value is None else value


def _optional_float(data: Mapping[str, Any], key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be a number")
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise ConfigurationError(f"{key} must be a number")
