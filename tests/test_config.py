"""
Tests for configuration loading and validation.
"""

from pathlib import Path

import pytest

from shipit.config import (
    CONFIG_PATH_ENV,
    DEFAULT_RETRY_LIMIT,
    config_from_mapping,
    load_config,
)
from shipit.exceptions import ConfigurationError

MINIMAL = {"bitbucket_url": "https://bitbucket.example.com/"}


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "shipit.toml"
    path.write_text(text)
    return path


def test_defaults() -> None:
    config = config_from_mapping(MINIMAL)

    assert config.bitbucket_url == "https://bitbucket.example.com"
    assert config.merge_trigger.pattern == r"^:shipit:$"
    assert config.check_description is True
    assert config.check_comments is False
    assert config.check_own_prs is True
    assert config.check_approved_prs is False
    assert config.jenkins is None
    assert not config.retry_enabled
    assert config.max_concurrency == 8
    assert config.cycle_timeout_seconds is None


def test_missing_bitbucket_url() -> None:
    with pytest.raises(ConfigurationError, match="bitbucket_url"):
        config_from_mapping({})


@pytest.mark.parametrize("url", ["bitbucket.example.com", "ftp://bitbucket.example.com", "https://"])
def test_bitbucket_url_must_be_http(url: str) -> None:
    with pytest.raises(ConfigurationError):
        config_from_mapping({"bitbucket_url": url})


def test_invalid_merge_trigger_is_fatal() -> None:
    with pytest.raises(ConfigurationError, match="merge_trigger"):
        config_from_mapping({**MINIMAL, "merge_trigger": "(unclosed"})


def test_invalid_retry_trigger_is_fatal_even_without_credentials() -> None:
    with pytest.raises(ConfigurationError, match="jenkins_retry_trigger"):
        config_from_mapping({**MINIMAL, "jenkins_retry_trigger": "[a-"})


def test_unknown_setting_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="merge_triger"):
        config_from_mapping({**MINIMAL, "merge_triger": ":shipit:"})


def test_retry_enabled_only_with_all_three_settings() -> None:
    partial = config_from_mapping(
        {**MINIMAL, "jenkins_username": "ci-bot", "jenkins_retry_trigger": "^ci/"}
    )
    assert partial.jenkins is None

    full = config_from_mapping(
        {
            **MINIMAL,
            "jenkins_username": "ci-bot",
            "jenkins_password": "secret",
            "jenkins_retry_trigger": "^ci/",
        }
    )
    assert full.retry_enabled
    assert full.jenkins.retry_limit == DEFAULT_RETRY_LIMIT
    assert full.jenkins.retry_trigger.search("ci/build")


def test_secrets_are_hidden_from_repr() -> None:
    config = config_from_mapping(
        {
            **MINIMAL,
            "bitbucket_api_token": "bb-secret",
            "jenkins_username": "ci-bot",
            "jenkins_password": "jk-secret",
            "jenkins_retry_trigger": "^ci/",
        }
    )

    assert "bb-secret" not in repr(config)
    assert "jk-secret" not in repr(config)


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("jenkins_retry_limit", -1),
        ("max_concurrency", 0),
        ("jenkins_max_concurrency", 0),
        ("request_timeout_seconds", 0),
        ("cycle_timeout_seconds", -5),
        ("jenkins_retry_backoff_seconds", -1),
        ("check_comments", "maybe"),
        ("max_concurrency", True),
        ("max_concurrency", "many"),
    ],
)
def test_invalid_values(key: str, value) -> None:
    with pytest.raises(ConfigurationError):
        config_from_mapping({**MINIMAL, key: value})


def test_load_from_file(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
bitbucket_url = "https://bitbucket.example.com"
merge_trigger = "^:ship(it)?:$"
check_comments = true
check_approved_prs = true
jenkins_username = "ci-bot"
jenkins_password = "secret"
jenkins_retry_trigger = "^ci/"
jenkins_retry_limit = 3
cycle_timeout_seconds = 120
""",
    )

    config = load_config(path, environ={})

    assert config.merge_trigger.fullmatch(":ship:")
    assert config.check_comments is True
    assert config.check_approved_prs is True
    assert config.jenkins.retry_limit == 3
    assert config.cycle_timeout_seconds == 120.0


def test_environment_overrides_file(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        'bitbucket_url = "https://file.example.com"\ncheck_comments = false\n',
    )

    config = load_config(
        path,
        environ={
            "SHIPIT_BITBUCKET_URL": "https://env.example.com",
            "SHIPIT_CHECK_COMMENTS": "yes",
            "SHIPIT_MAX_CONCURRENCY": "3",
            "SHIPIT_JENKINS_RETRY_LIMIT": "",
        },
    )

    assert config.bitbucket_url == "https://env.example.com"
    assert config.check_comments is True
    assert config.max_concurrency == 3


def test_config_path_from_environment(tmp_path: Path) -> None:
    path = _write(tmp_path, 'bitbucket_url = "https://file.example.com"\n')

    config = load_config(environ={CONFIG_PATH_ENV: str(path)})

    assert config.bitbucket_url == "https://file.example.com"


def test_environment_only() -> None:
    config = load_config(environ={"SHIPIT_BITBUCKET_URL": "https://env.example.com"})

    assert config.bitbucket_url == "https://env.example.com"


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "absent.toml", environ={})


def test_invalid_toml(tmp_path: Path) -> None:
    path = _write(tmp_path, "bitbucket_url = \n")

    with pytest.raises(ConfigurationError, match="Invalid TOML"):
        load_config(path, environ={})


def test_tables_are_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, '[jenkins]\nusername = "ci-bot"\n')

    with pytest.raises(ConfigurationError, match="tables"):
        load_config(path, environ={})
