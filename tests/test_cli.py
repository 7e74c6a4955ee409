"""
Tests for the command line entry point.
"""

import asyncio
import os
from pathlib import Path

import pytest

from shipit import __version__, cli
from shipit.config import Config
from shipit.exceptions import ServerError
from shipit.testing import MockBitbucketClient, MockJenkinsClient, create_mock_summary
from shipit.types.cycle import CycleSummary


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("SHIPIT_"):
            monkeypatch.delenv(name)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "shipit.toml"
    path.write_text('bitbucket_url = "https://bitbucket.example.com"\n')
    return path


def test_missing_config_file_exits_with_config_error(tmp_path: Path) -> None:
    assert cli.main(["--config", str(tmp_path / "absent.toml")]) == cli.EXIT_CONFIG_ERROR


def test_invalid_setting_exits_with_config_error(
    config_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("SHIPIT_MERGE_TRIGGER", "(unclosed")

    assert cli.main(["--config", str(config_file)]) == cli.EXIT_CONFIG_ERROR


def test_no_configuration_at_all_is_config_error() -> None:
    assert cli.main([]) == cli.EXIT_CONFIG_ERROR


def test_unreachable_bitbucket_exits_with_2(
    config_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def fail(config: Config) -> CycleSummary:
        raise ServerError("CONNECTION_ERROR", "Connection refused")

    monkeypatch.setattr(cli, "run_once", fail)

    assert cli.main(["--config", str(config_file)]) == cli.EXIT_UNREACHABLE


def test_successful_cycle_prints_summary(
    config_file: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    async def succeed(config: Config) -> CycleSummary:
        return CycleSummary(identity="alice")

    monkeypatch.setattr(cli, "run_once", succeed)

    assert cli.main(["--config", str(config_file), "-q"]) == cli.EXIT_OK
    out = capsys.readouterr().out
    assert out.strip() == (
        "user=alice evaluated=0 merged=0 skipped=0 retried=0 failed=0 retry=disabled"
    )


def test_config_path_from_environment(
    config_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen = []

    async def succeed(config: Config) -> CycleSummary:
        seen.append(config)
        return CycleSummary(identity="alice")

    monkeypatch.setenv("SHIPIT_CONFIG", str(config_file))
    monkeypatch.setattr(cli, "run_once", succeed)

    assert cli.main([]) == cli.EXIT_OK
    assert seen[0].bitbucket_url == "https://bitbucket.example.com"


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--version"])

    assert exc_info.value.code == 0
    assert capsys.readouterr().out.strip() == f"shipit {__version__}"


def test_verbose_and_quiet_are_exclusive() -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["-v", "-q"])

    assert exc_info.value.code == 2


def test_run_once_without_jenkins(sample_config: Config, monkeypatch: pytest.MonkeyPatch) -> None:
    bitbucket = MockBitbucketClient(identity="alice")
    monkeypatch.setattr(cli.AsyncBitbucketClient, "from_config", lambda config: bitbucket)

    summary = asyncio.run(cli.run_once(sample_config))

    assert summary.identity == "alice"
    assert not summary.retry_enabled
    assert bitbucket.closed


def test_run_once_opens_jenkins_when_retries_are_configured(
    retry_config: Config, monkeypatch: pytest.MonkeyPatch
) -> None:
    bitbucket = MockBitbucketClient(identity="alice")
    bitbucket.pulls.configure_list_open(response=[create_mock_summary(pr_id=1)])
    jenkins = MockJenkinsClient()
    opened = []

    def open_jenkins(jenkins_config, timeout=None):
        opened.append((jenkins_config, timeout))
        return jenkins

    monkeypatch.setattr(cli.AsyncBitbucketClient, "from_config", lambda config: bitbucket)
    monkeypatch.setattr(cli.AsyncJenkinsClient, "from_config", open_jenkins)

    summary = asyncio.run(cli.run_once(retry_config))

    assert summary.retry_enabled
    assert opened == [(retry_config.jenkins, retry_config.request_timeout_seconds)]
    assert jenkins.closed
    assert bitbucket.closed
