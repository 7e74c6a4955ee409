"""
Pytest fixtures and factory helpers for testing shipit.

The factories build the data models with sensible defaults so a test only
spells out the fields it cares about.
"""

import re
from collections.abc import Generator, Iterable
from typing import Any

import pytest

from shipit.config import Config, JenkinsConfig
from shipit.testing.mock import MockBitbucketClient, MockJenkinsClient
from shipit.types.builds import BuildStatus
from shipit.types.pulls import MergeStatus, PullRequestSummary

DEFAULT_IDENTITY = "alice"


# ============================================================================
# Mock Client Fixtures
# ============================================================================


@pytest.fixture
def mock_identity() -> str:
    """Provide the user name the mock Bitbucket client authenticates as."""
    return DEFAULT_IDENTITY


@pytest.fixture
def mock_bitbucket(mock_identity: str) -> Generator[MockBitbucketClient, None, None]:
    """
    Provide a MockBitbucketClient for testing.

    Example:
        ```python
        def test_merges_triggered_pr(mock_bitbucket, sample_config):
            pr = create_mock_summary(pr_id=1)
            mock_bitbucket.pulls.configure_list_open(response=[pr])
            mock_bitbucket.pulls.configure_description(response=":shipit:")
            asyncio.run(Orchestrator(sample_config, mock_bitbucket).run_cycle())
            assert mock_bitbucket.was_called("pulls.merge")
        ```
    """
    client = MockBitbucketClient(identity=mock_identity)
    yield client
    client.reset()


@pytest.fixture
def mock_jenkins() -> Generator[MockJenkinsClient, None, None]:
    """Provide a MockJenkinsClient for testing."""
    client = MockJenkinsClient()
    yield client
    client.reset()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_config() -> Config:
    """Provide a Config with retries disabled and default trigger settings."""
    return create_mock_config()


@pytest.fixture
def retry_config() -> Config:
    """Provide a Config with build retries enabled for `ci/` builds (limit 3)."""
    return create_mock_config(
        jenkins=JenkinsConfig(
            username="ci-bot",
            password="secret",
            retry_trigger=re.compile(r"^ci/"),
            retry_limit=3,
        )
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_pull_request() -> PullRequestSummary:
    """Provide a sample PullRequestSummary authored by someone else."""
    return create_mock_summary(pr_id=101, author="bob", title="Add retry budget")


@pytest.fixture
def blocked_merge_status() -> MergeStatus:
    """Provide a MergeStatus vetoed only by a failed build."""
    return MergeStatus(
        can_merge=False,
        vetoes=("Not all required builds are successful yet",),
    )


# ============================================================================
# Factory Helpers
# ============================================================================


def create_mock_summary(
    pr_id: int = 1,
    author: str = "bob",
    approvers: Iterable[str] = (),
    **kwargs: Any,
) -> PullRequestSummary:
    """
    Create a PullRequestSummary with customizable fields.

    Args:
        pr_id: Pull request ID
        author: Author user name
        approvers: User names that approved the request
        **kwargs: Additional fields to override

    Returns:
        PullRequestSummary object
    """
    defaults = {
        "title": f"Test PR {pr_id}",
        "project_key": "PROJ",
        "repo_slug": "repo",
        "version": 0,
        "latest_commit": f"{pr_id:040x}",
        "url": None,
    }
    defaults.update(kwargs)
    return PullRequestSummary(
        pr_id=pr_id,
        author=author,
        approvers=frozenset(approvers),
        **defaults,
    )


def create_mock_build_status(
    name: str = "ci/build",
    state: str = "FAILED",
    url: str = "https://jenkins.example.com/job/build/1/",
    **kwargs: Any,
) -> BuildStatus:
    """
    Create a BuildStatus with customizable fields.

    Args:
        name: Build name shown on the pull request
        state: "SUCCESSFUL", "FAILED" or "INPROGRESS"
        url: Build URL on the build server
        **kwargs: Additional fields to override

    Returns:
        BuildStatus object
    """
    defaults = {"key": name, "timestamp": 0}
    defaults.update(kwargs)
    return BuildStatus(name=name, state=state, url=url, **defaults)


def create_mock_config(**kwargs: Any) -> Config:
    """
    Create a Config with customizable fields.

    Args:
        **kwargs: Fields to override

    Returns:
        Config object
    """
    defaults: dict[str, Any] = {
        "bitbucket_url": "https://bitbucket.example.com",
        "merge_trigger": re.compile(r"^:shipit:$"),
    }
    defaults.update(kwargs)
    return Config(**defaults)


__all__ = [
    # Fixtures (exported for documentation, actual fixtures are auto-discovered)
    "mock_identity",
    "mock_bitbucket",
    "mock_jenkins",
    "sample_config",
    "retry_config",
    "sample_pull_request",
    "blocked_merge_status",
    # Helper functions
    "create_mock_summary",
    "create_mock_build_status",
    "create_mock_config",
]
