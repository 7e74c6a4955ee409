"""
Pytest plugin for shipit testing fixtures.

This module re-exports all fixtures from fixtures.py so they can be
discovered by pytest. Register it from your top-level conftest.py:

    pytest_plugins = ["shipit.testing.conftest"]

Or import the fixtures directly:

    from shipit.testing.fixtures import mock_bitbucket, sample_config
"""

# Re-export all fixtures for pytest discovery
from shipit.testing.fixtures import (
    blocked_merge_status,
    mock_bitbucket,
    mock_identity,
    mock_jenkins,
    retry_config,
    sample_config,
    sample_pull_request,
)

__all__ = [
    "mock_identity",
    "mock_bitbucket",
    "mock_jenkins",
    "sample_config",
    "retry_config",
    "sample_pull_request",
    "blocked_merge_status",
]
