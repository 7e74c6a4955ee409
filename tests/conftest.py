import logging
from collections.abc import Generator

import pytest

# Re-export the shipit fixtures for this test suite
from shipit.testing.conftest import (  # noqa: F401
    blocked_merge_status,
    mock_bitbucket,
    mock_identity,
    mock_jenkins,
    retry_config,
    sample_config,
    sample_pull_request,
)


@pytest.fixture(autouse=True)
def reset_shipit_logging() -> Generator[None, None, None]:
    """Undo configure_logging() so caplog keeps seeing shipit records."""
    yield
    for name in ("shipit", "shipit.http"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
