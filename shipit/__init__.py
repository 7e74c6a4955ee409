"""shipit - merge Bitbucket pull requests that carry a merge trigger."""

__version__ = "0.1.0"

from shipit.bitbucket import AsyncBitbucketClient
from shipit.config import Config, JenkinsConfig, load_config
from shipit.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    ShipitError,
    ValidationError,
)
from shipit.jenkins import AsyncJenkinsClient
from shipit.logging import configure_logging, get_logger
from shipit.orchestrator import Orchestrator
from shipit.transport import RetryConfig

__all__ = [
    "__version__",
    # Clients
    "AsyncBitbucketClient",
    "AsyncJenkinsClient",
    # Cycle
    "Orchestrator",
    # Configuration
    "Config",
    "JenkinsConfig",
    "load_config",
    # Exceptions
    "ShipitError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "RateLimitedError",
    "ValidationError",
    "ServerError",
    "ConfigurationError",
    # Transport
    "RetryConfig",
    # Logging
    "configure_logging",
    "get_logger",
]
