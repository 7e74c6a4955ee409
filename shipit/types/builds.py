"""Build status and build retry data models."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BuildStatus:
    """A build result reported against a commit."""

    key: str
    name: str
    state: str  # "SUCCESSFUL", "FAILED", "INPROGRESS"
    url: str
    timestamp: int = 0  # milliseconds since the epoch

    @property
    def failed(self) -> bool:
        return self.state == "FAILED"


@dataclass(frozen=True)
class BuildJob:
    """A build under consideration for a retry, tied to the pull request it blocks."""

    build_id: str  # the build URL; it identifies the run on the build server
    name: str
    status: str  # "failed", "succeeded", "pending"
    pr_key: str
    change: str  # commit hash the build ran against


@dataclass(frozen=True)
class JenkinsBuild:
    """One run of a Jenkins job."""

    number: int
    result: str | None  # "SUCCESS", "FAILURE", "ABORTED", None while running
    timestamp: int  # milliseconds since the epoch
    parameters: dict[str, str] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class BuildHistory:
    """
    What the build server remembers about earlier runs of one failed build.

    ``known`` is False when the failed run itself could not be found among the
    job's runs; the attempt count is then meaningless and no retry is spent.
    """

    attempts: int
    last_build_timestamp: int | None = None  # milliseconds since the epoch
    known: bool = True


@dataclass(frozen=True)
class RetryDecision:
    """Whether a failed build gets re-triggered this cycle."""

    build_id: str
    pr_key: str
    eligible: bool
    attempts: int
    limit: int
    # "eligible", "limit-reached", "not-blocking", "backoff",
    # "history-unknown", "history-error", "status-error"
    reason: str
    triggered: bool = False
    error: str | None = None
