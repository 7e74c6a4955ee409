"""Per-cycle result models."""

from dataclasses import dataclass, field

from shipit.types.builds import RetryDecision
from shipit.types.pulls import MergeResult, MergeStatus

# Verdict reasons
MATCHED_TRIGGER = "matched-trigger"
NO_TRIGGER = "no-trigger-found"
FETCH_ERROR = "fetch-error"
PRECONDITION_FAILED = "already-failed-precondition"
DEADLINE_EXPIRED = "deadline-expired"


@dataclass(frozen=True)
class Verdict:
    """Evaluation result for one candidate."""

    pr_key: str
    mergeable: bool
    reason: str
    detail: str = ""
    merge_status: MergeStatus | None = None
    latest_commit: str | None = None

    @property
    def blocked_by_builds(self) -> bool:
        """True if the trigger matched and only build results block the merge."""
        return (
            self.reason == PRECONDITION_FAILED
            and self.merge_status is not None
            and self.merge_status.blocked_only_by_builds
        )


@dataclass
class CycleSummary:
    """Aggregated outcome of one scan cycle."""

    identity: str
    verdicts: list[Verdict] = field(default_factory=list)
    merges: list[MergeResult] = field(default_factory=list)
    retries: list[RetryDecision] = field(default_factory=list)
    retry_enabled: bool = False
    timed_out: bool = False

    @property
    def evaluated(self) -> int:
        return sum(1 for v in self.verdicts if v.reason != DEADLINE_EXPIRED)

    @property
    def merged(self) -> int:
        return sum(1 for m in self.merges if m.merged)

    @property
    def skipped(self) -> int:
        skipped_reasons = {NO_TRIGGER, PRECONDITION_FAILED, DEADLINE_EXPIRED}
        skipped = sum(1 for v in self.verdicts if v.reason in skipped_reasons)
        return skipped + sum(1 for m in self.merges if m.outcome == DEADLINE_EXPIRED)

    @property
    def retried(self) -> int:
        return sum(1 for r in self.retries if r.triggered)

    @property
    def failed(self) -> int:
        fetch_failures = sum(1 for v in self.verdicts if v.reason == FETCH_ERROR)
        merge_failures = sum(
            1 for m in self.merges if not m.merged and m.outcome != DEADLINE_EXPIRED
        )
        retry_failures = sum(1 for r in self.retries if r.error is not None)
        return fetch_failures + merge_failures + retry_failures

    def format(self) -> str:
        line = (
            f"user={self.identity} evaluated={self.evaluated} merged={self.merged} "
            f"skipped={self.skipped} retried={self.retried} failed={self.failed}"
        )
        if not self.retry_enabled:
            line += " retry=disabled"
        if self.timed_out:
            line += " deadline=expired"
        return line
