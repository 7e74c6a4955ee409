"""shipit type definitions.

This module exports all data model types used by the package.
"""

from shipit.types.builds import (
    BuildHistory,
    BuildJob,
    BuildStatus,
    JenkinsBuild,
    RetryDecision,
)
from shipit.types.cycle import (
    DEADLINE_EXPIRED,
    FETCH_ERROR,
    MATCHED_TRIGGER,
    NO_TRIGGER,
    PRECONDITION_FAILED,
    CycleSummary,
    Verdict,
)
from shipit.types.pulls import (
    Comment,
    MergeResult,
    MergeStatus,
    PullRequestCandidate,
    PullRequestSummary,
)

__all__ = [
    # Pull request types
    "PullRequestSummary",
    "PullRequestCandidate",
    "Comment",
    "MergeStatus",
    "MergeResult",
    # Build types
    "BuildStatus",
    "BuildJob",
    "JenkinsBuild",
    "BuildHistory",
    "RetryDecision",
    # Cycle types
    "Verdict",
    "CycleSummary",
    "MATCHED_TRIGGER",
    "NO_TRIGGER",
    "FETCH_ERROR",
    "PRECONDITION_FAILED",
    "DEADLINE_EXPIRED",
]
