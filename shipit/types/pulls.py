"""Pull request data models."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PullRequestSummary:
    """An open pull request as listed by the dashboard endpoint."""

    pr_id: int
    title: str
    author: str
    approvers: frozenset[str]
    project_key: str
    repo_slug: str
    version: int  # optimistic-locking version required by the merge endpoint
    latest_commit: str | None = None
    url: str | None = None

    @property
    def key(self) -> str:
        """Identifier that is unique across repositories, e.g. ``PROJ/repo#42``."""
        return f"{self.project_key}/{self.repo_slug}#{self.pr_id}"

    def authored_by(self, identity: str) -> bool:
        return _same_user(self.author, identity)

    def approved_by(self, identity: str) -> bool:
        return any(_same_user(approver, identity) for approver in self.approvers)


@dataclass(frozen=True)
class Comment:
    """A single pull request comment (replies are flattened)."""

    author: str
    text: str


@dataclass(frozen=True)
class PullRequestCandidate:
    """
    Snapshot of a pull request taken once per cycle.

    Fields that the active policy did not require are left empty rather than
    fetched; re-evaluating means building a new snapshot.
    """

    summary: PullRequestSummary
    description: str = ""
    comments: tuple[Comment, ...] = ()

    @property
    def pr_id(self) -> int:
        return self.summary.pr_id

    @property
    def key(self) -> str:
        return self.summary.key


@dataclass(frozen=True)
class MergeStatus:
    """Answer of the merge-precondition check (``GET .../merge``)."""

    can_merge: bool
    conflicted: bool = False
    vetoes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def blocked_only_by_builds(self) -> bool:
        """True when nothing but build results stands between the request and a merge."""
        if self.can_merge or self.conflicted or not self.vetoes:
            return False
        return all("build" in veto.lower() for veto in self.vetoes)


@dataclass(frozen=True)
class MergeResult:
    """Result of a merge attempt."""

    pr_key: str
    outcome: str  # "merged", "conflict", "already-merged", "forbidden", "error", "deadline-expired"
    message: str = ""

    @property
    def merged(self) -> bool:
        return self.outcome == "merged"


def _same_user(left: str, right: str) -> bool:
    return left.strip().lower() == right.strip().lower()
