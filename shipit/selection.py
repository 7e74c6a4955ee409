"""Candidate selection: which open pull requests are worth evaluating."""

from collections.abc import Iterable
from dataclasses import dataclass

from shipit.config import Config
from shipit.types.pulls import PullRequestSummary


@dataclass(frozen=True)
class SelectionPolicy:
    check_own_prs: bool = True
    check_approved_prs: bool = False

    @classmethod
    def from_config(cls, config: Config) -> "SelectionPolicy":
        return cls(
            check_own_prs=config.check_own_prs,
            check_approved_prs=config.check_approved_prs,
        )


def is_selected(pr: PullRequestSummary, policy: SelectionPolicy, identity: str) -> bool:
    """
    Decide whether a pull request is a merge candidate.

    Own pull requests need ``check_own_prs``. Someone else's pull request
    that ``identity`` approved needs ``check_approved_prs``. Everything else
    on the dashboard is always selected.
    """
    own = pr.authored_by(identity)
    if own and not policy.check_own_prs:
        return False
    if not own and pr.approved_by(identity) and not policy.check_approved_prs:
        return False
    return True


def select_candidates(
    prs: Iterable[PullRequestSummary], policy: SelectionPolicy, identity: str
) -> list[PullRequestSummary]:
    """Filter ``prs`` down to merge candidates, keeping their order."""
    return [pr for pr in prs if is_selected(pr, policy, identity)]
