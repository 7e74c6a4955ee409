"""
Merge trigger matching.

A trigger is a regular expression that must match one whole line of a pull
request's description or of one of its comments. Lines are stripped of
surrounding whitespace before matching, so ``"  :shipit:  "`` counts while
``"do not :shipit: yet"`` does not.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from shipit.config import Config
from shipit.types.pulls import PullRequestCandidate

DESCRIPTION = "description"
COMMENT = "comment"


@dataclass(frozen=True)
class TriggerPolicy:
    """Where to look for the merge trigger."""

    pattern: re.Pattern[str]
    check_description: bool = True
    check_comments: bool = False

    @classmethod
    def from_config(cls, config: Config) -> "TriggerPolicy":
        return cls(
            pattern=config.merge_trigger,
            check_description=config.check_description,
            check_comments=config.check_comments,
        )


def text_matches(text: str, pattern: re.Pattern[str]) -> bool:
    """Return True if any stripped line of ``text`` fully matches ``pattern``."""
    return any(pattern.fullmatch(line.strip()) for line in text.splitlines())


def matches(corpus: Iterable[str], pattern: re.Pattern[str]) -> bool:
    """
    Return True if any text block in ``corpus`` contains a matching line.

    Stops at the first match, so the remaining blocks are never scanned.
    """
    return any(text_matches(text, pattern) for text in corpus)


def find_trigger(
    candidate: PullRequestCandidate, policy: TriggerPolicy, identity: str
) -> str | None:
    """
    Locate the merge trigger on a candidate.

    The description is checked first. Comments only count when written by
    ``identity``; other users cannot trigger a merge on the agent's behalf.

    Args:
        candidate: Snapshot of the pull request
        policy: Which fields to search and the trigger pattern
        identity: The authenticated user

    Returns:
        ``"description"`` or ``"comment"`` for the field that matched, else None
    """
    if policy.check_description and text_matches(candidate.description, policy.pattern):
        return DESCRIPTION

    if policy.check_comments:
        wanted = identity.strip().lower()
        own = (c.text for c in candidate.comments if c.author.strip().lower() == wanted)
        if matches(own, policy.pattern):
            return COMMENT

    return None
