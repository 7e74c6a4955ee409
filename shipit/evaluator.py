"""
Candidate evaluation.

Each selected pull request is turned into a Verdict: the text the trigger
policy needs is fetched (and nothing else), the trigger is located, and for a
triggered request the server's merge preconditions are checked. Failures are
confined to the candidate they happened on.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from shipit.exceptions import ShipitError
from shipit.pool import bounded_map, gather_or_raise, limited
from shipit.trigger import TriggerPolicy, find_trigger
from shipit.types.cycle import (
    DEADLINE_EXPIRED,
    FETCH_ERROR,
    MATCHED_TRIGGER,
    NO_TRIGGER,
    PRECONDITION_FAILED,
    Verdict,
)
from shipit.types.pulls import Comment, PullRequestCandidate, PullRequestSummary

if TYPE_CHECKING:
    from shipit.bitbucket import AsyncBitbucketClient

logger = logging.getLogger("shipit.evaluator")


class Evaluator:
    """
    Produces a Verdict for every selected candidate.

    All remote calls share ``limiter``, which caps the number of requests in
    flight against Bitbucket no matter how many candidates are being worked on.
    """

    def __init__(
        self,
        client: "AsyncBitbucketClient",
        policy: TriggerPolicy,
        identity: str,
        limiter: asyncio.Semaphore,
        max_workers: int,
    ) -> None:
        self._client = client
        self._policy = policy
        self._identity = identity
        self._limiter = limiter
        self._max_workers = max_workers

    async def evaluate_all(
        self, prs: Sequence[PullRequestSummary], deadline: float | None = None
    ) -> list[Verdict]:
        """
        Evaluate candidates in parallel.

        Args:
            prs: Selected pull requests
            deadline: Event-loop time after which unfinished evaluations are abandoned

        Returns:
            One Verdict per pull request, in input order. Evaluations cut off
            by the deadline get reason ``deadline-expired``.
        """
        results = await bounded_map(self.evaluate, prs, self._max_workers, deadline)
        verdicts = []
        for pr, verdict in zip(prs, results):
            if verdict is None:
                logger.warning("%s: evaluation abandoned at deadline", pr.key)
                verdict = Verdict(pr_key=pr.key, mergeable=False, reason=DEADLINE_EXPIRED)
            verdicts.append(verdict)
        return verdicts

    async def evaluate(self, pr: PullRequestSummary) -> Verdict:
        """Evaluate a single candidate; never raises for remote failures."""
        try:
            candidate = await self.fetch_candidate(pr)
        except ShipitError as e:
            logger.warning("%s: could not fetch pull request data: %s", pr.key, e)
            return self._verdict(pr, False, FETCH_ERROR, detail=str(e))

        source = find_trigger(candidate, self._policy, self._identity)
        if source is None:
            logger.debug("%s: no merge trigger", pr.key)
            return self._verdict(pr, False, NO_TRIGGER)

        try:
            status = await limited(self._limiter, self._client.pulls.merge_status, pr)
        except ShipitError as e:
            logger.warning("%s: could not check merge status: %s", pr.key, e)
            return self._verdict(pr, False, FETCH_ERROR, detail=str(e))

        if not status.can_merge:
            detail = "conflicted" if status.conflicted else "; ".join(status.vetoes)
            logger.info("%s: trigger found in %s but not mergeable: %s", pr.key, source, detail)
            return self._verdict(
                pr, False, PRECONDITION_FAILED, detail=detail, merge_status=status
            )

        logger.info("%s: trigger found in %s", pr.key, source)
        return self._verdict(pr, True, MATCHED_TRIGGER, detail=source, merge_status=status)

    async def fetch_candidate(self, pr: PullRequestSummary) -> PullRequestCandidate:
        """
        Build the snapshot the trigger policy needs.

        Only the enabled fields are fetched, and those are fetched concurrently.

        Raises:
            ShipitError: If any required fetch fails
        """
        description = ""
        comments: tuple[Comment, ...] = ()

        fetches = []
        if self._policy.check_description:
            fetches.append(limited(self._limiter, self._client.pulls.get_description, pr))
        if self._policy.check_comments:
            fetches.append(
                limited(
                    self._limiter,
                    self._client.pulls.list_comments,
                    pr,
                    author=self._identity,
                )
            )

        results = await gather_or_raise(*fetches)
        if self._policy.check_description:
            description = results.pop(0)
        if self._policy.check_comments:
            comments = tuple(results.pop(0))

        return PullRequestCandidate(summary=pr, description=description, comments=comments)

    def _verdict(
        self,
        pr: PullRequestSummary,
        mergeable: bool,
        reason: str,
        **kwargs,
    ) -> Verdict:
        return Verdict(
            pr_key=pr.key,
            mergeable=mergeable,
            reason=reason,
            latest_commit=pr.latest_commit,
            **kwargs,
        )
