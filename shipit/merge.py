"""Merging the candidates whose verdict came back mergeable."""

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from shipit.exceptions import ShipitError
from shipit.pool import bounded_map, limited
from shipit.types.cycle import DEADLINE_EXPIRED
from shipit.types.pulls import MergeResult, PullRequestSummary

if TYPE_CHECKING:
    from shipit.bitbucket import AsyncBitbucketClient

logger = logging.getLogger("shipit.merge")


class MergeExecutor:
    """Issues one merge request per candidate and records what happened."""

    def __init__(
        self,
        client: "AsyncBitbucketClient",
        limiter: asyncio.Semaphore,
        max_workers: int,
    ) -> None:
        self._client = client
        self._limiter = limiter
        self._max_workers = max_workers

    async def merge_all(
        self, prs: Sequence[PullRequestSummary], deadline: float | None = None
    ) -> list[MergeResult]:
        """
        Merge every pull request in ``prs`` in parallel.

        Returns:
            One MergeResult per pull request, in input order
        """
        results = await bounded_map(self.merge, prs, self._max_workers, deadline)
        return [
            result
            if result is not None
            else MergeResult(pr_key=pr.key, outcome=DEADLINE_EXPIRED)
            for pr, result in zip(prs, results)
        ]

    async def merge(self, pr: PullRequestSummary) -> MergeResult:
        """Attempt a single merge. A failed attempt is reported, never repeated."""
        try:
            result = await limited(self._limiter, self._client.pulls.merge, pr)
        except ShipitError as e:
            result = MergeResult(pr_key=pr.key, outcome="error", message=str(e))

        if result.merged:
            logger.info("%s: merged %r", pr.key, pr.title)
        else:
            logger.warning("%s: merge failed (%s): %s", pr.key, result.outcome, result.message)
        return result
