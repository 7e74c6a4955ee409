"""
Build retries for pull requests that only failing builds keep from merging.

Nothing is remembered between runs. How often a build has been retried is
read back from Jenkins every time: each run of the job started with the same
parameters as the failed build counts, minus the original one. Removing the
agent's own state therefore can never reset a retry budget.
"""

import asyncio
import logging
import re
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

from shipit.config import JenkinsConfig
from shipit.exceptions import ShipitError
from shipit.pool import bounded_map, gather_or_raise, limited
from shipit.types.builds import BuildHistory, BuildJob, BuildStatus, RetryDecision
from shipit.types.cycle import Verdict
from shipit.types.pulls import PullRequestSummary

if TYPE_CHECKING:
    from shipit.bitbucket import AsyncBitbucketClient
    from shipit.jenkins import AsyncJenkinsClient

logger = logging.getLogger("shipit.retry")


def retryable_jobs(
    statuses: Iterable[BuildStatus],
    pattern: re.Pattern[str],
    pr_key: str,
    change: str,
) -> list[BuildJob]:
    """
    Pick the failed builds whose name matches the retry trigger.

    Args:
        statuses: Build statuses reported for ``change``
        pattern: Retry trigger; searched anywhere in the build name
        pr_key: Pull request the builds belong to
        change: Commit the builds ran against

    Returns:
        One BuildJob per distinct failed build URL
    """
    jobs: dict[str, BuildJob] = {}
    for status in statuses:
        if not status.failed or not status.url or not pattern.search(status.name):
            continue
        jobs.setdefault(
            status.url,
            BuildJob(
                build_id=status.url,
                name=status.name,
                status="failed",
                pr_key=pr_key,
                change=change,
            ),
        )
    return list(jobs.values())


def decide_retry(
    job: BuildJob,
    history: BuildHistory,
    limit: int,
    blocking: bool,
    backoff_seconds: float = 0.0,
    now_ms: int | None = None,
) -> RetryDecision:
    """
    Decide whether a failed build should be re-triggered.

    A retry is spent only while fewer than ``limit`` retries have happened
    and the build is the only thing blocking the pull request. With a
    backoff configured, the newest run must also be old enough. An unknown
    history never earns a retry.

    Args:
        job: The failed build
        history: Retry history reconstructed from the build server
        limit: Maximum number of retries per build and commit
        blocking: True if the failed build is the sole merge blocker
        backoff_seconds: Minimum age of the newest run (0 disables)
        now_ms: Current time in milliseconds (default: wall clock)

    Returns:
        RetryDecision (not yet triggered)
    """

    def decision(eligible: bool, reason: str) -> RetryDecision:
        return RetryDecision(
            build_id=job.build_id,
            pr_key=job.pr_key,
            eligible=eligible,
            attempts=history.attempts,
            limit=limit,
            reason=reason,
        )

    if not blocking:
        return decision(False, "not-blocking")
    if not history.known:
        return decision(False, "history-unknown")
    if history.attempts >= limit:
        return decision(False, "limit-reached")
    if backoff_seconds > 0 and history.last_build_timestamp is not None:
        now = int(time.time() * 1000) if now_ms is None else now_ms
        if now - history.last_build_timestamp < backoff_seconds * 1000:
            return decision(False, "backoff")
    return decision(True, "eligible")


class RetryEngine:
    """
    Re-triggers failed builds on pull requests blocked only by those builds.

    Bitbucket calls share the cycle's Bitbucket limiter; Jenkins calls are
    bounded separately by ``config.max_concurrency``.
    """

    def __init__(
        self,
        bitbucket: "AsyncBitbucketClient",
        jenkins: "AsyncJenkinsClient",
        config: JenkinsConfig,
        bitbucket_limiter: asyncio.Semaphore,
        max_workers: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._bitbucket = bitbucket
        self._jenkins = jenkins
        self._config = config
        self._bitbucket_limiter = bitbucket_limiter
        self._jenkins_limiter = asyncio.Semaphore(config.max_concurrency)
        self._max_workers = max_workers
        self._clock = clock

    async def run(
        self,
        candidates: Sequence[tuple[PullRequestSummary, Verdict]],
        deadline: float | None = None,
    ) -> list[RetryDecision]:
        """
        Process every candidate whose verdict says builds are the sole blocker.

        Args:
            candidates: Pull requests paired with their verdicts
            deadline: Event-loop time after which unfinished work is abandoned

        Returns:
            Decisions for every build that was looked at
        """
        blocked = [(pr, v) for pr, v in candidates if v.blocked_by_builds]
        results = await bounded_map(self._process_candidate, blocked, self._max_workers, deadline)

        decisions: list[RetryDecision] = []
        for found in results:
            if found is not None:
                decisions.extend(found)
        return decisions

    async def process(self, job: BuildJob, blocking: bool = True) -> RetryDecision:
        """
        Count earlier runs of ``job``, decide, and trigger a rebuild if eligible.

        The history is queried again on every call. Failures are logged and
        recorded on the returned decision.
        """
        try:
            history = await limited(
                self._jenkins_limiter, self._jenkins.build_history, job.build_id, job.change
            )
        except ShipitError as e:
            logger.warning("%s: could not read build history of %s: %s", job.pr_key, job.name, e)
            return RetryDecision(
                build_id=job.build_id,
                pr_key=job.pr_key,
                eligible=False,
                attempts=0,
                limit=self._config.retry_limit,
                reason="history-error",
                error=str(e),
            )

        decision = decide_retry(
            job,
            history,
            self._config.retry_limit,
            blocking,
            self._config.retry_backoff_seconds,
            now_ms=int(self._clock() * 1000),
        )
        if not decision.eligible:
            logger.info(
                "%s: not retrying %s (%s, %d/%d)",
                job.pr_key,
                job.name,
                decision.reason,
                decision.attempts,
                decision.limit,
            )
            return decision

        try:
            await limited(self._jenkins_limiter, self._jenkins.rebuild, job.build_id)
        except ShipitError as e:
            logger.error("%s: rebuild of %s failed: %s", job.pr_key, job.name, e)
            return replace(decision, error=str(e))

        logger.info(
            "%s: retrying %s (retry %d of %d)",
            job.pr_key,
            job.name,
            decision.attempts + 1,
            decision.limit,
        )
        return replace(decision, triggered=True)

    async def _process_candidate(
        self, candidate: tuple[PullRequestSummary, Verdict]
    ) -> list[RetryDecision]:
        pr, verdict = candidate
        change = verdict.latest_commit or pr.latest_commit
        if not change:
            logger.warning("%s: no head commit known; skipping build retries", pr.key)
            return []

        try:
            statuses = await limited(
                self._bitbucket_limiter, self._bitbucket.builds.list_for_commit, change
            )
        except ShipitError as e:
            logger.warning("%s: could not list build statuses: %s", pr.key, e)
            return [
                RetryDecision(
                    build_id="",
                    pr_key=pr.key,
                    eligible=False,
                    attempts=0,
                    limit=self._config.retry_limit,
                    reason="status-error",
                    error=str(e),
                )
            ]

        jobs = retryable_jobs(statuses, self._config.retry_trigger, pr.key, change)
        if not jobs:
            logger.debug("%s: no failed build matches the retry trigger", pr.key)
            return []
        return await gather_or_raise(*(self.process(job) for job in jobs))
