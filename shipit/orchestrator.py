"""
One scan cycle: list, select, evaluate, merge, retry, summarize.

The cycle runs once and returns. Periodicity comes from whatever schedules the
process (cron, a systemd timer, a CI schedule).
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from shipit.config import Config
from shipit.evaluator import Evaluator
from shipit.exceptions import ServerError
from shipit.merge import MergeExecutor
from shipit.retry import RetryEngine
from shipit.selection import SelectionPolicy, select_candidates
from shipit.trigger import TriggerPolicy
from shipit.types.cycle import DEADLINE_EXPIRED, CycleSummary

if TYPE_CHECKING:
    from shipit.bitbucket import AsyncBitbucketClient
    from shipit.jenkins import AsyncJenkinsClient

logger = logging.getLogger("shipit.orchestrator")


class Orchestrator:
    """
    Drives a single scan cycle.

    Example:
        ```python
        async with AsyncBitbucketClient.from_config(config) as bitbucket:
            summary = await Orchestrator(config, bitbucket).run_cycle()
            print(summary.format())
        ```
    """

    def __init__(
        self,
        config: Config,
        bitbucket: "AsyncBitbucketClient",
        jenkins: "AsyncJenkinsClient | None" = None,
    ) -> None:
        """
        Args:
            config: Validated configuration
            bitbucket: Bitbucket client
            jenkins: Jenkins client; build retries run only when this is given
                and the configuration enables them
        """
        self._config = config
        self._bitbucket = bitbucket
        self._jenkins = jenkins

    @property
    def retry_enabled(self) -> bool:
        return self._config.jenkins is not None and self._jenkins is not None

    async def run_cycle(self) -> CycleSummary:
        """
        Run one cycle.

        Per-candidate failures end up in the summary. Only a failure to learn
        who we are or to list the open pull requests escapes as an exception,
        since nothing can be evaluated without them.

        Returns:
            CycleSummary of everything that happened

        Raises:
            ShipitError: If the initial identity lookup or listing fails
        """
        config = self._config
        loop = asyncio.get_running_loop()
        deadline = (
            loop.time() + config.cycle_timeout_seconds
            if config.cycle_timeout_seconds is not None
            else None
        )

        try:
            identity, open_prs = await asyncio.wait_for(
                asyncio.gather(
                    self._bitbucket.users.whoami(),
                    self._bitbucket.pulls.list_open(),
                ),
                timeout=config.cycle_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ServerError("TIMEOUT", "Timed out listing open pull requests") from e
        logger.info("Running as %s; %d open pull request(s)", identity, len(open_prs))

        candidates = select_candidates(open_prs, SelectionPolicy.from_config(config), identity)
        logger.info("%d candidate(s) selected", len(candidates))

        limiter = asyncio.Semaphore(config.max_concurrency)
        evaluator = Evaluator(
            self._bitbucket,
            TriggerPolicy.from_config(config),
            identity,
            limiter,
            max_workers=config.max_concurrency,
        )
        verdicts = await evaluator.evaluate_all(candidates, deadline)

        by_key = {pr.key: pr for pr in candidates}
        mergeable = [by_key[v.pr_key] for v in verdicts if v.mergeable]
        merges = await MergeExecutor(
            self._bitbucket, limiter, max_workers=config.max_concurrency
        ).merge_all(mergeable, deadline)

        retries = []
        if self.retry_enabled:
            engine = RetryEngine(
                self._bitbucket,
                self._jenkins,
                config.jenkins,
                limiter,
                max_workers=config.max_concurrency,
            )
            blocked = [(by_key[v.pr_key], v) for v in verdicts if v.blocked_by_builds]
            retries = await engine.run(blocked, deadline)
        else:
            logger.debug("Build retries disabled")

        timed_out = (
            any(v.reason == DEADLINE_EXPIRED for v in verdicts)
            or any(m.outcome == DEADLINE_EXPIRED for m in merges)
            or (deadline is not None and loop.time() >= deadline)
        )
        summary = CycleSummary(
            identity=identity,
            verdicts=verdicts,
            merges=merges,
            retries=retries,
            retry_enabled=self.retry_enabled,
            timed_out=timed_out,
        )
        logger.info("Cycle finished: %s", summary.format())
        return summary
