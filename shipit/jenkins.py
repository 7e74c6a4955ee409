"""
Jenkins async client.

Only the pieces the retry subsystem needs: reading a job's build history and
re-running a build with the parameters it was originally started with.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from shipit.async_transport import AsyncHTTPTransport
from shipit.config import JenkinsConfig
from shipit.exceptions import ServerError, ValidationError
from shipit.transport import NO_RETRY, RetryConfig
from shipit.types.builds import BuildHistory, JenkinsBuild

logger = logging.getLogger("shipit.jenkins")

_BUILD_URL_RE = re.compile(r"^(.*)/(\d+)(?:/)?(?:display/redirect)?$")
_HISTORY_DEPTH = 500
_ALL_BUILDS_TREE = (
    f"allBuilds[number,result,timestamp,actions[parameters[name,value]]]{{0,{_HISTORY_DEPTH}}}"
)


@dataclass(frozen=True)
class JenkinsJob:
    """A Jenkins job and one of its build numbers, parsed from a build URL."""

    job_url: str
    build_number: int

    @classmethod
    def from_build_url(cls, build_url: str) -> "JenkinsJob":
        """
        Parse a build URL such as ``https://ci/job/project/101/display/redirect``.

        Raises:
            ValidationError: If the URL does not end in a build number
        """
        match = _BUILD_URL_RE.match(build_url.strip())
        if match is None or not match.group(1):
            raise ValidationError("INVALID_BUILD_URL", f"Invalid build URL: {build_url}")
        return cls(job_url=match.group(1), build_number=int(match.group(2)))

    @property
    def build_api_url(self) -> str:
        return f"{self.job_url}/{self.build_number}/api/json"

    @property
    def job_api_url(self) -> str:
        return f"{self.job_url}/api/json"

    @property
    def trigger_url(self) -> str:
        return f"{self.job_url}/buildWithParameters"


class AsyncJenkinsClient:
    """
    Async client for the Jenkins remote access API.

    Example:
        ```python
        async with AsyncJenkinsClient("ci-bot", "api-token") as jenkins:
            history = await jenkins.build_history(build_url, commit)
            if history.attempts < 3:
                await jenkins.rebuild(build_url)
        ```
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        username: str,
        password: str,
        timeout: float = DEFAULT_TIMEOUT,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the async Jenkins client.

        Args:
            username: Jenkins user name
            password: Password or API token for that user
            timeout: Request timeout in seconds (default: 30.0)
            retry_config: Configuration for retry behavior (optional)
            transport: httpx transport override, mainly for tests (optional)
        """
        self.username = username
        self._transport = AsyncHTTPTransport(
            auth=(username, password),
            timeout=timeout,
            retry_config=retry_config,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: JenkinsConfig,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AsyncJenkinsClient":
        """Create a client from the Jenkins section of the configuration."""
        return cls(
            username=config.username,
            password=config.password,
            timeout=timeout,
            transport=transport,
        )

    async def list_builds(self, job: JenkinsJob) -> list[JenkinsBuild]:
        """
        List the runs of a job, newest first.

        ``allBuilds`` is used because ``builds`` stops at the 100 most recent
        runs; the range bounds the payload on very busy jobs.

        Args:
            job: The job to inspect

        Returns:
            JenkinsBuild entries, newest first
        """
        data = await self._transport.request(
            "GET", job.job_api_url, params={"tree": _ALL_BUILDS_TREE}
        )
        if not isinstance(data, dict) or not isinstance(data.get("allBuilds"), list):
            raise ServerError("INVALID_RESPONSE", f"Unexpected build list for {job.job_url}")

        return [
            JenkinsBuild(
                number=int(build.get("number", 0)),
                result=build.get("result"),
                timestamp=int(build.get("timestamp", 0)),
                parameters=_parameters_from_actions(build.get("actions", [])),
            )
            for build in data["allBuilds"]
            if isinstance(build, dict)
        ]

    async def build_parameters(self, job: JenkinsJob) -> dict[str, str] | None:
        """
        Read the parameters a build was started with.

        Returns:
            The string and boolean parameters, or None if the build has no
            parameters action at all
        """
        build = await self._transport.request("GET", job.build_api_url)
        actions = build.get("actions", []) if isinstance(build, dict) else []
        if not any(isinstance(a, dict) and "parameters" in a for a in actions):
            return None
        return _parameters_from_actions(actions)

    async def build_history(self, build_url: str, change: str) -> BuildHistory:
        """
        Reconstruct how often a failed build has already been retried.

        A rebuild replays the failed run's parameters exactly, so every run of
        the job with that same parameter set belongs to the failed build: the
        oldest is the original run and the rest are retries. Parameters are
        compared as a whole, which works whether the job is keyed by commit,
        branch name or ref.

        If the failed run is missing from the job's runs (discarded, or older
        than the listed range) the history is reported as unknown rather than
        as zero attempts.

        Args:
            build_url: URL of the failed build
            change: Commit hash the build ran against (used for logging)

        Returns:
            BuildHistory with the retry count and the newest run's timestamp
        """
        job = JenkinsJob.from_build_url(build_url)
        parameters = await self.build_parameters(job)
        if parameters is None:
            logger.warning("%s has no build parameters; retry history unknown", build_url)
            return BuildHistory(attempts=0, known=False)

        runs = [build for build in await self.list_builds(job) if build.parameters == parameters]
        if job.build_number not in {build.number for build in runs}:
            logger.warning(
                "%s (commit %s) is not among the runs of %s; retry history unknown",
                build_url,
                change,
                job.job_url,
            )
            return BuildHistory(attempts=0, known=False)

        return BuildHistory(
            attempts=len(runs) - 1,
            last_build_timestamp=max(build.timestamp for build in runs),
        )

    async def rebuild(self, build_url: str) -> None:
        """
        Trigger a new run of the job behind ``build_url`` with the same parameters.

        Args:
            build_url: URL of the build to repeat

        Raises:
            ValidationError: If the build URL is invalid or the build has no parameters
            ShipitError: If Jenkins rejects the request
        """
        job = JenkinsJob.from_build_url(build_url)
        parameters = await self.build_parameters(job)
        if parameters is None:
            raise ValidationError(
                "NO_PARAMETERS", f"Could not find build parameters for {build_url}"
            )

        await self._transport.request(
            "POST", job.trigger_url, params=parameters, retry_config=NO_RETRY
        )
        logger.debug("Triggered %s with %d parameter(s)", job.trigger_url, len(parameters))

    async def close(self) -> None:
        """Close the client and release resources."""
        await self._transport.close()

    async def __aenter__(self) -> "AsyncJenkinsClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def _parameters_from_actions(actions: Any) -> dict[str, str]:
    """Collect string and boolean build parameters from a build's actions."""
    parameters: dict[str, str] = {}
    if not isinstance(actions, list):
        return parameters

    for action in actions:
        if not isinstance(action, dict):
            continue
        for param in action.get("parameters", []) or []:
            if not isinstance(param, dict) or "name" not in param:
                continue
            value = param.get("value")
            if isinstance(value, bool):
                parameters[param["name"]] = "true" if value else "false"
            elif isinstance(value, str):
                parameters[param["name"]] = value
            else:
                logger.warning(
                    "Parameter %s is not a string or boolean parameter", param["name"]
                )
    return parameters
