"""Async Bitbucket pull requests resource client."""

import re
from typing import TYPE_CHECKING, Any

from shipit.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ServerError,
    ShipitError,
)
from shipit.transport import NO_RETRY
from shipit.types.pulls import (
    Comment,
    MergeResult,
    MergeStatus,
    PullRequestSummary,
)

if TYPE_CHECKING:
    from shipit.async_transport import AsyncHTTPTransport


_DASHBOARD_PATH = "/rest/api/1.0/dashboard/pull-requests"
_ILLEGAL_STATE = "IllegalPullRequestStateException"
_MERGED_STATE_RE = re.compile(r"\b(?:already (?:been )?merged|is merged)\b", re.IGNORECASE)


class AsyncPullsClient:
    """Async client for Bitbucket Server pull request operations."""

    def __init__(self, transport: "AsyncHTTPTransport") -> None:
        """
        Initialize the async pulls client.

        Args:
            transport: Async HTTP transport for making requests
        """
        self.transport = transport

    async def list_open(self) -> list[PullRequestSummary]:
        """
        List the open pull requests on the authenticated user's dashboard.

        Returns:
            Summaries (id, title, author, approvers, location, version, head commit)
        """
        values = await self.transport.get_paged(_DASHBOARD_PATH, params={"state": "OPEN"})
        return [self._parse_summary(pr) for pr in values]

    async def get_description(self, pr: PullRequestSummary) -> str:
        """
        Fetch the description of a pull request.

        Args:
            pr: The pull request

        Returns:
            The description text (empty when none is set)
        """
        data = await self.transport.request("GET", _pull_request_path(pr))
        description = data.get("description") if isinstance(data, dict) else None
        return description or ""

    async def list_comments(
        self, pr: PullRequestSummary, author: str | None = None
    ) -> list[Comment]:
        """
        List the comments of a pull request, replies included.

        Args:
            pr: The pull request
            author: Only return comments written by this user (optional)

        Returns:
            Comments in activity order, each reply after its parent
        """
        activities = await self.transport.get_paged(f"{_pull_request_path(pr)}/activities")

        comments: list[Comment] = []
        for activity in activities:
            if activity.get("action") != "COMMENTED":
                continue
            comment = activity.get("comment")
            if isinstance(comment, dict):
                comments.extend(_flatten_comment(comment))

        if author is None:
            return comments
        wanted = author.strip().lower()
        return [c for c in comments if c.author.strip().lower() == wanted]

    async def merge_status(self, pr: PullRequestSummary) -> MergeStatus:
        """
        Ask the server whether a pull request can be merged right now.

        Args:
            pr: The pull request

        Returns:
            MergeStatus with the server's vetoes, if any
        """
        data = await self.transport.request("GET", f"{_pull_request_path(pr)}/merge")
        if not isinstance(data, dict):
            raise ServerError("INVALID_RESPONSE", f"Unexpected merge status for {pr.key}")

        vetoes = tuple(
            str(veto.get("summaryMessage") or veto.get("detailedMessage") or "")
            for veto in data.get("vetoes", [])
            if isinstance(veto, dict)
        )
        return MergeStatus(
            can_merge=bool(data.get("canMerge", False)),
            conflicted=bool(data.get("conflicted", False)),
            vetoes=vetoes,
        )

    async def merge(self, pr: PullRequestSummary) -> MergeResult:
        """
        Merge a pull request.

        The request is sent exactly once; a conflict is reported back rather
        than retried.

        Args:
            pr: The pull request (its ``version`` guards against concurrent edits)

        Returns:
            MergeResult with outcome "merged", "conflict", "already-merged",
            "forbidden" or "error"
        """
        try:
            await self.transport.request(
                "POST",
                f"{_pull_request_path(pr)}/merge",
                params={"version": pr.version},
                retry_config=NO_RETRY,
            )
        except ConflictError as e:
            if e.code == _ILLEGAL_STATE:
                # Also raised for declined requests; only a merged one is "already-merged"
                if _MERGED_STATE_RE.search(e.message):
                    return MergeResult(pr_key=pr.key, outcome="already-merged", message=e.message)
                return MergeResult(pr_key=pr.key, outcome="error", message=e.message)
            return MergeResult(pr_key=pr.key, outcome="conflict", message=e.message)
        except (AuthenticationError, AuthorizationError) as e:
            return MergeResult(pr_key=pr.key, outcome="forbidden", message=e.message)
        except ShipitError as e:
            return MergeResult(pr_key=pr.key, outcome="error", message=str(e))

        return MergeResult(pr_key=pr.key, outcome="merged")

    def _parse_summary(self, data: dict[str, Any]) -> PullRequestSummary:
        """Parse a dashboard entry into a PullRequestSummary."""
        try:
            repository = data["toRef"]["repository"]
            project_key = repository["project"]["key"]
            repo_slug = repository["slug"]
            pr_id = int(data["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise ServerError("INVALID_RESPONSE", f"Malformed pull request entry: {e}") from e

        approvers = frozenset(
            _user_name(member.get("user"))
            for member in [*data.get("reviewers", []), *data.get("participants", [])]
            if isinstance(member, dict)
            and (member.get("approved") or member.get("status") == "APPROVED")
        )

        links = data.get("links", {}).get("self", [])
        url = links[0].get("href") if links and isinstance(links[0], dict) else None

        return PullRequestSummary(
            pr_id=pr_id,
            title=data.get("title", ""),
            author=_user_name(data.get("author", {}).get("user")),
            approvers=approvers - {""},
            project_key=project_key,
            repo_slug=repo_slug,
            version=int(data.get("version", 0)),
            latest_commit=data.get("fromRef", {}).get("latestCommit"),
            url=url,
        )


def _pull_request_path(pr: PullRequestSummary) -> str:
    return (
        f"/rest/api/1.0/projects/{pr.project_key}/repos/{pr.repo_slug}"
        f"/pull-requests/{pr.pr_id}"
    )


def _user_name(user: Any) -> str:
    if not isinstance(user, dict):
        return ""
    return str(user.get("name") or user.get("slug") or "")


def _flatten_comment(comment: dict[str, Any]) -> list[Comment]:
    flattened = [Comment(author=_user_name(comment.get("author")), text=comment.get("text", ""))]
    for reply in comment.get("comments", []):
        if isinstance(reply, dict):
            flattened.extend(_flatten_comment(reply))
    return flattened
