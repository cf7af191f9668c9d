"""Jira REST API client for fetching release tickets and their commits.

Two read-only lookups are needed to build a release report:
- Ticket search by fixVersion (GET /rest/api/2/search)
- Development detail per ticket, which links the ticket to repositories
  and commits (GET /rest/api/2/issue/{key}, then
  GET /rest/dev-status/latest/issue/detail)

Design notes:
- Uses one shared httpx.AsyncClient so concurrent lookups reuse connections
- Failures never propagate: transport errors, non-2xx statuses and
  malformed payloads all come back as a failed FetchResult and are logged
  with the identifier that failed
- No retries and no caching; every call goes to the network
- Uses a Protocol so the aggregator doesn't depend on the concrete
  implementation (makes testing with mocks easy)

Jira dev-status API is undocumented; the shape used here is
{"detail": [{"repositories": [{"name": ..., "commits": [{"id", "message"}]}]}]}.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import httpx

from release_report.config import JiraConfig
from release_report.logging_config import get_logger
from release_report.schemas import Commit, FetchResult, RepositoryCommits, Ticket

logger = get_logger(__name__)

SEARCH_PATH = "/rest/api/2/search"
ISSUE_PATH = "/rest/api/2/issue/{key}"
DEV_STATUS_PATH = "/rest/dev-status/latest/issue/detail"

# Everything that can go wrong between the request and a normalized record.
FETCH_ERRORS = (
    httpx.HTTPError,
    AttributeError,
    KeyError,
    TypeError,
    IndexError,
    ValueError,
)


# ---------------------------------------------------------------------------
# Protocol (Interface)
# ---------------------------------------------------------------------------


class JiraClientProtocol(Protocol):
    """Protocol defining the interface for issue-tracker lookups.

    By coding against this protocol (not the concrete class), the aggregator
    and tests can use mock implementations without touching real Jira.
    """

    async def search_by_release_tag(self, tag: str) -> FetchResult[Ticket]:
        """Find all tickets whose fixVersion is ``tag``."""
        ...

    async def fetch_commits_for_issue(
        self, issue_key: str
    ) -> FetchResult[RepositoryCommits]:
        """Fetch the repositories and commits linked to one ticket."""
        ...


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def build_jql(tag: str) -> str:
    """Build the JQL filter for a fixVersion, quoting the tag."""
    escaped = tag.replace("\\", "\\\\").replace('"', '\\"')
    return f'fixVersion="{escaped}"'


def parse_team(value: Any) -> str | None:
    """Extract a team name from a team custom field value.

    Team fields come back as an object (``{"name": ...}`` for team pickers,
    ``{"value": ...}`` for select lists), a plain string, or null.
    """
    if isinstance(value, dict):
        return value.get("name") or value.get("value")
    if isinstance(value, str):
        return value or None
    return None


def parse_ticket(issue: dict[str, Any], team_field: str) -> Ticket:
    fields = issue.get("fields") or {}
    return Ticket(
        key=issue["key"],
        summary=fields.get("summary") or "",
        team=parse_team(fields.get(team_field)),
    )


def parse_repositories(payload: dict[str, Any]) -> list[RepositoryCommits]:
    """Normalize a dev-status detail payload into RepositoryCommits.

    Only the first detail entry is read. Whether later entries can carry
    further repositories is unknown, so they are ignored.
    """
    detail = payload["detail"]
    if not detail:
        return []

    repositories = detail[0].get("repositories") or []
    return [
        RepositoryCommits(
            name=repo["name"],
            commits=[
                Commit(id=commit["id"], message=commit.get("message") or "")
                for commit in repo.get("commits") or []
            ],
        )
        for repo in repositories
    ]


# ---------------------------------------------------------------------------
# Concrete Implementation
# ---------------------------------------------------------------------------


class JiraClient:
    """Async Jira client using httpx with basic auth.

    Usage:
        async with JiraClient(config) as client:
            tickets = await client.search_by_release_tag("1.4.0")
            repos = await client.fetch_commits_for_issue("PAY-12")
    """

    def __init__(
        self,
        config: JiraConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Jira client.

        Args:
            config: Connection settings (URL, credentials, field ids)
            transport: Optional httpx transport, used by tests to serve
                       canned responses
        """
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.url,
            auth=(config.username, config.token),
            headers={"Accept": "application/json"},
            timeout=config.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> JiraClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def search_by_release_tag(self, tag: str) -> FetchResult[Ticket]:
        """Fetch every ticket tagged with the fixVersion ``tag``.

        Walks Jira's offset pagination (startAt / maxResults / total) until
        all issues have been read.

        Args:
            tag: The fixVersion to search for

        Returns:
            The tickets found, or a failed result if any page failed
        """
        fields = f"key,summary,{self.config.team_field}"
        try:
            issues = await self._handle_pagination(
                SEARCH_PATH, {"jql": build_jql(tag), "fields": fields}
            )
            tickets = [parse_ticket(issue, self.config.team_field) for issue in issues]
        except FETCH_ERRORS as exc:
            logger.error("ticket_search_failed", fix_version=tag, error=str(exc))
            return FetchResult.failed(str(exc))

        logger.info("tickets_fetched", fix_version=tag, count=len(tickets))
        return FetchResult(items=tickets)

    async def fetch_commits_for_issue(
        self, issue_key: str
    ) -> FetchResult[RepositoryCommits]:
        """Fetch the repositories and commits linked to ``issue_key``.

        This makes two dependent calls:
        1. GET /rest/api/2/issue/{key} - resolve the numeric issue id
        2. GET /rest/dev-status/latest/issue/detail - development detail

        Args:
            issue_key: Jira issue key (e.g., "PAY-12")

        Returns:
            The linked repositories, or a failed result
        """
        try:
            issue_resp = await self._client.get(ISSUE_PATH.format(key=issue_key))
            issue_resp.raise_for_status()
            issue_id = issue_resp.json()["id"]

            detail_resp = await self._client.get(
                DEV_STATUS_PATH,
                params={
                    "issueId": issue_id,
                    "applicationType": self.config.application_type,
                    "dataType": self.config.data_type,
                },
            )
            detail_resp.raise_for_status()
            repositories = parse_repositories(detail_resp.json())
        except FETCH_ERRORS as exc:
            logger.error(
                "issue_commits_fetch_failed", issue_key=issue_key, error=str(exc)
            )
            return FetchResult.failed(str(exc))

        logger.debug(
            "issue_commits_fetched",
            issue_key=issue_key,
            repositories=len(repositories),
        )
        return FetchResult(items=repositories)

    async def _handle_pagination(
        self,
        url: str,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Collect the ``issues`` of every page of a Jira search.

        Args:
            url: Search endpoint path
            params: Query parameters sent with every page

        Returns:
            All issues across all pages
        """
        all_items: list[dict[str, Any]] = []
        start_at = 0

        while True:
            resp = await self._client.get(
                url,
                params={**params, "startAt": start_at, "maxResults": self.config.page_size},
            )
            resp.raise_for_status()
            data = resp.json()
            issues = data.get("issues") or []
            all_items.extend(issues)
            start_at += len(issues)

            if not issues or start_at >= data.get("total", 0):
                return all_items


# ---------------------------------------------------------------------------
# Mock Implementation (for testing)
# ---------------------------------------------------------------------------


class MockJiraClient:
    """Mock Jira client that returns predefined data.

    Use this in tests and local development when you don't want to hit
    the real Jira API.

    Usage:
        client = MockJiraClient(
            tickets={"1.4.0": [Ticket(key="PAY-1", summary="Fix", team="Payments")]},
            commits={"PAY-1": [RepositoryCommits(name="payments-api", commits=[...])]},
        )
        result = await client.search_by_release_tag("1.4.0")
    """

    def __init__(
        self,
        tickets: dict[str, list[Ticket]] | None = None,
        commits: dict[str, list[RepositoryCommits]] | None = None,
        failing_keys: set[str] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        """Initialize with optional predefined data.

        Args:
            tickets: fixVersion -> tickets returned by the search
            commits: issue key -> repositories returned for that issue
            failing_keys: issue keys whose commit lookup fails
            delays: issue key -> seconds to wait before answering
        """
        self._tickets = tickets or {}
        self._commits = commits or {}
        self._failing_keys = failing_keys or set()
        self._delays = delays or {}
        self.requested_keys: list[str] = []

    async def search_by_release_tag(self, tag: str) -> FetchResult[Ticket]:
        return FetchResult(items=list(self._tickets.get(tag, [])))

    async def fetch_commits_for_issue(
        self, issue_key: str
    ) -> FetchResult[RepositoryCommits]:
        self.requested_keys.append(issue_key)
        await asyncio.sleep(self._delays.get(issue_key, 0))
        if issue_key in self._failing_keys:
            return FetchResult.failed(f"mock failure for {issue_key}")
        return FetchResult(items=list(self._commits.get(issue_key, [])))
