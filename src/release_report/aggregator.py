"""Groups release tickets by team and attaches their commits.

Flow:
1. Partition tickets by team, keeping first-seen team order
2. Launch one commit lookup per ticket, all at once across all teams
3. Wait for every lookup, then put each result back into its ticket's slot

Results are matched to tickets by position, never by completion order, so
the report order is the search order no matter how the lookups interleave.
A lookup that fails only affects its own ticket, which then carries the
"no related commits" placeholder.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from release_report.context.jira import JiraClientProtocol
from release_report.logging_config import get_logger
from release_report.schemas import (
    RepositoryCommits,
    TeamReport,
    Ticket,
    TicketReport,
)

logger = get_logger(__name__)


def group_tickets(tickets: Sequence[Ticket]) -> dict[str, list[Ticket]]:
    """Partition tickets by team name in first-seen order.

    Tickets without a team land under "Unknown Team".
    """
    groups: dict[str, list[Ticket]] = {}
    for ticket in tickets:
        groups.setdefault(ticket.team_name, []).append(ticket)
    return groups


def build_ticket_report(
    ticket: Ticket, repositories: Sequence[RepositoryCommits]
) -> TicketReport:
    """Merge a ticket with its repositories (placeholder when none)."""
    return TicketReport(
        key=ticket.key,
        summary=ticket.summary,
        repositories=list(repositories),
    )


async def _fetch_repositories(
    client: JiraClientProtocol,
    ticket: Ticket,
    semaphore: asyncio.Semaphore | None,
) -> list[RepositoryCommits]:
    try:
        if semaphore is None:
            result = await client.fetch_commits_for_issue(ticket.key)
        else:
            async with semaphore:
                result = await client.fetch_commits_for_issue(ticket.key)
    except Exception as exc:
        # Clients absorb their own errors; anything else stays with this ticket.
        logger.error(
            "ticket_commits_lookup_crashed",
            issue_key=ticket.key,
            error=str(exc),
            exc_info=True,
        )
        return []
    return result.items


async def group_and_fetch(
    client: JiraClientProtocol,
    tickets: Sequence[Ticket],
    max_concurrency: int | None = None,
) -> TeamReport:
    """Group tickets by team and fetch the commits of every ticket.

    Args:
        client: Issue-tracker client used for the per-ticket lookups
        tickets: Tickets in search order
        max_concurrency: Upper bound on lookups in flight. None launches
                         every lookup at once.

    Returns:
        Team name -> ticket reports, teams in first-seen order and tickets
        in their original relative order
    """
    groups = group_tickets(tickets)
    ordered = [ticket for team_tickets in groups.values() for ticket in team_tickets]
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    logger.info(
        "commit_lookups_started",
        teams=len(groups),
        tickets=len(ordered),
        max_concurrency=max_concurrency,
    )
    fetched = await asyncio.gather(
        *(_fetch_repositories(client, ticket, semaphore) for ticket in ordered)
    )
    repositories_by_position = iter(fetched)

    report: TeamReport = {}
    for team, team_tickets in groups.items():
        report[team] = [
            build_ticket_report(ticket, next(repositories_by_position))
            for ticket in team_tickets
        ]

    without_commits = sum(
        1 for ticket_reports in report.values() for t in ticket_reports if not t.has_commits
    )
    logger.info(
        "report_built",
        teams=len(report),
        tickets=len(ordered),
        tickets_without_commits=without_commits,
    )
    return report
