"""Plain-text rendering of a team report.

Layout with stories shown and commits included:

    Team: Payments
    [PAY-1] - Support refunds
        Repository: payments-api
            [a1b2c3] Add refund endpoint
        Repository: payments-ui
            [d4e5f6] Refund button

With stories hidden, the repositories of every ticket in a team are merged
and listed once under the team header. In "repositories" mode the commit
lines are left out and repositories are listed by bare name.
"""

from __future__ import annotations

from collections.abc import Iterable

from release_report.schemas import (
    NO_COMMITS_MESSAGE,
    Commit,
    ReportOptions,
    ReportType,
    RepositoryCommits,
    TeamReport,
    TicketReport,
)

INDENT = "    "
NO_DATA_MESSAGE = "No data to display."


def merge_repositories(tickets: Iterable[TicketReport]) -> list[RepositoryCommits]:
    """Merge the repositories of several tickets by repository name.

    Repositories keep first-seen order. Commits are concatenated in ticket
    order; a commit linked to more than one ticket is listed once.
    Placeholder entries are dropped.
    """
    merged: dict[str, list[Commit]] = {}
    seen: dict[str, set[str]] = {}
    for ticket in tickets:
        for repo in ticket.repositories:
            if repo.placeholder:
                continue
            commits = merged.setdefault(repo.name, [])
            commit_ids = seen.setdefault(repo.name, set())
            for commit in repo.commits:
                if commit.id not in commit_ids:
                    commit_ids.add(commit.id)
                    commits.append(commit)

    return [RepositoryCommits(name=name, commits=commits) for name, commits in merged.items()]


def format_repositories(
    repositories: list[RepositoryCommits], report_type: ReportType
) -> list[str]:
    """Render repository lines, plus commit lines in commits mode."""
    real = [repo for repo in repositories if not repo.placeholder]
    if not real:
        return [f"{INDENT}{NO_COMMITS_MESSAGE}"]

    show_commits = report_type == ReportType.COMMITS
    lines = []
    for repo in real:
        prefix = "Repository: " if show_commits else ""
        lines.append(f"{INDENT}{prefix}{repo.name}")
        if show_commits:
            lines.extend(
                f"{INDENT}{INDENT}[{commit.id}] {commit.message}" for commit in repo.commits
            )
    return lines


def format_report(report: TeamReport | None, options: ReportOptions | None = None) -> str:
    """Render the aggregated report as indented text.

    Args:
        report: Team name -> ticket reports. None or empty means nothing
                was found for the release.
        options: Presentation toggles. Defaults to per-ticket breakdown
                 with commits.

    Returns:
        The report text, newline-terminated
    """
    if not report:
        return f"{NO_DATA_MESSAGE}\n"

    options = options or ReportOptions()
    lines: list[str] = []
    for team, tickets in report.items():
        lines.append("")
        lines.append(f"Team: {team}")
        if options.show_stories:
            for ticket in tickets:
                lines.append(f"[{ticket.key}] - {ticket.summary}")
                lines.extend(format_repositories(ticket.repositories, options.report_type))
        else:
            lines.extend(
                format_repositories(merge_repositories(tickets), options.report_type)
            )

    return "\n".join(lines) + "\n"
