"""Pydantic models for the data flowing through the report pipeline.

The pipeline moves through three shapes:
- Ticket: what the Jira search returns for a fixVersion
- RepositoryCommits / Commit: the development detail linked to a ticket
- TicketReport / TeamReport: the aggregated structure the formatter renders

All models are frozen. Entities are created fresh on every run and thrown
away once the report has been written.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from release_report.text import truncate_message

UNKNOWN_TEAM = "Unknown Team"
NO_COMMITS_MESSAGE = "No related commits found."

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ReportType(StrEnum):
    """What level of detail to render under each repository.

    REPOSITORIES: Repository names only
    COMMITS: Repository names followed by their commits
    """

    REPOSITORIES = "repositories"
    COMMITS = "commits"


# ---------------------------------------------------------------------------
# Upstream Schemas
# ---------------------------------------------------------------------------


class Ticket(BaseModel):
    """A Jira issue tagged with the requested fixVersion.

    Attributes:
        key: Issue key (e.g., "PAY-123")
        summary: Issue summary line
        team: Owning team name, None when the team field is not set
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Jira issue key")
    summary: str = Field("", description="Issue summary")
    team: str | None = Field(None, description="Owning team, if set")

    @property
    def team_name(self) -> str:
        """Team used for grouping, falling back to the unknown-team sentinel."""
        return self.team or UNKNOWN_TEAM


class Commit(BaseModel):
    """A single commit linked to a ticket.

    The message is bounded on construction, see ``truncate_message``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Commit hash")
    message: str = Field("", description="Commit message, first line or 256 chars")

    @field_validator("message")
    @classmethod
    def bound_message(cls, value: str) -> str:
        return truncate_message(value)


class RepositoryCommits(BaseModel):
    """Commits of one repository linked to a ticket, in API response order."""

    model_config = ConfigDict(frozen=True)

    name: str
    commits: list[Commit] = Field(default_factory=list)
    placeholder: bool = False

    @classmethod
    def no_commits(cls) -> RepositoryCommits:
        """The synthetic entry used when a ticket has no linked repositories."""
        return cls(name=NO_COMMITS_MESSAGE, placeholder=True)


# ---------------------------------------------------------------------------
# Report Schemas
# ---------------------------------------------------------------------------


class TicketReport(BaseModel):
    """A ticket merged with its fetched repositories.

    Attributes:
        key: Issue key
        summary: Issue summary
        repositories: Linked repositories. Never empty: a ticket without
            repositories carries a single placeholder entry.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    summary: str = ""
    repositories: list[RepositoryCommits] = Field(
        default_factory=list, validate_default=True
    )

    @field_validator("repositories")
    @classmethod
    def ensure_not_empty(cls, value: list[RepositoryCommits]) -> list[RepositoryCommits]:
        if not value:
            return [RepositoryCommits.no_commits()]
        return value

    @property
    def has_commits(self) -> bool:
        return any(not repo.placeholder for repo in self.repositories)


# Team name -> ticket reports, in first-seen team order.
TeamReport = dict[str, list[TicketReport]]


class ReportOptions(BaseModel):
    """Presentation toggles for the text report.

    Attributes:
        report_type: Render repository names only, or repositories and commits
        show_stories: Break the report down per ticket. When False the
            repositories of all tickets in a team are merged.
    """

    report_type: ReportType = ReportType.COMMITS
    show_stories: bool = True


# ---------------------------------------------------------------------------
# Fetch Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of a call to the issue tracker.

    A failed call carries no items and an error description. Callers that
    only need data read ``items``; an empty list then means either nothing
    was found or the fetch failed.

    Attributes:
        items: Normalized records returned by the call
        error: Why the call failed, None on success
    """

    items: list[T] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: str) -> FetchResult[T]:
        return cls(items=[], error=error)
