"""Tests for grouping tickets and fanning out commit lookups.

The aggregator is exercised against MockJiraClient. Per-ticket delays make
lookups finish in a different order than they started, which proves that
results are matched back to tickets by position.

Run with: pytest tests/test_aggregator.py -v
"""

from __future__ import annotations

import asyncio

import pytest

from release_report.aggregator import build_ticket_report, group_and_fetch, group_tickets
from release_report.context.jira import MockJiraClient
from release_report.schemas import (
    Commit,
    FetchResult,
    RepositoryCommits,
    Ticket,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tickets() -> list[Ticket]:
    return [
        Ticket(key="PAY-1", summary="Refunds", team="Payments"),
        Ticket(key="WEB-1", summary="Header", team="Web"),
        Ticket(key="OPS-1", summary="Alerting"),
        Ticket(key="PAY-2", summary="Partial refunds", team="Payments"),
        Ticket(key="WEB-2", summary="Footer", team="Web"),
    ]


def repo(name: str, *commit_ids: str) -> RepositoryCommits:
    return RepositoryCommits(
        name=name,
        commits=[Commit(id=cid, message=f"commit {cid}") for cid in commit_ids],
    )


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


class TestGroupTickets:
    """Tests for group_tickets()."""

    def test_groups_in_first_seen_order(self, tickets: list[Ticket]) -> None:
        groups = group_tickets(tickets)
        assert list(groups) == ["Payments", "Web", "Unknown Team"]

    def test_relative_order_within_group(self, tickets: list[Ticket]) -> None:
        groups = group_tickets(tickets)
        assert [t.key for t in groups["Payments"]] == ["PAY-1", "PAY-2"]
        assert [t.key for t in groups["Web"]] == ["WEB-1", "WEB-2"]

    def test_every_ticket_in_exactly_one_group(self, tickets: list[Ticket]) -> None:
        groups = group_tickets(tickets)
        keys = [t.key for group in groups.values() for t in group]
        assert sorted(keys) == sorted(t.key for t in tickets)

    def test_missing_team_goes_to_unknown(self, tickets: list[Ticket]) -> None:
        groups = group_tickets(tickets)
        assert [t.key for t in groups["Unknown Team"]] == ["OPS-1"]

    def test_empty_input(self) -> None:
        assert group_tickets([]) == {}


class TestBuildTicketReport:
    """Tests for build_ticket_report()."""

    def test_merges_ticket_fields(self) -> None:
        ticket = Ticket(key="PAY-1", summary="Refunds", team="Payments")
        report = build_ticket_report(ticket, [repo("payments-api", "a1")])
        assert report.key == "PAY-1"
        assert report.summary == "Refunds"
        assert [r.name for r in report.repositories] == ["payments-api"]

    def test_no_repositories_yields_placeholder(self) -> None:
        ticket = Ticket(key="PAY-1", summary="Refunds")
        report = build_ticket_report(ticket, [])
        assert len(report.repositories) == 1
        assert report.repositories[0].placeholder


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


class TestGroupAndFetch:
    """Tests for group_and_fetch()."""

    @pytest.mark.asyncio
    async def test_builds_team_report(self, tickets: list[Ticket]) -> None:
        client = MockJiraClient(
            commits={
                "PAY-1": [repo("payments-api", "a1")],
                "PAY-2": [repo("payments-api", "b2"), repo("ledger", "c3")],
                "WEB-1": [repo("web", "d4")],
            }
        )

        report = await group_and_fetch(client, tickets)

        assert list(report) == ["Payments", "Web", "Unknown Team"]
        assert [t.key for t in report["Payments"]] == ["PAY-1", "PAY-2"]
        assert [r.name for r in report["Payments"][1].repositories] == [
            "payments-api",
            "ledger",
        ]
        assert sorted(client.requested_keys) == sorted(t.key for t in tickets)

    @pytest.mark.asyncio
    async def test_results_follow_ticket_order_not_completion_order(self) -> None:
        tickets = [Ticket(key=f"T-{i}", summary=str(i), team="Core") for i in range(5)]
        client = MockJiraClient(
            commits={t.key: [repo(f"repo-{t.key}", t.key)] for t in tickets},
            # Earlier tickets answer last.
            delays={t.key: 0.05 * (5 - i) for i, t in enumerate(tickets)},
        )

        report = await group_and_fetch(client, tickets)

        reports = report["Core"]
        assert [t.key for t in reports] == [t.key for t in tickets]
        for ticket_report in reports:
            assert ticket_report.repositories[0].name == f"repo-{ticket_report.key}"

    @pytest.mark.asyncio
    async def test_failed_lookup_only_affects_its_ticket(self) -> None:
        tickets = [
            Ticket(key="PAY-1", summary="Refunds", team="Payments"),
            Ticket(key="PAY-2", summary="Partial refunds", team="Payments"),
        ]
        client = MockJiraClient(
            commits={"PAY-2": [repo("payments-api", "a1")]},
            failing_keys={"PAY-1"},
        )

        report = await group_and_fetch(client, tickets)

        failed, succeeded = report["Payments"]
        assert failed.repositories[0].placeholder
        assert not failed.has_commits
        assert succeeded.repositories[0].name == "payments-api"

    @pytest.mark.asyncio
    async def test_every_ticket_has_a_repository_entry(self, tickets: list[Ticket]) -> None:
        report = await group_and_fetch(MockJiraClient(), tickets)
        for ticket_reports in report.values():
            for ticket_report in ticket_reports:
                assert ticket_report.repositories

    @pytest.mark.asyncio
    async def test_client_exception_is_contained(self) -> None:
        class CrashingClient(MockJiraClient):
            async def fetch_commits_for_issue(self, issue_key: str) -> FetchResult:
                if issue_key == "BAD-1":
                    raise RuntimeError("unexpected")
                return await super().fetch_commits_for_issue(issue_key)

        tickets = [
            Ticket(key="BAD-1", summary="Crashes", team="Core"),
            Ticket(key="OK-1", summary="Fine", team="Core"),
        ]
        client = CrashingClient(commits={"OK-1": [repo("core", "a1")]})

        report = await group_and_fetch(client, tickets)

        assert report["Core"][0].repositories[0].placeholder
        assert report["Core"][1].repositories[0].name == "core"

    @pytest.mark.asyncio
    async def test_max_concurrency_bounds_in_flight_lookups(self) -> None:
        in_flight = 0
        peak = 0

        class CountingClient(MockJiraClient):
            async def fetch_commits_for_issue(self, issue_key: str) -> FetchResult:
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return FetchResult(items=[])

        tickets = [Ticket(key=f"T-{i}", summary="", team="Core") for i in range(10)]

        report = await group_and_fetch(CountingClient(), tickets, max_concurrency=3)

        assert peak <= 3
        assert len(report["Core"]) == 10

    @pytest.mark.asyncio
    async def test_unbounded_runs_all_lookups_together(self) -> None:
        in_flight = 0
        peak = 0

        class CountingClient(MockJiraClient):
            async def fetch_commits_for_issue(self, issue_key: str) -> FetchResult:
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return FetchResult(items=[])

        tickets = [
            Ticket(key=f"T-{i}", summary="", team="A" if i % 2 else "B") for i in range(6)
        ]

        await group_and_fetch(CountingClient(), tickets)

        assert peak == 6

    @pytest.mark.asyncio
    async def test_empty_tickets(self) -> None:
        assert await group_and_fetch(MockJiraClient(), []) == {}
