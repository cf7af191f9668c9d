"""Orchestrator and CLI for the release commit report.

This module ties the pipeline together:
1. Search Jira for the tickets of a fixVersion (context/jira.py)
2. Group them by team and look up their commits (aggregator.py)
3. Render the report text (formatter.py)
4. Write it to stdout or a file (output.py)

Partial failures are logged and tolerated: a ticket whose lookup fails
still shows up in the report, just without commits. Only missing
configuration stops the run.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

import httpx

from release_report.aggregator import group_and_fetch
from release_report.config import ConfigError, JiraConfig, load_config
from release_report.context.jira import JiraClient, JiraClientProtocol
from release_report.formatter import format_report
from release_report.logging_config import get_logger, setup_logging
from release_report.output import write_output
from release_report.schemas import ReportOptions, ReportType, TeamReport

logger = get_logger(__name__)


class ReleaseReporter:
    """Builds the team report for a release.

    Stateless between calls; each build_report() starts from a fresh search.

    Usage:
        async with JiraClient(config) as client:
            reporter = ReleaseReporter(client)
            report = await reporter.build_report("1.4.0")
    """

    def __init__(
        self,
        client: JiraClientProtocol,
        max_concurrency: int | None = None,
    ) -> None:
        """Initialize the reporter with its dependencies.

        Args:
            client: Issue-tracker client for the search and commit lookups
            max_concurrency: Upper bound on commit lookups in flight
        """
        self.client = client
        self.max_concurrency = max_concurrency

    async def build_report(self, fix_version: str) -> TeamReport | None:
        """Fetch and aggregate everything tagged with ``fix_version``.

        Args:
            fix_version: The release identifier to search for

        Returns:
            The team report, or None when no tickets were found (or the
            search itself failed)
        """
        logger.info("report_started", fix_version=fix_version)
        result = await self.client.search_by_release_tag(fix_version)
        if not result.items:
            logger.info(
                "no_tickets_found",
                fix_version=fix_version,
                search_failed=not result.ok,
            )
            return None

        return await group_and_fetch(
            self.client, result.items, max_concurrency=self.max_concurrency
        )


async def run(
    fix_version: str,
    config: JiraConfig,
    options: ReportOptions,
    output_file: str | Path | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Run the whole pipeline for one release.

    Returns:
        Whether the report was written
    """
    async with JiraClient(config, transport=transport) as client:
        reporter = ReleaseReporter(client, max_concurrency=config.max_concurrency)
        report = await reporter.build_report(fix_version)

    return write_output(format_report(report, options), output_file)


# ---------------------------------------------------------------------------
# CLI Entry Point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-report",
        description="Report the commits linked to the Jira tickets of a release, by team",
    )
    parser.add_argument(
        "fix_version",
        nargs="?",
        help="The fixVersion to search for in Jira",
    )
    parser.add_argument(
        "--fix-version", "-f",
        dest="fix_version_flag",
        metavar="FIX_VERSION",
        help="The fixVersion to search for (overrides the positional argument)",
    )
    parser.add_argument(
        "--output-file", "-o",
        help="Write the report to this file instead of stdout (overwritten)",
    )
    parser.add_argument(
        "--report-type", "-r",
        choices=[t.value for t in ReportType],
        default=ReportType.COMMITS.value,
        help='Report type: "repositories" or "commits" (default: commits)',
    )
    parser.add_argument(
        "--show-stories", "-s",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Break repositories down by user story (default: on). "
        "--no-show-stories merges repositories per team.",
    )
    parser.add_argument(
        "--env-file",
        help="Path to a .env file with JIRA_URL, JIRA_USERNAME, JIRA_TOKEN",
    )
    parser.add_argument(
        "--config", "-c",
        dest="settings_path",
        help="YAML settings file (team field, timeout, concurrency)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Usage:
        release-report 1.4.0
        release-report -f 1.4.0 -o report.txt --report-type repositories

    Returns:
        Process exit code. Fetch failures are logged and still exit 0.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    fix_version = args.fix_version_flag or args.fix_version
    if not fix_version:
        parser.error("a fixVersion is required (positional or --fix-version)")

    setup_logging(log_level=args.log_level)

    try:
        config = load_config(env_file=args.env_file, settings_path=args.settings_path)
    except ConfigError as exc:
        logger.error("config_invalid", error=str(exc))
        return 1

    options = ReportOptions(
        report_type=ReportType(args.report_type),
        show_stories=args.show_stories,
    )
    asyncio.run(run(fix_version, config, options, output_file=args.output_file))
    return 0


if __name__ == "__main__":
    sys.exit(main())
