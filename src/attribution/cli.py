"""Operator command-line tool for the attribution database.

Seeds and retires campaigns (there is no campaign HTTP API) and prints the
same funnel reports the HTTP service serves.  Output formats: table
(default) or JSON.

Usage::

    attribution-cli create-campaign --name "Spring" --casino "Lucky" --config cfg.json
    attribution-cli report --campaign 3f2a... --period monthly --format json
    attribution-cli report --overview --from-date 2024-01-01 --to-date 2024-01-31
    attribution-cli realtime
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from attribution.config import get_settings
from attribution.domain.errors import AttributionError, ValidationError
from attribution.domain.models import TemplateConfig
from attribution.ingestion.postbacks import postback_url
from attribution.reporting.aggregator import overview_report, realtime_snapshot, report_for_campaign
from attribution.storage.sqlite import SQLiteRepository, open_database

COUNT_HEADERS = ["Cookie Sets", "Regs", "FTDs", "Amount", "Cookie->FTD %", "Reg->FTD %"]
COUNT_WIDTHS = [11, 6, 6, 12, 13, 10]


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one sub-command per operation.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(description="Manage campaigns and query attribution reports")
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to the SQLite database (default: DATABASE_PATH setting)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-campaign", help="Insert a campaign")
    create.add_argument("--name", required=True, help="Campaign name")
    create.add_argument("--casino", required=True, help="Casino brand")
    create.add_argument(
        "--config",
        required=True,
        help="JSON file holding the template config (cookieA, cookieB, regexes)",
    )
    create.add_argument("--postback-url", default=None, help="Casino-side postback URL")
    create.add_argument("--created-by", default="system", help="Operator name")

    deactivate = sub.add_parser("deactivate", help="Soft-delete a campaign")
    deactivate.add_argument("--campaign", required=True, help="Campaign ID")

    report = sub.add_parser("report", help="Funnel report for one campaign or all of them")
    target = report.add_mutually_exclusive_group(required=True)
    target.add_argument("--campaign", help="Campaign ID")
    target.add_argument("--overview", action="store_true", help="Every active campaign")
    report.add_argument("--period", choices=["daily", "monthly"], default="daily")
    report.add_argument("--from-date", type=str, help="Start date (YYYY-MM-DD)")
    report.add_argument("--to-date", type=str, help="End date (YYYY-MM-DD)")
    _add_format(report)

    realtime = sub.add_parser("realtime", help="Event counts over the trailing window")
    realtime.add_argument("--hours", type=int, default=None, help="Window length in hours")
    _add_format(realtime)

    return parser


def _add_format(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )


def format_table(headers: list[str], widths: list[int], rows: list[list[Any]]) -> str:
    """Lay out *rows* under *headers*, truncating cells to their column width."""
    if not rows:
        return "No results found."

    def truncate(value: Any, width: int) -> str:
        s = "" if value is None else str(value)
        if len(s) > width:
            return s[: width - 3] + "..."
        return s

    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True))
    lines = [header_line, "-" * len(header_line)]
    for row in rows:
        cells = [truncate(c, w) for c, w in zip(row, widths, strict=True)]
        lines.append("  ".join(c.ljust(w) for c, w in zip(cells, widths, strict=True)))
    return "\n".join(lines)


def format_json(data: Any) -> str:
    """Pretty-print *data*; Decimal amounts are written as strings."""
    return json.dumps(data, indent=2, default=str)


def _count_cells(entry: dict[str, Any]) -> list[Any]:
    rates = entry["conversionRates"]
    return [
        entry["cookieSets"],
        entry["registrations"],
        entry["ftds"],
        entry["totalAmount"],
        rates["cookieToFtd"],
        rates["regToFtd"],
    ]


def format_campaign_report(report: dict[str, Any]) -> str:
    rows = [[b["date"], *_count_cells(b)] for b in report["reportData"]]
    if rows:
        rows.append(["TOTAL", *_count_cells(report["totals"])])
    title = f"{report['campaign']['name']} ({report['campaign']['casino']}), {report['period']}"
    table = format_table(["Bucket", *COUNT_HEADERS], [10, *COUNT_WIDTHS], rows)
    return f"{title}\n{table}"


def format_overview(report: dict[str, Any]) -> str:
    rows = []
    for c in report["campaigns"]:
        entry = {**c["stats"], "conversionRates": c["conversionRates"]}
        rows.append([c["name"], c["casino"], *_count_cells(entry)])
    if rows:
        rows.append(["TOTAL", "", *_count_cells(report["grandTotals"])])
    return format_table(["Campaign", "Casino", *COUNT_HEADERS], [20, 15, *COUNT_WIDTHS], rows)


def format_realtime(snapshot: dict[str, Any]) -> str:
    stats = snapshot["stats"]
    rows = [[name, count] for name, count in stats.items()]
    return f"{snapshot['period']} as of {snapshot['timestamp']}\n" + format_table(
        ["Stat", "Count"], [15, 8], rows
    )


def _run(args: argparse.Namespace, repo: SQLiteRepository) -> str:
    settings = get_settings()

    if args.command == "create-campaign":
        raw = json.loads(Path(args.config).read_text(encoding="utf-8"))
        config = TemplateConfig.model_validate(raw)
        campaign = repo.create_campaign(
            args.name,
            args.casino,
            config,
            postback_url=args.postback_url,
            created_by=args.created_by,
        )
        base = settings.api_base_url.rstrip("/")
        return "\n".join(
            [
                f"Campaign created: {campaign.id}",
                f"Script URL:       {base}/api/scripts/{campaign.script_id}.js",
                f"Postback URL:     {postback_url(campaign, base)}",
            ]
        )

    if args.command == "deactivate":
        if repo.deactivate_campaign(args.campaign):
            return f"Campaign deactivated: {args.campaign}"
        return f"No active campaign with ID {args.campaign}"

    if args.command == "report":
        if args.overview:
            data = overview_report(
                repo, args.period, args.from_date, args.to_date,
                default_days=settings.report_default_days,
            )
            formatter = format_overview
        else:
            data = report_for_campaign(
                repo, args.campaign, args.period, args.from_date, args.to_date,
                default_days=settings.report_default_days,
            )
            formatter = format_campaign_report
        return format_json(data) if args.output_format == "json" else formatter(data)

    # realtime
    hours = args.hours or settings.realtime_window_hours
    snapshot = realtime_snapshot(repo, window_hours=hours)
    return format_json(snapshot) if args.output_format == "json" else format_realtime(snapshot)


def configure_cli_logging() -> None:
    """Send warnings and errors to stderr so stdout carries only the command output."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, run the sub-command, and print its output."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_cli_logging()

    db_path = Path(args.db) if args.db else get_settings().database_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    repo = SQLiteRepository(open_database(db_path))

    try:
        print(_run(args, repo))
    except ValidationError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        for detail in exc.details:
            print(f"  - {detail.field}: {detail.message}", file=sys.stderr)
        sys.exit(1)
    except (AttributionError, PydanticValidationError, OSError, json.JSONDecodeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        repo.close()


if __name__ == "__main__":
    main()
