"""
Command-line interface for the UniEats revenue audit tool.
"""

import argparse
import json
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from . import __version__
from .revenue.calculator import calculate_revenue, format_breakdown
from .revenue.dashboard import DashboardClient
from .revenue.reconciliation import DEFAULT_PREVIEW
from .revenue.repository import OrderRepository
from .revenue.service import RevenueAuditService
from .revenue.summary import TIME_RANGES, resolve_time_range
from .utils.config import Config
from .utils.logging import setup_logging

ENV_ALIASES = {
    "staging": "stg",
    "stg": "stg",
    "production": "prod",
    "prod": "prod",
}

DB_CONFIGS = {
    "stg": {
        "db_name_key": "DB_NAME_STG",
        "connection_url": "DB_CONNECTION_URL_STG",
    },
    "prod": {
        "db_name_key": "DB_NAME_PROD",
        "connection_url": "DB_CONNECTION_URL_PROD",
    },
}


def _add_env_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--env",
        type=str,
        choices=sorted(ENV_ALIASES),
        default="staging",
        help="Database environment (default: staging)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the raw report as JSON",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="unieats-revenue",
        description="UniEats Revenue Audit - order fee and commission reconciliation tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  unieats-revenue breakdown --subtotal 250
  unieats-revenue audit --env production
  unieats-revenue fix --env staging --dry-run
  unieats-revenue fix --order-id 3f0c9a2e --env production
  unieats-revenue validate --time-range "This Year"
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"UniEats Revenue Audit {__version__}",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-file",
        help="Log file path",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
    )

    audit_parser = subparsers.add_parser(
        "audit",
        help="Audit every order's stored fees against the revenue formula",
    )
    _add_env_argument(audit_parser)
    audit_parser.add_argument(
        "--preview",
        type=int,
        default=None,
        help=f"Number of issues to list (default: {DEFAULT_PREVIEW})",
    )

    fix_parser = subparsers.add_parser(
        "fix",
        help="Recompute and rewrite order financial fields",
    )
    _add_env_argument(fix_parser)
    scope = fix_parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--order-id",
        type=str,
        help="Fix a single order",
    )
    scope.add_argument(
        "--missing-only",
        action="store_true",
        help="Only fix orders that have no revenue fields yet",
    )
    fix_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing",
    )

    validate_parser = subparsers.add_parser(
        "validate",
        help="Cross-check dashboard revenue totals against raw orders",
    )
    _add_env_argument(validate_parser)
    validate_parser.add_argument(
        "--time-range",
        choices=TIME_RANGES,
        default="This Year",
        help="Dashboard time range (default: This Year)",
    )
    validate_parser.add_argument(
        "--dashboard-url",
        help="Dashboard base URL (default: APP_URL)",
    )

    summary_parser = subparsers.add_parser(
        "summary",
        help="Total the stored revenue fields for a period",
    )
    _add_env_argument(summary_parser)
    summary_parser.add_argument(
        "--time-range",
        choices=TIME_RANGES,
        default="All Time",
        help="Reporting period (default: All Time)",
    )

    breakdown_parser = subparsers.add_parser(
        "breakdown",
        help="Show the fee breakdown for a subtotal",
    )
    breakdown_parser.add_argument(
        "--subtotal",
        type=float,
        required=True,
        help="Order subtotal",
    )
    breakdown_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the breakdown as JSON",
    )

    return parser


def resolve_environment(environment: str) -> Tuple[str, Optional[str]]:
    """Map an environment alias to its connection URL env key and database name."""
    env_key = ENV_ALIASES.get(environment.lower(), "stg")
    db_config = DB_CONFIGS[env_key]
    db_name = os.getenv(db_config["db_name_key"]) or os.getenv("DB_NAME")
    return db_config["connection_url"], db_name


def build_service(environment: str, dashboard_url: Optional[str] = None) -> RevenueAuditService:
    """Create the audit service for an environment, loading settings from .env."""
    load_dotenv(".env")
    config = Config(".env")
    connection_url_env_key, db_name = resolve_environment(environment)
    repository = OrderRepository(db_name=db_name, connection_url_env_key=connection_url_env_key)
    dashboard = DashboardClient(
        base_url=dashboard_url or config.get("dashboard_url"),
        timeout=config.get("http_timeout"),
    )
    return RevenueAuditService(repository, dashboard=dashboard)


def _status_label(ok: bool) -> str:
    return "\033[1;32mPASSED\033[0m" if ok else "\033[1;31mFAILED\033[0m"


def print_header(lines: List[Tuple[str, Any]]) -> None:
    """Print label/value pairs inside a box."""
    label_width = max(len(lbl) for lbl, _ in lines)
    inner_width = max(len(f" {lbl.ljust(label_width)} : {val}") for lbl, val in lines)
    print("┌" + "─" * inner_width + "┐")
    for lbl, val in lines:
        line = f" {lbl.ljust(label_width)} : {val}"
        print(f"│{line.ljust(inner_width)}│")
    print("└" + "─" * inner_width + "┘")


def _print_json(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def run_audit(environment: str, preview: Optional[int] = None, as_json: bool = False) -> None:
    service = build_service(environment)
    report = service.audit_all_calculations()
    if preview is None:
        preview = Config(".env").get("issue_preview", DEFAULT_PREVIEW)
    result = report.to_dict(preview=preview)
    if as_json:
        _print_json(result)
        return

    print_header([
        ("Environment", environment.upper()),
        ("Orders Audited", result["totalOrders"]),
        ("Inconsistent Orders", result["inconsistentOrders"]),
        ("Issues Found", result["issuesFound"]),
    ])
    print(f"\nCALCULATION AUDIT: {_status_label(report.is_consistent)}")
    print("=" * 60)
    for key, count in result["summary"].items():
        print(f"   {key:<22}{count:>6}")

    if result["issues"]:
        print(f"\n   First {len(result['issues'])} issues:")
        header = f"{'Order':<24}{'Field':<24}{'Actual':>12}{'Expected':>12}{'Delta':>12}"
        print(f"   {header}")
        print(f"   {'-' * len(header)}")
        for issue in result["issues"]:
            delta = issue["difference"]
            print(
                f"   {issue['orderId']:<24}{issue['field']:<24}{_fmt(issue['actual']):>12}"
                f"{issue['expected']:>12.2f}{_fmt(delta):>12}"
            )
    for entry in result["invalidOrders"]:
        print(f"\n   ⚠️  Order {entry['orderId']}: {entry['error']}")


def run_fix(
    environment: str,
    order_id: Optional[str] = None,
    missing_only: bool = False,
    dry_run: bool = False,
    as_json: bool = False,
) -> None:
    service = build_service(environment)
    if order_id:
        report = service.fix_order(order_id, dry_run=dry_run)
    elif missing_only:
        report = service.fix_missing_revenue(dry_run=dry_run)
    else:
        report = service.fix_all_calculations(dry_run=dry_run)
    result = report.to_dict()
    if as_json:
        _print_json(result)
        return

    details = result["details"]
    print_header([
        ("Environment", environment.upper()),
        ("Mode", "DRY RUN" if dry_run else "WRITE"),
        ("Orders", details["totalOrders"]),
        ("Fixed", details["fixedCount"]),
        ("Errors", details["errorCount"]),
        ("Changed Orders", details["changedOrders"]),
    ])
    print(f"\n{result['message']}")
    if result["changes"]:
        print("\nCHANGES:")
        print("=" * 60)
        for change in result["changes"]:
            print(f"   {change['orderId']:<24}{change['field']:<24}{_fmt(change['before']):>12} -> {change['after']:.2f}")
    if result["failures"]:
        print("\nFAILURES:")
        print("=" * 60)
        for failure in result["failures"]:
            print(f"   ❌ {failure['orderId']}: {failure['error']}")


def run_validate(
    environment: str,
    time_range: str = "This Year",
    dashboard_url: Optional[str] = None,
    as_json: bool = False,
) -> None:
    service = build_service(environment, dashboard_url=dashboard_url)
    report = service.validate_api_consistency(time_range=time_range)
    result = report.to_dict()
    if as_json:
        _print_json(result)
        return

    print_header([
        ("Environment", environment.upper()),
        ("Time Range", time_range),
    ])
    print(f"\nAPI CONSISTENCY: {_status_label(result['allCalculationsCorrect'])}")
    print("=" * 60)
    header = f"{'Check':<22}{'Expected':>14}{'Dashboard':>14}{'Delta':>14}"
    print(f"   {header}")
    print(f"   {'-' * len(header)}")
    for name in ("revenueCalculation", "serviceFees", "commissions"):
        check = result[name]
        icon = "✅" if check["match"] else "❌"
        print(f"   {icon} {name:<20}{check['expected']:>14.2f}{check['actual']:>14.2f}{check['difference']:>14.2f}")


def run_summary(environment: str, time_range: str = "All Time", as_json: bool = False) -> None:
    service = build_service(environment)
    start, end = resolve_time_range(time_range)
    summary = service.revenue_summary(start=start, end=end).to_dict()
    if as_json:
        _print_json(summary)
        return

    print_header([
        ("Environment", environment.upper()),
        ("Time Range", time_range),
        ("Generated", datetime.now().strftime("%Y-%m-%d %H:%M")),
    ])
    print("\nREVENUE SUMMARY:")
    print("=" * 60)
    print(f"   {'Orders':<22}{summary['totalOrders']:>14}")
    for key in ("totalSubtotal", "totalServiceFees", "totalCommissions", "totalAdminRevenue", "totalOrderValue"):
        print(f"   {key:<22}{summary[key]:>14.2f}")


def run_breakdown(subtotal: float, as_json: bool = False) -> None:
    breakdown = calculate_revenue(subtotal)
    if as_json:
        _print_json(breakdown.to_dict())
        return
    print("Revenue Breakdown:")
    for label, text in format_breakdown(breakdown).items():
        print(f"  {label}: {text}")


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    log_level = "DEBUG" if parsed_args.verbose else Config(".env").get("log_level", "INFO")
    logger = setup_logging(level=log_level, log_file=parsed_args.log_file)

    try:
        if parsed_args.command == "audit":
            run_audit(parsed_args.env, preview=parsed_args.preview, as_json=parsed_args.json)
        elif parsed_args.command == "fix":
            run_fix(
                parsed_args.env,
                order_id=parsed_args.order_id,
                missing_only=parsed_args.missing_only,
                dry_run=parsed_args.dry_run,
                as_json=parsed_args.json,
            )
        elif parsed_args.command == "validate":
            run_validate(
                parsed_args.env,
                time_range=parsed_args.time_range,
                dashboard_url=parsed_args.dashboard_url,
                as_json=parsed_args.json,
            )
        elif parsed_args.command == "summary":
            run_summary(parsed_args.env, time_range=parsed_args.time_range, as_json=parsed_args.json)
        elif parsed_args.command == "breakdown":
            run_breakdown(parsed_args.subtotal, as_json=parsed_args.json)
        else:
            parser.print_help()
            return 1
    except Exception as e:
        logger.error(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
