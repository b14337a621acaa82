"""
BudgetPace - Command Line Interface.

Budget accounting and pacing tool for advertising agencies. Manages
campaign budget configurations in a JSON data file and reports pacing
against campaign data supplied as JSON.

Usage:
    budgetpace budget set-recurring <campaign> --start-month 2025-12 --end-month 2026-02 --amount 300000
    budgetpace budget set-fixed <campaign> --start 2025-12-01 --end 2025-12-31 --amount 300000
    budgetpace budget extend <campaign> --new-end 2026-01-05
    budgetpace allocate <campaign> --start 2025-12-01 --end 2025-12-31
    budgetpace report --agency <agency> --client <client> --campaigns campaigns.json
    budgetpace alerts check --campaigns campaigns.json
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import List, Optional

from budgetpace import __version__
from budgetpace.allocator import BudgetAllocator
from budgetpace.cache import CampaignCache
from budgetpace.config import Settings
from budgetpace.dashboard import DashboardService
from budgetpace.date_logic import DateManager
from budgetpace.errors import BudgetPaceError
from budgetpace.excel_generator import ExcelReporter
from budgetpace.monitor import AlertMonitor
from budgetpace.schema import (
    AdPlatform,
    BudgetType,
    CampaignBudgetConfig,
    CampaignPacingRow,
    Client,
    DashboardSnapshot,
    PacingStatus,
    PutStatus,
)
from budgetpace.scheduler import Scheduler, seconds_until_midnight
from budgetpace.serialiser import DocumentSerialiser
from budgetpace.store import (
    AlertSettingsStore,
    AlertStore,
    BudgetConfigStore,
    ClientDirectory,
    CommissionStore,
    JsonFileDocumentStore,
)
from budgetpace.sync import CampaignSyncService, StaticCampaignSource
from budgetpace.validator import RequestValidator

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Stores and services wired against one data file."""

    settings: Settings
    budgets: BudgetConfigStore
    commissions: CommissionStore
    alert_settings: AlertSettingsStore
    alerts: AlertStore
    directory: ClientDirectory
    sync: Optional[CampaignSyncService] = None

    @classmethod
    def build(cls, settings: Settings, campaigns_path: Optional[Path] = None) -> "AppContext":
        documents = JsonFileDocumentStore(settings.data_path)
        sync = None
        if campaigns_path is not None:
            sync = CampaignSyncService(
                StaticCampaignSource(campaigns_path),
                CampaignCache(settings.cache_ttl_seconds),
                settings,
            )
        return cls(
            settings=settings,
            budgets=BudgetConfigStore(documents),
            commissions=CommissionStore(documents),
            alert_settings=AlertSettingsStore(documents),
            alerts=AlertStore(documents),
            directory=ClientDirectory(documents),
            sync=sync,
        )

    def dashboard(self) -> DashboardService:
        return DashboardService(self.budgets, self.commissions, self.directory, self.require_sync())

    def monitor(self) -> AlertMonitor:
        return AlertMonitor(
            self.directory,
            self.dashboard(),
            self.commissions,
            self.alert_settings,
            self.alerts,
            self.require_sync(),
        )

    def require_sync(self) -> CampaignSyncService:
        if self.sync is None:
            raise BudgetPaceError("This command needs campaign data (--campaigns FILE)")
        return self.sync


def print_header() -> None:
    """Prints the application header."""
    print("=" * 60)
    print("  BudgetPace - Budget Accounting & Pacing")
    print(f"  Version: {__version__}")
    print("=" * 60)
    print()


def print_config(config: Optional[CampaignBudgetConfig]) -> None:
    """Prints a campaign budget configuration and its history."""
    if config is None:
        print("  No budget configured")
        return

    print(f"  Campaign:  {config.campaign_id}")
    print(f"  Type:      {config.type.value}")
    print()
    print("  PERIODS")
    print("  " + "-" * 40)
    for period in config.periods:
        print(f"  {period.start_date} ~ {period.end_date}   {period.amount:,.2f}")
    if config.history:
        print()
        print("  HISTORY")
        print("  " + "-" * 40)
        for entry in config.history:
            actor = f" by {entry.actor}" if entry.actor else ""
            print(
                f"  {entry.timestamp:%Y-%m-%d %H:%M} {entry.type.value:<9} "
                f"{entry.amount:,.2f}  {entry.period_description}{actor}"
            )
    print()


def print_summary(snapshot: DashboardSnapshot) -> None:
    """
    Prints the KPI grid and status counts of a snapshot.

    Args:
        snapshot: Dashboard snapshot.
    """
    print("\n" + "=" * 60)
    print(f"  PACING {snapshot.window_start} ~ {snapshot.window_end}")
    print("=" * 60)
    print()

    print("  KPI OVERVIEW")
    print("  " + "-" * 40)
    print(f"  Total Spend:       {snapshot.total_spend:,.2f}")
    print(f"  Total Budget:      {snapshot.total_budget:,.2f}")
    print(f"  Budget Usage:      {snapshot.usage_percentage:.1f}% ({snapshot.usage_trend})")
    print()

    print("  PACING STATUS")
    print("  " + "-" * 40)
    markers = {
        PacingStatus.ON_TRACK: "✓ ",
        PacingStatus.ATTENTION: "⚡",
        PacingStatus.CRITICAL: "⚠️ ",
        PacingStatus.DISABLED: "- ",
    }
    for status in PacingStatus:
        count = snapshot.count_by_status(status)
        if count > 0:
            print(f"  {markers[status]} {status.label:<26} {count} campaigns")

    print(f"\n  Total Campaigns:   {len(snapshot.rows)}")
    print()


def print_critical_campaigns(rows: List[CampaignPacingRow]) -> None:
    """Prints the campaigns that need immediate action."""
    critical = [row for row in rows if row.pacing.status == PacingStatus.CRITICAL]

    if critical:
        print("  ⚠️  CRITICAL - IMMEDIATE ACTION REQUIRED")
        print("  " + "-" * 40)
        for row in critical:
            pacing = row.pacing
            print(f"  • {row.campaign.name}")
            print(
                f"    Spend: {pacing.gross_spend:,.2f} of {pacing.allocated_budget:,.2f} "
                f"({pacing.spend_percentage:.1f}%)"
            )
            print(
                f"    Live daily: {row.campaign.live_daily_budget:,.2f} | "
                f"Recommended: {pacing.recommended_daily:,.2f}"
            )
            print()


async def cmd_budget_show(ctx: AppContext, args: argparse.Namespace) -> int:
    print_config(await ctx.budgets.get(args.campaign))
    return 0


async def cmd_budget_set_recurring(ctx: AppContext, args: argparse.Namespace) -> int:
    result = await ctx.budgets.save_recurring(
        args.campaign, args.start_month, args.end_month, args.amount, args.user
    )
    return report_save(result.status, result.warning, result.config)


async def cmd_budget_set_fixed(ctx: AppContext, args: argparse.Namespace) -> int:
    result = await ctx.budgets.save_fixed(
        args.campaign, args.start, args.end, args.amount, args.user
    )
    return report_save(result.status, result.warning, result.config)


async def cmd_budget_extend(ctx: AppContext, args: argparse.Namespace) -> int:
    config = await ctx.budgets.get(args.campaign)
    if config is not None and config.has_periods and config.type == BudgetType.FIXED:
        quote = BudgetAllocator(DateManager()).quote_extension(config.periods[-1], args.new_end)
        print(f"  Current daily:     {quote.current_daily:,.2f}")
        print(f"  Added days:        {quote.added_days}")
        print(f"  Suggested top-up:  {quote.suggested_amount:,.0f}")
    result = await ctx.budgets.extend(args.campaign, args.new_end, args.add_amount, args.user)
    return report_save(result.status, result.warning, result.config)


async def cmd_budget_remove(ctx: AppContext, args: argparse.Namespace) -> int:
    existed = await ctx.budgets.remove(args.campaign)
    print(f"  ✓ Campaign {args.campaign} removed" + ("" if existed else " (no budget was set)"))
    return 0


def report_save(status: PutStatus, warning: Optional[str], config: CampaignBudgetConfig) -> int:
    if status == PutStatus.NOT_FOUND:
        print(f"  ❌ ERROR: Campaign {config.campaign_id} has been removed")
        return 1
    if warning:
        print(f"  ⚡ WARNING: {warning}")
    print(f"  ✓ Saved {config.type.value} budget for {config.campaign_id}")
    print()
    print_config(config)
    return 0


async def cmd_commission_set(ctx: AppContext, args: argparse.Namespace) -> int:
    commission = RequestValidator().validate_commission(args.type, args.value)
    await ctx.commissions.put(args.client, commission)
    print(f"  ✓ Commission for {args.client}: {commission.type.value} {commission.value}")
    return 0


async def cmd_commission_show(ctx: AppContext, args: argparse.Namespace) -> int:
    commission = await ctx.commissions.get(args.client)
    if commission is None:
        print(f"  No commission configured for {args.client}")
    else:
        print(f"  {args.client}: {commission.type.value} {commission.value}")
    return 0


async def cmd_client_add(ctx: AppContext, args: argparse.Namespace) -> int:
    client = Client(
        id=args.client,
        agency_id=args.agency,
        name=args.name or args.client,
        platform=AdPlatform(args.platform),
    )
    await ctx.directory.add_client(client)
    print(f"  ✓ Client {client.id} added to agency {client.agency_id}")
    return 0


async def cmd_client_list(ctx: AppContext, args: argparse.Namespace) -> int:
    agencies = [args.agency] if args.agency else await ctx.directory.list_agencies()
    for agency_id in agencies:
        print(f"  {agency_id}")
        for client in await ctx.directory.list_clients(agency_id):
            print(f"    • {client.id}  {client.name} ({client.platform.value})")
    return 0


async def cmd_allocate(ctx: AppContext, args: argparse.Namespace) -> int:
    config = await ctx.budgets.get(args.campaign)
    result = BudgetAllocator(DateManager()).allocate(config, args.start, args.end)
    print(f"  Allocated budget:  {result.amount:,.2f}")
    for period in result.contributing_periods:
        print(f"    {period.start_date} ~ {period.end_date}   {period.amount:,.2f}")
    return 0


async def build_snapshot(ctx: AppContext, args: argparse.Namespace) -> DashboardSnapshot:
    start, end = DateManager().month_window(args.today)
    return await ctx.dashboard().build_snapshot(
        args.agency,
        args.client,
        args.start or start,
        args.end or end,
        args.today,
    )


async def cmd_pacing(ctx: AppContext, args: argparse.Namespace) -> int:
    snapshot = await build_snapshot(ctx, args)
    print_summary(snapshot)
    print_critical_campaigns(snapshot.rows)
    return 0


async def cmd_report(ctx: AppContext, args: argparse.Namespace) -> int:
    snapshot = await build_snapshot(ctx, args)
    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    serialiser = DocumentSerialiser()
    json_path = output_dir / serialiser.generate_filename("pacing_snapshot")
    serialiser.save_snapshot(snapshot, json_path)
    print(f"  ✓ Snapshot saved: {json_path}")

    reporter = ExcelReporter()
    excel_path = output_dir / reporter.generate_filename("pacing_report")
    reporter.generate_report(snapshot, excel_path)
    print(f"  ✓ Excel report saved: {excel_path}")

    print_summary(snapshot)
    print_critical_campaigns(snapshot.rows)
    return 0


async def cmd_alerts_check(ctx: AppContext, args: argparse.Namespace) -> int:
    report = await ctx.monitor().run_check(args.today)
    for alert in report.alerts:
        print(f"  [{alert.severity.value.upper():<6}] {alert.campaign_name}: {alert.message}")
    for client_id, error in report.failed.items():
        print(f"  ❌ {client_id}: {error}")
    print(f"\n  {len(report.alerts)} alert(s) across {report.clients_checked} client(s)")
    return 0


async def cmd_alerts_list(ctx: AppContext, args: argparse.Namespace) -> int:
    alerts = await ctx.alerts.list(args.agency, unread_only=args.unread)
    if not alerts:
        print("  No alerts")
    for alert in alerts:
        marker = " " if alert.is_read else "*"
        print(
            f"  {marker} {alert.id}  [{alert.severity.value.upper():<6}] "
            f"{alert.campaign_name}: {alert.message}"
        )
    return 0


async def cmd_alerts_read(ctx: AppContext, args: argparse.Namespace) -> int:
    if not await ctx.alerts.mark_read(args.alert_id):
        print(f"  ❌ ERROR: Alert not found: {args.alert_id}")
        return 1
    print(f"  ✓ Alert {args.alert_id} marked as read")
    return 0


async def cmd_alerts_delete(ctx: AppContext, args: argparse.Namespace) -> int:
    if not await ctx.alerts.delete(args.alert_id):
        print(f"  ❌ ERROR: Alert not found: {args.alert_id}")
        return 1
    print(f"  ✓ Alert {args.alert_id} deleted")
    return 0


async def cmd_serve(ctx: AppContext, args: argparse.Namespace) -> int:
    """Runs the sync and alert jobs until interrupted."""
    settings = ctx.settings
    sync = ctx.require_sync()
    monitor = ctx.monitor()
    date_manager = DateManager()

    async def sync_job() -> None:
        start, end = date_manager.month_window(date.today())
        account_ids = [
            client.id
            for agency_id in await ctx.directory.list_agencies()
            for client in await ctx.directory.list_clients(agency_id)
        ]
        await sync.sync_all(account_ids, start, end)

    scheduler = Scheduler()
    scheduler.add("campaign-sync", sync_job, settings.sync_interval_seconds)
    scheduler.add(
        "alert-check",
        monitor.run_check,
        settings.alert_interval_seconds,
        first_delay=seconds_until_midnight(),
    )
    scheduler.start()
    print("  Scheduler running (Ctrl+C to stop)")
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="budgetpace",
        description="BudgetPace - Budget accounting and pacing for ad agencies"
    )
    parser.add_argument("--data", help="JSON data file (default: $BUDGETPACE_DATA_PATH)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    budget = commands.add_parser("budget", help="Campaign budget configuration")
    budget_commands = budget.add_subparsers(dest="budget_command", required=True)

    show = budget_commands.add_parser("show", help="Show a campaign's budget")
    show.add_argument("campaign")
    show.set_defaults(handler=cmd_budget_show)

    recurring = budget_commands.add_parser("set-recurring", help="Set a monthly budget")
    recurring.add_argument("campaign")
    recurring.add_argument("--start-month", required=True, help="First month (YYYY-MM)")
    recurring.add_argument("--end-month", required=True, help="Last month (YYYY-MM)")
    recurring.add_argument("--amount", required=True, help="Monthly amount (gross)")
    recurring.add_argument("--user", help="Who made the change")
    recurring.set_defaults(handler=cmd_budget_set_recurring)

    fixed = budget_commands.add_parser("set-fixed", help="Set a fixed-period budget")
    fixed.add_argument("campaign")
    fixed.add_argument("--start", required=True, help="Start date (YYYY-MM-DD)")
    fixed.add_argument("--end", required=True, help="End date (YYYY-MM-DD)")
    fixed.add_argument("--amount", required=True, help="Total amount (gross)")
    fixed.add_argument("--user", help="Who made the change")
    fixed.set_defaults(handler=cmd_budget_set_fixed)

    extend = budget_commands.add_parser("extend", help="Extend a fixed budget")
    extend.add_argument("campaign")
    extend.add_argument("--new-end", required=True, help="New end date (YYYY-MM-DD)")
    extend.add_argument("--add-amount", help="Top-up (default: keep the daily budget)")
    extend.add_argument("--user", help="Who made the change")
    extend.set_defaults(handler=cmd_budget_extend)

    remove = budget_commands.add_parser("remove", help="Remove a campaign")
    remove.add_argument("campaign")
    remove.set_defaults(handler=cmd_budget_remove)

    commission = commands.add_parser("commission", help="Client commission")
    commission_commands = commission.add_subparsers(dest="commission_command", required=True)
    commission_set = commission_commands.add_parser("set", help="Set a client's commission")
    commission_set.add_argument("client")
    commission_set.add_argument("--type", required=True, choices=["fixed", "percentage"])
    commission_set.add_argument("--value", required=True)
    commission_set.set_defaults(handler=cmd_commission_set)
    commission_show = commission_commands.add_parser("show", help="Show a client's commission")
    commission_show.add_argument("client")
    commission_show.set_defaults(handler=cmd_commission_show)

    client = commands.add_parser("client", help="Agency clients")
    client_commands = client.add_subparsers(dest="client_command", required=True)
    client_add = client_commands.add_parser("add", help="Register a client")
    client_add.add_argument("client")
    client_add.add_argument("--agency", required=True)
    client_add.add_argument("--name")
    client_add.add_argument("--platform", choices=["google", "meta"], default="meta")
    client_add.set_defaults(handler=cmd_client_add)
    client_list = client_commands.add_parser("list", help="List clients")
    client_list.add_argument("--agency")
    client_list.set_defaults(handler=cmd_client_list)

    allocate = commands.add_parser("allocate", help="Budget allocated to a window")
    allocate.add_argument("campaign")
    allocate.add_argument("--start", required=True)
    allocate.add_argument("--end", required=True)
    allocate.set_defaults(handler=cmd_allocate)

    for name, handler, help_text in (
        ("pacing", cmd_pacing, "Print pacing for a client"),
        ("report", cmd_report, "Write Excel and JSON pacing reports"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("--agency", required=True)
        sub.add_argument("--client", required=True)
        sub.add_argument("--campaigns", type=Path, required=True, help="Campaign data JSON")
        sub.add_argument("--start", help="Window start (default: first of month)")
        sub.add_argument("--end", help="Window end (default: last of month)")
        sub.add_argument("--today", help="Reference date (default: today)")
        sub.set_defaults(handler=handler)
    commands.choices["report"].add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Output directory for reports (default: output/)"
    )

    alerts = commands.add_parser("alerts", help="Pacing alerts")
    alert_commands = alerts.add_subparsers(dest="alerts_command", required=True)
    check = alert_commands.add_parser("check", help="Run the alert check")
    check.add_argument("--campaigns", type=Path, required=True, help="Campaign data JSON")
    check.add_argument("--today", help="Reference date (default: today)")
    check.set_defaults(handler=cmd_alerts_check)
    alert_list = alert_commands.add_parser("list", help="List alerts")
    alert_list.add_argument("--agency")
    alert_list.add_argument("--unread", action="store_true")
    alert_list.set_defaults(handler=cmd_alerts_list)
    read = alert_commands.add_parser("read", help="Mark an alert as read")
    read.add_argument("alert_id")
    read.set_defaults(handler=cmd_alerts_read)
    delete = alert_commands.add_parser("delete", help="Delete an alert")
    delete.add_argument("alert_id")
    delete.set_defaults(handler=cmd_alerts_delete)

    serve = commands.add_parser("serve", help="Run the sync and alert jobs")
    serve.add_argument("--campaigns", type=Path, required=True, help="Campaign data JSON")
    serve.set_defaults(handler=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
    except BudgetPaceError as e:
        print(f"\n  ❌ CONFIGURATION ERROR: {e}")
        return 1
    if args.data:
        settings.data_path = args.data
    settings.configure_logging()

    print_header()
    ctx = AppContext.build(settings, getattr(args, "campaigns", None))

    try:
        return asyncio.run(args.handler(ctx, args))
    except BudgetPaceError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"\n  ❌ ERROR: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n  Stopped")
        return 0


if __name__ == "__main__":
    sys.exit(main())
