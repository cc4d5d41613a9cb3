"""
Retention CLI for the Ungdomsstöd dashboard.

This module provides command-line interface for previewing, exporting and
executing retention sweeps, for managing archive and soft-delete flags and
for querying the history ledger.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .retention_manager import RetentionManager, create_retention_manager
from .retention_models import ExportError, RetentionError, SweepResult
from .retention_sweep import summarize


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def print_plan(sweep: SweepResult, limit: Optional[int] = None):
    _, line = summarize(sweep.to_remove)
    print(f"Cutoff: {sweep.cutoff_timestamp} ({sweep.cutoff_days} days)")
    print(f"Impact: {line}")

    items = sweep.to_remove if limit is None else sweep.to_remove[:limit]
    for item in items:
        print(f"  {item.type.value:<14} {item.id:<24} client={item.client_id} flagged={item.deleted_at}")
    if limit is not None and len(sweep.to_remove) > limit:
        print(f"  ... and {len(sweep.to_remove) - limit} more")


def prompt_confirmation(sweep: SweepResult) -> bool:
    """Ask on the terminal before anything is removed permanently."""
    print_plan(sweep, limit=20)
    try:
        answer = input("\nThis permanently removes the records above. Type 'yes' to continue: ")
    except EOFError:
        return False
    return answer.strip().lower() == 'yes'


def run_preview(manager: RetentionManager, args) -> int:
    sweep = manager.preview(args.days)
    if sweep.is_empty:
        print(f"Nothing to remove (cutoff {sweep.cutoff_timestamp})")
        return 0
    print_plan(sweep)
    return 0


def run_export(manager: RetentionManager, args) -> int:
    sweep = manager.preview(args.days)
    paths = manager.export(sweep, actor=args.actor, export_dir=args.output)
    print(f"Exported {len(sweep.to_remove)} records:")
    for path in paths:
        print(f"  {path}")
    return 0


def run_cleanup(manager: RetentionManager, args) -> int:
    """Run retention sweep."""
    confirm = (lambda sweep: True) if args.yes else prompt_confirmation

    outcome = manager.run_cleanup(
        cutoff_days=args.days,
        actor=args.actor,
        confirm=confirm,
        export_before_cleanup=args.export,
    )

    if outcome.status == 'disabled':
        print("Data retention is disabled in the configuration")
        return 1
    if outcome.status == 'nothing_to_remove':
        print(f"Nothing to remove (cutoff {outcome.sweep.cutoff_timestamp})")
        return 0

    for path in outcome.export_paths:
        print(f"Exported: {path}")

    if outcome.status == 'aborted':
        print("Cleanup aborted, nothing was removed")
        return 1

    report = outcome.report
    status_icon = "✓" if report.status == 'success' else "✗"
    print(f"{status_icon} Sweep {report.operation_id}: {report.describe()}")
    for failure in report.failures:
        print(f"  Error: {failure.item_type} {failure.item_id}: {failure.error_message}")

    return 0 if report.status == 'success' else 1


def show_status(manager: RetentionManager, args) -> int:
    """Show retention system status."""
    status = manager.get_retention_status()
    clients = status['clients']

    print("Data Retention System Status")
    print("=" * 40)
    print(f"Enabled: {status['enabled']}")
    print(f"Storage: {status['storage_type']}")
    print(f"Retention window: {status['retention_days']} days")
    print(f"\nStaff: {clients['staff']}")
    print(f"Clients: {clients['clients']} ({clients['active']} active, "
          f"{clients['archived']} archived, {clients['deleted']} deleted)")
    print(f"History entries: {status['history_entries']}")

    print(f"\nConfiguration:")
    print(f"  Export before cleanup: {status['config']['export_before_cleanup']}")
    print(f"  Export directory: {status['config']['export_directory']}")
    print(f"  Export formats: {', '.join(status['config']['export_formats'])}")
    print(f"  Audit enabled: {status['config']['audit_enabled']}")
    return 0


def show_history(manager: RetentionManager, args) -> int:
    entries = manager.ledger.query_history(
        period_type=args.period_type,
        period_from=args.period_from,
        period_to=args.period_to,
        staff_id=args.staff,
        client_id=args.client,
        metric=args.metric,
        status=args.status,
    )

    print(f"History entries: {len(entries)}")
    for entry in entries:
        value = '' if entry.value is None else f" value={entry.value:g}"
        print(f"  {entry.period_id:<9} {entry.metric.value:<12} {entry.status.value:<9} "
              f"staff={entry.staff_id} client={entry.client_id}{value}")
    return 0


def run_flag_command(manager: RetentionManager, args) -> int:
    store = manager.store
    if args.command in CHILD_COMMANDS:
        operation = getattr(store, CHILD_COMMANDS[args.command])
        result = operation(args.client_id, args.kind, args.key, actor=args.actor)
    else:
        operation = getattr(store, CLIENT_COMMANDS[args.command])
        result = operation(args.client_id, actor=args.actor)

    if not result.success:
        print(f"✗ {args.command} {result.resource_id}: {result.message}")
        return 1

    if not store.autosave:
        store.save()
    print(f"✓ {args.command} {result.resource_id}" + (f" at {result.timestamp}" if result.timestamp else ""))
    return 0


CLIENT_COMMANDS = {
    'archive': 'archive_client',
    'unarchive': 'unarchive_client',
    'delete': 'soft_delete_client',
    'restore': 'restore_client',
}

CHILD_COMMANDS = {
    'delete-child': 'soft_delete_child',
    'restore-child': 'restore_child',
}

CHILD_KINDS = ('plan', 'weeklyDoc', 'monthlyReport', 'vismaWeek')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ungdomsstod-retention',
        description="Ungdomsstöd Data Retention Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what a 180 day sweep would remove
  ungdomsstod-retention preview --days 180

  # Export the removal plan without removing anything
  ungdomsstod-retention export --days 180 --output exports/

  # Export, confirm interactively and remove
  ungdomsstod-retention cleanup --days 180 --export

  # Archive a client and restore a soft-deleted weekly doc
  ungdomsstod-retention archive c1
  ungdomsstod-retention restore-child c1 weeklyDoc 2024-W03
        """
    )

    # Global arguments
    parser.add_argument('--config', default='configs/retention.yaml',
                        help='Path to retention configuration file')
    parser.add_argument('--db', default=None,
                        help='Path to SQLite database file (overrides the configuration)')
    parser.add_argument('--actor', default=None,
                        help='Actor recorded in the audit trail')
    parser.add_argument('--log-file', default='logs/retention/retention_cli.log',
                        help='Log file path')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    preview_parser = subparsers.add_parser('preview', help='Show records eligible for removal')
    preview_parser.add_argument('--days', help='Retention window in days (default: configured)')

    export_parser = subparsers.add_parser('export', help='Export records eligible for removal')
    export_parser.add_argument('--days', help='Retention window in days (default: configured)')
    export_parser.add_argument('--output', default=None, help='Export directory (default: configured)')

    cleanup_parser = subparsers.add_parser('cleanup', help='Permanently remove eligible records')
    cleanup_parser.add_argument('--days', help='Retention window in days (default: configured)')
    cleanup_parser.add_argument('--yes', action='store_true',
                                help='Skip the interactive confirmation')
    cleanup_parser.add_argument('--export', dest='export', action='store_true', default=None,
                                help='Export the removal plan first')
    cleanup_parser.add_argument('--no-export', dest='export', action='store_false',
                                help='Do not export the removal plan')

    subparsers.add_parser('status', help='Show retention system status')

    history_parser = subparsers.add_parser('history', help='Query the history ledger')
    history_parser.add_argument('--period-type', choices=['week', 'month'])
    history_parser.add_argument('--from', dest='period_from', help='First period id, inclusive')
    history_parser.add_argument('--to', dest='period_to', help='Last period id, inclusive')
    history_parser.add_argument('--staff')
    history_parser.add_argument('--client')
    history_parser.add_argument('--metric', choices=['weekDoc', 'monthReport', 'gfp'])
    history_parser.add_argument('--status', choices=['approved', 'pending', 'rejected'])

    for command in CLIENT_COMMANDS:
        client_parser = subparsers.add_parser(command, help=f'{command.capitalize()} a client')
        client_parser.add_argument('client_id')

    for command in CHILD_COMMANDS:
        child_parser = subparsers.add_parser(command, help=f'{command.capitalize()} a client record')
        child_parser.add_argument('client_id')
        child_parser.add_argument('kind', choices=CHILD_KINDS)
        child_parser.add_argument('key', help='Plan id, week id or month id')

    return parser


COMMANDS = {
    'preview': run_preview,
    'export': run_export,
    'cleanup': run_cleanup,
    'status': show_status,
    'history': show_history,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose, args.log_file)

    try:
        manager = create_retention_manager(args.config, args.db)
        handler = COMMANDS.get(args.command, run_flag_command)
        return handler(manager, args)

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except ExportError as e:
        print(f"Export failed, nothing was removed: {e}")
        return 1
    except (RetentionError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
