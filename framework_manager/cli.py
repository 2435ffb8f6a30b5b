"""
Steering Frameworks - command line interface.

Usage:
    frameworks list                       # Show the catalog
    frameworks search QUERY               # Search the catalog
    frameworks install ID [ID...]         # Install frameworks
    frameworks update ID                  # Update one framework
    frameworks update-all                 # Update every outdated framework
    frameworks remove ID                  # Remove a framework
    frameworks check                      # List available updates

Exit codes: 0 success, 1 framework error, 2 file-system error,
3 cancelled by the user, 130 interrupted.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from .config import Config, load_config, validate_config
from .decisions import (
    CONFLICT_OVERWRITE,
    UPDATE_PROCEED,
    DecisionProvider,
    PolicyDecisionProvider,
    decision_provider_from_policy,
)
from .errors import FrameworkError, NotFoundError, UserCancelledError
from .lifecycle import FrameworkManager
from .logging_config import setup_logging
from .models import InstallOptions

EXIT_OK = 0
EXIT_FRAMEWORK_ERROR = 1
EXIT_IO_ERROR = 2
EXIT_CANCELLED = 3
EXIT_INTERRUPTED = 130


def _emit_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _header(title: str) -> None:
    print("=" * 80, file=sys.stderr)
    print(title, file=sys.stderr)
    print("=" * 80, file=sys.stderr)


def cmd_list(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Show catalog frameworks, optionally filtered by category."""
    if args.category:
        frameworks = manager.get_by_category(args.category)
    else:
        frameworks = manager.list_available()
    installed = {r.id: r for r in manager.get_installed()}

    if args.json:
        _emit_json([
            dict(f.to_dict(), installed=f.id in installed) for f in frameworks
        ])
        return EXIT_OK

    if not frameworks:
        print("No frameworks found")
        return EXIT_OK

    for framework in frameworks:
        marker = "✓" if framework.id in installed else " "
        print(
            f"{marker} {framework.id:<28} {framework.version:<10} "
            f"[{framework.category_label}] {framework.name}"
        )
    return EXIT_OK


def cmd_search(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Search the catalog by name, description or category."""
    frameworks = manager.search(args.query)

    if args.json:
        _emit_json([f.to_dict() for f in frameworks])
        return EXIT_OK

    if not frameworks:
        print(f"No frameworks match '{args.query}'")
        return EXIT_OK

    for framework in frameworks:
        print(f"{framework.id:<28} {framework.name} - {framework.description}")
    return EXIT_OK


def cmd_installed(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Show installed-state records."""
    records = manager.get_installed()

    if args.json:
        _emit_json([r.to_dict() for r in records])
        return EXIT_OK

    if not records:
        print("No frameworks installed")
        return EXIT_OK

    for record in records:
        flag = " (customized)" if record.customized else ""
        known = "" if manager.get_framework(record.id) else " (not in catalog)"
        print(f"{record.id:<28} {record.version:<10} installed {record.installed_at}{flag}{known}")
    return EXIT_OK


def cmd_install(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Install one or more frameworks."""
    options = InstallOptions(overwrite=args.overwrite, merge=args.merge, backup=args.backup)

    if len(args.ids) == 1:
        result = manager.install(args.ids[0], options)
        if args.json:
            _emit_json(result.to_dict())
        elif result.installed:
            print(f"Installed {result.framework_id} v{result.version} → {result.target_path}")
            if result.backup_path:
                print(f"  Backup: {result.backup_path}")
        else:
            print(f"Kept existing {result.target_path}")
        return EXIT_OK

    bulk = manager.install_many(args.ids, options)
    if args.json:
        _emit_json(bulk.to_dict())
    else:
        for result in bulk.successes:
            print(f"✅ {result.framework_id} v{result.version}")
        for framework_id in bulk.skipped:
            print(f"⏭️  {framework_id} skipped")
        for failure in bulk.failures:
            print(f"❌ {failure.framework_id}: {failure.message}")
    return EXIT_OK if bulk.success else EXIT_FRAMEWORK_ERROR


def cmd_update(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Update one installed framework to the catalog version."""
    result = manager.update(args.id)

    if args.json:
        _emit_json(result.to_dict())
        return EXIT_OK

    print(f"Updated {result.framework_id}: {result.previous_version} → {result.new_version}")
    if result.backup_path:
        print(f"  Backup: {result.backup_path}")
    return EXIT_OK


def cmd_update_all(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Update every framework that has a newer catalog version."""
    result = manager.update_all()

    if args.json:
        _emit_json(result.to_dict())
    else:
        _header("Update All")
        for update in result.updates:
            print(f"✅ {update.framework_id}: {update.previous_version} → {update.new_version}")
        for framework_id in result.skipped:
            print(f"⏭️  {framework_id} skipped")
        for failure in result.failures:
            print(f"❌ {failure.framework_id}: {failure.message}")
        print(result.summary(), file=sys.stderr)
    return EXIT_OK if result.success else EXIT_FRAMEWORK_ERROR


def cmd_remove(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Remove an installed framework."""
    removed = manager.remove(args.id)

    if args.json:
        _emit_json({"id": args.id, "removed": removed})
    elif removed:
        print(f"Removed {args.id}")
    else:
        print(f"{args.id} is not installed")
    return EXIT_OK


def cmd_check(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """List installed frameworks with a newer catalog version."""
    updates = manager.check_for_updates()

    if args.json:
        _emit_json([u.to_dict() for u in updates])
        return EXIT_OK

    if not updates:
        print("All installed frameworks are up to date")
        return EXIT_OK

    for info in updates:
        print(f"{info.framework_id:<28} {info.version_jump_description()}")
    return EXIT_OK


def cmd_mark_customized(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Flag an installed framework as hand-edited."""
    record = manager.mark_customized(args.id)

    if args.json:
        _emit_json(record.to_dict())
    else:
        print(f"Marked {record.id} as customized")
    return EXIT_OK


def cmd_detect(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Re-check installed files for local changes."""
    changed = manager.detect_customizations()

    if args.json:
        _emit_json({"changed": changed})
        return EXIT_OK

    if not changed:
        print("No customization changes detected")
    for framework_id in changed:
        record = manager.get_installed_record(framework_id)
        state = "customized" if record and record.customized else "pristine"
        print(f"{framework_id}: now {state}")
    return EXIT_OK


def _installed_target(manager: FrameworkManager, framework_id: str) -> Path:
    framework = manager.get_framework(framework_id)
    if framework is None:
        raise NotFoundError(framework_id)
    return manager.workspace.target_path(framework)


def cmd_backups(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """List backups of a framework file."""
    backups = manager.backups.list_backups(_installed_target(manager, args.id))

    if args.json:
        _emit_json([str(p) for p in backups])
        return EXIT_OK

    if not backups:
        print(f"No backups for {args.id}")
    for path in backups:
        print(path)
    return EXIT_OK


def cmd_prune_backups(manager: FrameworkManager, args: argparse.Namespace) -> int:
    """Delete backups older than the retention period."""
    days = args.days if args.days is not None else args.retention_days
    removed = manager.backups.prune_backups(_installed_target(manager, args.id), days)

    if args.json:
        _emit_json([str(p) for p in removed])
    else:
        print(f"Removed {len(removed)} backup(s) older than {days} days")
    return EXIT_OK


COMMANDS = {
    "list": cmd_list,
    "search": cmd_search,
    "installed": cmd_installed,
    "install": cmd_install,
    "update": cmd_update,
    "update-all": cmd_update_all,
    "remove": cmd_remove,
    "check": cmd_check,
    "mark-customized": cmd_mark_customized,
    "detect": cmd_detect,
    "backups": cmd_backups,
    "prune-backups": cmd_prune_backups,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frameworks",
        description="Steering Frameworks - install and maintain framework documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--workspace", "-w",
        default=".",
        help="Workspace root (default: current directory)",
    )
    parser.add_argument(
        "--config", "-c",
        help="Configuration file (overrides project and user config)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors",
    )
    parser.add_argument(
        "--log-file",
        help="Also write a debug log to this file",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Answer every prompt with overwrite/update",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Machine-readable output on stdout",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    list_parser = subparsers.add_parser("list", help="Show the catalog")
    list_parser.add_argument("--category", help="Only show one category")

    search_parser = subparsers.add_parser("search", help="Search the catalog")
    search_parser.add_argument("query", nargs="?", default="", help="Search text")

    subparsers.add_parser("installed", help="Show installed frameworks")

    install_parser = subparsers.add_parser("install", help="Install frameworks")
    install_parser.add_argument("ids", nargs="+", metavar="ID", help="Framework ids")
    conflict_group = install_parser.add_mutually_exclusive_group()
    conflict_group.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace an existing file without asking",
    )
    conflict_group.add_argument(
        "--merge",
        action="store_true",
        help="Append to an existing file without asking",
    )
    install_parser.add_argument(
        "--backup",
        action="store_true",
        help="Back up an existing file before writing",
    )

    update_parser = subparsers.add_parser("update", help="Update one framework")
    update_parser.add_argument("id", metavar="ID")

    subparsers.add_parser("update-all", help="Update every outdated framework")

    remove_parser = subparsers.add_parser("remove", help="Remove a framework")
    remove_parser.add_argument("id", metavar="ID")

    subparsers.add_parser("check", help="List available updates")

    mark_parser = subparsers.add_parser("mark-customized", help="Flag a framework as hand-edited")
    mark_parser.add_argument("id", metavar="ID")

    subparsers.add_parser("detect", help="Re-check installed files for local changes")

    backups_parser = subparsers.add_parser("backups", help="List backups of a framework file")
    backups_parser.add_argument("id", metavar="ID")

    prune_parser = subparsers.add_parser("prune-backups", help="Delete old backups")
    prune_parser.add_argument("id", metavar="ID")
    prune_parser.add_argument(
        "--days",
        type=int,
        help="Retention period in days (default: backup_retention_days from config)",
    )

    return parser


def _decision_provider(args: argparse.Namespace, config: Config) -> DecisionProvider:
    if args.yes:
        return PolicyDecisionProvider(conflict_action=CONFLICT_OVERWRITE, update_action=UPDATE_PROCEED)
    prefs = config.preferences
    return decision_provider_from_policy(prefs.conflict_policy, prefs.update_policy)


def _report_error(error: FrameworkError) -> None:
    print(f"Error: {error.message}", file=sys.stderr)
    if error.remediation:
        print(f"Hint: {error.remediation}", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the frameworks command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = setup_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)

    try:
        config = load_config(args.config, workspace=args.workspace, verbose=args.verbose)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FRAMEWORK_ERROR

    for warning in validate_config(config):
        logger.debug(f"Config: {warning}")

    args.retention_days = config.preferences.backup_retention_days
    manager = FrameworkManager.from_config(
        args.workspace,
        config,
        decisions=_decision_provider(args, config),
        verbose=args.verbose,
    )

    try:
        return COMMANDS[args.command](manager, args)
    except UserCancelledError as e:
        print(e.message, file=sys.stderr)
        return EXIT_CANCELLED
    except FrameworkError as e:
        _report_error(e)
        return EXIT_FRAMEWORK_ERROR
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_IO_ERROR


def run() -> None:
    """Console-script wrapper that turns Ctrl-C into exit code 130."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    run()
