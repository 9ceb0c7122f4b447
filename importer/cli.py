import argparse
import os
from pathlib import Path
import sys
from typing import Sequence

import config
from importer.environment import EnvironmentManager
from importer.flow_control import ImporterFlowControl
from importer.models import ImportSummary
from importer.scheduler import ImportScheduler
from types_models import ImporterConfig, importer_config_to_dict


def validate_hotfolder_path(cfg: ImporterConfig) -> None:
    """Refuse hotfolder locations that would sweep up unrelated directories.

    The importer moves every directory it finds in the hotfolder, so pointing
    it at a filesystem root or a home directory would be destructive.

    Raises:
        SystemExit: If the hotfolder path is dangerous
    """
    path = cfg.hotfolder_path
    home = Path.home().resolve()

    if path.parent == path:
        print(f"❌ Error: Cannot use filesystem root as hotfolder: {path}")
        sys.exit(1)

    if path == home:
        print(f"❌ Error: Cannot use your home directory as hotfolder: {path}")
        print("   Every folder in it would be imported and moved.")
        sys.exit(1)

    if home.is_relative_to(path):
        print(f"❌ Error: Hotfolder {path} contains your home directory")
        sys.exit(1)

    if path.exists() and not path.is_dir():
        print(f"❌ Error: Hotfolder is not a directory: {path}")
        sys.exit(1)


def print_summary(summary: ImportSummary) -> None:
    """Emit per-pass statistics."""
    if summary.skipped:
        print("⏭️  Pass skipped, a previous pass is still running")
        return

    print("-------------------------------------------------")
    print(
        f"✅ Imported: {summary.imported} | Replaced: {summary.replaced}"
        + f" | Quarantined: {summary.quarantined} | Failed: {summary.failed}"
    )

    breakdown = summary.error_breakdown()
    if breakdown:
        print("📊 Failure breakdown:")
        for kind, count in sorted(breakdown.items()):
            plural = "packages" if count != 1 else "package"
            print(f"   • {count} {plural} failed with {kind}")

    for outcome in summary.outcomes:
        if outcome.succeeded:
            continue
        where = outcome.final_path or "left in place"
        print(f"   ⚠️ {outcome.package_name}: {outcome.error} -> {where}")
        for rollback_error in outcome.rollback_errors:
            print(f"      ↳ rollback {rollback_error.step}: {rollback_error}")


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for the hotfolder importer."""
    parser = argparse.ArgumentParser(
        description="Import work packages (METS/MODS + media files) from a hotfolder"
    )
    _ = parser.add_argument(
        "--settings",
        type=Path,
        help=f"Settings TOML file (default: {config.SETTINGS_FILE})",
    )
    _ = parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass even if a schedule interval is configured",
    )
    _ = parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between passes, overrides schedule_interval_seconds",
    )
    _ = parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every pipeline step and print the effective settings.",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        cfg = config.load_settings(args.settings) if args.settings else config.CONFIG
        config.validate_config(cfg)
    except (OSError, ValueError) as exc:
        print(f"❌ Invalid settings: {exc}")
        sys.exit(1)

    validate_hotfolder_path(cfg)

    print(f"Using settings from {args.settings or config.SETTINGS_FILE}")
    if args.verbose:
        for key, value in importer_config_to_dict(cfg).items():
            print(f"   {key} = {value}")

    env = EnvironmentManager(cfg)
    env.apply(verbose=args.verbose)
    ctx = env.initialize()

    interval = 0.0 if args.once else (
        args.interval if args.interval is not None else cfg.schedule_interval_seconds
    )
    if interval > 0:
        print(f"🔁 Importing from {cfg.hotfolder_path} every {interval:g}s (pid {os.getpid()})")
    else:
        print(f"🔎 Importing from {cfg.hotfolder_path}")

    scheduler = ImportScheduler(ImporterFlowControl(ctx), interval_seconds=interval)
    try:
        scheduler.run_forever(on_pass=print_summary)
    except KeyboardInterrupt:
        scheduler.stop()
        print("\nStopped.")


__all__ = ["main", "print_summary", "validate_hotfolder_path"]
