"""CLI interface for reclaim."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from reclaim.core.audit import AuditTrail
from reclaim.core.engine import ReclaimEngine
from reclaim.core.orchestrator import CleanPolicy
from reclaim.core.probe import estimate, probe
from reclaim.models.location import Category, Safety
from reclaim.models.scan_result import ScanResult
from reclaim.settings import EngineConfig
from reclaim.utils import bytes_to_human, format_elapsed, format_relative_time

_SAFETY_COLORS = {
    Safety.AUTO_SAFE: "green",
    Safety.NEEDS_CONFIRMATION: "yellow",
    Safety.NEVER_AUTO: "red",
}


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _build_engine() -> ReclaimEngine:
    return ReclaimEngine.create(EngineConfig.from_settings())


def _format_result(result: ScanResult, index: int | None = None) -> str:
    prefix = f"[{index}] " if index is not None else ""
    safety = click.style(f"[{result.safety.value}]", fg=_SAFETY_COLORS[result.safety])
    return (
        f"  {prefix}{result.name:35s} — "
        f"{click.style(bytes_to_human(result.total_size), fg='green', bold=True)} "
        f"({result.file_count:,} files) {safety}"
    )


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """reclaim — find and safely reclaim disk space."""
    _setup_logging(verbose)


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@click.option("--category", "-c", "categories", multiple=True,
              type=click.Choice([c.value for c in Category]), help="Only show these categories")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(categories: tuple[str, ...], as_json: bool) -> None:
    """Scan for reclaimable files (preview only, never deletes)."""
    engine = _build_engine()

    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning {len(engine.catalog)} locations...\n")

    def on_progress(name: str, status: str) -> None:
        if as_json:
            return
        if status == "error":
            click.echo(f"  {click.style('✗', fg='red')} {name:35s} — error during scan")
        elif status == "denied":
            click.echo(f"  {click.style('✗', fg='yellow')} {name:35s} — permission denied")

    report = engine.scan_system(on_progress=on_progress)
    if categories:
        report.results = [r for r in report.results if r.category.value in categories]

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    if not report.results:
        click.echo("  Nothing to reclaim.")
    for result in report.results:
        click.echo(_format_result(result))

    for warning in report.warnings:
        click.echo(f"  {click.style('!', fg='yellow')} {warning}")
    for error in report.errors:
        click.echo(f"  {click.style('✗', fg='red')} {error}")

    click.echo(
        f"\nTotal reclaimable: {click.style(bytes_to_human(report.total_size), fg='green', bold=True)}"
        f" (scanned in {format_elapsed(report.duration)})\n"
    )


# ── clean ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--category", "-c", "categories", multiple=True,
              type=click.Choice([c.value for c in Category]), help="Only clean these categories")
@click.option("--path", "paths", multiple=True, type=click.Path(path_type=Path),
              help="Clean this file or directory instead of scanning (explicit selection)")
@click.option("--permanent", is_flag=True, help="Delete permanently instead of quarantining")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--dry-run", is_flag=True, help="Show what would be cleaned without doing it")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def clean(
    categories: tuple[str, ...],
    paths: tuple[Path, ...],
    permanent: bool,
    yes: bool,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Scan and quarantine reclaimable files.

    Results rated never-auto are only cleaned when given with --path.
    """
    engine = _build_engine()

    if paths:
        actionable = engine.classify_paths(list(paths))
        explicit = frozenset(r.id for r in actionable)
    else:
        if not as_json:
            click.echo(f"\n{click.style('🔍', bold=True)} Scanning...\n")
        report = engine.scan_system()
        actionable = [r for r in report.results if r.total_size > 0 and r.safety is not Safety.NEVER_AUTO]
        explicit = frozenset()
    if categories:
        actionable = [r for r in actionable if r.category.value in categories]

    if not actionable:
        if as_json:
            click.echo(json.dumps({"status": "nothing_to_clean", "results": []}))
        else:
            click.echo("Nothing to clean.")
        return

    if not as_json:
        for index, result in enumerate(actionable, 1):
            click.echo(_format_result(result, index))
        total = sum(r.total_size for r in actionable)
        click.echo(f"\nTotal: {click.style(bytes_to_human(total), fg='green', bold=True)}\n")

    if dry_run:
        if as_json:
            click.echo(json.dumps({"status": "dry_run", "results": [r.to_dict() for r in actionable]}, indent=2))
        else:
            click.echo("(dry run — no files were touched)")
        return

    if not yes and not as_json:
        action = "Delete permanently" if permanent else "Quarantine"
        choice = click.prompt(f"{action} all? [y/N/select]", default="n", show_default=False)
        match choice.lower():
            case "y" | "yes":
                pass
            case "select":
                selected = _interactive_select(actionable)
                if not selected:
                    click.echo("Nothing selected.")
                    return
                actionable = [r for r in actionable if r.id in selected]
            case _:
                click.echo("Aborted.")
                return

    policy = CleanPolicy(
        permanent=frozenset(r.id for r in actionable) if permanent else frozenset(),
        explicit=explicit,
    )

    if not as_json:
        click.echo(f"\n{click.style('🧹', bold=True)} Cleaning...\n")

    result = engine.clean_files(actionable, policy)

    if as_json:
        click.echo(json.dumps({"status": "cleaned", "result": result.to_dict()}, indent=2))
        return

    for warning in result.warnings:
        click.echo(f"  {click.style('!', fg='yellow')} {warning}")
    for error in result.errors:
        click.echo(f"  {click.style('✗', fg='red')} {error}")
    verb = "Freed" if permanent else "Quarantined"
    click.echo(
        f"\n{verb}: {click.style(bytes_to_human(result.bytes_freed), fg='green', bold=True)} "
        f"({result.files_removed:,} files)\n"
    )
    if result.quarantined_ids:
        click.echo("Restore with: reclaim quarantine restore <id>   (see: reclaim quarantine list)\n")


def _interactive_select(results: list[ScanResult]) -> set[str]:
    """Let the user pick which results to clean."""
    click.echo("\nSelect results to clean (enter numbers, comma-separated):\n")
    raw = click.prompt("Selection", default="")
    if not raw.strip():
        return set()
    selected: set[str] = set()
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit():
            idx = int(part) - 1
            if 0 <= idx < len(results):
                selected.add(results[idx].id)
    return selected


# ── quarantine ───────────────────────────────────────────────────────────

@main.group()
def quarantine() -> None:
    """Inspect, restore and purge quarantined files."""


@quarantine.command("list")
@click.option("--verify", is_flag=True, help="Re-hash stored files to detect corruption")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def quarantine_list(verify: bool, as_json: bool) -> None:
    """List quarantined files."""
    engine = _build_engine()
    items = engine.get_quarantine_items(verify=verify)

    if as_json:
        click.echo(json.dumps([item.to_dict() for item in items], indent=2))
        return

    if not items:
        click.echo("Quarantine is empty.")
        return

    for item in items:
        state = "" if item.intact else click.style(" [damaged]", fg="red")
        click.echo(
            f"  {click.style(item.id, fg='cyan', bold=True)}  {bytes_to_human(item.size):>10s}  "
            f"{format_relative_time(item.quarantined_at.isoformat()):>15s}  {item.original_path}{state}"
        )
    total = sum(item.size for item in items)
    click.echo(f"\n{len(items)} item(s), {bytes_to_human(total)}")


@quarantine.command("restore")
@click.argument("item_ids", nargs=-1, required=True)
def quarantine_restore(item_ids: tuple[str, ...]) -> None:
    """Restore quarantined files to their original paths."""
    engine = _build_engine()
    failed = 0
    for item_id in item_ids:
        if engine.restore_quarantine_item(item_id):
            click.echo(f"  {click.style('✓', fg='green')} {item_id} restored")
        else:
            failed += 1
            click.echo(f"  {click.style('✗', fg='red')} {item_id} could not be restored (run with -v for details)")
    if failed:
        sys.exit(1)


@quarantine.command("purge")
@click.option("--older-than", "older_than", type=click.FloatRange(min=0), default=None,
              help="Age in days (default: configured retention)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def quarantine_purge(older_than: float | None, yes: bool) -> None:
    """Permanently delete old quarantined files. This cannot be undone."""
    engine = _build_engine()
    days = engine.config.retention_days if older_than is None else older_than
    if not yes:
        click.confirm(f"Permanently delete items quarantined more than {days:g} day(s) ago?", abort=True)
    before = len(engine.get_quarantine_items())
    engine.clear_quarantine(days)
    after = len(engine.get_quarantine_items())
    click.echo(f"Purged {before - after} item(s).")


# ── probe ────────────────────────────────────────────────────────────────

@main.command("probe")
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.option("--estimate", "with_estimate", is_flag=True, help="Also show a quick sampled size estimate")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def probe_cmd(paths: tuple[Path, ...], with_estimate: bool, as_json: bool) -> None:
    """Check read access to scan locations (or the given paths)."""
    if paths:
        probes = [probe(p) for p in paths]
    else:
        probes = _build_engine().probe_locations()

    if as_json:
        data = []
        for p in probes:
            entry = p.to_dict()
            if with_estimate and p.accessible:
                entry["estimated_bytes"], entry["estimated_count"] = estimate(p.path)
            data.append(entry)
        click.echo(json.dumps(data, indent=2))
        return

    for p in probes:
        match p.access.value:
            case "accessible":
                mark = click.style("✓", fg="green")
                detail = f"{p.entry_count:,} entries"
                if with_estimate:
                    size, count = estimate(p.path)
                    detail += f", ~{bytes_to_human(size)} in {count:,} sampled"
            case "denied":
                mark = click.style("✗", fg="red")
                detail = f"denied: {p.reason}"
            case _:
                mark = click.style("·", fg="bright_black")
                detail = "does not exist"
        click.echo(f"  {mark} {str(p.path):50s} {detail}")


# ── locations ────────────────────────────────────────────────────────────

@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def locations(as_json: bool) -> None:
    """List the locations a scan covers."""
    engine = _build_engine()

    if as_json:
        data = [
            {
                "root": str(loc.root),
                "name": loc.name,
                "category": loc.category.value if loc.category else None,
                "safety": loc.safety.value,
                "description": loc.description,
                "detect_duplicates": loc.detect_duplicates,
                "detect_large": loc.detect_large,
            }
            for loc in engine.catalog
        ]
        click.echo(json.dumps(data, indent=2))
        return

    for loc in engine.catalog:
        category = loc.category.value if loc.category else "user files"
        safety = click.style(loc.safety.value, fg=_SAFETY_COLORS[loc.safety])
        click.echo(f"  {click.style(loc.name, fg='cyan', bold=True):30s} {category:12s} {safety}")
        click.echo(f"    {loc.root}")


# ── stats ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--period", "-p", default="all", type=click.Choice(["today", "week", "month", "all"]))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(period: str, as_json: bool) -> None:
    """Show space reclaimed statistics."""
    audit = AuditTrail()
    data = audit.get_stats(period)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    counts = data["event_counts"]
    click.echo(f"\n{click.style('📊', bold=True)} Statistics ({period})\n")
    click.echo(f"  Bytes reclaimed: {click.style(bytes_to_human(data['bytes_freed']), fg='green', bold=True)}")
    click.echo(f"  Files removed:   {data['files_removed']:,}")
    click.echo(f"  Scans / cleans:  {counts['scan']} / {counts['clean']}")
    click.echo(f"  Restored:        {data['restored']}")
    click.echo(f"  Purged:          {data['purged']}")
    click.echo(f"  Lifetime total:  {click.style(bytes_to_human(data['lifetime_bytes_freed']), fg='cyan', bold=True)}")
    last = audit.get_last_clean_time()
    if last:
        click.echo(f"  Last clean:      {format_relative_time(last)}")
    click.echo()


# ── service ──────────────────────────────────────────────────────────────

@main.group()
def service() -> None:
    """D-Bus service management."""


@service.command("start")
def service_start() -> None:
    """Start the D-Bus service in foreground."""
    from reclaim.dbus_service import start_service

    click.echo("Starting reclaim D-Bus service...")
    start_service()
