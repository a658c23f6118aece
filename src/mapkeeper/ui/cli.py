# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from mapkeeper.app import apply_plan, inspect_beatmap, inspect_set, scan_library
from mapkeeper.config import configure_logging
from mapkeeper.domain.reconciliation import AuditSettings

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from mapkeeper.app import BeatmapInspection, ScanResult
    from mapkeeper.domain.model import BeatmapSet

log = logging.getLogger(__name__)

CONFIRMATION_WORD = "EXECUTE"


def _add_library_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--library",
        type=str,
        help="Path to the client database (defaults to client.db in the data directory)",
    )


def _add_audit_arguments(parser: argparse.ArgumentParser) -> None:
    defaults = AuditSettings()
    parser.add_argument(
        "--batch-size",
        type=int,
        default=defaults.batch_size,
        help="Number of sets per remote lookup batch (default: %(default)s)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=defaults.max_workers,
        help="Number of batches processed concurrently (default: %(default)s)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile an osu! beatmap library")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Report problems and planned fixes, change nothing")
    _add_library_argument(scan)
    _add_audit_arguments(scan)

    apply = subparsers.add_parser("apply", help="Scan, confirm and write fixes to a copy")
    _add_library_argument(apply)
    _add_audit_arguments(apply)
    apply.add_argument(
        "--output",
        type=str,
        help="Path of the modified copy (defaults to client_modified.db in the data directory)",
    )
    apply.add_argument(
        "--yes",
        action="store_true",
        help=f"Apply without asking to type {CONFIRMATION_WORD}",
    )

    inspect = subparsers.add_parser("inspect", help="Show one set or beatmap")
    _add_library_argument(inspect)
    target = inspect.add_mutually_exclusive_group(required=True)
    target.add_argument("--set-id", type=str, help="Local id of a beatmap set")
    target.add_argument("--beatmap-id", type=str, help="Local id of a beatmap")

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _settings_from_args(args: argparse.Namespace) -> AuditSettings | None:
    if args.command not in {"scan", "apply"}:
        return None
    return AuditSettings(batch_size=args.batch_size, max_workers=args.workers)


def _format_date(value: object) -> str:
    return "NULL" if value is None else str(value)


def _print_set(beatmap_set: BeatmapSet) -> None:
    print(f"Set: {beatmap_set}")
    print(f"  Local id:   {beatmap_set.id}")
    print(f"  Status:     {beatmap_set.status.name} ({int(beatmap_set.status)})")
    print(f"  Ranked:     {_format_date(beatmap_set.date_ranked)}")
    print(f"  Submitted:  {_format_date(beatmap_set.date_submitted)}")
    print(f"  Added:      {_format_date(beatmap_set.date_added)}")
    print(f"  Beatmaps:   {len(beatmap_set.beatmaps)} of {len(beatmap_set.beatmap_ids)} references")
    for beatmap in beatmap_set.beatmaps:
        print(f"    - {beatmap} (online id {beatmap.online_id}, md5 {beatmap.md5_hash or '-'})")
    dead = len(beatmap_set.beatmap_ids) - len(beatmap_set.beatmaps)
    if dead:
        print(f"  WARNING: {dead} references point at missing beatmaps")


def _print_beatmap(inspection: BeatmapInspection) -> None:
    beatmap = inspection.beatmap
    print(f"Beatmap: {beatmap}")
    print(f"  Local id:   {beatmap.id}")
    print(f"  Online id:  {beatmap.online_id}")
    print(f"  MD5:        {beatmap.md5_hash or '-'}")
    print(f"  Status:     {beatmap.status.name} ({int(beatmap.status)})")
    if inspection.is_orphan:
        print("  WARNING: no set references this beatmap (orphan)")
    for parent in inspection.parents:
        print(f"  Parent:     {parent} ({parent.id})")


def _print_summary(result: ScanResult) -> None:
    print()
    for line in result.summary_lines():
        print(line)


def _confirm(prompt: Callable[[str], str]) -> bool:
    answer = prompt(f"Type {CONFIRMATION_WORD} to write these changes to a copy: ")
    return answer.strip() == CONFIRMATION_WORD


def _run_command(args: argparse.Namespace, *, prompt: Callable[[str], str]) -> None:
    if args.command == "inspect":
        if args.set_id is not None:
            beatmap_set = inspect_set(_parse_uuid(args.set_id), library_path=args.library)
            if beatmap_set is None:
                print(f"Set {args.set_id} not found")
            else:
                _print_set(beatmap_set)
        else:
            inspection = inspect_beatmap(_parse_uuid(args.beatmap_id), library_path=args.library)
            if inspection is None:
                print(f"Beatmap {args.beatmap_id} not found")
            else:
                _print_beatmap(inspection)
        return

    result = scan_library(library_path=args.library, settings=_settings_from_args(args))
    _print_summary(result)

    if args.command == "scan":
        return
    if not result.has_work:
        log.info("Nothing to do")
        return
    if not args.yes and not _confirm(prompt):
        log.info("Aborted, nothing was written")
        return

    applied = apply_plan(result, output_path=args.output)
    print(f"Modified {applied.modified} entries, written to {applied.target_path}")
    if applied.download_list_path is not None:
        print(f"{len(applied.reacquisition_ids)} sets to download again: {applied.download_list_path}")


def main(argv: Sequence[str] | None = None, *, prompt: Callable[[str], str] = input) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        _settings_from_args(parsed_args)
        if parsed_args.command == "inspect":
            _parse_uuid(parsed_args.set_id or parsed_args.beatmap_id)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        _run_command(parsed_args, prompt=prompt)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
