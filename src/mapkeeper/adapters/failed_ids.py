"""Reader for the list of online set ids that previously failed to download."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path

log = getLogger(__name__)


def load_failed_ids(path: Path | str) -> frozenset[int]:
    """Return the positive integer ids in ``path``, one per line.

    Lines that are blank or not an integer are skipped. A missing file means no ids.
    """

    file_path = Path(path)
    if not file_path.exists():
        return frozenset()

    ids: set[int] = set()
    for line_no, raw in enumerate(file_path.read_text(encoding="utf-8").splitlines(), start=1):
        text = raw.strip()
        if not text:
            continue
        try:
            value = int(text)
        except ValueError:
            log.debug("Skipping line %s of %s: %r", line_no, file_path, text)
            continue
        if value > 0:
            ids.add(value)

    log.info("Loaded %s failed download ids from %s", len(ids), file_path)
    return frozenset(ids)


def clear_failed_ids(path: Path | str) -> bool:
    """Delete the failed-ids file; return whether there was one."""

    file_path = Path(path)
    if not file_path.exists():
        return False
    file_path.unlink()
    log.info("Removed %s", file_path)
    return True
