"""Daily copies of the SQLite database file."""
from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from shutil import copy2

from core.logs import get_logger

logger = get_logger("backup")


def _parse_backup_date(path: Path, prefix: str) -> datetime | None:
    stem = path.stem
    if not stem.startswith(prefix):
        return None
    try:
        return datetime.strptime(stem[len(prefix):], "%Y-%m-%d")
    except ValueError:
        return None


def ensure_daily_backup(
    db_path: str | Path,
    backup_dir: str | Path,
    *,
    keep_days: int = 7,
) -> Path | None:
    """Copy ``db_path`` to ``<stem>_<YYYY-MM-DD><suffix>`` once per day.

    Copies older than ``keep_days`` are removed. Returns the new copy, or
    ``None`` when today's copy already existed or there was nothing to copy.
    """

    db_file = Path(db_path)
    if not db_file.exists():
        return None

    backups = Path(backup_dir)
    backups.mkdir(parents=True, exist_ok=True)

    today = datetime.now().date()
    prefix = f"{db_file.stem}_"
    destination = backups / f"{prefix}{today.isoformat()}{db_file.suffix}"

    created: Path | None = None
    if not destination.exists():
        copy2(db_file, destination)
        created = destination
        logger.info("Database backup written to %s", destination)

    if keep_days <= 0:
        return created

    cutoff = today - timedelta(days=keep_days - 1)
    for candidate in backups.glob(f"{prefix}*{db_file.suffix}"):
        stamp = _parse_backup_date(candidate, prefix)
        if stamp is None or stamp.date() >= cutoff:
            continue
        try:
            candidate.unlink()
        except OSError as exc:
            logger.warning("Could not remove old backup %s: %s", candidate, exc)

    return created


__all__ = ["ensure_daily_backup"]
