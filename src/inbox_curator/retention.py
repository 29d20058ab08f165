import re
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from .audit import AuditLog

BATCH_NAME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_batch_dir(path: Path) -> bool:
    if not BATCH_NAME_RE.match(path.name):
        return False
    try:
        datetime.strptime(path.name, "%Y-%m-%d")
    except ValueError:
        return False
    return path.is_dir() and not path.is_symlink()


def batch_age(path: Path, now: datetime) -> timedelta:
    modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - modified


def expired_batches(quarantine_root: Path, retention_days: int, now: datetime) -> List[Path]:
    if retention_days < 0:
        raise ValueError("retention_days must be >= 0")
    if not quarantine_root.is_dir():
        return []
    limit = timedelta(days=retention_days)
    expired = []
    for entry in sorted(quarantine_root.iterdir(), key=lambda p: p.name):
        if not is_batch_dir(entry):
            continue
        if batch_age(entry, now) >= limit:
            expired.append(entry)
    return expired


def purge(
    quarantine_root: Path,
    retention_days: int,
    now: datetime,
    *,
    dry_run: bool = False,
    audit: Optional[AuditLog] = None,
) -> List[Path]:
    removed: List[Path] = []
    for batch in expired_batches(quarantine_root, retention_days, now):
        if audit:
            audit.write(f"PURGE: {batch} (older than {retention_days} days)")
        if not dry_run:
            shutil.rmtree(batch)
        removed.append(batch)
    return removed
