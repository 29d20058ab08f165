import shutil
from pathlib import Path
from typing import Dict

from .audit import AuditLog
from .ledger import FLAGGED, MODE_APPLY, MOVED, QUARANTINED, load_ledger
from .util import ensure_dir

RESTORABLE = (MOVED, QUARANTINED, FLAGGED)


class RestoreError(Exception):
    pass


def restore_from_ledger(ledger_path: Path, audit: AuditLog) -> Dict[str, int]:
    payload = load_ledger(ledger_path)
    if payload.get("mode") != MODE_APPLY:
        raise RestoreError(f"Only applied ledgers can be restored: {ledger_path}")
    moved = 0
    skipped = 0
    failed = 0
    for category in RESTORABLE:
        for entry in reversed(payload.get(category, [])):
            if not entry.get("to"):
                continue
            src = Path(entry.get("from", ""))
            dst = Path(entry["to"])
            if not dst.exists() or src.exists():
                skipped += 1
                audit.write(f"RESTORE SKIP: {dst} -> {src}")
                continue
            try:
                ensure_dir(src.parent)
                shutil.move(str(dst), str(src))
            except OSError as exc:
                failed += 1
                audit.write(f"RESTORE FAILED: {dst} -> {src} ({exc})")
                continue
            moved += 1
            audit.write(f"RESTORE: {dst} -> {src}")
    return {"moved": moved, "skipped": skipped, "failed": failed}
