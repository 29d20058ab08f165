import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .util import timestamp_slug, write_json

MODE_SIMULATE = "simulate"
MODE_APPLY = "apply"

MOVED = "moved"
QUARANTINED = "quarantined"
DELETED = "deleted"
FLAGGED = "flagged_for_review"
SKIPPED = "skipped"
FAILED = "failed"

CATEGORIES = (MOVED, QUARANTINED, DELETED, FLAGGED, SKIPPED, FAILED)
SUCCESS_CATEGORIES = (MOVED, QUARANTINED, DELETED, FLAGGED)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NOTHING_TO_DO = 3


@dataclass(frozen=True)
class LedgerEntry:
    source: str
    destination: Optional[str]
    reason: Optional[str] = None
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "from": self.source,
            "to": self.destination,
            "reason": self.reason,
        }
        if self.category:
            payload["category"] = self.category
        return payload


@dataclass
class OutcomeLedger:
    operation: str
    mode: str
    timestamp: str
    entries: Dict[str, List[LedgerEntry]] = field(
        default_factory=lambda: {name: [] for name in CATEGORIES}
    )

    def record(
        self,
        outcome: str,
        source: Path,
        destination: Optional[Path] = None,
        reason: Optional[str] = None,
        category: Optional[str] = None,
    ) -> LedgerEntry:
        if outcome not in self.entries:
            raise ValueError(f"Unknown ledger category: {outcome}")
        entry = LedgerEntry(
            source=str(source),
            destination=str(destination) if destination is not None else None,
            reason=reason,
            category=category,
        )
        self.entries[outcome].append(entry)
        return entry

    def counts(self) -> Dict[str, int]:
        return {name: len(self.entries[name]) for name in CATEGORIES}

    def successes(self) -> int:
        return sum(len(self.entries[name]) for name in SUCCESS_CATEGORIES)

    def exit_status(self) -> int:
        if self.successes() == 0 and self.entries[FAILED]:
            return EXIT_FAILURE
        if self.successes() == 0:
            return EXIT_NOTHING_TO_DO
        return EXIT_OK

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "version": 1,
            "operation": self.operation,
            "mode": self.mode,
            "timestamp": self.timestamp,
            "counts": self.counts(),
        }
        for name in CATEGORIES:
            payload[name] = [entry.to_dict() for entry in self.entries[name]]
        return payload


def ledger_path_for(ledger: OutcomeLedger, reports_dir: Path) -> Path:
    return reports_dir / f"{ledger.operation}-{ledger.mode}-{ledger.timestamp}.json"


def write_ledger(ledger: OutcomeLedger, path: Path) -> Path:
    return write_json(path, ledger.to_dict())


def load_ledger(path: Path) -> Dict[str, Any]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict) or "counts" not in payload:
        raise ValueError(f"Not a ledger file: {path}")
    return payload


def find_latest_ledger(reports_dir: Path, mode: str = MODE_APPLY) -> Optional[Path]:
    if not reports_dir.exists():
        return None
    ledgers = sorted(
        reports_dir.glob(f"*-{mode}-*.json"),
        key=lambda item: item.name.rsplit("-", 1)[-1],
    )
    return ledgers[-1] if ledgers else None


def render_summary(
    ledger: OutcomeLedger,
    title: str,
    details: Optional[List[str]] = None,
) -> str:
    counts = ledger.counts()
    width = 52
    lines = [
        f" {title} ".center(width, "="),
        f"Date: {ledger.timestamp}",
        f"Mode: {ledger.mode}",
    ]
    lines.extend(details or [])
    lines.append("-" * width)
    lines.extend(
        [
            f"Moved: {counts[MOVED]}",
            f"Quarantined: {counts[QUARANTINED]}",
            f"Deleted: {counts[DELETED]}",
            f"Flagged for review: {counts[FLAGGED]}",
            f"Skipped: {counts[SKIPPED]}",
            f"Failed: {counts[FAILED]}",
        ]
    )
    reasons: Dict[str, int] = {}
    for entry in ledger.entries[SKIPPED]:
        key = entry.reason or "unspecified"
        reasons[key] = reasons.get(key, 0) + 1
    for reason in sorted(reasons):
        lines.append(f"  skipped ({reason}): {reasons[reason]}")
    lines.append("=" * width)
    return "\n".join(lines)


def new_ledger(operation: str, mode: str, now: datetime) -> OutcomeLedger:
    if mode not in (MODE_SIMULATE, MODE_APPLY):
        raise ValueError(f"Unknown mode: {mode}")
    return OutcomeLedger(operation=operation, mode=mode, timestamp=timestamp_slug(now))
