import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Set

from .audit import AuditLog
from .config import CuratorSettings
from .ledger import MODE_SIMULATE, OutcomeLedger, new_ledger
from .util import split_extension, utc_now


@dataclass
class RunContext:
    settings: CuratorSettings
    ledger: OutcomeLedger
    audit: AuditLog
    now: datetime
    reserved: Set[Path] = field(default_factory=set)

    @property
    def simulate(self) -> bool:
        return self.ledger.mode == MODE_SIMULATE

    @property
    def managed_roots(self) -> List[Path]:
        return self.settings.inbox_dirs

    def batch_dir(self) -> Path:
        return self.settings.quarantine_dir / self.now.strftime("%Y-%m-%d")

    def _is_taken(self, candidate: Path) -> bool:
        return candidate in self.reserved or os.path.lexists(candidate)

    def claim_destination(self, candidate: Path) -> Optional[Path]:
        if not self._is_taken(candidate):
            self.reserved.add(candidate)
            return candidate
        stem, suffix = split_extension(candidate.name)
        for attempt in range(1, self.settings.max_collision_attempts + 1):
            option = candidate.parent / f"{stem}_{attempt}{suffix}"
            if not self._is_taken(option):
                self.reserved.add(option)
                return option
        return None

    def release_destination(self, candidate: Path) -> None:
        self.reserved.discard(candidate)


def create_context(
    settings: CuratorSettings,
    *,
    operation: str,
    mode: str,
    audit: Optional[AuditLog] = None,
    now: Optional[datetime] = None,
) -> RunContext:
    moment = now or utc_now()
    ctx = RunContext(
        settings=settings,
        ledger=new_ledger(operation, mode, moment),
        audit=audit or AuditLog(None, echo=False),
        now=moment,
    )
    if ctx.simulate:
        ctx.audit.prefix = "[dry-run] "
    return ctx
