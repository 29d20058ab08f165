from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from .util import timestamp_slug, write_json

ACTION_MOVE = "move"
ACTION_QUARANTINE = "quarantine"
ACTION_REVIEW = "review"
ACTION_DELETE = "delete"
ACTION_SKIP = "skip"

MUTATING_ACTIONS = {ACTION_MOVE, ACTION_QUARANTINE, ACTION_DELETE}


@dataclass(frozen=True)
class RelocationPlan:
    source: Path
    destination: Optional[Path]
    action: str
    reason: Optional[str] = None
    category: Optional[str] = None

    @property
    def mutates(self) -> bool:
        if self.action == ACTION_REVIEW:
            return self.destination is not None
        return self.action in MUTATING_ACTIONS


def write_plan_file(
    plans: Iterable[RelocationPlan],
    path: Path,
    *,
    operation: str,
    now: datetime,
) -> Path:
    payload = {
        "version": 1,
        "operation": operation,
        "created_at": timestamp_slug(now),
        "plans": [
            {
                "from": str(plan.source),
                "to": str(plan.destination) if plan.destination else None,
                "action": plan.action,
                "reason": plan.reason,
                "category": plan.category,
            }
            for plan in plans
        ],
    }
    return write_json(path, payload)
