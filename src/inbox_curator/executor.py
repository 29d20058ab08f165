import os
import shutil
from pathlib import Path
from typing import Iterable, Optional

from .context import RunContext
from .ledger import DELETED, FAILED, FLAGGED, MOVED, QUARANTINED, SKIPPED, OutcomeLedger
from .plans import (
    ACTION_DELETE,
    ACTION_MOVE,
    ACTION_QUARANTINE,
    ACTION_REVIEW,
    ACTION_SKIP,
    RelocationPlan,
)
from .scope import is_mutable
from .util import ensure_dir

OUTCOME_FOR_ACTION = {
    ACTION_MOVE: MOVED,
    ACTION_QUARANTINE: QUARANTINED,
    ACTION_REVIEW: FLAGGED,
    ACTION_DELETE: DELETED,
}

SKIP_LABELS = {
    "protected": "SKIP (protected)",
    "source_missing": "SKIP (missing)",
}


def _audit_line(plan: RelocationPlan, destination: Optional[Path]) -> str:
    if plan.action == ACTION_DELETE:
        return f"DELETE: {plan.source}"
    if plan.action == ACTION_QUARANTINE:
        return f"QUARANTINE: {plan.source} -> {destination}"
    if plan.action == ACTION_REVIEW:
        return f"REVIEW ({plan.reason}): {plan.source} -> {destination}"
    return f"MOVE: {plan.source} -> {destination}"


def _skip(ctx: RunContext, plan: RelocationPlan, reason: str) -> None:
    ctx.ledger.record(SKIPPED, plan.source, plan.destination, reason, plan.category)
    label = SKIP_LABELS.get(reason, f"SKIP ({reason})")
    ctx.audit.write(f"{label}: {plan.source}")


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _move(source: Path, destination: Path) -> None:
    ensure_dir(destination.parent)
    shutil.move(str(source), str(destination))


def _refresh_destination(ctx: RunContext, destination: Path) -> Optional[Path]:
    if not os.path.lexists(destination):
        return destination
    ctx.release_destination(destination)
    return ctx.claim_destination(destination)


def execute(plans: Iterable[RelocationPlan], ctx: RunContext) -> OutcomeLedger:
    settings = ctx.settings
    ledger = ctx.ledger
    for plan in plans:
        if plan.action == ACTION_SKIP:
            _skip(ctx, plan, plan.reason or "skipped")
            continue
        if not plan.mutates:
            ledger.record(FLAGGED, plan.source, None, plan.reason, plan.category)
            ctx.audit.write(f"REVIEW ({plan.reason}): {plan.source}")
            continue
        if not is_mutable(plan.source, ctx.managed_roots, settings.only_move_from_inbox):
            _skip(ctx, plan, "protected")
            continue
        if not os.path.lexists(plan.source):
            _skip(ctx, plan, "source_missing")
            continue

        destination = plan.destination
        if not ctx.simulate:
            if destination is not None:
                destination = _refresh_destination(ctx, destination)
                if destination is None:
                    ledger.record(FLAGGED, plan.source, None, "collision_exhausted", plan.category)
                    ctx.audit.write(f"REVIEW (collision_exhausted): {plan.source}")
                    continue
            try:
                if plan.action == ACTION_DELETE:
                    _remove(plan.source)
                else:
                    _move(plan.source, destination)
            except OSError as exc:
                ledger.record(FAILED, plan.source, destination, str(exc), plan.category)
                ctx.audit.write(f"FAILED: {plan.source} -> {destination} ({exc})")
                continue

        ledger.record(OUTCOME_FOR_ACTION[plan.action], plan.source, destination, plan.reason, plan.category)
        ctx.audit.write(_audit_line(plan, destination))
    return ledger
