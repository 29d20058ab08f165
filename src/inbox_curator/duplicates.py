import os
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from .context import RunContext
from .plans import (
    ACTION_DELETE,
    ACTION_QUARANTINE,
    ACTION_REVIEW,
    ACTION_SKIP,
    RelocationPlan,
)
from .records import FileRecord
from .scope import is_mutable, matching_root, path_within


@dataclass
class DuplicateGroup:
    checksum: str
    members: List[FileRecord]


def group_duplicates(records: Iterable[FileRecord]) -> List[DuplicateGroup]:
    grouped: Dict[str, DuplicateGroup] = {}
    seen_paths = set()
    for record in records:
        if not record.checksum:
            continue
        key = str(record.path)
        if key in seen_paths:
            continue
        seen_paths.add(key)
        group = grouped.get(record.checksum)
        if group is None:
            group = DuplicateGroup(checksum=record.checksum, members=[])
            grouped[record.checksum] = group
        group.members.append(record)
    return [group for group in grouped.values() if len(group.members) > 1]


def select_keeper(group: DuplicateGroup, library_roots: Sequence[Path]) -> FileRecord:
    if not group.members:
        raise ValueError(f"Duplicate group {group.checksum} has no members")
    for member in group.members:
        if matching_root(member.path, library_roots) is not None:
            return member
    for member in group.members:
        if member.is_original:
            return member
    return group.members[0]


def removal_candidates(group: DuplicateGroup, keeper: FileRecord) -> List[FileRecord]:
    return [member for member in group.members if member is not keeper]


def quarantine_destination(path: Path, ctx: RunContext) -> Path:
    text = str(path)
    prefix = ctx.settings.quarantine_strip_prefix
    if prefix and text != prefix and path_within(text, prefix):
        text = text[len(prefix):]
    relative = text.lstrip(os.sep) or path.name
    return ctx.batch_dir() / relative


def plan_duplicate_removal(groups: Iterable[DuplicateGroup], ctx: RunContext) -> List[RelocationPlan]:
    settings = ctx.settings
    plans: List[RelocationPlan] = []
    for group in groups:
        keeper = select_keeper(group, settings.library_dirs)
        ctx.audit.write(f"KEEPER: {keeper.path}")
        for member in removal_candidates(group, keeper):
            if not is_mutable(member.path, ctx.managed_roots, settings.only_move_from_inbox):
                plans.append(
                    RelocationPlan(source=member.path, destination=None, action=ACTION_SKIP, reason="protected")
                )
                continue
            if settings.delete_instead_of_quarantine:
                plans.append(RelocationPlan(source=member.path, destination=None, action=ACTION_DELETE))
                continue
            destination = ctx.claim_destination(quarantine_destination(member.path, ctx))
            if destination is None:
                plans.append(
                    RelocationPlan(
                        source=member.path,
                        destination=None,
                        action=ACTION_REVIEW,
                        reason="collision_exhausted",
                    )
                )
                continue
            plans.append(
                RelocationPlan(source=member.path, destination=destination, action=ACTION_QUARANTINE)
            )
    return plans


def summarize_duplicates(
    records: Sequence[FileRecord],
    library_roots: Sequence[Path],
    *,
    samples: int = 5,
    top: int = 10,
) -> Dict[str, Any]:
    groups = group_duplicates(records)
    extensions: Counter = Counter()
    reclaimable = 0
    library_groups = 0
    for group in groups:
        keeper = select_keeper(group, library_roots)
        in_library = [m for m in group.members if matching_root(m.path, library_roots) is not None]
        if len(in_library) > 1:
            library_groups += 1
        for member in group.members:
            extensions[member.path.suffix.lower() or "(none)"] += 1
        for member in removal_candidates(group, keeper):
            reclaimable += member.size_bytes or 0
    return {
        "files_in_groups": sum(len(group.members) for group in groups),
        "groups": len(groups),
        "removal_candidates": sum(len(group.members) - 1 for group in groups),
        "library_internal_groups": library_groups,
        "reclaimable_bytes": reclaimable,
        "top_extensions": extensions.most_common(top),
        "samples": [[str(m.path) for m in group.members] for group in groups[:samples]],
    }


def render_duplicate_summary(summary: Dict[str, Any]) -> str:
    lines = [
        f"Files in duplicate sets: {summary['files_in_groups']}",
        f"Duplicate sets: {summary['groups']}",
        f"Removal candidates: {summary['removal_candidates']}",
        f"Sets inside the library: {summary['library_internal_groups']}",
        f"Reclaimable bytes: {summary['reclaimable_bytes']}",
    ]
    if summary["top_extensions"]:
        lines.append("Top extensions:")
        lines.extend(f"  {ext}: {count}" for ext, count in summary["top_extensions"])
    for index, members in enumerate(summary["samples"], start=1):
        lines.append(f"Sample set {index}:")
        lines.extend(f"  {path}" for path in members)
    return "\n".join(lines)
