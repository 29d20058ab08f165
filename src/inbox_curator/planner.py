import os
import re
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .config import CuratorSettings
from .context import RunContext
from .plans import ACTION_MOVE, ACTION_REVIEW, ACTION_SKIP, RelocationPlan
from .records import ClassificationRecord, ClassifiedFile
from .reports import InvalidRecord
from .scope import matching_root, path_within
from .util import sanitize_filename, sanitize_folder_name, split_extension

CORRUPTED_NAME_CHARS = set('<>*?"|\x00')
MUSIC_ALBUM = "MusicAlbum"


def review_reason(record: ClassificationRecord, threshold: float) -> Optional[str]:
    if record.confidence < threshold:
        return "low_confidence"
    name = record.suggested_name
    if name.endswith("]") or name.endswith("."):
        return "corrupted_name"
    if any(ch in CORRUPTED_NAME_CHARS for ch in name):
        return "corrupted_name"
    return None


def _library_roots(settings: CuratorSettings) -> List[Path]:
    roots = list(settings.library_dirs)
    if settings.library_base not in roots:
        roots.append(settings.library_base)
    return roots


def normalize_destination(raw: str, settings: CuratorSettings) -> Tuple[Optional[Path], bool]:
    text = re.sub(r"/+", "/", raw.strip().replace("\\", "/"))
    if not text:
        text = settings.default_destination
    explicit_dir = text.endswith("/")
    path = Path(text)
    if not path.is_absolute():
        path = settings.library_base / path
    normalized = Path(os.path.normpath(str(path)))
    if matching_root(normalized, _library_roots(settings)) is None:
        return None, explicit_dir
    return normalized, explicit_dir


def split_filename_segment(
    directory: Path, source: Path, settings: CuratorSettings
) -> Tuple[Path, Optional[str]]:
    stem, suffix = split_extension(directory.name)
    if not suffix:
        return directory, None
    source_stem, source_suffix = split_extension(source.name)
    if suffix.lower() != source_suffix.lower() and stem.lower() != source_stem.lower():
        return directory, None
    parent = directory.parent
    if matching_root(parent, _library_roots(settings)) is None:
        return directory, None
    return parent, directory.name


def bundle_folder_name(record: ClassificationRecord) -> str:
    name = record.suggested_name
    if record.bundle_type == MUSIC_ALBUM and record.year:
        name = f"{name}_{record.year}"
    return sanitize_folder_name(name, fallback=sanitize_folder_name(record.source_path.name))


def final_name(
    original_name: str,
    rename_to: Optional[str],
    pre_split: Optional[str],
    case: str,
) -> str:
    if pre_split:
        candidate = sanitize_filename(pre_split, case)
    elif rename_to:
        candidate = sanitize_filename(rename_to.replace("\\", "/").rsplit("/", 1)[-1], case)
    else:
        candidate = sanitize_filename(original_name, case)
    _, extension = split_extension(candidate)
    _, source_extension = split_extension(original_name)
    if not extension and source_extension:
        if case == "lower":
            source_extension = source_extension.lower()
        candidate = f"{candidate}{source_extension}"
    return candidate


def _review_plan(source: Path, ctx: RunContext, reason: str) -> RelocationPlan:
    if not os.path.lexists(source):
        return RelocationPlan(source=source, destination=None, action=ACTION_REVIEW, reason=reason)
    destination = ctx.claim_destination(ctx.settings.review_dir / source.name)
    return RelocationPlan(source=source, destination=destination, action=ACTION_REVIEW, reason=reason)


def _move_plan(
    source: Path,
    candidate: Path,
    ctx: RunContext,
    category: Optional[str],
) -> RelocationPlan:
    if candidate == source:
        return RelocationPlan(
            source=source, destination=None, action=ACTION_SKIP, reason="already_in_place"
        )
    destination = ctx.claim_destination(candidate)
    if destination is None:
        return RelocationPlan(
            source=source,
            destination=None,
            action=ACTION_REVIEW,
            reason="collision_exhausted",
            category=category,
        )
    return RelocationPlan(source=source, destination=destination, action=ACTION_MOVE, category=category)


def _plan_bundle_file(
    record: ClassificationRecord,
    item: ClassifiedFile,
    directory: Path,
    ctx: RunContext,
) -> RelocationPlan:
    settings = ctx.settings
    source_root = record.source_path
    file_source = Path(os.path.normpath(str(source_root / item.original_name)))
    if file_source == source_root or not path_within(file_source, source_root):
        return RelocationPlan(
            source=file_source, destination=None, action=ACTION_REVIEW, reason="outside_source"
        )
    if not os.path.lexists(file_source):
        return RelocationPlan(
            source=file_source, destination=None, action=ACTION_REVIEW, reason="missing_in_source"
        )
    target_dir = directory
    plan = record.subfolder_plan
    if plan.enabled and source_root.is_dir():
        subfolder = plan.subfolder_for(item.category, settings.default_subfolder)
        target_dir = directory / sanitize_folder_name(subfolder, fallback=settings.default_subfolder)
    name = final_name(file_source.name, item.rename_to, None, settings.name_case)
    return _move_plan(file_source, target_dir / name, ctx, item.category)


def plan_record(record: ClassificationRecord, ctx: RunContext) -> List[RelocationPlan]:
    settings = ctx.settings
    source = record.source_path
    reason = review_reason(record, settings.confidence_threshold)
    if reason:
        return [_review_plan(source, ctx, reason)]
    if not os.path.lexists(source):
        return [
            RelocationPlan(source=source, destination=None, action=ACTION_REVIEW, reason="source_missing")
        ]
    directory, explicit_dir = normalize_destination(record.recommended_path, settings)
    if directory is None:
        return [_review_plan(source, ctx, "destination_outside_library")]

    if source.is_file() and len(record.files) <= 1:
        pre_split = None
        if not explicit_dir:
            directory, pre_split = split_filename_segment(directory, source, settings)
        listed = record.files[0] if record.files else None
        name = final_name(
            source.name,
            listed.rename_to if listed else None,
            pre_split,
            settings.name_case,
        )
        category = listed.category if listed and listed.category else record.category
        return [_move_plan(source, directory / name, ctx, category)]

    if source.is_dir():
        directory = directory / bundle_folder_name(record)
    if not record.files:
        return [_move_plan(source, directory, ctx, record.category)]

    return [_plan_bundle_file(record, item, directory, ctx) for item in record.files]


def plan_records(records: Iterable[ClassificationRecord], ctx: RunContext) -> List[RelocationPlan]:
    plans: List[RelocationPlan] = []
    for record in records:
        plans.extend(plan_record(record, ctx))
    return plans


def plans_for_invalid(invalid: Iterable[InvalidRecord]) -> List[RelocationPlan]:
    return [
        RelocationPlan(
            source=Path(item.source) if item.source else Path(f"record[{item.index}]"),
            destination=None,
            action=ACTION_SKIP,
            reason=f"invalid_record: {item.error}",
        )
        for item in invalid
    ]
