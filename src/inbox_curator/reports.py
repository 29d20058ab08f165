import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .records import (
    BUNDLE_STANDALONE,
    ClassificationRecord,
    FileRecord,
    RecordInvalidError,
    record_from_dict,
)
from .util import timestamp_slug

REPORT_FORMATS = ("rmlint", "czkawka")

# Legacy mover categories, matched in order against the lowercased category.
LEGACY_CATEGORY_FOLDERS: List[Tuple[str, str]] = [
    (r"note", "ROM/Notes"),
    (r"document", "ROM/Documents"),
    (r"config", "ROM/Configs"),
    (r"photo|image", "ROM/Photos"),
    (r"music|audio", "ROM/Music"),
    (r"video|movie", "RAM/Movies"),
]
LEGACY_DEFAULT_FOLDER = "ROM/Misc"


class InputMissingError(Exception):
    pass


@dataclass
class InvalidRecord:
    index: int
    source: Optional[str]
    error: str


@dataclass
class ClassificationReport:
    path: Path
    records: List[ClassificationRecord] = field(default_factory=list)
    invalid: List[InvalidRecord] = field(default_factory=list)


def _read_report_text(path: Path) -> str:
    if not path.exists():
        raise InputMissingError(f"Report not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputMissingError(f"Report unreadable: {path} ({exc})") from exc
    if not text.strip():
        raise InputMissingError(f"Report is empty: {path}")
    return text


def _read_report_json(path: Path) -> Any:
    text = _read_report_text(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise InputMissingError(f"Report is not valid JSON: {path}") from exc


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def parse_rmlint_entries(entries: Any) -> List[FileRecord]:
    if isinstance(entries, dict):
        entries = entries.get("files") or entries.get("duplicates") or []
    if not isinstance(entries, list):
        raise InputMissingError("Duplicate report must hold a JSON list")
    records: List[FileRecord] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        entry_type = entry.get("type")
        if entry_type is not None and entry_type != "duplicate_file":
            continue
        path = entry.get("path")
        checksum = entry.get("checksum")
        if not isinstance(path, str) or not path or checksum in (None, ""):
            continue
        is_original = entry.get("is_original", entry.get("isOriginal", False))
        records.append(
            FileRecord(
                path=Path(path),
                checksum=str(checksum),
                is_original=bool(is_original),
                size_bytes=_as_int(entry.get("size", entry.get("sizeBytes"))),
                modified_at=_as_float(entry.get("mtime", entry.get("modifiedAt"))),
            )
        )
    return records


def parse_czkawka_report(text: str) -> List[FileRecord]:
    records: List[FileRecord] = []
    group = 0
    in_group = False
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith("----"):
            group += 1
            in_group = True
            continue
        if not line:
            in_group = False
            continue
        if not in_group:
            continue
        if line.startswith('"') and line.count('"') >= 2:
            path = line[1 : line.index('"', 1)]
        elif line.startswith("/"):
            path = line.split(" - ", 1)[0].strip()
        else:
            continue
        records.append(FileRecord(path=Path(path), checksum=f"czkawka-group-{group}"))
    return records


def load_duplicate_report(path: Path, report_format: str = "rmlint") -> List[FileRecord]:
    if report_format not in REPORT_FORMATS:
        raise ValueError(f"Unknown report format: {report_format}")
    if report_format == "czkawka":
        return parse_czkawka_report(_read_report_text(path))
    return parse_rmlint_entries(_read_report_json(path))


def _legacy_folder(category: Optional[str]) -> str:
    text = (category or "").lower()
    for pattern, folder in LEGACY_CATEGORY_FOLDERS:
        if re.search(pattern, text):
            return folder
    return LEGACY_DEFAULT_FOLDER


def is_legacy_entry(entry: Dict[str, Any]) -> bool:
    return "original_path" in entry and "source_path" not in entry


def legacy_to_canonical(entry: Dict[str, Any]) -> Dict[str, Any]:
    original = entry.get("original_path")
    if not isinstance(original, str):
        raise RecordInvalidError("original_path must be a string")
    source = original.replace("%20", " ")
    proposed = entry.get("proposed_name")
    if not isinstance(proposed, str) or not proposed.strip():
        proposed = Path(source).name
    category = entry.get("category") if isinstance(entry.get("category"), str) else None
    return {
        "source_path": source,
        "bundle_type": BUNDLE_STANDALONE,
        "suggested_name": Path(proposed).stem,
        "recommended_path": _legacy_folder(category) + "/",
        "confidence": entry.get("confidence"),
        "category": category,
        "files": [
            {
                "original_name": Path(source).name,
                "category": category,
                "rename_to": proposed,
            }
        ],
    }


def parse_classification_entries(entries: Any, path: Path) -> ClassificationReport:
    if isinstance(entries, dict):
        entries = entries.get("items", entries.get("records"))
    if not isinstance(entries, list):
        raise InputMissingError(f"Classification report must hold a JSON list: {path}")
    report = ClassificationReport(path=path)
    for index, entry in enumerate(entries):
        source = None
        if isinstance(entry, dict):
            source_value = entry.get("source_path", entry.get("original_path"))
            source = source_value if isinstance(source_value, str) else None
        try:
            if isinstance(entry, dict) and is_legacy_entry(entry):
                entry = legacy_to_canonical(entry)
            report.records.append(record_from_dict(entry))
        except RecordInvalidError as exc:
            report.invalid.append(InvalidRecord(index=index, source=source, error=str(exc)))
    return report


def load_classification_report(path: Path) -> ClassificationReport:
    return parse_classification_entries(_read_report_json(path), path)


def archive_report(path: Path, now: datetime) -> Path:
    target = path.with_name(f"{path.name}.processed-{timestamp_slug(now)}")
    path.replace(target)
    return target
