from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

BUNDLE_STANDALONE = "Standalone"

CONFIDENCE_LABELS = {"high": 0.9, "medium": 0.6, "low": 0.3}


class RecordInvalidError(ValueError):
    pass


@dataclass(frozen=True)
class FileRecord:
    path: Path
    checksum: Optional[str] = None
    is_original: bool = False
    size_bytes: Optional[int] = None
    modified_at: Optional[float] = None


@dataclass(frozen=True)
class ClassifiedFile:
    original_name: str
    category: Optional[str] = None
    rename_to: Optional[str] = None


@dataclass(frozen=True)
class SubfolderPlan:
    enabled: bool = False
    mapping: Dict[str, str] = field(default_factory=dict)
    default: Optional[str] = None

    def subfolder_for(self, category: Optional[str], fallback: str) -> str:
        if category:
            wanted = category.strip().lower()
            for key, value in self.mapping.items():
                if key.strip().lower() == wanted and value:
                    return value
        return self.default or fallback


@dataclass(frozen=True)
class ClassificationRecord:
    source_path: Path
    bundle_type: str
    suggested_name: str
    recommended_path: str
    confidence: float
    files: List[ClassifiedFile] = field(default_factory=list)
    subfolder_plan: SubfolderPlan = field(default_factory=SubfolderPlan)
    category: Optional[str] = None
    year: Optional[str] = None


def _pick(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    if not value or value.lower() == "null":
        return None
    return value


def parse_confidence(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise RecordInvalidError("confidence must be a number")
    if isinstance(value, str):
        label = value.strip().lower()
        if label in CONFIDENCE_LABELS:
            return CONFIDENCE_LABELS[label]
        try:
            value = float(label)
        except ValueError as exc:
            raise RecordInvalidError(f"confidence not understood: {value!r}") from exc
    if not isinstance(value, (int, float)):
        raise RecordInvalidError("confidence must be a number")
    return min(max(float(value), 0.0), 1.0)


def _parse_files(raw_files: Any) -> List[ClassifiedFile]:
    if raw_files is None:
        return []
    if not isinstance(raw_files, list):
        raise RecordInvalidError("files must be a list")
    files: List[ClassifiedFile] = []
    for item in raw_files:
        if not isinstance(item, dict):
            continue
        name = _optional_text(_pick(item, "original_name", "originalName", "name"))
        if not name:
            continue
        files.append(
            ClassifiedFile(
                original_name=name,
                category=_optional_text(item.get("category")),
                rename_to=_optional_text(_pick(item, "rename_to", "renameTo")),
            )
        )
    return files


def _parse_subfolder_plan(raw_plan: Any) -> SubfolderPlan:
    if not isinstance(raw_plan, dict):
        return SubfolderPlan()
    mapping_raw = raw_plan.get("map") or raw_plan.get("mapping") or {}
    mapping: Dict[str, str] = {}
    if isinstance(mapping_raw, dict):
        for key, value in mapping_raw.items():
            text = _optional_text(value)
            if text:
                mapping[str(key)] = text
    return SubfolderPlan(
        enabled=bool(raw_plan.get("enabled", False)),
        mapping=mapping,
        default=_optional_text(raw_plan.get("default")),
    )


def record_from_dict(raw: Any) -> ClassificationRecord:
    if not isinstance(raw, dict):
        raise RecordInvalidError("record must be a JSON object")
    source = _pick(raw, "source_path", "sourcePath")
    suggested = _pick(raw, "suggested_name", "suggestedName")
    recommended = _pick(raw, "recommended_path", "recommendedPath")
    missing = [
        name
        for name, value in (
            ("source_path", source),
            ("suggested_name", suggested),
            ("recommended_path", recommended),
        )
        if not isinstance(value, str)
    ]
    if missing:
        raise RecordInvalidError(f"missing or non-string fields: {', '.join(missing)}")
    if not source.strip():
        raise RecordInvalidError("source_path is empty")
    metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
    return ClassificationRecord(
        source_path=Path(source.strip()),
        bundle_type=_optional_text(_pick(raw, "bundle_type", "bundleType")) or BUNDLE_STANDALONE,
        suggested_name=suggested.strip(),
        recommended_path=recommended.strip(),
        confidence=parse_confidence(raw.get("confidence")),
        files=_parse_files(raw.get("files")),
        subfolder_plan=_parse_subfolder_plan(_pick(raw, "subfolder_plan", "subfolderPlan")),
        category=_optional_text(raw.get("category") or metadata.get("category")),
        year=_optional_text(raw.get("year") or metadata.get("year")),
    )


def record_to_dict(record: ClassificationRecord) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "source_path": str(record.source_path),
        "bundle_type": record.bundle_type,
        "suggested_name": record.suggested_name,
        "recommended_path": record.recommended_path,
        "confidence": record.confidence,
        "files": [
            {
                "original_name": item.original_name,
                "category": item.category,
                "rename_to": item.rename_to,
            }
            for item in record.files
        ],
        "subfolder_plan": {
            "enabled": record.subfolder_plan.enabled,
            "map": dict(record.subfolder_plan.mapping),
            "default": record.subfolder_plan.default,
        },
    }
    if record.category:
        payload["category"] = record.category
    if record.year:
        payload["metadata"] = {"year": record.year}
    return payload
