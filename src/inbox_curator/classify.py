import mimetypes
import os
from collections import Counter
from pathlib import Path
from typing import List, Optional

from .config import CuratorSettings
from .ollama import OllamaClient
from .records import (
    BUNDLE_STANDALONE,
    ClassificationRecord,
    ClassifiedFile,
    RecordInvalidError,
    SubfolderPlan,
    parse_confidence,
    record_to_dict,
)
from .scope import path_within
from .util import (
    extract_json_object,
    is_hidden,
    sanitize_filename,
    sanitize_folder_name,
    write_json,
)

IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".tiff", ".bmp", ".heic", ".webp"}
VIDEO_EXTS = {".mp4", ".mov", ".mkv", ".avi", ".m4v", ".webm"}
AUDIO_EXTS = {".mp3", ".wav", ".aac", ".m4a", ".flac", ".ogg"}
ARCHIVE_EXTS = {".zip", ".tar", ".gz", ".tgz", ".rar", ".7z"}
DOC_EXTS = {".pdf", ".doc", ".docx", ".pages", ".odt", ".rtf"}
NOTE_EXTS = {".txt", ".md", ".markdown", ".org"}
CONFIG_EXTS = {".ini", ".conf", ".cfg", ".yaml", ".yml", ".toml", ".env"}
PRESENTATION_EXTS = {".ppt", ".pptx", ".key"}
SPREADSHEET_EXTS = {".xls", ".xlsx", ".numbers", ".ods"}
CODE_EXTS = {".py", ".js", ".ts", ".swift", ".java", ".go", ".rs", ".c", ".h", ".cpp", ".sh"}
DATA_EXTS = {".csv", ".tsv", ".json", ".parquet", ".sqlite"}

_GROUP_EXTS = [
    ("Image", IMAGE_EXTS),
    ("Video", VIDEO_EXTS),
    ("Audio", AUDIO_EXTS),
    ("Archive", ARCHIVE_EXTS),
    ("Document", DOC_EXTS),
    ("Note", NOTE_EXTS),
    ("Config", CONFIG_EXTS),
    ("Presentation", PRESENTATION_EXTS),
    ("Spreadsheet", SPREADSHEET_EXTS),
    ("Code", CODE_EXTS),
    ("Data", DATA_EXTS),
]

GROUP_FOLDERS = {
    "Image": "Photos",
    "Video": "Movies",
    "Audio": "Music",
    "Archive": "Archives",
    "Document": "Documents",
    "Note": "Notes",
    "Config": "Configs",
    "Presentation": "Documents/Presentations",
    "Spreadsheet": "Documents/Spreadsheets",
    "Code": "Code",
    "Data": "Data",
}

BUNDLE_TYPES = {
    "Audio": "MusicAlbum",
    "Image": "PhotoAlbum",
    "Video": "VideoBundle",
    "Document": "DocumentSet",
}
MIXED_BUNDLE = "MixedBundle"
MIXED_FOLDER = "Collections"
BUNDLE_SUBFOLDERS = {
    "Image": "Images",
    "Audio": "Audio",
    "Video": "Video",
    "Document": "Documents",
    "Note": "Documents",
}

RULE_CONFIDENCE = 0.6
MIXED_CONFIDENCE = 0.5
UNKNOWN_CONFIDENCE = 0.3
DOMINANT_SHARE = 0.8


def type_group_for(path: Path) -> str:
    ext = path.suffix.lower()
    for group, exts in _GROUP_EXTS:
        if ext in exts:
            return group
    mime, _ = mimetypes.guess_type(path.name)
    if mime:
        for prefix, group in (("image/", "Image"), ("video/", "Video"), ("audio/", "Audio")):
            if mime.startswith(prefix):
                return group
        if mime.startswith("text/"):
            return "Note"
    return "Other"


def scan_inbox(inbox: Path, settings: CuratorSettings) -> List[Path]:
    if not inbox.is_dir():
        return []
    items: List[Path] = []
    for entry in sorted(inbox.iterdir(), key=lambda p: p.name.lower()):
        if is_hidden(entry) or entry.is_symlink():
            continue
        if path_within(entry, settings.review_dir) or path_within(settings.review_dir, entry):
            continue
        items.append(entry)
        if len(items) >= settings.max_files:
            break
    return items


def folder_files(folder: Path, max_files: int) -> List[Path]:
    found: List[Path] = []
    for current, dirs, files in os.walk(folder):
        dirs[:] = sorted(d for d in dirs if not d.startswith("."))
        for name in sorted(files):
            if name.startswith("."):
                continue
            found.append(Path(current, name).relative_to(folder))
            if len(found) >= max_files:
                return found
    return found


def _file_record(item: Path, settings: CuratorSettings) -> ClassificationRecord:
    group = type_group_for(item)
    folder = GROUP_FOLDERS.get(group, settings.default_destination)
    return ClassificationRecord(
        source_path=item,
        bundle_type=BUNDLE_STANDALONE,
        suggested_name=sanitize_filename(item.stem),
        recommended_path=f"{folder}/",
        confidence=RULE_CONFIDENCE if group in GROUP_FOLDERS else UNKNOWN_CONFIDENCE,
        files=[ClassifiedFile(original_name=item.name, category=group)],
        category=group,
    )


def _folder_record(item: Path, settings: CuratorSettings) -> ClassificationRecord:
    names = folder_files(item, settings.max_files)
    files = [ClassifiedFile(original_name=str(name), category=type_group_for(name)) for name in names]
    folder_name = sanitize_folder_name(item.name)
    if not files:
        return ClassificationRecord(
            source_path=item,
            bundle_type=MIXED_BUNDLE,
            suggested_name=folder_name,
            recommended_path=f"{settings.default_destination}/",
            confidence=UNKNOWN_CONFIDENCE,
        )
    counts = Counter(entry.category for entry in files)
    dominant, dominant_count = counts.most_common(1)[0]
    if dominant in BUNDLE_TYPES and dominant_count / len(files) >= DOMINANT_SHARE:
        return ClassificationRecord(
            source_path=item,
            bundle_type=BUNDLE_TYPES[dominant],
            suggested_name=folder_name,
            recommended_path=f"{GROUP_FOLDERS[dominant]}/",
            confidence=RULE_CONFIDENCE,
            files=files,
            category=dominant,
        )
    return ClassificationRecord(
        source_path=item,
        bundle_type=MIXED_BUNDLE,
        suggested_name=folder_name,
        recommended_path=f"{MIXED_FOLDER}/",
        confidence=MIXED_CONFIDENCE,
        files=files,
        subfolder_plan=SubfolderPlan(enabled=True, mapping=dict(BUNDLE_SUBFOLDERS)),
    )


def rule_record(item: Path, settings: CuratorSettings) -> ClassificationRecord:
    if item.is_dir():
        return _folder_record(item, settings)
    return _file_record(item, settings)


def _normalize_group(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    wanted = value.strip().lower()
    for group in GROUP_FOLDERS:
        if group.lower() == wanted:
            return group
    return None


def ai_record(
    item: Path,
    rule: ClassificationRecord,
    client: OllamaClient,
    model: str,
) -> ClassificationRecord:
    kind = "folder" if item.is_dir() else "file"
    system = (
        "You sort inbox items into a personal library. "
        "Answer with one JSON object and nothing else."
    )
    prompt = (
        f"Item name: {item.name}\n"
        f"Item kind: {kind}\n"
        f"Rule-based guess: {rule.category or 'Other'}\n"
        f"Categories: {', '.join(GROUP_FOLDERS)}\n"
        "Return ONLY JSON: "
        '{"category": "...", "suggested_name": "...", "confidence": 0.0}'
    )
    try:
        raw = client.generate(
            model=model,
            prompt=prompt,
            system=system,
            temperature=0.2,
            log_context={
                "operation": "classify",
                "extension": item.suffix.lower(),
                "type_group": rule.category,
                "item_kind": kind,
            },
        )
    except RuntimeError as exc:
        print(f"Classifier unavailable for {item.name}; using rules ({exc})")
        return rule
    parsed = extract_json_object(raw)
    if not parsed:
        return rule
    group = _normalize_group(parsed.get("category")) or rule.category
    suggested = parsed.get("suggested_name")
    if not isinstance(suggested, str) or not suggested.strip():
        return rule
    try:
        confidence = parse_confidence(parsed.get("confidence"))
    except RecordInvalidError:
        confidence = rule.confidence
    if item.is_dir():
        folder = GROUP_FOLDERS.get(group or "", MIXED_FOLDER)
        return ClassificationRecord(
            source_path=item,
            bundle_type=rule.bundle_type,
            suggested_name=suggested,
            recommended_path=f"{folder}/",
            confidence=confidence,
            files=rule.files,
            subfolder_plan=rule.subfolder_plan,
            category=group,
        )
    folder = GROUP_FOLDERS.get(group or "", rule.recommended_path.rstrip("/"))
    return ClassificationRecord(
        source_path=item,
        bundle_type=BUNDLE_STANDALONE,
        suggested_name=suggested,
        recommended_path=f"{folder}/",
        confidence=confidence,
        files=[ClassifiedFile(original_name=item.name, category=group, rename_to=suggested)],
        category=group,
    )


def classify_inbox(
    inbox: Path,
    settings: CuratorSettings,
    client: Optional[OllamaClient] = None,
    model: Optional[str] = None,
) -> List[ClassificationRecord]:
    records: List[ClassificationRecord] = []
    for item in scan_inbox(inbox, settings):
        rule = rule_record(item, settings)
        if client is None:
            records.append(rule)
            continue
        records.append(ai_record(item, rule, client, model or settings.model))
    return records


def write_classification_report(records: List[ClassificationRecord], path: Path) -> Path:
    return write_json(path, [record_to_dict(record) for record in records])
