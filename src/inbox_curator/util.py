import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

_EXTENSION_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]{0,4}$")
_PLACEHOLDER = "_"


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


def sanitize_folder_name(name: str, fallback: str = "Unsorted") -> str:
    cleaned = re.sub(r"[\\/]+", "-", name)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    cleaned = re.sub(r"[^\w \-]", "", cleaned)
    if not cleaned or cleaned in {".", ".."}:
        return fallback
    if len(cleaned) > 60:
        cleaned = cleaned[:60].rstrip()
    return cleaned


def looks_like_extension(suffix: str) -> bool:
    return bool(_EXTENSION_RE.match(suffix.lstrip(".")))


def split_extension(name: str) -> Tuple[str, str]:
    stem, dot, suffix = name.rpartition(".")
    if dot and stem and looks_like_extension(suffix):
        return stem, f".{suffix}"
    return name, ""


def _clean_part(value: str) -> str:
    cleaned = re.sub(r"[^\w.\-]", _PLACEHOLDER, value)
    cleaned = re.sub(r"_+", _PLACEHOLDER, cleaned)
    return cleaned.strip(_PLACEHOLDER + ".")


def sanitize_filename(name: str, case: str = "preserve") -> str:
    stem, suffix = split_extension(name.strip())
    clean_stem = _clean_part(stem)
    clean_suffix = _clean_part(suffix)
    if case == "lower":
        clean_stem = clean_stem.lower()
        clean_suffix = clean_suffix.lower()
    if not clean_stem:
        clean_stem = "unnamed"
    if len(clean_stem) > 120:
        clean_stem = clean_stem[:120].rstrip(_PLACEHOLDER)
    return f"{clean_stem}.{clean_suffix}" if clean_suffix else clean_stem


def split_path_list(value: object) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[str] = re.split(r"[,:]", value)
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        return []
    return [item.strip() for item in items if item and item.strip()]


def parse_bool(value: object, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off", ""}:
        return False
    return default


def normalize_root(value: str) -> Path:
    return Path(os.path.abspath(os.path.expanduser(value)))


def extract_json_object(text: str) -> Optional[dict]:
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start : i + 1])
                except json.JSONDecodeError:
                    return None
    return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_slug(moment: datetime) -> str:
    return moment.strftime("%Y%m%dT%H%M%SZ")


def write_json(path: Path, payload: object) -> Path:
    ensure_dir(path.parent)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    tmp_path.replace(path)
    return path


def ensure_dir(path: Path) -> None:
    os.makedirs(path, exist_ok=True)
