import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .util import ensure_dir

LOG_EVENT = "classifier.generate"
ITEM_KEYS = ("operation", "item_kind", "extension", "type_group")


def resolve_log_path(path_value: Optional[str], logs_dir: Optional[Path]) -> Optional[Path]:
    if not path_value:
        return None
    path = Path(path_value).expanduser()
    if path.is_absolute():
        return path
    return (logs_dir or Path.cwd()) / path


def classifier_log_entry(
    *,
    model: str,
    prompt_chars: int,
    response_chars: int,
    duration_ms: int,
    error_type: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    fallback_used: bool = False,
) -> Dict[str, Any]:
    """One JSONL record per classifier call. Item names and prompts are never logged."""
    entry: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": LOG_EVENT,
        "model": model,
        "prompt_chars": prompt_chars,
        "response_chars": response_chars,
        "duration_ms": duration_ms,
        "success": error_type is None,
    }
    if error_type:
        entry["error_type"] = error_type
    if fallback_used:
        entry["fallback_used"] = True
    item = {key: str(context[key]) for key in ITEM_KEYS if context and context.get(key) is not None}
    if item:
        entry["item"] = item
    return entry


def append_ai_log(log_path: Path, entry: Dict[str, Any]) -> None:
    # best effort
    try:
        ensure_dir(log_path.parent)
        with log_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(entry, sort_keys=True) + "\n")
    except OSError:
        return
