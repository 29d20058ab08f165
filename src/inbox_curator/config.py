import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .util import normalize_root, parse_bool, split_path_list

CONFIG_DIR = Path.home() / ".config" / "inbox-curator"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "inbox_dirs": ["/data/inbox"],
    "library_dirs": ["/data/library"],
    "library_base": "",
    "quarantine_dir": "/data/quarantine/duplicates",
    "quarantine_strip_prefix": "/data",
    "review_dir": "/data/inbox/_review_pending",
    "reports_dir": "/data/reports",
    "logs_dir": "/data/logs",
    "state_dir": str(CONFIG_DIR / "state"),
    "duplicate_report": "rmlint.json",
    "retention_days": 30,
    "delete_instead_of_quarantine": False,
    "only_move_from_inbox": True,
    "confidence_threshold": 0.5,
    "max_collision_attempts": 100,
    "name_case": "preserve",
    "default_destination": "Misc/Unsorted",
    "default_subfolder": "Other",
    "webhook_url": "",
    "ollama_base_url": "http://localhost:11434",
    "model": "llama3.1:8b",
    "fallback_model": "",
    "ai_timeout_seconds": 60,
    "ai_log_path": ".inbox-curator/ai-interactions.jsonl",
    "max_files": 500,
}

ENV_OVERRIDES = {
    "INBOX_CURATOR_INBOX_DIRS": "inbox_dirs",
    "INBOX_CURATOR_LIBRARY_DIRS": "library_dirs",
    "INBOX_CURATOR_LIBRARY_BASE": "library_base",
    "INBOX_CURATOR_QUARANTINE_DIR": "quarantine_dir",
    "INBOX_CURATOR_REVIEW_DIR": "review_dir",
    "INBOX_CURATOR_REPORTS_DIR": "reports_dir",
    "INBOX_CURATOR_LOGS_DIR": "logs_dir",
    "INBOX_CURATOR_RETENTION_DAYS": "retention_days",
    "INBOX_CURATOR_DELETE_INSTEAD_OF_QUARANTINE": "delete_instead_of_quarantine",
    "INBOX_CURATOR_ONLY_MOVE_FROM_INBOX": "only_move_from_inbox",
    "INBOX_CURATOR_CONFIDENCE_THRESHOLD": "confidence_threshold",
    "INBOX_CURATOR_WEBHOOK_URL": "webhook_url",
    "INBOX_CURATOR_OLLAMA_BASE_URL": "ollama_base_url",
    "INBOX_CURATOR_MODEL": "model",
    "INBOX_CURATOR_AI_LOG_PATH": "ai_log_path",
}

NAME_CASES = {"preserve", "lower"}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class CuratorSettings:
    inbox_dirs: List[Path]
    library_dirs: List[Path]
    library_base: Path
    quarantine_dir: Path
    quarantine_strip_prefix: str
    review_dir: Path
    reports_dir: Path
    logs_dir: Path
    state_dir: Path
    duplicate_report: Path
    retention_days: int
    delete_instead_of_quarantine: bool
    only_move_from_inbox: bool
    confidence_threshold: float
    max_collision_attempts: int
    name_case: str
    default_destination: str
    default_subfolder: str
    webhook_url: Optional[str]
    ollama_base_url: str
    model: str
    fallback_model: Optional[str]
    ai_timeout_seconds: float
    ai_log_path: Optional[str]
    max_files: int


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    updated = dict(cfg)
    for env_key, cfg_key in ENV_OVERRIDES.items():
        value = os.environ.get(env_key)
        if value:
            updated[cfg_key] = value
    return updated


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    config_file = path or CONFIG_FILE
    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        config_file.write_text(json.dumps(DEFAULT_CONFIG, indent=2), encoding="utf-8")
    try:
        cfg = json.loads(config_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file is not valid JSON: {config_file}") from exc
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config file must hold a JSON object: {config_file}")
    merged = dict(DEFAULT_CONFIG)
    merged.update(cfg)
    if merged != cfg:
        config_file.write_text(json.dumps(merged, indent=2), encoding="utf-8")
    return _apply_env_overrides(merged)


def config_path() -> Path:
    return CONFIG_FILE


def _as_int(cfg: Dict[str, Any], key: str, minimum: int) -> int:
    try:
        value = int(cfg.get(key, DEFAULT_CONFIG[key]))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer") from exc
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}")
    return value


def _as_float(cfg: Dict[str, Any], key: str) -> float:
    try:
        return float(cfg.get(key, DEFAULT_CONFIG[key]))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number") from exc


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _roots(cfg: Dict[str, Any], key: str) -> List[Path]:
    return [normalize_root(item) for item in split_path_list(cfg.get(key))]


def settings_from_config(cfg: Dict[str, Any]) -> CuratorSettings:
    inbox_dirs = _roots(cfg, "inbox_dirs")
    library_dirs = _roots(cfg, "library_dirs")
    if not inbox_dirs:
        raise ConfigError("inbox_dirs must list at least one folder")
    if not library_dirs:
        raise ConfigError("library_dirs must list at least one folder")
    base_value = _as_text(cfg.get("library_base"))
    library_base = normalize_root(base_value) if base_value else library_dirs[0]
    reports_dir = normalize_root(str(cfg.get("reports_dir") or DEFAULT_CONFIG["reports_dir"]))
    report_value = str(cfg.get("duplicate_report") or DEFAULT_CONFIG["duplicate_report"])
    duplicate_report = Path(report_value).expanduser()
    if not duplicate_report.is_absolute():
        duplicate_report = reports_dir / duplicate_report
    name_case = str(cfg.get("name_case") or "preserve").strip().lower()
    if name_case not in NAME_CASES:
        raise ConfigError(f"name_case must be one of: {', '.join(sorted(NAME_CASES))}")
    threshold = _as_float(cfg, "confidence_threshold")
    if not 0.0 <= threshold <= 1.0:
        raise ConfigError("confidence_threshold must be between 0 and 1")
    return CuratorSettings(
        inbox_dirs=inbox_dirs,
        library_dirs=library_dirs,
        library_base=library_base,
        quarantine_dir=normalize_root(str(cfg.get("quarantine_dir") or DEFAULT_CONFIG["quarantine_dir"])),
        quarantine_strip_prefix=str(cfg.get("quarantine_strip_prefix") or "").rstrip("/"),
        review_dir=normalize_root(str(cfg.get("review_dir") or DEFAULT_CONFIG["review_dir"])),
        reports_dir=reports_dir,
        logs_dir=normalize_root(str(cfg.get("logs_dir") or DEFAULT_CONFIG["logs_dir"])),
        state_dir=normalize_root(str(cfg.get("state_dir") or DEFAULT_CONFIG["state_dir"])),
        duplicate_report=duplicate_report,
        retention_days=_as_int(cfg, "retention_days", 0),
        delete_instead_of_quarantine=parse_bool(cfg.get("delete_instead_of_quarantine"), False),
        only_move_from_inbox=parse_bool(cfg.get("only_move_from_inbox"), True),
        confidence_threshold=threshold,
        max_collision_attempts=_as_int(cfg, "max_collision_attempts", 1),
        name_case=name_case,
        default_destination=str(cfg.get("default_destination") or "Misc/Unsorted"),
        default_subfolder=str(cfg.get("default_subfolder") or "Other"),
        webhook_url=_as_text(cfg.get("webhook_url")),
        ollama_base_url=str(cfg.get("ollama_base_url") or DEFAULT_CONFIG["ollama_base_url"]),
        model=str(cfg.get("model") or DEFAULT_CONFIG["model"]),
        fallback_model=_as_text(cfg.get("fallback_model")),
        ai_timeout_seconds=_as_float(cfg, "ai_timeout_seconds"),
        ai_log_path=_as_text(cfg.get("ai_log_path")),
        max_files=_as_int(cfg, "max_files", 1),
    )
