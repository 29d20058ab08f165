import time
from pathlib import Path
from typing import List, Optional

from .util import ensure_dir

AUDIT_FILE_NAME = "curator-audit.log"


def resolve_audit_path(logs_dir: Optional[Path]) -> Optional[Path]:
    if not logs_dir:
        return None
    return logs_dir / AUDIT_FILE_NAME


class AuditLog:
    """Append-only decision log, echoed to stdout like the rest of the CLI."""

    def __init__(self, path: Optional[Path] = None, *, echo: bool = True) -> None:
        self.path = path
        self.echo = echo
        self.prefix = ""
        self.lines: List[str] = []
        if self.path:
            ensure_dir(self.path.parent)
            self.path.touch(exist_ok=True)

    def write(self, message: str) -> None:
        text = f"{self.prefix}{message}"
        self.lines.append(text)
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{timestamp}] {text}"
        if self.echo:
            print(line)
        if self.path:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def block(self, text: str) -> None:
        for line in text.splitlines():
            self.write(line)
