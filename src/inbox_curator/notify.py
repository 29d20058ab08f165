import json
import time
import urllib.error
import urllib.request
from typing import Callable, Optional

from .audit import AuditLog

MAX_CONTENT_CHARS = 1800
USER_AGENT = "inbox-curator/0.1"
SUCCESS_STATUSES = {200, 204}


def build_payload(text: str) -> bytes:
    body = text
    if len(body) > MAX_CONTENT_CHARS:
        body = "(truncated)\n" + body[-MAX_CONTENT_CHARS:]
    return json.dumps({"content": f"```\n{body}\n```"}).encode("utf-8")


def send_webhook(
    url: Optional[str],
    text: str,
    *,
    audit: Optional[AuditLog] = None,
    attempts: int = 3,
    timeout: float = 10,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    if not url:
        return False
    data = build_payload(text)
    last_error = ""
    for attempt in range(1, attempts + 1):
        req = urllib.request.Request(
            url,
            data=data,
            headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                status = getattr(resp, "status", 200)
            if status in SUCCESS_STATUSES:
                return True
            last_error = f"HTTP {status}"
        except (urllib.error.URLError, OSError) as exc:
            last_error = str(exc)
        if attempt < attempts:
            sleep(1)
    if audit:
        audit.write(f"NOTIFY FAILED after {attempts} attempts: {last_error}")
    return False
