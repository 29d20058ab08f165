import fcntl
import hashlib
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterable, Iterator, List

from .util import ensure_dir


class RunLockedError(Exception):
    pass


def _lock_name(path: Path) -> str:
    digest = hashlib.sha256(str(path).encode("utf-8")).hexdigest()[:16]
    safe = path.name.replace(" ", "_") or "root"
    return f"run-{safe}-{digest}.lock"


@contextmanager
def run_lock(state_dir: Path, roots: Iterable[Path]) -> Iterator[List[Path]]:
    ensure_dir(state_dir)
    handles: List[IO[str]] = []
    lock_files: List[Path] = []
    try:
        for root in sorted(set(roots), key=str):
            lock_file = state_dir / _lock_name(root)
            handle = lock_file.open("w")
            try:
                fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError as exc:
                handle.close()
                raise RunLockedError(f"Another run is active for {root}") from exc
            handles.append(handle)
            lock_files.append(lock_file)
        yield lock_files
    finally:
        for handle in handles:
            fcntl.flock(handle, fcntl.LOCK_UN)
            handle.close()
