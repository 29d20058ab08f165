import os
from pathlib import Path
from typing import Iterable, Optional, Union

MANAGED = "managed"
PROTECTED = "protected"

PathLike = Union[str, Path]


def _root_text(root: PathLike) -> str:
    text = str(root)
    if len(text) > 1:
        text = text.rstrip(os.sep) or os.sep
    return text


def path_within(path: PathLike, root: PathLike) -> bool:
    path_text = str(path)
    root_text = _root_text(root)
    if path_text == root_text:
        return True
    if root_text == os.sep:
        return path_text.startswith(os.sep)
    return path_text.startswith(root_text + os.sep)


def matching_root(path: PathLike, roots: Iterable[PathLike]) -> Optional[str]:
    for root in roots:
        if path_within(path, root):
            return _root_text(root)
    return None


def classify_path(path: PathLike, managed_roots: Iterable[PathLike]) -> str:
    if matching_root(path, managed_roots) is not None:
        return MANAGED
    return PROTECTED


def is_mutable(
    path: PathLike,
    managed_roots: Iterable[PathLike],
    only_inside_managed: bool = True,
) -> bool:
    if not only_inside_managed:
        return True
    return classify_path(path, managed_roots) == MANAGED
