# wheelflow/utils/io.py
from __future__ import annotations

import json
import shutil
import time
from pathlib import Path
from typing import Any, Callable, Optional, Union

from wheelflow.utils.logger import get_logger

logger = get_logger("io")

# -------- Path helpers --------
PathLike = Union[str, Path]


def to_path(p: PathLike) -> Path:
    """Convert string-like to pathlib.Path."""
    return p if isinstance(p, Path) else Path(p)


def ensure_parent(path: PathLike) -> Path:
    """Ensure parent directory exists for a file path."""
    p = to_path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


# -------- JSON --------
def read_json(path: PathLike) -> Any:
    """Load JSON file with UTF-8."""
    with to_path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


def write_json(
    path: PathLike,
    data: Any,
    indent: int = 4,
    replacer: Optional[Callable[[Any], Any]] = None,
) -> Path:
    """Write JSON atomically, pretty-formatted.

    ``replacer`` (if given) is applied to ``data`` before dumping, so callers
    can strip runtime-only keys without mutating their in-memory object.
    """
    p = ensure_parent(path)
    tmp = p.with_suffix(p.suffix + ".tmp")
    payload = replacer(data) if replacer is not None else data
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=indent)
    tmp.replace(p)
    return p


def read_json_greedy(path: PathLike, retries: int = 10, interval: float = 0.5) -> Any:
    """
    Read a JSON file that may be in the middle of being rewritten by someone else.

    Retries when:
      - the file does not exist (yet)
      - the file is empty
      - the content is not (yet) a complete JSON document
    Any other OS error is raised immediately. After the last attempt the last
    error is raised as-is.
    """
    p = to_path(path)
    attempts = max(1, int(retries))
    last_error: Optional[Exception] = None
    for i in range(attempts):
        try:
            text = p.read_text(encoding="utf-8")
            if text.strip() == "":
                raise json.JSONDecodeError("empty file", text, 0)
            return json.loads(text)
        except (FileNotFoundError, json.JSONDecodeError) as e:
            last_error = e
            logger.debug("read %s failed (%d/%d): %s", p, i + 1, attempts, e)
            if i + 1 < attempts:
                time.sleep(interval)
    assert last_error is not None
    raise last_error


# -------- Directory helpers --------
def remove_tree(path: PathLike) -> None:
    """Remove a directory tree; missing paths are ignored."""
    p = to_path(path)
    if p.exists():
        shutil.rmtree(p)


def move(src: PathLike, dst: PathLike) -> Path:
    """Move a file or directory (create parents of dst)."""
    dst_p = ensure_parent(dst)
    shutil.move(str(to_path(src)), str(dst_p))
    return dst_p


def make_unused_dir(basename: PathLike, suffix: int = 0) -> Path:
    """
    Create ``<basename><n>`` with the smallest n >= suffix that is not taken yet
    and return its path.
    """
    base = str(basename)
    n = int(suffix)
    while Path(f"{base}{n}").exists():
        n += 1
    d = Path(f"{base}{n}")
    d.mkdir()
    return d
