# wheelflow/store/vcs.py
"""
Version-control collaborator.

The core only needs four verbs (init / add / commit / remove); every call
must be safe to repeat on paths that are already tracked or untracked.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Sequence, Union

from git import Actor, Repo

from wheelflow.utils.logger import LOG_FILENAME, get_logger

logger = get_logger("vcs")

PathLike = Union[str, Path]


class VersionControl:
    def init(self, root_dir: PathLike, user: str, email: str) -> None:
        raise NotImplementedError

    def add(self, root_dir: PathLike, path: PathLike) -> None:
        raise NotImplementedError

    def commit(self, root_dir: PathLike, message: str, extra_paths: Optional[Sequence[PathLike]] = None) -> None:
        raise NotImplementedError

    def remove(self, root_dir: PathLike, path: PathLike) -> None:
        raise NotImplementedError


class NullVersionControl(VersionControl):
    """Does nothing; used when a project is not versioned."""

    def init(self, root_dir, user, email):
        return None

    def add(self, root_dir, path):
        return None

    def commit(self, root_dir, message, extra_paths=None):
        return None

    def remove(self, root_dir, path):
        return None


def _relative(root_dir: PathLike, path: PathLike) -> str:
    p = Path(path)
    if not p.is_absolute():
        p = Path(root_dir) / p
    return os.path.relpath(p, root_dir).replace(os.sep, "/")


class GitVersionControl(VersionControl):
    """git backend implemented with GitPython."""

    def _repo(self, root_dir: PathLike) -> Repo:
        return Repo(str(root_dir))

    def init(self, root_dir: PathLike, user: str, email: str) -> None:
        repo = Repo.init(str(root_dir))
        with repo.config_writer() as cw:
            cw.set_value("user", "name", user)
            cw.set_value("user", "email", email)
        gitignore = Path(root_dir) / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(f"{LOG_FILENAME}\n", encoding="utf-8")
        repo.git.add("--", ".gitignore")
        logger.debug("git repository initialised at %s", root_dir)

    def add(self, root_dir: PathLike, path: PathLike) -> None:
        # -A also stages deletions below path
        self._repo(root_dir).git.add("-A", "--", _relative(root_dir, path))

    def remove(self, root_dir: PathLike, path: PathLike) -> None:
        self._repo(root_dir).git.rm("-r", "--cached", "--ignore-unmatch", "--quiet", "--", _relative(root_dir, path))

    def commit(self, root_dir: PathLike, message: str, extra_paths: Optional[Sequence[PathLike]] = None) -> None:
        repo = self._repo(root_dir)
        for p in extra_paths or []:
            repo.git.add("-A", "--", _relative(root_dir, p))
        reader = repo.config_reader()
        author = Actor(reader.get_value("user", "name", "wheelflow"), reader.get_value("user", "email", "wheelflow@localhost"))
        repo.index.commit(message, author=author, committer=author)
        logger.debug("commit '%s' in %s", message, root_dir)

    def tracked_files(self, root_dir: PathLike) -> List[str]:
        return self._repo(root_dir).git.ls_files().splitlines()
