# wheelflow/store/paths.py
"""Component path table: ID -> path relative to the project root ("./..."). """
from __future__ import annotations

import os
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Union

from wheelflow.utils.logger import get_logger

logger = get_logger("paths")


def _to_posix(p: str) -> str:
    return p.replace("\\", "/")


def is_path_inside(child: str, parent: str) -> bool:
    """True if child is strictly below parent (both relative or both absolute)."""
    c = PurePosixPath(os.path.normpath(_to_posix(child)))
    p = PurePosixPath(os.path.normpath(_to_posix(parent)))
    if c == p:
        return False
    return p in c.parents


def to_relative_component_path(project_root: Union[str, Path], abs_path: Union[str, Path]) -> str:
    rel = _to_posix(os.path.relpath(str(abs_path), str(project_root)))
    if rel == ".":
        return "./"
    return rel if rel.startswith(".") else f"./{rel}"


class PathManager:
    def __init__(self, store):
        self.store = store

    @property
    def project_root(self) -> Path:
        return self.store.project_root

    def component_path(self) -> Dict[str, str]:
        return self.store.component_path()

    def all_ids(self) -> List[str]:
        return list(self.component_path())

    def update_path(self, component_id: str, new_abs_path: Union[str, Path]) -> Dict[str, str]:
        """
        Register (or move) component_id to new_abs_path.

        Entries nested under the old path of component_id are re-based by
        replacing the old prefix; their descriptors are left alone.

        Returns:
            the updated path table
        """
        project = self.store.project_json()
        table: Dict[str, str] = project.setdefault("componentPath", {})
        new_path = to_relative_component_path(self.project_root, new_abs_path)

        old_path = table.get(component_id)
        if old_path is not None:
            for cid, p in list(table.items()):
                if p == old_path or is_path_inside(p, old_path):
                    table[cid] = _to_posix(p.replace(old_path, new_path, 1))
            logger.debug("path of %s moved: %s -> %s", component_id, old_path, new_path)

        table[component_id] = _to_posix(new_path)
        self.store.write_project_json(project)
        return table

    def descendant_ids(self, component_id: str) -> Optional[List[str]]:
        """component_id itself plus every ID whose path is inside its path."""
        table = self.component_path()
        base = table.get(component_id)
        if base is None:
            return None
        return [component_id] + [
            cid for cid, p in table.items() if cid != component_id and is_path_inside(p, base)
        ]

    def remove_paths(self, ids: Iterable[str], force: bool = False) -> Dict[str, str]:
        """Drop entries whose directory is gone (or every given entry with force)."""
        project = self.store.project_json()
        table: Dict[str, str] = project.get("componentPath", {})
        for cid in ids:
            p = table.get(cid)
            if p is None:
                continue
            if force or not (self.project_root / p).exists():
                del table[cid]
        self.store.write_project_json(project)
        return table

    def full_name(self, component_id: str) -> Optional[str]:
        """Path with the leading '.' stripped, e.g. '/wf0/task0'."""
        p = self.component_path().get(component_id)
        if p is None:
            return None
        return p[1:] if p.startswith(".") else p
