# wheelflow/store/component_store.py
"""
Descriptor storage for one project.

Every component lives in its own directory holding ``cmp.wheel.json``; the
project root additionally holds ``prj.wheel.json`` with the component path
table. Reads are greedy (a descriptor being rewritten by another process is
re-read until it parses), writes replace the file atomically.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from wheelflow.core.constants import (
    COMPONENT_JSON_FILENAME,
    PROJECT_JSON_FILENAME,
    RUNTIME_ONLY_KEYS,
)
from wheelflow.graph.tree import build_component_tree, children_ids
from wheelflow.store.vcs import NullVersionControl, VersionControl
from wheelflow.utils.io import read_json_greedy, to_path, write_json
from wheelflow.utils.logger import get_logger

logger = get_logger("store")

PathLike = Union[str, Path]


def strip_runtime_keys(descriptor: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in descriptor.items() if k not in RUNTIME_ONLY_KEYS}


class ComponentStore:
    def __init__(
        self,
        project_root: PathLike,
        vcs: Optional[VersionControl] = None,
        read_retries: int = 10,
        read_retry_interval: float = 0.5,
    ):
        self.project_root = to_path(project_root).resolve()
        self.vcs = vcs if vcs is not None else NullVersionControl()
        self.read_retries = read_retries
        self.read_retry_interval = read_retry_interval
        # ID -> (directory hint, descriptor) while a batch is open
        self._batch: Optional[Dict[str, List[Any]]] = None

    # -------- project descriptor --------
    @property
    def project_json_path(self) -> Path:
        return self.project_root / PROJECT_JSON_FILENAME

    def project_json(self) -> Dict[str, Any]:
        return self._read(self.project_json_path)

    def write_project_json(self, project: Dict[str, Any]) -> Path:
        p = write_json(self.project_json_path, project)
        self.vcs.add(self.project_root, p)
        return p

    def component_path(self) -> Dict[str, str]:
        return dict(self.project_json().get("componentPath", {}))

    # -------- component descriptors --------
    def _read(self, path: Path) -> Any:
        return read_json_greedy(path, retries=self.read_retries, interval=self.read_retry_interval)

    def dir_of(self, component_id: str, absolute: bool = True) -> Optional[Path]:
        rel = self.component_path().get(component_id)
        if rel is None:
            return None
        if not absolute:
            return Path(rel)
        return (self.project_root / rel).resolve()

    def read_by_path(self, component_dir: PathLike) -> Dict[str, Any]:
        descriptor = self._read(to_path(component_dir) / COMPONENT_JSON_FILENAME)
        if self._batch is not None:
            cid = descriptor.get("ID")
            if cid in self._batch:
                return self._batch[cid][1]
            self._batch[cid] = [to_path(component_dir), descriptor, False]
        return descriptor

    def read_by_id(self, component_id: str) -> Optional[Dict[str, Any]]:
        if self._batch is not None and component_id in self._batch:
            return self._batch[component_id][1]
        d = self.dir_of(component_id)
        if d is None:
            return None
        return self.read_by_path(d)

    def root_component(self) -> Dict[str, Any]:
        return self.read_by_path(self.project_root)

    def write(self, component_dir: PathLike, descriptor: Dict[str, Any]) -> Optional[Path]:
        if self._batch is not None:
            self._batch[descriptor["ID"]] = [to_path(component_dir), descriptor, True]
            return None
        return self._write_now(to_path(component_dir), descriptor)

    def write_by_id(self, component_id: str, descriptor: Dict[str, Any]) -> Optional[Path]:
        d = self.dir_of(component_id)
        if d is None:
            raise FileNotFoundError(f"{component_id} is not registered in {PROJECT_JSON_FILENAME}")
        return self.write(d, descriptor)

    def _write_now(self, component_dir: Path, descriptor: Dict[str, Any]) -> Path:
        p = write_json(component_dir / COMPONENT_JSON_FILENAME, descriptor, replacer=strip_runtime_keys)
        logger.debug("write %s", p)
        self.vcs.add(self.project_root, p)
        return p

    @contextmanager
    def batch(self) -> Iterator["ComponentStore"]:
        """
        Group several read-modify-write steps.

        Descriptors read inside the block are cached and shared, writes are
        deferred and flushed together when the block exits normally. Nothing
        is written if the block raises. Nested batches join the outer one.
        """
        if self._batch is not None:
            yield self
            return
        self._batch = {}
        try:
            yield self
            pending = self._batch
        finally:
            self._batch = None
        for cid, (hint, descriptor, dirty) in pending.items():
            if not dirty:
                continue
            d = self.dir_of(cid) or hint
            self._write_now(d, descriptor)

    # -------- queries --------
    def get_children(self, parent_id: str) -> List[Dict[str, Any]]:
        """Direct child descriptors of parent_id, sub-components excluded."""
        G = build_component_tree(self.component_path())
        out: List[Dict[str, Any]] = []
        for cid in children_ids(G, parent_id):
            c = self.read_by_id(cid)
            if c is None or c.get("subComponent"):
                continue
            out.append(c)
        return out

    def get_children_by_dir(self, parent_dir: PathLike) -> List[Dict[str, Any]]:
        base = to_path(parent_dir)
        out: List[Dict[str, Any]] = []
        for d in sorted(p for p in base.iterdir() if p.is_dir()):
            if not (d / COMPONENT_JSON_FILENAME).exists():
                continue
            c = self.read_by_path(d)
            if c.get("subComponent"):
                continue
            out.append(c)
        return out

    def relative_path_between(self, src_id: str, dst_id: str) -> Optional[str]:
        src = self.dir_of(src_id)
        dst = self.dir_of(dst_id)
        if src is None or dst is None:
            return None
        return os.path.relpath(dst, src).replace(os.sep, "/")
