from pathlib import Path
from typing import Any, Dict, List

import pytest

from wheelflow.graph.lifecycle import ComponentLifecycle
from wheelflow.graph.links import LinkEditor
from wheelflow.graph.project import create_new_project
from wheelflow.store.component_store import ComponentStore
from wheelflow.store.vcs import VersionControl


class RecordingVCS(VersionControl):
    """Keeps every call instead of talking to git."""

    def __init__(self):
        self.calls: List[tuple] = []

    def init(self, root_dir, user, email):
        self.calls.append(("init", Path(root_dir), user, email))

    def add(self, root_dir, path):
        self.calls.append(("add", Path(path)))

    def commit(self, root_dir, message, extra_paths=None):
        self.calls.append(("commit", message))

    def remove(self, root_dir, path):
        self.calls.append(("remove", Path(path)))

    def commits(self) -> List[str]:
        return [c[1] for c in self.calls if c[0] == "commit"]


@pytest.fixture
def vcs() -> RecordingVCS:
    return RecordingVCS()


@pytest.fixture
def project_root(tmp_path: Path, vcs: RecordingVCS) -> Path:
    return create_new_project(tmp_path / "testProject", "testProject", vcs=vcs)


@pytest.fixture
def store(project_root: Path, vcs: RecordingVCS) -> ComponentStore:
    return ComponentStore(project_root, vcs=vcs, read_retries=1, read_retry_interval=0.0)


@pytest.fixture
def links(store: ComponentStore) -> LinkEditor:
    return LinkEditor(store)


@pytest.fixture
def lifecycle(store: ComponentStore, links: LinkEditor) -> ComponentLifecycle:
    return ComponentLifecycle(store, links=links)


@pytest.fixture
def root_id(store: ComponentStore) -> str:
    return store.root_component()["ID"]


def references(descriptor: Dict[str, Any]) -> List[str]:
    """Every component ID a descriptor points at through any edge list."""
    out: List[str] = []
    for key in ("next", "previous", "else"):
        out.extend(descriptor.get(key) or [])
    for slot in descriptor.get("inputFiles") or []:
        out.extend(e["srcNode"] for e in slot.get("src") or [])
        out.extend(e["dstNode"] for e in slot.get("forwardTo") or [])
    for slot in descriptor.get("outputFiles") or []:
        out.extend(e["dstNode"] for e in slot.get("dst") or [])
        out.extend(e["srcNode"] for e in slot.get("origin") or [])
    return out
