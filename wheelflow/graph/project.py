# wheelflow/graph/project.py
"""Project level operations on ``prj.wheel.json``."""
from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from wheelflow.core.components import ComponentType, component_factory
from wheelflow.core.constants import (
    COMPONENT_JSON_FILENAME,
    DEFAULT_PROJECT_STATE,
    PROJECT_FORMAT_VERSION,
    PROJECT_SUFFIX,
)
from wheelflow.store.component_store import ComponentStore
from wheelflow.store.vcs import NullVersionControl, VersionControl
from wheelflow.utils.logger import get_logger

logger = get_logger("project")


def get_date_string() -> str:
    return datetime.now().strftime("%Y/%m/%d-%H:%M:%S")


def _suffix_number(name: str) -> int:
    m = re.match(r".*?(\d+)$", name)
    return int(m.group(1)) if m else 0


def get_unused_project_dir(project_root: Path, name: str) -> Path:
    """project_root itself if free, else <name>.wheel, else <name><n>.wheel."""
    if not project_root.exists():
        return project_root
    parent = project_root.parent
    candidate = parent / f"{name}{PROJECT_SUFFIX}"
    if not candidate.exists():
        return candidate
    n = _suffix_number(name)
    candidate = parent / f"{name}{n}{PROJECT_SUFFIX}"
    while candidate.exists():
        n += 1
        candidate = parent / f"{name}{n}{PROJECT_SUFFIX}"
    return candidate


def create_new_project(
    project_root: Union[str, Path],
    name: str,
    description: Optional[str] = None,
    user: str = "wheelflow",
    mail: str = "wheelflow@localhost",
    vcs: Optional[VersionControl] = None,
) -> Path:
    """
    Create an empty project: a root workflow plus prj.wheel.json.

    Returns:
        the project root actually used (a suffix is added when the path is taken)
    """
    vcs = vcs if vcs is not None else NullVersionControl()
    requested = Path(project_root)
    if not requested.name.endswith(PROJECT_SUFFIX):
        requested = requested.with_name(requested.name + PROJECT_SUFFIX)
    root = get_unused_project_dir(requested.resolve(), name)
    root.mkdir(parents=True, exist_ok=True)
    vcs.init(root, user, mail)

    store = ComponentStore(root, vcs=vcs)
    root_wf = component_factory(ComponentType.WORKFLOW)
    root_wf["name"] = root.name[: -len(PROJECT_SUFFIX)]
    root_wf["cleanupFlag"] = 1
    store.write(root, root_wf)

    timestamp = get_date_string()
    project = {
        "version": PROJECT_FORMAT_VERSION,
        "name": root_wf["name"],
        "description": description if description is not None else "This is new project.",
        "state": DEFAULT_PROJECT_STATE,
        "root": str(root),
        "ctime": timestamp,
        "mtime": timestamp,
        "componentPath": {root_wf["ID"]: "./"},
    }
    store.write_project_json(project)
    vcs.add(root, root)
    vcs.commit(root, "create new project")
    logger.info("project created: %s", root)
    return root


def set_project_state(store: ComponentStore, state: str, force: bool = False) -> Union[Dict[str, Any], bool]:
    project = store.project_json()
    if not force and project.get("state") == state:
        return False
    project["state"] = state
    project["mtime"] = get_date_string()
    store.write_project_json(project)
    return project


def get_project_state(store: ComponentStore) -> Optional[str]:
    return store.project_json().get("state")


def update_project_description(store: ComponentStore, description: str) -> Dict[str, Any]:
    project = store.project_json()
    project["description"] = description
    store.write_project_json(project)
    return project


def update_project_ro_status(store: ComponentStore, read_only: bool) -> Dict[str, Any]:
    project = store.project_json()
    project["readOnly"] = bool(read_only)
    store.write_project_json(project)
    return project


def replace_webhook(store: ComponentStore, new_webhook: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Returns:
        the previous webhook setting (None if there was none)
    """
    project = store.project_json()
    old = project.get("webhook")
    project["webhook"] = dict(new_webhook)
    store.write_project_json(project)
    return old


def set_component_state_r(
    store: ComponentStore,
    component_dir: Union[str, Path],
    state: str,
    ignore_states: Iterable[str] = (),
) -> List[Dict[str, Any]]:
    """
    Set ``state`` on component_dir and every component below it.

    Components already in ``state`` or in one of ignore_states are left alone.

    Returns:
        the descriptors that were rewritten
    """
    skip = set(ignore_states) | {state}
    base = Path(component_dir)
    changed: List[Dict[str, Any]] = []
    with store.batch():
        for filename in sorted(base.rglob(COMPONENT_JSON_FILENAME)):
            component = store.read_by_path(filename.parent)
            if component.get("state") in skip:
                continue
            component["state"] = state
            store.write(filename.parent, component)
            changed.append(component)
    logger.debug("state of %d component(s) under %s set to %s", len(changed), base, state)
    return changed
