# wheelflow/graph/lifecycle.py
"""
Creating, removing and renaming components, and editing their file slots.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from wheelflow.core.components import (
    ComponentType,
    component_factory,
    component_type_of,
    get_component_default_name,
    has_child,
)
from wheelflow.core.constants import (
    LOCALHOST,
    PROTECTED_PROPS,
    PS_SETTING_FILENAME,
    PS_SETTING_VERSION,
)
from wheelflow.core.errors import (
    ComponentNotFoundError,
    FileSlotError,
    InvalidIndexError,
    InvalidNameError,
    RootComponentError,
    WheelflowError,
)
from wheelflow.graph.links import LinkEditor, find_slot
from wheelflow.graph.stepjob import update_step_number
from wheelflow.store.paths import PathManager
from wheelflow.utils.io import make_unused_dir, move, remove_tree, to_path, write_json
from wheelflow.utils.logger import get_logger
from wheelflow.utils.names import is_valid_input_filename, is_valid_name, is_valid_output_filename

logger = get_logger("lifecycle")

UPLOAD_ONDEMAND = "UPLOAD_ONDEMAND"


class ComponentLifecycle:
    def __init__(self, store, links: Optional[LinkEditor] = None, paths: Optional[PathManager] = None):
        self.store = store
        self.links = links or LinkEditor(store)
        self.paths = paths or PathManager(store)

    def _read(self, component_id: str) -> Dict[str, Any]:
        c = self.store.read_by_id(component_id)
        if c is None:
            raise ComponentNotFoundError(component_id)
        return c

    def _resolve(self, d: Union[str, Path]) -> Path:
        p = to_path(d)
        return p if p.is_absolute() else (self.store.project_root / p).resolve()

    # -------- create / remove / rename --------
    def create_component(self, parent_dir: Union[str, Path], component_type: Any, pos: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Create a new component directory under parent_dir.

        Returns:
            the new descriptor
        """
        parent_dir = self._resolve(parent_dir)
        parent = self.store.read_by_path(parent_dir)
        basename = get_component_default_name(component_type)
        new_dir = make_unused_dir(parent_dir / basename, 0)

        component = component_factory(component_type, pos, parent["ID"])
        component["name"] = new_dir.name
        self.store.write(new_dir, component)
        self.paths.update_path(component["ID"], new_dir)

        if ComponentType.parse(component_type) is ComponentType.PARAMETER_STUDY:
            ps_file = write_json(
                new_dir / PS_SETTING_FILENAME,
                {"version": PS_SETTING_VERSION, "targetFiles": [], "params": [], "scatter": [], "gather": []},
            )
            self.store.vcs.add(self.store.project_root, ps_file)

        logger.info("component created: %s (%s)", new_dir.name, component["type"])
        return component

    def remove_component(self, component_id: str) -> Dict[str, str]:
        """
        Remove component_id and all of its descendants together with every edge
        pointing at any of them.

        Returns:
            the updated path table
        """
        target = self.store.dir_of(component_id)
        descendants = self.paths.descendant_ids(component_id)
        if target is None or descendants is None:
            raise ComponentNotFoundError(component_id)
        if target == self.store.project_root:
            raise RootComponentError("removeNode can not remove root workflow")

        with self.store.batch():
            for cid in descendants:
                self.links.remove_all_link_from_component(cid)

        self.store.vcs.remove(self.store.project_root, target)
        remove_tree(target)
        logger.info("component removed: %s (%d descendant(s))", target.name, len(descendants) - 1)
        return self.paths.remove_paths(descendants)

    def rename_component_dir(self, component_id: str, new_name: str) -> bool:
        if not is_valid_name(new_name):
            raise InvalidNameError(f"{new_name} is not valid component name")
        old_dir = self.store.dir_of(component_id)
        if old_dir is None:
            raise ComponentNotFoundError(component_id)
        if old_dir == self.store.project_root:
            raise RootComponentError("updateNode can not rename root workflow")
        if old_dir.name == new_name:
            return True

        new_dir = old_dir.parent / new_name
        if new_dir.exists():
            raise InvalidNameError(f"{new_name} is already exists")
        self.store.vcs.remove(self.store.project_root, old_dir)
        move(old_dir, new_dir)
        self.paths.update_path(component_id, new_dir)

        component = self.store.read_by_path(new_dir)
        component["name"] = new_name
        self.store.write(new_dir, component)
        self.store.vcs.add(self.store.project_root, new_dir)
        logger.info("component renamed: %s -> %s", old_dir.name, new_name)
        return True

    def update_step_number(self) -> List[Dict[str, Any]]:
        return update_step_number(self.store)

    # -------- properties --------
    def update_component(self, component_id: str, prop: str, value: Any) -> Dict[str, Any]:
        if prop in PROTECTED_PROPS:
            if prop == "path":
                raise WheelflowError("path property is deprecated. please use 'name' instead.")
            if prop == "env":
                raise WheelflowError("updateNode does not support env. please use updateEnv")
            raise WheelflowError(f"updateNode does not support {prop}. please use renameInputFile or renameOutputFile")
        if prop == "uploadOnDemand" and value is True:
            self.set_upload_on_demand_output_file(component_id)
        if prop == "name":
            self.rename_component_dir(component_id, value)

        component = self._read(component_id)
        component[prop] = value
        self.store.write_by_id(component_id, component)
        return component

    def get_env(self, component_id: str) -> Dict[str, Any]:
        return self._read(component_id).get("env") or {}

    def replace_env(self, component_id: str, new_env: Dict[str, Any]) -> Dict[str, Any]:
        component = self._read(component_id)
        component["env"] = dict(new_env)
        self.store.write_by_id(component_id, component)
        return component

    # -------- file slots --------
    def add_input_file(self, component_id: str, name: str) -> Dict[str, Any]:
        if not is_valid_input_filename(name):
            raise InvalidNameError(f"{name} is not valid inputFile name")
        component = self._read(component_id)
        if "inputFiles" not in component:
            raise FileSlotError(f"{component.get('name')} does not have inputFiles")
        if find_slot(component["inputFiles"], name) is not None:
            raise FileSlotError(f"{name} is already exists")
        component["inputFiles"].append({"name": name, "src": []})
        self.store.write_by_id(component_id, component)
        return component

    def add_output_file(self, component_id: str, name: str) -> Dict[str, Any]:
        if not is_valid_output_filename(name):
            raise InvalidNameError(f"{name} is not valid outputFile name")
        component = self._read(component_id)
        if "outputFiles" not in component:
            raise FileSlotError(f"{component.get('name')} does not have outputFiles")
        if find_slot(component["outputFiles"], name) is not None:
            raise FileSlotError(f"{name} is already exists")
        component["outputFiles"].append({"name": name, "dst": []})
        self.store.write_by_id(component_id, component)
        return component

    def remove_input_file(self, component_id: str, name: str) -> Dict[str, Any]:
        with self.store.batch():
            component = self._read(component_id)
            slot = find_slot(component.get("inputFiles"), name)
            if slot is not None:
                for src in list(slot.get("src", [])):
                    self.links.remove_file_link(src["srcNode"], src["srcName"], component_id, name)
                for fwd in list(slot.get("forwardTo") or []):
                    self.links.remove_file_link_from_parent(name, fwd["dstNode"], fwd["dstName"])
            component["inputFiles"] = [e for e in component.get("inputFiles", []) if e.get("name") != name]
            self.store.write_by_id(component_id, component)
        return component

    def remove_output_file(self, component_id: str, name: str) -> Dict[str, Any]:
        with self.store.batch():
            component = self._read(component_id)
            slot = find_slot(component.get("outputFiles"), name)
            if slot is not None:
                for dst in list(slot.get("dst", [])):
                    self.links.remove_file_link(component_id, name, dst["dstNode"], dst["dstName"])
                for origin in list(slot.get("origin") or []):
                    self.links.remove_file_link_to_parent(origin["srcNode"], origin["srcName"], name)
            component["outputFiles"] = [e for e in component.get("outputFiles", []) if e.get("name") != name]
            self.store.write_by_id(component_id, component)
        return component

    def rename_input_file(self, component_id: str, index: int, new_name: str) -> Dict[str, Any]:
        if not is_valid_input_filename(new_name):
            raise InvalidNameError(f"{new_name} is not valid inputFile name")
        with self.store.batch():
            component = self._read(component_id)
            slots = component.get("inputFiles") or []
            if index < 0 or index > len(slots) - 1:
                raise InvalidIndexError(f"invalid index {index}")
            slot = slots[index]
            old_name = slot["name"]
            slot["name"] = new_name
            self.store.write_by_id(component_id, component)

            peers = {e["srcNode"] for e in slot.get("src", [])} | {e["dstNode"] for e in slot.get("forwardTo") or []}
            for cid in peers:
                c = self.store.read_by_id(cid)
                if c is None:
                    continue
                is_child = c.get("parent") == component_id
                if not is_child:
                    # producer sibling, or the parent forwarding into this slot
                    for out in c.get("outputFiles") or []:
                        for dst in out.get("dst", []):
                            if dst["dstNode"] == component_id and dst["dstName"] == old_name:
                                dst["dstName"] = new_name
                    for inp in c.get("inputFiles") or []:
                        for fwd in inp.get("forwardTo") or []:
                            if fwd["dstNode"] == component_id and fwd["dstName"] == old_name:
                                fwd["dstName"] = new_name
                else:
                    # child receiving this slot through forwardTo
                    for inp in c.get("inputFiles") or []:
                        for src in inp.get("src", []):
                            if src["srcNode"] == component_id and src["srcName"] == old_name:
                                src["srcName"] = new_name
                self.store.write_by_id(cid, c)
        return component

    def rename_output_file(self, component_id: str, index: int, new_name: str) -> Dict[str, Any]:
        if not is_valid_output_filename(new_name):
            raise InvalidNameError(f"{new_name} is not valid outputFile name")
        with self.store.batch():
            component = self._read(component_id)
            slots = component.get("outputFiles") or []
            if index < 0 or index > len(slots) - 1:
                raise InvalidIndexError(f"invalid index {index}")
            slot = slots[index]
            old_name = slot["name"]
            slot["name"] = new_name
            self.store.write_by_id(component_id, component)

            peers = {e["dstNode"] for e in slot.get("dst", [])} | {e["srcNode"] for e in slot.get("origin") or []}
            for cid in peers:
                c = self.store.read_by_id(cid)
                if c is None:
                    continue
                is_child = c.get("parent") == component_id
                if not is_child:
                    # consumer sibling, or the parent re-exporting this slot
                    for inp in c.get("inputFiles") or []:
                        for src in inp.get("src", []):
                            if src["srcNode"] == component_id and src["srcName"] == old_name:
                                src["srcName"] = new_name
                    for out in c.get("outputFiles") or []:
                        for origin in out.get("origin") or []:
                            if origin["srcNode"] == component_id and origin["srcName"] == old_name:
                                origin["srcName"] = new_name
                else:
                    # child exporting into this slot
                    for out in c.get("outputFiles") or []:
                        for dst in out.get("dst", []):
                            if dst["dstNode"] == component_id and dst["dstName"] == old_name:
                                dst["dstName"] = new_name
                self.store.write_by_id(cid, c)
        return component

    def set_upload_on_demand_output_file(self, component_id: str) -> Dict[str, Any]:
        """Reduce the output slots of a source component to one UPLOAD_ONDEMAND slot."""
        component = self._read(component_id)
        if "outputFiles" not in component:
            raise FileSlotError(f"{component.get('name')} does not have outputFiles")
        if len(component["outputFiles"]) == 0:
            return self.add_output_file(component_id, UPLOAD_ONDEMAND)
        for slot in list(component["outputFiles"][1:]):
            self.remove_output_file(component_id, slot["name"])
        return self.rename_output_file(component_id, 0, UPLOAD_ONDEMAND)

    # -------- queries --------
    def get_children(self, parent_id: str) -> List[Dict[str, Any]]:
        return self.store.get_children(parent_id)

    def get_source_components(self) -> List[Dict[str, Any]]:
        out = []
        for cid in self.paths.all_ids():
            c = self.store.read_by_id(cid)
            if c is None:
                continue
            if component_type_of(c) is ComponentType.SOURCE and not c.get("subComponent") and not c.get("disable"):
                out.append(c)
        return out

    def get_hosts(self, root_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Remote hosts used under root_id.

        Returns:
            storage hosts and hpciss hosts first (flagged isStorage / isGfarm),
            then the remaining task hosts; each hostname appears once.
        """
        if root_id is None:
            root_id = self.store.root_component()["ID"]
        hosts: List[str] = []
        storage_hosts: List[str] = []
        gfarm_hosts: List[str] = []

        def _walk(parent_id: str) -> None:
            for c in self.store.get_children(parent_id):
                if c.get("disable"):
                    continue
                t = component_type_of(c)
                host = c.get("host")
                if host is not None and host != LOCALHOST:
                    if t in (ComponentType.TASK, ComponentType.STEPJOB, ComponentType.BULKJOB_TASK):
                        hosts.append(host)
                    elif t in (ComponentType.HPCISS, ComponentType.HPCISSTAR):
                        gfarm_hosts.append(host)
                    elif t is ComponentType.STORAGE:
                        storage_hosts.append(host)
                if has_child(c):
                    _walk(c["ID"])

        _walk(root_id)
        keep = [{"hostname": h, "isStorage": True} for h in dict.fromkeys(storage_hosts)]
        keep += [{"hostname": h, "isGfarm": True} for h in dict.fromkeys(gfarm_hosts)]
        kept_names = {e["hostname"] for e in keep}
        rest = [{"hostname": h} for h in dict.fromkeys(hosts) if h not in kept_names]
        return keep + rest
