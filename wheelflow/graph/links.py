# wheelflow/graph/links.py
"""
Control-flow (next / previous / else) and data-flow (inputFiles / outputFiles)
edge editing.

Every edge is stored on both of its endpoints, so each operation here touches
two descriptors and writes both inside one ``store.batch()``.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from wheelflow.core.components import ComponentType, NO_CONTROL_FLOW_TYPES, component_type_of
from wheelflow.core.errors import ComponentNotFoundError, FileSlotError, LinkError
from wheelflow.graph.stepjob import update_step_number
from wheelflow.utils.logger import get_logger

logger = get_logger("links")


def find_slot(slots: Optional[List[Dict[str, Any]]], name: str) -> Optional[Dict[str, Any]]:
    for slot in slots or []:
        if slot.get("name") == name:
            return slot
    return None


def _append_unique(entries: List[Dict[str, Any]], entry: Dict[str, Any]) -> None:
    if entry not in entries:
        entries.append(entry)


def _without(entries: Optional[List[Dict[str, Any]]], entry: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [e for e in entries or [] if e != entry]


class LinkEditor:
    def __init__(self, store):
        self.store = store

    # -------- lookup --------
    def _read(self, component_id: str) -> Dict[str, Any]:
        c = self.store.read_by_id(component_id)
        if c is None:
            raise ComponentNotFoundError(component_id)
        return c

    def _output_slot(self, component: Dict[str, Any], name: str) -> Dict[str, Any]:
        slot = find_slot(component.get("outputFiles"), name)
        if slot is None:
            raise FileSlotError(f"{name} not found in outputFiles of {component.get('name')}")
        return slot

    def _input_slot(self, component: Dict[str, Any], name: str, create: bool = False) -> Dict[str, Any]:
        slot = find_slot(component.get("inputFiles"), name)
        if slot is None:
            if not create:
                raise FileSlotError(f"{name} not found in inputFiles of {component.get('name')}")
            if "inputFiles" not in component:
                raise FileSlotError(f"{component.get('name')} does not have inputFiles")
            slot = {"name": name, "src": []}
            component["inputFiles"].append(slot)
        return slot

    def is_parent(self, parent_id: str, child_id: str) -> bool:
        if not isinstance(child_id, str):
            return False
        child = self.store.read_by_id(child_id)
        if child is None:
            return False
        return child.get("parent") == parent_id

    # -------- control flow --------
    def add_link(self, src: str, dst: str, is_else: bool = False) -> None:
        if src == dst:
            raise LinkError("cyclic link is not allowed")
        with self.store.batch():
            src_json = self._read(src)
            dst_json = self._read(dst)
            for t in NO_CONTROL_FLOW_TYPES:
                if component_type_of(src_json) is t or component_type_of(dst_json) is t:
                    raise LinkError(
                        f"{t.value} can not have link",
                        code="ELINK",
                        src=src,
                        src_name=src_json.get("name"),
                        dst=dst,
                        dst_name=dst_json.get("name"),
                        is_else=is_else,
                    )

            key = "else" if is_else else "next"
            targets = src_json.setdefault(key, [])
            if dst not in targets:
                targets.append(dst)
            previous = dst_json.setdefault("previous", [])
            if src not in previous:
                previous.append(src)
            self.store.write_by_id(src, src_json)
            self.store.write_by_id(dst, dst_json)

        logger.debug("link %s -> %s%s", src, dst, " (else)" if is_else else "")
        if component_type_of(src_json) is ComponentType.STEPJOB_TASK and component_type_of(dst_json) is ComponentType.STEPJOB_TASK:
            update_step_number(self.store)

    def remove_link(self, src: str, dst: str, is_else: bool = False) -> None:
        with self.store.batch():
            src_json = self._read(src)
            dst_json = self._read(dst)
            key = "else" if is_else else "next"
            src_json[key] = [e for e in src_json.get(key, []) if e != dst]
            dst_json["previous"] = [e for e in dst_json.get("previous", []) if e != src]
            self.store.write_by_id(src, src_json)
            self.store.write_by_id(dst, dst_json)

    def remove_all_link(self, component_id: str) -> None:
        """Remove every incoming control-flow edge of component_id."""
        with self.store.batch():
            dst_json = self._read(component_id)
            for src in dst_json.get("previous", []):
                src_json = self.store.read_by_id(src)
                if src_json is None:
                    logger.warning("%s is listed in previous of %s but not found", src, component_id)
                    continue
                if isinstance(src_json.get("next"), list):
                    src_json["next"] = [e for e in src_json["next"] if e != component_id]
                if isinstance(src_json.get("else"), list):
                    src_json["else"] = [e for e in src_json["else"] if e != component_id]
                self.store.write_by_id(src, src_json)
            dst_json["previous"] = []
            self.store.write_by_id(component_id, dst_json)

    # -------- data flow --------
    def add_file_link(self, src: str, src_name: str, dst: str, dst_name: str) -> None:
        if src == dst:
            raise LinkError("cyclic link is not allowed")
        if self.is_parent(dst, src):
            return self.add_file_link_to_parent(src, src_name, dst_name)
        if self.is_parent(src, dst):
            return self.add_file_link_from_parent(src_name, dst, dst_name)
        return self.add_file_link_between_siblings(src, src_name, dst, dst_name)

    def remove_file_link(self, src: str, src_name: str, dst: str, dst_name: str) -> None:
        if self.is_parent(dst, src):
            return self.remove_file_link_to_parent(src, src_name, dst_name)
        if self.is_parent(src, dst):
            return self.remove_file_link_from_parent(src_name, dst, dst_name)
        return self.remove_file_link_between_siblings(src, src_name, dst, dst_name)

    def add_file_link_to_parent(self, src: str, src_name: str, dst_name: str) -> None:
        """Child src exposes its output src_name through the parent's output dst_name."""
        with self.store.batch():
            src_json = self._read(src)
            parent_id = src_json.get("parent")
            parent_json = self._read(parent_id)
            src_slot = self._output_slot(src_json, src_name)
            parent_slot = self._output_slot(parent_json, dst_name)
            _append_unique(src_slot.setdefault("dst", []), {"dstNode": parent_id, "dstName": dst_name})
            _append_unique(parent_slot.setdefault("origin", []), {"srcNode": src, "srcName": src_name})
            self.store.write_by_id(src, src_json)
            self.store.write_by_id(parent_id, parent_json)

    def add_file_link_from_parent(self, src_name: str, dst: str, dst_name: str) -> None:
        """The parent forwards its input src_name into child dst's input dst_name."""
        with self.store.batch():
            dst_json = self._read(dst)
            parent_id = dst_json.get("parent")
            parent_json = self._read(parent_id)
            parent_slot = self._input_slot(parent_json, src_name)
            dst_slot = self._input_slot(dst_json, dst_name, create=True)
            _append_unique(parent_slot.setdefault("forwardTo", []), {"dstNode": dst, "dstName": dst_name})
            _append_unique(dst_slot.setdefault("src", []), {"srcNode": parent_id, "srcName": src_name})
            self.store.write_by_id(parent_id, parent_json)
            self.store.write_by_id(dst, dst_json)

    def add_file_link_between_siblings(self, src: str, src_name: str, dst: str, dst_name: str) -> None:
        with self.store.batch():
            src_json = self._read(src)
            dst_json = self._read(dst)
            src_slot = self._output_slot(src_json, src_name)
            dst_slot = self._input_slot(dst_json, dst_name, create=True)
            _append_unique(src_slot.setdefault("dst", []), {"dstNode": dst, "dstName": dst_name})
            _append_unique(dst_slot.setdefault("src", []), {"srcNode": src, "srcName": src_name})
            self.store.write_by_id(src, src_json)
            self.store.write_by_id(dst, dst_json)
        logger.debug("file link %s:%s -> %s:%s", src, src_name, dst, dst_name)

    def remove_file_link_to_parent(self, src: str, src_name: str, dst_name: str) -> None:
        with self.store.batch():
            src_json = self._read(src)
            parent_id = src_json.get("parent")
            parent_json = self._read(parent_id)
            src_slot = self._output_slot(src_json, src_name)
            src_slot["dst"] = _without(src_slot.get("dst"), {"dstNode": parent_id, "dstName": dst_name})
            parent_slot = find_slot(parent_json.get("outputFiles"), dst_name)
            if parent_slot is not None and "origin" in parent_slot:
                parent_slot["origin"] = _without(parent_slot["origin"], {"srcNode": src, "srcName": src_name})
            self.store.write_by_id(src, src_json)
            self.store.write_by_id(parent_id, parent_json)

    def remove_file_link_from_parent(self, src_name: str, dst: str, dst_name: str) -> None:
        with self.store.batch():
            dst_json = self._read(dst)
            parent_id = dst_json.get("parent")
            parent_json = self._read(parent_id)
            parent_slot = find_slot(parent_json.get("inputFiles"), src_name)
            if parent_slot is not None and "forwardTo" in parent_slot:
                parent_slot["forwardTo"] = _without(parent_slot["forwardTo"], {"dstNode": dst, "dstName": dst_name})
            dst_slot = self._input_slot(dst_json, dst_name)
            dst_slot["src"] = _without(dst_slot.get("src"), {"srcNode": parent_id, "srcName": src_name})
            self.store.write_by_id(parent_id, parent_json)
            self.store.write_by_id(dst, dst_json)

    def remove_file_link_between_siblings(self, src: str, src_name: str, dst: str, dst_name: str) -> None:
        with self.store.batch():
            src_json = self._read(src)
            dst_json = self._read(dst)
            src_slot = self._output_slot(src_json, src_name)
            src_slot["dst"] = _without(src_slot.get("dst"), {"dstNode": dst, "dstName": dst_name})
            dst_slot = self._input_slot(dst_json, dst_name)
            dst_slot["src"] = _without(dst_slot.get("src"), {"srcNode": src, "srcName": src_name})
            self.store.write_by_id(src, src_json)
            self.store.write_by_id(dst, dst_json)

    def remove_all_file_link(self, component_id: str, filename: str, from_children: bool = False) -> None:
        """
        Sever every edge feeding the slot ``filename`` of component_id.

        from_children=False: the input slot and all of its producers.
        from_children=True: the output slot and every child that feeds it.
        """
        with self.store.batch():
            component = self._read(component_id)
            if from_children:
                slot = find_slot(component.get("outputFiles"), filename)
                if slot is None:
                    raise FileSlotError(f"{filename} not found in parent's outputFiles")
                for origin in list(slot.get("origin") or []):
                    self.remove_file_link_to_parent(origin["srcNode"], origin["srcName"], filename)
            else:
                slot = find_slot(component.get("inputFiles"), filename)
                if slot is None:
                    raise FileSlotError(f"{filename} not found in inputFiles")
                for src in list(slot.get("src") or []):
                    self.remove_file_link(src["srcNode"], src["srcName"], component_id, filename)

    def remove_all_link_from_component(self, component_id: str) -> None:
        """
        Strip every edge of component_id from its counterparts (both directions,
        control flow and data flow, forwarding entries included). The
        descriptor of component_id itself is left as it is.
        """
        with self.store.batch():
            component = self._read(component_id)

            def counterpart(cid: str) -> Optional[Dict[str, Any]]:
                c = self.store.read_by_id(cid)
                if c is None:
                    logger.warning("%s is linked from %s but not found", cid, component_id)
                return c

            touched: Dict[str, Dict[str, Any]] = {}

            for cid in component.get("previous", []) or []:
                c = counterpart(cid)
                if c is None:
                    continue
                for key in ("next", "else"):
                    if isinstance(c.get(key), list):
                        c[key] = [e for e in c[key] if e != component_id]
                touched[cid] = c

            for cid in list(component.get("next", []) or []) + list(component.get("else", []) or []):
                c = counterpart(cid)
                if c is None:
                    continue
                c["previous"] = [e for e in c.get("previous", []) if e != component_id]
                touched[cid] = c

            for slot in component.get("inputFiles", []) or []:
                peers = [e["srcNode"] for e in slot.get("src", [])] + [e["dstNode"] for e in slot.get("forwardTo", []) or []]
                for cid in peers:
                    c = counterpart(cid)
                    if c is None:
                        continue
                    for out in c.get("outputFiles", []) or []:
                        out["dst"] = [e for e in out.get("dst", []) if e.get("dstNode") != component_id]
                    for inp in c.get("inputFiles", []) or []:
                        if "forwardTo" in inp:
                            inp["forwardTo"] = [e for e in inp["forwardTo"] if e.get("dstNode") != component_id]
                        inp["src"] = [e for e in inp.get("src", []) if e.get("srcNode") != component_id]
                    touched[cid] = c

            for slot in component.get("outputFiles", []) or []:
                peers = [e["dstNode"] for e in slot.get("dst", [])] + [e["srcNode"] for e in slot.get("origin", []) or []]
                for cid in peers:
                    c = counterpart(cid)
                    if c is None:
                        continue
                    for inp in c.get("inputFiles", []) or []:
                        inp["src"] = [e for e in inp.get("src", []) if e.get("srcNode") != component_id]
                    for out in c.get("outputFiles", []) or []:
                        if "origin" in out:
                            out["origin"] = [e for e in out["origin"] if e.get("srcNode") != component_id]
                        out["dst"] = [e for e in out.get("dst", []) if e.get("dstNode") != component_id]
                    touched[cid] = c

            for cid, c in touched.items():
                self.store.write_by_id(cid, c)
