# wheelflow/graph/stepjob.py
from __future__ import annotations

from typing import Any, Dict, List

from wheelflow.core.components import ComponentType, component_type_of
from wheelflow.utils.logger import get_logger

logger = get_logger("stepjob")


def arrange_stepjob_group(tasks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Order the stepjobTasks of one stepjob.

    Tasks are taken from each entry task (no previous, at least one next) along
    next[0]; unconnected tasks follow. A group without an entry task keeps its
    discovery order. Tasks reached by neither rule are appended last.
    """
    entries = [t for t in tasks if not t.get("previous") and t.get("next")]
    if not entries:
        return list(tasks)

    by_id = {t["ID"]: t for t in tasks}
    arranged: List[Dict[str, Any]] = []
    seen = set()
    for entry in entries:
        current = entry
        while current is not None and current["ID"] not in seen:
            arranged.append(current)
            seen.add(current["ID"])
            nxt = current.get("next") or []
            current = by_id.get(nxt[0]) if nxt else None

    unconnected = [t for t in tasks if not t.get("previous") and not t.get("next")]
    rest = [t for t in tasks if t["ID"] not in seen and t not in unconnected]
    return arranged + unconnected + rest


def update_step_number(store) -> List[Dict[str, Any]]:
    """
    Renumber ``stepnum`` of every stepjobTask in the project.

    Groups are stepjobs in path-table order; one counter runs across all groups.

    Returns:
        the stepjobTask descriptors in numbering order
    """
    tasks: List[Dict[str, Any]] = []
    stepjob_ids: List[str] = []
    for cid in store.component_path():
        c = store.read_by_id(cid)
        if c is None:
            continue
        t = component_type_of(c)
        if t is ComponentType.STEPJOB_TASK:
            tasks.append(c)
        elif t is ComponentType.STEPJOB:
            stepjob_ids.append(c["ID"])

    ordered: List[Dict[str, Any]] = []
    for sid in stepjob_ids:
        ordered.extend(arrange_stepjob_group([t for t in tasks if t.get("parent") == sid]))

    with store.batch():
        for stepnum, task in enumerate(ordered):
            task["stepnum"] = stepnum
            store.write_by_id(task["ID"], task)
    logger.debug("stepnum updated for %d stepjobTask(s)", len(ordered))
    return ordered
