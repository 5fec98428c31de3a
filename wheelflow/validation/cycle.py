# wheelflow/validation/cycle.py
"""
Cycle detection over one sibling set.

Control-flow edges (next, else) and sibling data-flow edges
(outputFiles[].dst) are merged into one dependency graph. Edges that go up to
the parent are not part of it.
"""
from typing import Any, Dict, Iterator, List, Tuple

from wheelflow.utils.logger import get_logger

logger = get_logger("cycle")

WHITE, GRAY, BLACK = "white", "gray", "black"


def get_next_components(components: List[Dict[str, Any]], component: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Siblings that depend on component, in sibling-list order."""
    next_ids: List[str] = []
    next_ids.extend(component.get("next") or [])
    next_ids.extend(component.get("else") or [])
    for output_file in component.get("outputFiles") or []:
        for dst in output_file.get("dst") or []:
            if "origin" in dst:
                continue
            if dst.get("dstNode") != component.get("parent"):
                next_ids.append(dst.get("dstNode"))

    wanted = set(next_ids)
    return [c for c in components if c.get("ID") in wanted]


def is_cycle_graph(
    components: List[Dict[str, Any]],
    start: Dict[str, Any],
    results: Dict[str, str],
    cycle_path: List[str],
) -> bool:
    """
    DFS from start with three-color marking on an explicit stack.

    On success cycle_path ends with the gray node that closed the cycle;
    otherwise every node pushed here is popped again.
    """
    results[start["ID"]] = GRAY
    cycle_path.append(start["ID"])
    stack: List[Tuple[Dict[str, Any], Iterator[Dict[str, Any]]]] = [
        (start, iter(get_next_components(components, start)))
    ]

    while stack:
        current, successors = stack[-1]
        descended = False
        for component in successors:
            state = results.get(component["ID"], WHITE)
            if state == BLACK:
                continue
            if state == GRAY:
                cycle_path.append(component["ID"])
                logger.debug("cycle graph found at %s: %s", component.get("name"), cycle_path)
                return True
            results[component["ID"]] = GRAY
            cycle_path.append(component["ID"])
            stack.append((component, iter(get_next_components(components, component))))
            descended = True
            break
        if not descended:
            results[current["ID"]] = BLACK
            cycle_path.pop()
            stack.pop()
    return False


def get_component_ids_in_cycle(graph_path: List[str]) -> List[str]:
    """
    Cut the cycle out of a DFS path such as [A, B, C, B].

    Returns:
        IDs from the end of the path back to the repeated one, e.g. [C, B]
    """
    if not graph_path:
        return []
    path = list(graph_path)
    last_id = path.pop()
    rt: List[str] = []
    for cid in reversed(path):
        rt.append(cid)
        if cid == last_id:
            break
    return rt


def get_cycle_graph(components: List[Dict[str, Any]]) -> List[str]:
    """
    IDs of components on a cycle.

    A DFS is started from every still-white component in list order; the
    cycle found from each start is appended as-is (no global dedupe).
    """
    results = {c["ID"]: WHITE for c in components}
    cycle_ids: List[str] = []
    for component in components:
        cycle_path: List[str] = []
        if results[component["ID"]] == WHITE:
            is_cycle_graph(components, component, results, cycle_path)
        cycle_ids.extend(get_component_ids_in_cycle(cycle_path))
    return cycle_ids
