# wheelflow/graph/tree.py
from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

import networkx as nx


def _norm(p: str) -> PurePosixPath:
    return PurePosixPath(p.replace("\\", "/"))


def build_component_tree(component_path: Dict[str, str]) -> nx.DiGraph:
    """
    Build the parent -> child tree from the component path table.

    The parent of a component is the entry whose path is the nearest proper
    ancestor of its own path. Node order follows the table order, so
    ``G.successors(parent)`` yields children in insertion order.
    """
    G = nx.DiGraph()
    paths = {cid: _norm(p) for cid, p in component_path.items()}
    by_path = {p: cid for cid, p in paths.items()}

    for cid in component_path:
        G.add_node(cid, path=component_path[cid])

    for cid, p in paths.items():
        for ancestor in p.parents:
            parent_id = by_path.get(ancestor)
            if parent_id is not None and parent_id != cid:
                G.add_edge(parent_id, cid)
                break
    return G


def tree_root(G: nx.DiGraph) -> Optional[str]:
    roots = [n for n in G.nodes if G.in_degree(n) == 0]
    return roots[0] if roots else None


def children_ids(G: nx.DiGraph, parent_id: str) -> List[str]:
    if parent_id not in G:
        return []
    return list(G.successors(parent_id))


def get_component_tree(store, root_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Nested descriptor dict: every container gets a ``children`` list.

    Returns:
        the tree rooted at root_id (project root by default) or None for an unknown ID.
    """
    G = build_component_tree(store.component_path())
    start = root_id if root_id is not None else tree_root(G)
    if start is None or start not in G:
        return None

    def _walk(cid: str) -> Optional[Dict[str, Any]]:
        node = store.read_by_id(cid)
        if node is None:
            return None
        kids = [k for k in (_walk(c) for c in children_ids(G, cid)) if k is not None]
        if kids:
            node["children"] = kids
        return node

    return _walk(start)
