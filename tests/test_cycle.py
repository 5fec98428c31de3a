from wheelflow.validation.cycle import (
    get_component_ids_in_cycle,
    get_cycle_graph,
    get_next_components,
)


def node(cid, next=(), parent="root", outputs=None, **extra):
    d = {"ID": cid, "name": cid, "parent": parent, "next": list(next), "previous": []}
    if outputs is not None:
        d["outputFiles"] = outputs
    d.update(extra)
    return d


def test_ring_is_reported():
    comps = [node("A", ["B"]), node("B", ["C"]), node("C", ["A"])]
    assert set(get_cycle_graph(comps)) == {"A", "B", "C"}


def test_dag_has_no_cycle():
    comps = [node("A", ["B"]), node("B", ["C"]), node("C")]
    assert get_cycle_graph(comps) == []


def test_self_loop():
    assert set(get_cycle_graph([node("A", ["A"]), node("B")])) == {"A"}


def test_cycle_through_else_edge():
    comps = [node("A", ["B"]), node("B", [], **{"else": ["A"]})]
    assert set(get_cycle_graph(comps)) == {"A", "B"}


def test_cycle_through_file_link():
    comps = [
        node("A", ["B"]),
        node("B", outputs=[{"name": "o", "dst": [{"dstNode": "A", "dstName": "i"}]}]),
    ]
    assert set(get_cycle_graph(comps)) == {"A", "B"}


def test_edges_to_parent_are_ignored():
    comps = [
        node("A", outputs=[{"name": "o", "dst": [{"dstNode": "root", "dstName": "x"}]}]),
        node("root", ["A"]),
    ]
    # root is listed only to prove the parent-bound edge is dropped
    assert get_next_components(comps, comps[0]) == []


def test_next_components_are_siblings_only():
    comps = [node("A", ["B", "outside"]), node("B")]
    assert [c["ID"] for c in get_next_components(comps, comps[0])] == ["B"]


def test_cycle_members_only_leave_tail_out():
    # D leads into the ring but is not part of it
    comps = [node("D", ["A"]), node("A", ["B"]), node("B", ["A"])]
    assert set(get_cycle_graph(comps)) == {"A", "B"}


def test_get_component_ids_in_cycle():
    assert get_component_ids_in_cycle([]) == []
    path = ["X", "A", "B", "C", "A"]
    assert get_component_ids_in_cycle(path) == ["C", "B", "A"]
    assert path == ["X", "A", "B", "C", "A"]


def test_long_chain_does_not_exhaust_the_stack():
    n = 1500
    comps = [node(f"c{i}", [f"c{i + 1}"] if i + 1 < n else []) for i in range(n)]
    assert get_cycle_graph(comps) == []

    comps[-1]["next"] = ["c0"]
    assert len(set(get_cycle_graph(comps))) == n
