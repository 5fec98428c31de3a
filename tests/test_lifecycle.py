import json

import pytest

from conftest import references
from wheelflow.core.constants import PS_SETTING_FILENAME
from wheelflow.core.errors import (
    FileSlotError,
    InvalidIndexError,
    InvalidNameError,
    RootComponentError,
    WheelflowError,
)


def test_create_component_allocates_unused_names(store, lifecycle, root_id):
    t0 = lifecycle.create_component(store.project_root, "task", {"x": 10, "y": 20})
    t1 = lifecycle.create_component(store.project_root, "task")

    assert (t0["name"], t1["name"]) == ("task0", "task1")
    assert t0["parent"] == root_id
    assert t0["pos"] == {"x": 10, "y": 20}
    assert t0["ID"] != t1["ID"]
    assert store.component_path()[t0["ID"]] == "./task0"
    assert store.read_by_id(t1["ID"]) == t1


def test_create_parameter_study_seeds_setting_file(store, lifecycle):
    ps = lifecycle.create_component(store.project_root, "PS")
    assert ps["type"] == "parameterStudy"
    assert ps["name"] == "PS0"
    setting = json.loads((store.dir_of(ps["ID"]) / PS_SETTING_FILENAME).read_text(encoding="utf-8"))
    assert setting == {"version": 2, "targetFiles": [], "params": [], "scatter": [], "gather": []}


def test_remove_component_cascades(store, lifecycle, links):
    before = lifecycle.create_component(store.project_root, "task")
    wf = lifecycle.create_component(store.project_root, "workflow")
    after = lifecycle.create_component(store.project_root, "task")
    wf_dir = store.dir_of(wf["ID"])
    inner0 = lifecycle.create_component(wf_dir, "task")
    inner1 = lifecycle.create_component(wf_dir, "task")

    links.add_link(before["ID"], wf["ID"])
    links.add_link(wf["ID"], after["ID"])
    links.add_link(inner0["ID"], inner1["ID"])
    lifecycle.add_output_file(before["ID"], "a")
    lifecycle.add_input_file(wf["ID"], "b")
    links.add_file_link(before["ID"], "a", wf["ID"], "b")
    links.add_file_link(wf["ID"], "b", inner0["ID"], "c")
    lifecycle.add_output_file(inner1["ID"], "d")
    links.add_file_link(inner1["ID"], "d", after["ID"], "e")

    removed = {wf["ID"], inner0["ID"], inner1["ID"]}
    table = lifecycle.remove_component(wf["ID"])

    assert not wf_dir.exists()
    assert removed.isdisjoint(table)
    for cid in table:
        assert removed.isdisjoint(references(store.read_by_id(cid)))
    assert store.read_by_id(before["ID"])["next"] == []
    assert store.read_by_id(after["ID"])["previous"] == []
    assert store.read_by_id(after["ID"])["inputFiles"][0]["src"] == []


def test_rename_component_dir(store, lifecycle, vcs):
    wf = lifecycle.create_component(store.project_root, "workflow")
    inner = lifecycle.create_component(store.dir_of(wf["ID"]), "task")

    assert lifecycle.rename_component_dir(wf["ID"], "renamed") is True
    assert store.component_path()[wf["ID"]] == "./renamed"
    assert store.component_path()[inner["ID"]] == "./renamed/task0"
    assert store.read_by_id(wf["ID"])["name"] == "renamed"
    assert store.read_by_id(inner["ID"])["ID"] == inner["ID"]
    assert ("remove", store.project_root / "workflow0") in vcs.calls


@pytest.mark.parametrize("bad", ["", "a b", "a/b", "CON", "../x"])
def test_rename_rejects_invalid_names(store, lifecycle, bad):
    t = lifecycle.create_component(store.project_root, "task")
    with pytest.raises(InvalidNameError, match="is not valid component name"):
        lifecycle.rename_component_dir(t["ID"], bad)


def test_rename_root_is_rejected(lifecycle, root_id):
    with pytest.raises(RootComponentError):
        lifecycle.rename_component_dir(root_id, "foo")


def test_remove_root_is_rejected(store, lifecycle, root_id):
    t = lifecycle.create_component(store.project_root, "task")
    with pytest.raises(RootComponentError):
        lifecycle.remove_component(root_id)
    assert store.project_root.is_dir()
    assert store.read_by_id(t["ID"]) is not None


def test_rename_to_same_name_is_noop(store, lifecycle, vcs):
    t = lifecycle.create_component(store.project_root, "task")
    n = len(vcs.calls)
    assert lifecycle.rename_component_dir(t["ID"], "task0") is True
    assert len(vcs.calls) == n


def test_update_component(store, lifecycle):
    t = lifecycle.create_component(store.project_root, "task")
    updated = lifecycle.update_component(t["ID"], "script", "run.sh")
    assert updated["script"] == "run.sh"

    lifecycle.update_component(t["ID"], "name", "main")
    assert store.component_path()[t["ID"]] == "./main"
    assert store.read_by_id(t["ID"])["name"] == "main"
    assert store.read_by_id(t["ID"])["script"] == "run.sh"


@pytest.mark.parametrize("prop", ["path", "inputFiles", "outputFiles", "env"])
def test_update_component_rejects_protected_props(store, lifecycle, prop):
    t = lifecycle.create_component(store.project_root, "task")
    with pytest.raises(WheelflowError):
        lifecycle.update_component(t["ID"], prop, "x")


def test_env(store, lifecycle):
    t = lifecycle.create_component(store.project_root, "task")
    assert lifecycle.get_env(t["ID"]) == {}
    lifecycle.replace_env(t["ID"], {"OMP_NUM_THREADS": "4"})
    assert lifecycle.get_env(t["ID"]) == {"OMP_NUM_THREADS": "4"}


# ---- file slots ----
def test_add_file_slots(store, lifecycle):
    t = lifecycle.create_component(store.project_root, "task")
    lifecycle.add_input_file(t["ID"], "input.dat")
    lifecycle.add_output_file(t["ID"], "result_*.dat")
    d = store.read_by_id(t["ID"])
    assert d["inputFiles"] == [{"name": "input.dat", "src": []}]
    assert d["outputFiles"] == [{"name": "result_*.dat", "dst": []}]


def test_add_file_slot_errors(store, lifecycle):
    t = lifecycle.create_component(store.project_root, "task")
    source = lifecycle.create_component(store.project_root, "source")

    with pytest.raises(InvalidNameError, match="is not valid inputFile name"):
        lifecycle.add_input_file(t["ID"], "a b")
    with pytest.raises(InvalidNameError, match="is not valid outputFile name"):
        lifecycle.add_output_file(t["ID"], "a|b")
    with pytest.raises(FileSlotError, match="does not have inputFiles"):
        lifecycle.add_input_file(source["ID"], "x")

    lifecycle.add_output_file(t["ID"], "out")
    with pytest.raises(FileSlotError, match="out is already exists"):
        lifecycle.add_output_file(t["ID"], "out")


def test_remove_file_slots_sever_links(store, lifecycle, links):
    a = lifecycle.create_component(store.project_root, "task")["ID"]
    b = lifecycle.create_component(store.project_root, "task")["ID"]
    lifecycle.add_output_file(a, "out")
    links.add_file_link(a, "out", b, "in")

    lifecycle.remove_input_file(b, "in")
    assert store.read_by_id(b)["inputFiles"] == []
    assert store.read_by_id(a)["outputFiles"][0]["dst"] == []

    links.add_file_link(a, "out", b, "in")
    lifecycle.remove_output_file(a, "out")
    assert store.read_by_id(a)["outputFiles"] == []
    assert store.read_by_id(b)["inputFiles"][0]["src"] == []


def test_rename_input_file_updates_counterparts(store, lifecycle, links):
    wf = lifecycle.create_component(store.project_root, "workflow")["ID"]
    wf_dir = store.dir_of(wf)
    a = lifecycle.create_component(wf_dir, "task")["ID"]
    b = lifecycle.create_component(wf_dir, "task")["ID"]
    lifecycle.add_input_file(wf, "win")
    lifecycle.add_output_file(a, "out")
    links.add_file_link(a, "out", b, "in")
    links.add_file_link(wf, "win", b, "in")

    lifecycle.rename_input_file(b, 0, "renamed")
    assert store.read_by_id(b)["inputFiles"][0]["name"] == "renamed"
    assert store.read_by_id(a)["outputFiles"][0]["dst"] == [{"dstNode": b, "dstName": "renamed"}]
    assert store.read_by_id(wf)["inputFiles"][0]["forwardTo"] == [{"dstNode": b, "dstName": "renamed"}]

    # renaming the forwarding slot of the parent rewrites the child's src
    lifecycle.rename_input_file(wf, 0, "wfin")
    assert {"srcNode": wf, "srcName": "wfin"} in store.read_by_id(b)["inputFiles"][0]["src"]


def test_rename_output_file_updates_counterparts(store, lifecycle, links):
    wf = lifecycle.create_component(store.project_root, "workflow")["ID"]
    wf_dir = store.dir_of(wf)
    a = lifecycle.create_component(wf_dir, "task")["ID"]
    b = lifecycle.create_component(wf_dir, "task")["ID"]
    lifecycle.add_output_file(wf, "wout")
    lifecycle.add_output_file(a, "out")
    links.add_file_link(a, "out", b, "in")
    links.add_file_link(a, "out", wf, "wout")

    lifecycle.rename_output_file(a, 0, "renamed")
    assert store.read_by_id(b)["inputFiles"][0]["src"] == [{"srcNode": a, "srcName": "renamed"}]
    assert store.read_by_id(wf)["outputFiles"][0]["origin"] == [{"srcNode": a, "srcName": "renamed"}]

    lifecycle.rename_output_file(wf, 0, "wfout")
    assert {"dstNode": wf, "dstName": "wfout"} in store.read_by_id(a)["outputFiles"][0]["dst"]


@pytest.mark.parametrize("index", [-1, 1, 5])
def test_rename_file_slot_invalid_index(store, lifecycle, index):
    t = lifecycle.create_component(store.project_root, "task")["ID"]
    lifecycle.add_input_file(t, "a")
    lifecycle.add_output_file(t, "b")
    with pytest.raises(InvalidIndexError, match=f"invalid index {index}"):
        lifecycle.rename_input_file(t, index, "x")
    with pytest.raises(InvalidIndexError, match=f"invalid index {index}"):
        lifecycle.rename_output_file(t, index, "x")


def test_upload_on_demand_collapses_output_slots(store, lifecycle):
    src = lifecycle.create_component(store.project_root, "source")["ID"]
    lifecycle.update_component(src, "uploadOnDemand", True)
    assert [s["name"] for s in store.read_by_id(src)["outputFiles"]] == ["UPLOAD_ONDEMAND"]

    lifecycle.add_output_file(src, "extra")
    lifecycle.set_upload_on_demand_output_file(src)
    assert [s["name"] for s in store.read_by_id(src)["outputFiles"]] == ["UPLOAD_ONDEMAND"]


# ---- stepjob numbering ----
def test_step_numbers_run_across_groups(store, lifecycle, links):
    groups = []
    for _ in range(2):
        sj = lifecycle.create_component(store.project_root, "stepjob")
        groups.append(store.dir_of(sj["ID"]))
    ids = []
    for sj_dir in groups:
        first = lifecycle.create_component(sj_dir, "stepjobTask")["ID"]
        second = lifecycle.create_component(sj_dir, "stepjobTask")["ID"]
        ids.append((first, second))
    for first, second in ids:
        links.add_link(first, second)

    nums = [(store.read_by_id(a)["stepnum"], store.read_by_id(b)["stepnum"]) for a, b in ids]
    assert nums == [(0, 1), (2, 3)]


def test_step_numbers_put_unconnected_tasks_last(store, lifecycle, links):
    sj_dir = store.dir_of(lifecycle.create_component(store.project_root, "stepjob")["ID"])
    lonely = lifecycle.create_component(sj_dir, "stepjobTask")["ID"]
    a = lifecycle.create_component(sj_dir, "stepjobTask")["ID"]
    b = lifecycle.create_component(sj_dir, "stepjobTask")["ID"]
    links.add_link(a, b)
    assert [store.read_by_id(x)["stepnum"] for x in (a, b, lonely)] == [0, 1, 2]


# ---- queries ----
def test_get_hosts(store, lifecycle):
    wf = lifecycle.create_component(store.project_root, "workflow")
    t0 = lifecycle.create_component(store.project_root, "task")
    t1 = lifecycle.create_component(store.dir_of(wf["ID"]), "task")
    t2 = lifecycle.create_component(store.project_root, "task")
    st = lifecycle.create_component(store.project_root, "storage")
    lifecycle.update_component(t0["ID"], "host", "hostA")
    lifecycle.update_component(t1["ID"], "host", "hostB")
    lifecycle.update_component(t2["ID"], "host", "hostS")
    lifecycle.update_component(st["ID"], "host", "hostS")

    assert lifecycle.get_hosts() == [
        {"hostname": "hostS", "isStorage": True},
        {"hostname": "hostB"},
        {"hostname": "hostA"},
    ]


def test_get_source_components(store, lifecycle):
    s0 = lifecycle.create_component(store.project_root, "source")
    s1 = lifecycle.create_component(store.project_root, "source")
    lifecycle.create_component(store.project_root, "task")
    lifecycle.update_component(s1["ID"], "disable", True)
    assert [s["ID"] for s in lifecycle.get_source_components()] == [s0["ID"]]
