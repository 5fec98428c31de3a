import json
import threading
from pathlib import Path

import pytest

from wheelflow.core.constants import COMPONENT_JSON_FILENAME, PROJECT_JSON_FILENAME
from wheelflow.graph.project import (
    create_new_project,
    get_project_state,
    replace_webhook,
    set_component_state_r,
    set_project_state,
    update_project_description,
    update_project_ro_status,
)
from wheelflow.utils.io import make_unused_dir, read_json_greedy


def test_new_project_layout(project_root: Path, store, vcs):
    assert project_root.name == "testProject.wheel"
    project = json.loads((project_root / PROJECT_JSON_FILENAME).read_text(encoding="utf-8"))
    root = store.root_component()

    assert project["version"] == 2
    assert project["state"] == "not-started"
    assert project["componentPath"] == {root["ID"]: "./"}
    assert root["type"] == "workflow"
    assert root["name"] == "testProject"
    assert root["parent"] is None
    assert vcs.commits() == ["create new project"]


def test_new_project_picks_unused_dir(tmp_path: Path, project_root: Path, vcs):
    second = create_new_project(tmp_path / "testProject", "testProject", vcs=vcs)
    assert second != project_root
    assert second.name == "testProject0.wheel"


def test_project_json_updates(store):
    assert get_project_state(store) == "not-started"
    assert set_project_state(store, "not-started") is False
    assert set_project_state(store, "running")["state"] == "running"
    assert get_project_state(store) == "running"

    update_project_description(store, "hello")
    update_project_ro_status(store, True)
    assert replace_webhook(store, {"URL": "http://example.com", "project": True}) is None
    old = replace_webhook(store, {"URL": "http://example.org"})

    project = store.project_json()
    assert project["description"] == "hello"
    assert project["readOnly"] is True
    assert project["webhook"] == {"URL": "http://example.org"}
    assert old == {"URL": "http://example.com", "project": True}


def test_write_strips_runtime_keys(store, root_id):
    root = store.read_by_id(root_id)
    root["handler"] = "not serialisable in real life"
    root["childLoopRunning"] = True
    store.write_by_id(root_id, root)

    raw = json.loads((store.project_root / COMPONENT_JSON_FILENAME).read_text(encoding="utf-8"))
    assert "handler" not in raw
    assert "childLoopRunning" not in raw
    assert raw["ID"] == root_id


def test_lookup_of_unknown_id_returns_none(store):
    assert store.read_by_id("no-such-id") is None
    assert store.dir_of("no-such-id") is None


def test_dir_of(store, root_id, lifecycle):
    task = lifecycle.create_component(store.project_root, "task")
    assert store.dir_of(root_id) == store.project_root
    assert store.dir_of(task["ID"]) == store.project_root / "task0"
    assert store.dir_of(task["ID"], absolute=False) == Path("./task0")
    assert store.relative_path_between(root_id, task["ID"]) == "task0"


def test_batch_writes_nothing_when_block_raises(store, root_id):
    before = (store.project_root / COMPONENT_JSON_FILENAME).read_text(encoding="utf-8")
    with pytest.raises(RuntimeError):
        with store.batch():
            root = store.read_by_id(root_id)
            root["description"] = "changed"
            store.write_by_id(root_id, root)
            raise RuntimeError("boom")
    assert (store.project_root / COMPONENT_JSON_FILENAME).read_text(encoding="utf-8") == before


def test_batch_shares_descriptors(store, root_id):
    with store.batch():
        a = store.read_by_id(root_id)
        b = store.read_by_id(root_id)
        assert a is b
        a["description"] = "changed"
        store.write_by_id(root_id, a)
    assert store.read_by_id(root_id)["description"] == "changed"


def test_get_children_skips_sub_components(store, root_id, lifecycle):
    t0 = lifecycle.create_component(store.project_root, "task")
    t1 = lifecycle.create_component(store.project_root, "task")
    t1["subComponent"] = True
    store.write_by_id(t1["ID"], t1)

    assert [c["ID"] for c in store.get_children(root_id)] == [t0["ID"]]
    assert [c["ID"] for c in store.get_children_by_dir(store.project_root)] == [t0["ID"]]


def test_read_json_greedy_gives_up_on_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        read_json_greedy(tmp_path / "missing.json", retries=2, interval=0)


def test_read_json_greedy_gives_up_on_broken_json(tmp_path: Path):
    target = tmp_path / "broken.json"
    target.write_text('{"a": ', encoding="utf-8")
    with pytest.raises(json.JSONDecodeError):
        read_json_greedy(target, retries=2, interval=0)


def test_read_json_greedy_does_not_retry_other_errors(tmp_path: Path):
    with pytest.raises(IsADirectoryError):
        read_json_greedy(tmp_path, retries=100, interval=10)


def test_read_json_greedy_waits_for_truncated_file(tmp_path: Path, monkeypatch):
    target = tmp_path / "cmp.json"
    target.write_text('{"ID": "abc", "na', encoding="utf-8")
    sleeps = []

    def finish_write(seconds):
        sleeps.append(seconds)
        if len(sleeps) == 2:
            target.write_text('{"ID": "abc", "name": "task0"}', encoding="utf-8")

    monkeypatch.setattr("wheelflow.utils.io.time.sleep", finish_write)
    assert read_json_greedy(target, retries=5, interval=0.25) == {"ID": "abc", "name": "task0"}
    assert sleeps == [0.25, 0.25]


def test_read_json_greedy_waits_for_empty_file(tmp_path: Path):
    target = tmp_path / "cmp.json"
    target.write_text("", encoding="utf-8")
    timer = threading.Timer(0.1, lambda: target.write_text('{"ok": true}', encoding="utf-8"))
    timer.start()
    try:
        assert read_json_greedy(target, retries=50, interval=0.05) == {"ok": True}
    finally:
        timer.join()


def test_make_unused_dir(tmp_path: Path):
    (tmp_path / "base0").mkdir()
    (tmp_path / "base1").mkdir()
    created = make_unused_dir(tmp_path / "base", 0)
    assert created == tmp_path / "base2"
    assert created.is_dir()


def test_set_component_state_r(store, lifecycle, root_id):
    wf = lifecycle.create_component(store.project_root, "workflow")
    wf_dir = store.dir_of(wf["ID"])
    inner = lifecycle.create_component(wf_dir, "task")
    held = lifecycle.create_component(wf_dir, "task")
    outside = lifecycle.create_component(store.project_root, "task")
    for c, state in ((wf, "finished"), (inner, "failed"), (held, "holding"), (outside, "finished")):
        c["state"] = state
        store.write_by_id(c["ID"], c)

    changed = set_component_state_r(store, wf_dir, "not-started", ignore_states=["holding"])

    assert {c["ID"] for c in changed} == {wf["ID"], inner["ID"]}
    assert store.read_by_id(wf["ID"])["state"] == "not-started"
    assert store.read_by_id(inner["ID"])["state"] == "not-started"
    assert store.read_by_id(held["ID"])["state"] == "holding"
    assert store.read_by_id(outside["ID"])["state"] == "finished"
    assert set_component_state_r(store, wf_dir, "not-started", ignore_states=["holding"]) == []


def test_set_component_state_r_from_project_root(store, lifecycle, root_id):
    t = lifecycle.create_component(store.project_root, "task")
    t["state"] = "running"
    store.write_by_id(t["ID"], t)

    set_component_state_r(store, store.project_root, "unknown")
    assert store.read_by_id(root_id)["state"] == "unknown"
    assert store.read_by_id(t["ID"])["state"] == "unknown"
