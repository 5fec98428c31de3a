# wheelflow/core/components.py
"""
Closed set of component types and the descriptor factory.

A descriptor is the plain dict stored in ``cmp.wheel.json``; every type gets
the common fields plus its own defaults from ``_TYPE_DEFAULTS``.
"""
from __future__ import annotations

import copy
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from wheelflow.core.constants import LOCALHOST, PS_SETTING_FILENAME


class ComponentType(str, Enum):
    WORKFLOW = "workflow"
    TASK = "task"
    IF = "if"
    WHILE = "while"
    FOR = "for"
    FOREACH = "foreach"
    PARAMETER_STUDY = "parameterStudy"
    STEPJOB = "stepjob"
    STEPJOB_TASK = "stepjobTask"
    BULKJOB_TASK = "bulkjobTask"
    STORAGE = "storage"
    SOURCE = "source"
    VIEWER = "viewer"
    HPCISS = "hpciss"
    HPCISSTAR = "hpcisstar"

    @classmethod
    def parse(cls, value: Any) -> "ComponentType":
        """Accept enum members, type strings and the "PS" alias."""
        if isinstance(value, cls):
            return value
        if value == "PS":
            return cls.PARAMETER_STUDY
        return cls(value)


CONTAINER_TYPES = frozenset({
    ComponentType.WORKFLOW,
    ComponentType.PARAMETER_STUDY,
    ComponentType.FOR,
    ComponentType.WHILE,
    ComponentType.FOREACH,
    ComponentType.STEPJOB,
})

# types which can not be an endpoint of a control-flow link
NO_CONTROL_FLOW_TYPES = (ComponentType.VIEWER, ComponentType.SOURCE)

_DEFAULT_NAMES = {ComponentType.PARAMETER_STUDY: "PS"}

_COMMON: Dict[str, Any] = {
    "description": None,
    "state": "not-started",
    "disable": False,
    "previous": [],
    "next": [],
    "inputFiles": [],
    "outputFiles": [],
    "cleanupFlag": "2",
}

_REMOTE: Dict[str, Any] = {"host": LOCALHOST}

_JOB: Dict[str, Any] = {
    "useJobScheduler": False,
    "queue": None,
    "submitOption": None,
}

_TYPE_DEFAULTS: Dict[ComponentType, Dict[str, Any]] = {
    ComponentType.WORKFLOW: {},
    ComponentType.TASK: {
        "script": None,
        **_REMOTE,
        **_JOB,
        "retry": None,
        "include": None,
        "exclude": None,
        "env": {},
    },
    ComponentType.IF: {"condition": None, "else": []},
    ComponentType.WHILE: {"condition": None, "keep": None},
    ComponentType.FOR: {"start": None, "end": None, "step": None, "keep": None},
    ComponentType.FOREACH: {"indexList": [], "keep": None},
    ComponentType.PARAMETER_STUDY: {"parameterFile": PS_SETTING_FILENAME, "numTotal": None, "deleteLoopInstance": False},
    ComponentType.STEPJOB: {**_REMOTE, **_JOB, "useJobScheduler": True},
    ComponentType.STEPJOB_TASK: {
        "script": None,
        "useDependency": False,
        "dependencyForm": None,
        "stepnum": 0,
    },
    ComponentType.BULKJOB_TASK: {
        "script": None,
        **_REMOTE,
        **_JOB,
        "useJobScheduler": True,
        "usePSSettingFile": True,
        "parameterFile": None,
        "startBulkNumber": None,
        "endBulkNumber": None,
        "manualFinishCondition": False,
        "condition": None,
    },
    ComponentType.STORAGE: {**_REMOTE, "storagePath": None},
    ComponentType.SOURCE: {"uploadOnDemand": False},
    ComponentType.VIEWER: {},
    ComponentType.HPCISS: {**_REMOTE, "storagePath": None},
    ComponentType.HPCISSTAR: {**_REMOTE, "storagePath": None},
}

assert set(_TYPE_DEFAULTS) == set(ComponentType), "component defaults must cover every type"


def get_component_default_name(component_type: Any) -> str:
    t = ComponentType.parse(component_type)
    return _DEFAULT_NAMES.get(t, t.value)


def component_factory(component_type: Any, pos: Optional[Dict[str, Any]] = None, parent: Optional[str] = None) -> Dict[str, Any]:
    """
    Build a fresh descriptor for ``component_type``.

    Returns:
        descriptor dict with a new ID; ``name`` is left None for the caller to fill.
    """
    t = ComponentType.parse(component_type)
    descriptor: Dict[str, Any] = {
        "type": t.value,
        "pos": dict(pos) if pos else {"x": 0, "y": 0},
        "parent": parent,
        "ID": str(uuid.uuid4()),
        "name": None,
    }
    descriptor.update(copy.deepcopy(_COMMON))
    descriptor.update(copy.deepcopy(_TYPE_DEFAULTS[t]))

    if t is ComponentType.SOURCE:
        # source: output slots only, no control flow
        for key in ("previous", "next", "inputFiles"):
            descriptor.pop(key)
    elif t is ComponentType.VIEWER:
        for key in ("previous", "next", "outputFiles"):
            descriptor.pop(key)
    return descriptor


def component_type_of(component: Dict[str, Any]) -> Optional[ComponentType]:
    try:
        return ComponentType.parse(component.get("type"))
    except ValueError:
        return None


def has_child(component: Dict[str, Any]) -> bool:
    return component_type_of(component) in CONTAINER_TYPES


def is_local_component(component: Dict[str, Any]) -> bool:
    host = component.get("host")
    return host is None or host == LOCALHOST


def is_initial_component(component: Dict[str, Any]) -> bool:
    """A component with no incoming control-flow edge."""
    previous: List[str] = component.get("previous") or []
    return len(previous) == 0
