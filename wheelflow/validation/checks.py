# wheelflow/validation/checks.py
"""
Per-type structural checks.

Every check takes (ctx, component) and raises ComponentValidationError with a
human readable message; the validator collects the messages. ``CHECKS`` maps
every ComponentType to the checks run for it.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from jsonschema import Draft7Validator

from wheelflow.core.components import ComponentType, is_initial_component, is_local_component
from wheelflow.core.config import JobScheduler, JobSchedulerRegistry, RemoteHost, RemoteHostRegistry
from wheelflow.core.errors import ComponentValidationError
from wheelflow.utils.io import read_json
from wheelflow.utils.logger import get_logger
from wheelflow.utils.names import is_valid_input_filename, is_valid_output_filename
from wheelflow.validation.schema import PS_SETTING_SCHEMA

logger = get_logger("checks")

_PS_VALIDATOR = Draft7Validator(PS_SETTING_SCHEMA)


@dataclass
class CheckContext:
    store: Any
    hosts: RemoteHostRegistry = field(default_factory=RemoteHostRegistry)
    schedulers: JobSchedulerRegistry = field(default_factory=JobSchedulerRegistry)

    def component_dir(self, component: Dict[str, Any]) -> Path:
        d = self.store.dir_of(component["ID"])
        if d is None:
            raise ComponentValidationError("illegal path")
        return d


Check = Callable[[CheckContext, Dict[str, Any]], None]


# -------- small helpers --------
def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and not (isinstance(v, float) and math.isnan(v))


def _is_integer(v: Any) -> bool:
    if isinstance(v, bool):
        return False
    if isinstance(v, int):
        return True
    return isinstance(v, float) and v.is_integer()


def _remote_host(ctx: CheckContext, component: Dict[str, Any]) -> RemoteHost:
    hostinfo = ctx.hosts.query("name", component.get("host"))
    if hostinfo is None:
        raise ComponentValidationError(f"remote host setting for {component.get('host')} not found")
    return hostinfo


def _job_scheduler(ctx: CheckContext, hostinfo: RemoteHost) -> JobScheduler:
    scheduler = ctx.schedulers.get(hostinfo.jobScheduler)
    if scheduler is None:
        raise ComponentValidationError(f"job scheduler for {hostinfo.name} ({hostinfo.jobScheduler}) is not supported")
    return scheduler


# -------- file based checks --------
def _resolve_in(ctx: CheckContext, component: Dict[str, Any], name: str) -> Optional[Path]:
    """name below the component directory, or None if it can not be a path."""
    try:
        p = (ctx.component_dir(component) / name).resolve()
        p.exists()
    except (OSError, ValueError):
        return None
    return p


def check_script(ctx: CheckContext, component: Dict[str, Any]) -> None:
    script = component.get("script")
    if not isinstance(script, str):
        raise ComponentValidationError("script is not specified")
    filename = _resolve_in(ctx, component, script)
    if filename is None or not filename.exists():
        raise ComponentValidationError(f"script is not existing file {filename or script}")
    if not filename.is_file():
        raise ComponentValidationError(f"script is not file {filename}")


def check_ps_setting_file(ctx: CheckContext, component: Dict[str, Any]) -> None:
    parameter_file = component.get("parameterFile")
    if not isinstance(parameter_file, str):
        raise ComponentValidationError("parameter setting file is not specified")
    filename = _resolve_in(ctx, component, parameter_file)
    if filename is None or not filename.exists():
        raise ComponentValidationError(f"parameter setting file is not existing {filename or parameter_file}")
    if not filename.is_file():
        raise ComponentValidationError(f"parameter setting file is not file {filename}")
    try:
        setting = read_json(filename)
    except json.JSONDecodeError:
        raise ComponentValidationError(f"parameter setting file is not JSON file {filename}")
    errors = sorted(_PS_VALIDATOR.iter_errors(setting), key=lambda e: list(e.path))
    if errors:
        logger.debug("validation error for %s (%s): %s", component.get("name"), component.get("ID"), [e.message for e in errors])
        raise ComponentValidationError("parameter setting file does not have valid JSON data")


def check_condition(ctx: CheckContext, component: Dict[str, Any]) -> None:
    """
    condition must be set. If it names an existing path that path has to be
    a file; otherwise the value is an inline expression and is not checked here.
    """
    condition = component.get("condition")
    if not isinstance(condition, str):
        raise ComponentValidationError("condition is not specified")
    filename = _resolve_in(ctx, component, condition)
    # too long for a path or containing NUL: an inline expression
    if filename is None:
        return
    if filename.exists() and not filename.is_file():
        raise ComponentValidationError(f"condition is exist but it is not file {filename}")


# -------- job related checks --------
def check_task(ctx: CheckContext, component: Dict[str, Any]) -> None:
    if component.get("name") is None:
        raise ComponentValidationError("illegal path")
    if not is_local_component(component):
        hostinfo = _remote_host(ctx, component)
        if component.get("useJobScheduler"):
            scheduler = _job_scheduler(ctx, hostinfo)
            submit_option = component.get("submitOption")
            if submit_option:
                opts = [o for o in str(scheduler.queueOpt).split(" ") if o]
                if opts and all(o in submit_option for o in opts):
                    raise ComponentValidationError(f"submit option duplicate queue option : {scheduler.queueOpt}")
    check_script(ctx, component)


def check_stepjob_task(ctx: CheckContext, component: Dict[str, Any]) -> None:
    if component.get("name") is None:
        raise ComponentValidationError("illegal path")
    if component.get("useDependency") and is_initial_component(component):
        raise ComponentValidationError("initial stepjobTask cannot specified the Dependency form")
    check_script(ctx, component)


def _check_remote_job_feature(ctx: CheckContext, component: Dict[str, Any], label: str, feature: str) -> None:
    if not component.get("useJobScheduler"):
        raise ComponentValidationError("useJobScheduler must be set")
    if is_local_component(component):
        raise ComponentValidationError(f"{label} is only supported on remotehost")
    hostinfo = _remote_host(ctx, component)
    scheduler = _job_scheduler(ctx, hostinfo)
    if feature == "stepjob":
        supported, enabled = scheduler.supportStepjob, hostinfo.useStepjob
    else:
        supported, enabled = scheduler.supportBulkjob, hostinfo.useBulkjob
    if not supported:
        raise ComponentValidationError(f"job scheduler ({hostinfo.jobScheduler}) does not support {feature}")
    if not enabled:
        raise ComponentValidationError(f"{hostinfo.name} does not set to use {feature}")


def check_stepjob(ctx: CheckContext, component: Dict[str, Any]) -> None:
    _check_remote_job_feature(ctx, component, "stepjob", "stepjob")


def check_bulkjob_task(ctx: CheckContext, component: Dict[str, Any]) -> None:
    if component.get("name") is None:
        raise ComponentValidationError("illegal path")
    _check_remote_job_feature(ctx, component, "bulkjobTask", "bulkjob")

    if component.get("usePSSettingFile") is True:
        if not isinstance(component.get("parameterFile"), str):
            raise ComponentValidationError("usePSSettingFile is set but parameter setting file is not specified")
    else:
        start = component.get("startBulkNumber")
        end = component.get("endBulkNumber")
        if not _is_number(start):
            raise ComponentValidationError("startBulkNumber must be specified")
        if not (_is_integer(start) and start >= 0):
            raise ComponentValidationError("startBulkNumber must be integer and 0 or more")
        if not _is_number(end):
            raise ComponentValidationError("endBulkNumber must be specified")
        if not (_is_integer(end) and end > start):
            raise ComponentValidationError("endBulkNumber must be integer and greater than startBulkNumber")

    if component.get("manualFinishCondition"):
        check_condition(ctx, component)
    check_script(ctx, component)


# -------- loops --------
def check_keep(ctx: CheckContext, component: Dict[str, Any]) -> None:
    if "keep" not in component:
        return
    keep = component["keep"]
    if keep is None or keep == "":
        return
    if not (_is_integer(keep) and keep >= 0):
        raise ComponentValidationError("keep must be positive integer")


def check_for_loop(ctx: CheckContext, component: Dict[str, Any]) -> None:
    start, step, end = component.get("start"), component.get("step"), component.get("end")
    if not _is_number(start):
        raise ComponentValidationError("start must be number")
    if not _is_number(step):
        raise ComponentValidationError("step must be number")
    if not _is_number(end):
        raise ComponentValidationError("end must be number")
    if step == 0 or (end - start) * step < 0:
        raise ComponentValidationError("infinite loop")


def check_foreach(ctx: CheckContext, component: Dict[str, Any]) -> None:
    index_list = component.get("indexList")
    if not isinstance(index_list, list):
        raise ComponentValidationError("index list is broken")
    if len(index_list) == 0:
        raise ComponentValidationError("index list is empty")


# -------- storage --------
def check_storage(ctx: CheckContext, component: Dict[str, Any]) -> None:
    storage_path = component.get("storagePath")
    if not isinstance(storage_path, str):
        raise ComponentValidationError("storagePath is not set")
    if is_local_component(component):
        p = Path(storage_path).expanduser()
        if not p.is_absolute():
            p = ctx.store.project_root / p
        if not p.exists():
            raise ComponentValidationError("specified path does not exist on localhost")
        if not p.is_dir():
            raise ComponentValidationError("specified path is not directory")
    else:
        _remote_host(ctx, component)


# -------- file slots (any type) --------
def check_input_files(ctx: CheckContext, component: Dict[str, Any]) -> None:
    for input_file in component.get("inputFiles") or []:
        name = input_file.get("name")
        if not is_valid_input_filename(name):
            raise ComponentValidationError(f"'{name}' is not allowed as input file.")
        if len(input_file.get("src") or []) > 1 and not name.endswith(("/", "\\")):
            raise ComponentValidationError(f"inputFile '{name}' data type is 'file' but it has two or more outputFiles.")


def check_output_files(ctx: CheckContext, component: Dict[str, Any]) -> None:
    for output_file in component.get("outputFiles") or []:
        name = output_file.get("name")
        if not is_valid_output_filename(name):
            raise ComponentValidationError(f"'{name}' is not allowed as output filename.")


CHECKS: Dict[ComponentType, Tuple[Check, ...]] = {
    ComponentType.WORKFLOW: (),
    ComponentType.TASK: (check_task,),
    ComponentType.IF: (check_condition,),
    ComponentType.WHILE: (check_condition, check_keep),
    ComponentType.FOR: (check_for_loop, check_keep),
    ComponentType.FOREACH: (check_foreach, check_keep),
    ComponentType.PARAMETER_STUDY: (check_ps_setting_file,),
    ComponentType.STEPJOB: (check_stepjob,),
    ComponentType.STEPJOB_TASK: (check_stepjob_task,),
    ComponentType.BULKJOB_TASK: (check_bulkjob_task,),
    ComponentType.STORAGE: (check_storage,),
    ComponentType.SOURCE: (),
    ComponentType.VIEWER: (),
    ComponentType.HPCISS: (),
    ComponentType.HPCISSTAR: (),
}

assert set(CHECKS) == set(ComponentType), "every component type needs an entry in CHECKS"


def checks_for(component: Dict[str, Any]) -> Tuple[Check, ...]:
    try:
        t: Optional[ComponentType] = ComponentType.parse(component.get("type"))
    except ValueError:
        t = None
    slot_checks: Tuple[Check, ...] = ()
    if "inputFiles" in component:
        slot_checks += (check_input_files,)
    if "outputFiles" in component:
        slot_checks += (check_output_files,)
    return (CHECKS[t] if t is not None else ()) + slot_checks
