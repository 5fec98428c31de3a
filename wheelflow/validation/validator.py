# wheelflow/validation/validator.py

from typing import Any, Dict, List, Optional

from wheelflow.core.components import has_child, is_initial_component
from wheelflow.core.config import JobSchedulerRegistry, RemoteHostRegistry
from wheelflow.core.errors import ComponentValidationError
from wheelflow.store.paths import PathManager
from wheelflow.utils.logger import get_logger
from wheelflow.validation.checks import CheckContext, checks_for
from wheelflow.validation.cycle import get_cycle_graph

logger = get_logger("validator")


class GraphValidator:
    """
    Walks a component subtree and collects every problem into one report.

    Report entries are ``{"ID", "name", "error"}`` where name is the component
    full name ("/wf0/task0") and error holds one or more newline separated
    messages. Only I/O failures and programming errors escape as exceptions.
    """

    def __init__(
        self,
        store,
        hosts: Optional[RemoteHostRegistry] = None,
        schedulers: Optional[JobSchedulerRegistry] = None,
    ):
        self.store = store
        self.paths = PathManager(store)
        self.ctx = CheckContext(
            store=store,
            hosts=hosts if hosts is not None else RemoteHostRegistry(),
            schedulers=schedulers if schedulers is not None else JobSchedulerRegistry(),
        )

    def validate_component(self, component: Dict[str, Any]) -> Optional[str]:
        """
        Returns:
            None if component passed every check, else the joined messages
        """
        messages: List[str] = []
        for check in checks_for(component):
            try:
                check(self.ctx, component)
            except ComponentValidationError as e:
                messages.append(str(e))
        return "\n".join(messages) if messages else None

    def check_component_dependency(self, parent_id: str) -> List[str]:
        children = self.store.get_children(parent_id)
        rt = get_cycle_graph(children)
        if rt:
            logger.debug("cycle graph found: %s", [self.paths.full_name(cid) for cid in rt])
        return rt

    def recursive_validate_components(self, parent_id: str, report: List[Dict[str, Any]]) -> None:
        children = self.store.get_children(parent_id)
        if not children:
            return

        for component in children:
            if component.get("disable"):
                continue
            error = self.validate_component(component)
            if error is not None:
                report.append({"ID": component["ID"], "name": self.paths.full_name(component["ID"]), "error": error})
            if has_child(component):
                self.recursive_validate_components(component["ID"], report)

        # disabled children count here too
        if not any(is_initial_component(c) for c in children):
            report.append({"ID": parent_id, "name": self.paths.full_name(parent_id), "error": "no initial component in children"})

        for cid in self.check_component_dependency(parent_id):
            report.append({"ID": cid, "name": self.paths.full_name(cid), "error": "cycle graph detected"})

    def validate_components(self, start_id: Optional[str] = None) -> List[Dict[str, Any]]:
        parent_id = start_id if isinstance(start_id, str) else self.store.root_component()["ID"]
        report: List[Dict[str, Any]] = []
        self.recursive_validate_components(parent_id, report)
        if report:
            logger.info("validation error detected\n%s", report)
        return report


def validate_components(
    store,
    start_id: Optional[str] = None,
    hosts: Optional[RemoteHostRegistry] = None,
    schedulers: Optional[JobSchedulerRegistry] = None,
) -> List[Dict[str, Any]]:
    return GraphValidator(store, hosts=hosts, schedulers=schedulers).validate_components(start_id)
