# wheelflow/graph/remote.py
from __future__ import annotations

import shlex
from typing import Any, Callable, Optional

from wheelflow.core.components import is_local_component
from wheelflow.core.config import RemoteHost, RemoteHostRegistry
from wheelflow.core.errors import RemoteStorageError
from wheelflow.utils.logger import get_logger

logger = get_logger("remote")

# (host settings, shell command) -> exit status
RemoteExecutor = Callable[[RemoteHost, str], int]


def check_remote_storage_write_permission(
    hosts: RemoteHostRegistry,
    host: str,
    storage_path: str,
    executor: RemoteExecutor,
) -> None:
    """Raise RemoteStorageError unless storage_path is writable on host."""
    host_info = hosts.query("name", host)
    if host_info is None:
        raise RemoteStorageError(f"remote host setting for {host} not found", host=host, storage_path=storage_path)
    rt = executor(host_info, f"test -w {shlex.quote(str(storage_path))}")
    if rt != 0:
        logger.warning("%s is not writable on %s", storage_path, host)
        raise RemoteStorageError("bad permission", host=host, storage_path=storage_path)


def _ssh_port(port: Any) -> int:
    if port is None or port == "" or str(port) == "22":
        return 22
    return int(port)


def is_same_remote_host(store, src: str, dst: str, hosts: RemoteHostRegistry) -> Optional[bool]:
    """
    Whether components src and dst run on the same remote machine.

    Returns:
        None if src and dst are the same component, False if either one is
        local or unregistered, else the result of comparing the host settings
        (same name, dst shared with src, or same host / user / port).
    """
    if src == dst:
        return None
    src_json = store.read_by_id(src)
    dst_json = store.read_by_id(dst)
    if src_json is None or dst_json is None:
        return False
    if is_local_component(src_json) or is_local_component(dst_json):
        return False
    if src_json.get("host") == dst_json.get("host"):
        return True

    src_info = hosts.query("name", src_json.get("host"))
    dst_info = hosts.query("name", dst_json.get("host"))
    if src_info is None or dst_info is None:
        logger.debug("remote host setting for %s or %s not found", src_json.get("host"), dst_json.get("host"))
        return False
    if dst_info.sharedHost is not None and dst_info.sharedHost == src_info.name:
        return True
    if src_info.host != dst_info.host or src_info.user != dst_info.user:
        return False
    return _ssh_port(src_info.port) == _ssh_port(dst_info.port)
