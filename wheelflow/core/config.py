# wheelflow/core/config.py
"""
Configuration objects handed to the core entry points.

Remote hosts and job schedulers are kept in two JSON files under the config
directory (``remotehost.json`` is an array, ``jobScheduler.json`` an object
keyed by scheduler name). Both are loaded into registries that the validator
and the remote helpers receive explicitly.

Environment variables:
  WHEELFLOW_CONFIG_DIR   config directory (default: ~/.wheelflow)
  WHEELFLOW_LOG_LEVEL    log level (default: INFO)
  WHEELFLOW_LOG_DIR      directory for wheel.log (default: none, stdout only)
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from wheelflow.utils.io import read_json


class RemoteHost(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    host: Optional[str] = None
    user: Optional[str] = None
    port: Optional[int] = None
    jobScheduler: Optional[str] = None
    useStepjob: bool = False
    useBulkjob: bool = False
    sharedHost: Optional[str] = None


class JobScheduler(BaseModel):
    model_config = ConfigDict(extra="allow")

    queueOpt: str = ""
    supportStepjob: bool = False
    supportBulkjob: bool = False


class RemoteHostRegistry:
    """Lookup table of registered remote hosts."""

    def __init__(self, hosts: Optional[Iterable[Any]] = None):
        self._hosts: List[RemoteHost] = [
            h if isinstance(h, RemoteHost) else RemoteHost.model_validate(h) for h in (hosts or [])
        ]

    def __iter__(self) -> Iterator[RemoteHost]:
        return iter(self._hosts)

    def __len__(self) -> int:
        return len(self._hosts)

    def query(self, key: str, value: Any) -> Optional[RemoteHost]:
        for h in self._hosts:
            if getattr(h, key, None) == value:
                return h
        return None

    def get_id(self, key: str, value: Any) -> Optional[str]:
        h = self.query(key, value)
        return getattr(h, "id", None) if h is not None else None

    @classmethod
    def from_file(cls, path: Path) -> "RemoteHostRegistry":
        if not Path(path).exists():
            return cls()
        return cls(read_json(path))


class JobSchedulerRegistry:
    """scheduler name -> JobScheduler"""

    def __init__(self, schedulers: Optional[Dict[str, Any]] = None):
        self._schedulers: Dict[str, JobScheduler] = {
            name: v if isinstance(v, JobScheduler) else JobScheduler.model_validate(v)
            for name, v in (schedulers or {}).items()
        }

    def __contains__(self, name: object) -> bool:
        return name in self._schedulers

    def get(self, name: Optional[str]) -> Optional[JobScheduler]:
        if name is None:
            return None
        return self._schedulers.get(name)

    def names(self) -> List[str]:
        return list(self._schedulers)

    @classmethod
    def from_file(cls, path: Path) -> "JobSchedulerRegistry":
        if not Path(path).exists():
            return cls()
        return cls(read_json(path))


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


def _default_config_dir() -> Path:
    env = os.getenv("WHEELFLOW_CONFIG_DIR")
    if env:
        return Path(env)
    return Path.home() / ".wheelflow"


class Settings(BaseModel):
    config_dir: Path = Field(default_factory=_default_config_dir)
    log_level: str = Field(default_factory=lambda: os.getenv("WHEELFLOW_LOG_LEVEL", "INFO"))
    log_dir: Optional[Path] = Field(default_factory=lambda: _env_path("WHEELFLOW_LOG_DIR"), description="directory for wheel.log")
    read_retries: int = Field(10, ge=1, description="attempts when reading a descriptor greedily")
    read_retry_interval: float = Field(0.5, ge=0.0, description="seconds between greedy read attempts")
    remotehost_file: str = "remotehost.json"
    jobscheduler_file: str = "jobScheduler.json"

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        return cls(**overrides)

    def load_remote_hosts(self) -> RemoteHostRegistry:
        return RemoteHostRegistry.from_file(self.config_dir / self.remotehost_file)

    def load_job_schedulers(self) -> JobSchedulerRegistry:
        return JobSchedulerRegistry.from_file(self.config_dir / self.jobscheduler_file)
