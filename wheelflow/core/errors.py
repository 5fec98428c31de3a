# wheelflow/core/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class WheelflowError(Exception):
    """Base class for every error raised by wheelflow."""


class InvalidNameError(WheelflowError, ValueError):
    """Component name or file slot name does not follow the naming rules."""


class InvalidIndexError(WheelflowError, IndexError):
    pass


class ComponentNotFoundError(WheelflowError, LookupError):
    def __init__(self, component_id: str, message: Optional[str] = None):
        super().__init__(message or f"component {component_id} not found")
        self.component_id = component_id


class LinkError(WheelflowError):
    """
    Control-flow / data-flow topology error.

    Errors about forbidden endpoint types carry code "ELINK" and the
    endpoints of the rejected link.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        src: Optional[str] = None,
        src_name: Optional[str] = None,
        dst: Optional[str] = None,
        dst_name: Optional[str] = None,
        is_else: bool = False,
    ):
        super().__init__(message)
        self.code = code
        self.src = src
        self.src_name = src_name
        self.dst = dst
        self.dst_name = dst_name
        self.is_else = is_else

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": str(self),
            "code": self.code,
            "src": self.src,
            "srcName": self.src_name,
            "dst": self.dst,
            "dstName": self.dst_name,
            "isElse": self.is_else,
        }


class FileSlotError(WheelflowError):
    """inputFiles/outputFiles list missing, slot missing or slot already exists."""


class ComponentValidationError(WheelflowError):
    """Raised by a single structural check; the validator collects these."""


class RootComponentError(WheelflowError):
    pass


class RemoteStorageError(WheelflowError):
    def __init__(self, message: str, host: Optional[str] = None, storage_path: Optional[str] = None):
        super().__init__(message)
        self.host = host
        self.storage_path = storage_path
        self.reason = "invalidRemoteStorage"
