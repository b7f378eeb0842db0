"""
ScheduleJob schema - a job node delegated to the external executor.

The job's node name doubles as the template name handed to the executor.
Once the executor instantiates the template it may rename the job; the
concrete name is kept in current_name and the backend handle in handle so
that a resumed run keeps polling the same instance.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class JobMode(str, Enum):
    """How the executor treats (re-)submission of a job node."""
    NEW = "new"
    CONTINUE = "continue"
    OVERWRITE = "overwrite"


@dataclass
class ScheduleJob:
    """
    A job node.

    Attributes:
        name: Node name (and template name)
        current_name: Concrete job instance name, initially the node name
        mode: NEW, CONTINUE or OVERWRITE
        has_started: True once submitted and until the executor reports completion
        handle: Backend handle used for status checks (None before first submission)
    """
    name: str
    current_name: str
    mode: JobMode = JobMode.NEW
    has_started: bool = False
    handle: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.mode, JobMode):
            self.mode = JobMode(self.mode)

    @property
    def is_instantiated(self) -> bool:
        """True once the executor has produced a concrete instance."""
        return self.handle is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "name": self.name,
            "current_name": self.current_name,
            "mode": self.mode.value,
            "has_started": self.has_started,
            "handle": self.handle,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduleJob":
        """Deserialize from dictionary. has_started defaults to False, handle to None."""
        return cls(
            name=data["name"],
            current_name=data.get("current_name") or data["name"],
            mode=JobMode(data.get("mode", JobMode.NEW.value)),
            has_started=bool(data.get("has_started", False)),
            handle=data.get("handle"),
        )
