"""Node references - the resolved kind of a node name."""

from dataclasses import dataclass
from enum import Enum

WAIT_NODE = "WAIT"
EXIT_NODE = "EXIT"
RESERVED_NODES = (WAIT_NODE, EXIT_NODE)


class NodeKind(str, Enum):
    JOB = "job"
    OPERATOR = "operator"
    WAIT = "wait"
    EXIT = "exit"
    UNDEFINED = "undefined"


@dataclass(frozen=True)
class NodeRef:
    """A node name together with what it resolved to."""
    kind: NodeKind
    name: str

    @property
    def is_defined(self) -> bool:
        return self.kind != NodeKind.UNDEFINED
