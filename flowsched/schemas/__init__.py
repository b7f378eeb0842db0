"""
flowsched.schemas - Data structures of a schedule.

Schedule = variables + operators + jobs + edges + current position

- Variable: typed value with a reset baseline
- Operator: one instruction of the fixed instruction set
- ScheduleJob: a node handed to the external executor
- Edge: plain edge or boolean fork between nodes
- NodeRef: what a node name resolves to
"""

from .variable import (
    Variable,
    VarType,
    VariableValue,
    coerce_value,
)
from .operator import (
    Operator,
    OperatorKind,
    Operand,
    OPERATOR_SIGNATURES,
    UNDEFINED,
)
from .job import (
    ScheduleJob,
    JobMode,
)
from .edge import Edge
from .node import (
    NodeRef,
    NodeKind,
    WAIT_NODE,
    EXIT_NODE,
    RESERVED_NODES,
)

__all__ = [
    # Variables
    "Variable",
    "VarType",
    "VariableValue",
    "coerce_value",
    # Operators
    "Operator",
    "OperatorKind",
    "Operand",
    "OPERATOR_SIGNATURES",
    "UNDEFINED",
    # Jobs
    "ScheduleJob",
    "JobMode",
    # Edges
    "Edge",
    # Nodes
    "NodeRef",
    "NodeKind",
    "WAIT_NODE",
    "EXIT_NODE",
    "RESERVED_NODES",
]
