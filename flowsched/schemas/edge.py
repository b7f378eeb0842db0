"""
Edge schema - directed connections between nodes.

A plain edge always leads to output_node. A fork reads a boolean variable
and leads to output_node when it is true, output_node_false otherwise.
"""

from dataclasses import dataclass
from typing import Any

from .operator import UNDEFINED


@dataclass(frozen=True)
class Edge:
    """
    An edge or fork leaving input_node.

    Attributes:
        input_node: Source node
        output_node: Target node (true branch for forks)
        is_fork: True for a conditional fork
        bool_variable: Condition variable of a fork
        output_node_false: Target node when the condition is false
    """
    input_node: str
    output_node: str
    is_fork: bool = False
    bool_variable: str = UNDEFINED
    output_node_false: str = UNDEFINED

    @classmethod
    def fork(cls, input_node: str, bool_variable: str, output_node: str, output_node_false: str) -> "Edge":
        return cls(
            input_node=input_node,
            output_node=output_node,
            is_fork=True,
            bool_variable=bool_variable,
            output_node_false=output_node_false,
        )

    def targets(self) -> tuple[str, ...]:
        """Every node this edge can lead to."""
        if self.is_fork:
            return (self.output_node, self.output_node_false)
        return (self.output_node,)

    def get_output_node(self, variables) -> str:
        """
        Select the next node.

        Args:
            variables: VariableStore consulted for the fork condition

        Raises:
            VariableNotFoundError / TypeMismatchError: If the fork condition
                is not a declared boolean variable
        """
        if not self.is_fork:
            return self.output_node
        if variables.get_bool(self.bool_variable):
            return self.output_node
        return self.output_node_false

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "input": self.input_node,
            "output": self.output_node,
            "is_fork": self.is_fork,
            "bool_variable": self.bool_variable,
            "output_if_false": self.output_node_false,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Edge":
        """Deserialize from dictionary. Fork fields default to 'undefined'."""
        return cls(
            input_node=data["input"],
            output_node=data["output"],
            is_fork=bool(data.get("is_fork", False)),
            bool_variable=data.get("bool_variable", UNDEFINED),
            output_node_false=data.get("output_if_false", UNDEFINED),
        )
