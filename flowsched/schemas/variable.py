"""
Variable schema - a typed schedule variable.

Every variable carries a current value (mutated while the schedule runs)
and an original value (restored by Schedule.reset()). The three supported
types share one table keyed by name; the type tag decides which accessor
may read it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

VariableValue = Union[float, bool, str]


class VarType(str, Enum):
    """Type tag of a schedule variable."""
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"


def coerce_value(var_type: VarType, value: Any) -> VariableValue:
    """
    Convert a Python value to the storage representation of var_type.

    Raises:
        ValueError: If value cannot represent var_type without guessing
    """
    if var_type == VarType.FLOAT:
        if isinstance(value, bool):
            raise ValueError(f"Boolean {value!r} is not a float value")
        return float(value)
    if var_type == VarType.BOOL:
        if not isinstance(value, bool):
            raise ValueError(f"{value!r} is not a boolean value")
        return value
    if not isinstance(value, str):
        raise ValueError(f"{value!r} is not a string value")
    return value


@dataclass
class Variable:
    """
    A schedule variable.

    Attributes:
        name: Unique name across all variable types
        type: FLOAT, BOOL or STRING
        value: Current value
        original_value: Reset baseline
    """
    name: str
    type: VarType
    value: VariableValue
    original_value: VariableValue

    def reset(self) -> None:
        """Restore the current value to the original value."""
        self.value = self.original_value

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output (type is implied by section)."""
        return {
            "name": self.name,
            "value": self.value,
            "original_value": self.original_value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], var_type: VarType) -> "Variable":
        """Deserialize from dictionary. A missing original defaults to the value."""
        value = coerce_value(var_type, data["value"])
        original = coerce_value(var_type, data.get("original_value", data["value"]))
        return cls(
            name=data["name"],
            type=var_type,
            value=value,
            original_value=original,
        )
