"""
Operator schema - the fixed instruction set of a schedule.

An Operator reads up to two inputs and writes one output variable, or
performs a small side effect (file hygiene, rate-limiting waits, exit).
The type tag values are the strings stored in saved schedules.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

UNDEFINED = "undefined"


class OperatorKind(str, Enum):
    """Every instruction an operator node can perform."""
    BOOL_AND = "bool_op_and"
    BOOL_OR = "bool_op_or"
    BOOL_NOT = "bool_op_not"
    BOOL_GT_VAR = "bool_op_gt_var"
    BOOL_LT_VAR = "bool_op_lt_var"
    BOOL_EQ_VAR = "bool_op_eq_var"
    BOOL_GT_CONST = "bool_op_gt_const"
    BOOL_LT_CONST = "bool_op_lt_const"
    BOOL_EQ_CONST = "bool_op_eq_const"
    BOOL_FILE_EXISTS = "bool_op_file_exists"
    FLOAT_PLUS_VAR = "float_op_plus_float"
    FLOAT_MINUS_VAR = "float_op_minus_float"
    FLOAT_MULT_VAR = "float_op_mult_float"
    FLOAT_DIVIDE_VAR = "float_op_divide_float"
    FLOAT_PLUS_CONST = "float_op_plus_const"
    FLOAT_MINUS_CONST = "float_op_minus_const"
    FLOAT_MULT_CONST = "float_op_mult_const"
    FLOAT_DIVIDE_CONST = "float_op_div_by_const"
    FLOAT_DIVIDE_CONST_INV = "float_op_div_const_by"
    STRING_TOUCH_FILE = "string_op_touch_file"
    STRING_COPY_FILE = "string_op_copy_file"
    STRING_MOVE_FILE = "string_op_move_file"
    STRING_DELETE_FILE = "string_op_delete_file"
    WAIT_SINCE_LAST_TIME = "wait_since_last_time"
    EXIT = "exit"


class Operand(str, Enum):
    """What an operand slot of an operator expects."""
    NONE = "none"                 # must be "undefined"
    FLOAT_VAR = "float_var"       # declared float variable
    BOOL_VAR = "bool_var"         # declared boolean variable
    FLOAT_VALUE = "float_value"   # float variable or float literal
    PATH = "path"                 # string variable or literal path


# kind -> (input1, input2, output)
OPERATOR_SIGNATURES: dict[OperatorKind, tuple[Operand, Operand, Operand]] = {
    OperatorKind.BOOL_AND: (Operand.BOOL_VAR, Operand.BOOL_VAR, Operand.BOOL_VAR),
    OperatorKind.BOOL_OR: (Operand.BOOL_VAR, Operand.BOOL_VAR, Operand.BOOL_VAR),
    OperatorKind.BOOL_NOT: (Operand.BOOL_VAR, Operand.NONE, Operand.BOOL_VAR),
    OperatorKind.BOOL_GT_VAR: (Operand.FLOAT_VAR, Operand.FLOAT_VAR, Operand.BOOL_VAR),
    OperatorKind.BOOL_LT_VAR: (Operand.FLOAT_VAR, Operand.FLOAT_VAR, Operand.BOOL_VAR),
    OperatorKind.BOOL_EQ_VAR: (Operand.FLOAT_VAR, Operand.FLOAT_VAR, Operand.BOOL_VAR),
    OperatorKind.BOOL_GT_CONST: (Operand.FLOAT_VAR, Operand.FLOAT_VALUE, Operand.BOOL_VAR),
    OperatorKind.BOOL_LT_CONST: (Operand.FLOAT_VAR, Operand.FLOAT_VALUE, Operand.BOOL_VAR),
    OperatorKind.BOOL_EQ_CONST: (Operand.FLOAT_VAR, Operand.FLOAT_VALUE, Operand.BOOL_VAR),
    OperatorKind.BOOL_FILE_EXISTS: (Operand.PATH, Operand.NONE, Operand.BOOL_VAR),
    OperatorKind.FLOAT_PLUS_VAR: (Operand.FLOAT_VAR, Operand.FLOAT_VAR, Operand.FLOAT_VAR),
    OperatorKind.FLOAT_MINUS_VAR: (Operand.FLOAT_VAR, Operand.FLOAT_VAR, Operand.FLOAT_VAR),
    OperatorKind.FLOAT_MULT_VAR: (Operand.FLOAT_VAR, Operand.FLOAT_VAR, Operand.FLOAT_VAR),
    OperatorKind.FLOAT_DIVIDE_VAR: (Operand.FLOAT_VAR, Operand.FLOAT_VAR, Operand.FLOAT_VAR),
    OperatorKind.FLOAT_PLUS_CONST: (Operand.FLOAT_VAR, Operand.FLOAT_VALUE, Operand.FLOAT_VAR),
    OperatorKind.FLOAT_MINUS_CONST: (Operand.FLOAT_VAR, Operand.FLOAT_VALUE, Operand.FLOAT_VAR),
    OperatorKind.FLOAT_MULT_CONST: (Operand.FLOAT_VAR, Operand.FLOAT_VALUE, Operand.FLOAT_VAR),
    OperatorKind.FLOAT_DIVIDE_CONST: (Operand.FLOAT_VAR, Operand.FLOAT_VALUE, Operand.FLOAT_VAR),
    OperatorKind.FLOAT_DIVIDE_CONST_INV: (Operand.FLOAT_VAR, Operand.FLOAT_VALUE, Operand.FLOAT_VAR),
    OperatorKind.STRING_TOUCH_FILE: (Operand.PATH, Operand.NONE, Operand.NONE),
    OperatorKind.STRING_COPY_FILE: (Operand.PATH, Operand.PATH, Operand.NONE),
    OperatorKind.STRING_MOVE_FILE: (Operand.PATH, Operand.PATH, Operand.NONE),
    OperatorKind.STRING_DELETE_FILE: (Operand.PATH, Operand.NONE, Operand.NONE),
    OperatorKind.WAIT_SINCE_LAST_TIME: (Operand.FLOAT_VALUE, Operand.NONE, Operand.FLOAT_VAR),
    OperatorKind.EXIT: (Operand.NONE, Operand.NONE, Operand.NONE),
}


@dataclass(frozen=True)
class Operator:
    """
    A single instruction.

    Attributes:
        type: The OperatorKind to perform
        input1: Variable name or literal, depending on type
        input2: Variable name or literal, depending on type
        output: Variable receiving the result, or "undefined"
    """
    type: OperatorKind
    input1: str = UNDEFINED
    input2: str = UNDEFINED
    output: str = UNDEFINED

    def __post_init__(self):
        # Accept plain strings for the kind
        if not isinstance(self.type, OperatorKind):
            object.__setattr__(self, "type", OperatorKind(self.type))

    @property
    def signature(self) -> tuple[Operand, Operand, Operand]:
        return OPERATOR_SIGNATURES[self.type]

    def default_name(self) -> str:
        """Generate a readable node name, e.g. 'count=float_op_plus_const(count,1)'."""
        args = [a for a in (self.input1, self.input2) if a != UNDEFINED]
        name = self.type.value
        if args:
            name += "(" + ",".join(args) + ")"
        if self.output != UNDEFINED:
            name = f"{self.output}={name}"
        return name

    def references(self) -> set[str]:
        """All operand strings except 'undefined' (names or literals)."""
        return {a for a in (self.input1, self.input2, self.output) if a != UNDEFINED}

    def to_dict(self, name: str) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "name": name,
            "type": self.type.value,
            "input1": self.input1,
            "input2": self.input2,
            "output": self.output,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Operator":
        """Deserialize from dictionary. Missing operands default to 'undefined'."""
        return cls(
            type=OperatorKind(data["type"]),
            input1=data.get("input1", UNDEFINED),
            input2=data.get("input2", UNDEFINED),
            output=data.get("output", UNDEFINED),
        )
