"""
VariableStore - typed variables of a schedule.

One table maps every name to a Variable tagged FLOAT, BOOL or STRING.
Typed accessors refuse to read a name registered under another type, so a
name can never be ambiguous between types.

Setting semantics:
- set_<type>(name, v) on a new name creates it with value = original = v
- set_<type>(name, v) on an existing name updates only the current value
- set_<type>_original(name, v) updates only the reset baseline
"""

from typing import Any, Iterator, Optional

from flowsched.errors import TypeMismatchError, VariableNotFoundError
from flowsched.schemas import Variable, VarType, VariableValue, coerce_value

TRUE_LITERALS = ("true", "yes", "1")
FALSE_LITERALS = ("false", "no", "0")


def parse_float(text: str) -> float:
    """
    Parse a float literal.

    Raises:
        ValueError: If text is not a number
    """
    return float(text.strip())


def parse_bool(text: str) -> bool:
    """
    Parse a boolean literal (true/false, yes/no, 1/0; case-insensitive).

    Raises:
        ValueError: If text is not a boolean literal
    """
    lowered = text.strip().lower()
    if lowered in TRUE_LITERALS:
        return True
    if lowered in FALSE_LITERALS:
        return False
    raise ValueError(f"Not a boolean literal: {text!r}")


def infer_value(text: str) -> tuple[VarType, VariableValue]:
    """Infer type and value from free text: float, then true/false, else string."""
    try:
        return VarType.FLOAT, parse_float(text)
    except ValueError:
        pass
    if text.strip().lower() in ("true", "false"):
        return VarType.BOOL, parse_bool(text)
    return VarType.STRING, text


class VariableStore:
    """Name-keyed store of typed variables."""

    def __init__(self):
        self._vars: dict[str, Variable] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._vars

    def __len__(self) -> int:
        return len(self._vars)

    def __iter__(self) -> Iterator[Variable]:
        for name in sorted(self._vars):
            yield self._vars[name]

    def has(self, name: str, var_type: Optional[VarType] = None) -> bool:
        """True if name is declared (and of var_type, when given)."""
        var = self._vars.get(name)
        if var is None:
            return False
        return var_type is None or var.type == var_type

    def type_of(self, name: str) -> Optional[VarType]:
        var = self._vars.get(name)
        return var.type if var else None

    def get(self, name: str) -> Variable:
        try:
            return self._vars[name]
        except KeyError:
            raise VariableNotFoundError(f"Variable not found: {name}") from None

    def variables(self, var_type: Optional[VarType] = None) -> list[Variable]:
        """Variables sorted by name, optionally of a single type."""
        return [v for v in self if var_type is None or v.type == var_type]

    def _typed(self, name: str, var_type: VarType) -> Variable:
        var = self.get(name)
        if var.type != var_type:
            raise TypeMismatchError(
                f"Variable {name} is {var.type.value}, not {var_type.value}"
            )
        return var

    def _set(self, name: str, var_type: VarType, value: Any, original: bool = False) -> None:
        try:
            value = coerce_value(var_type, value)
        except (TypeError, ValueError) as e:
            raise TypeMismatchError(f"Cannot store {value!r} in {var_type.value} variable {name}: {e}")

        var = self._vars.get(name)
        if var is None:
            self._vars[name] = Variable(name=name, type=var_type, value=value, original_value=value)
            return
        if var.type != var_type:
            raise TypeMismatchError(
                f"Variable {name} is already declared as {var.type.value}"
            )
        if original:
            var.original_value = value
        else:
            var.value = value

    def add(self, variable: Variable) -> None:
        """Insert a fully specified variable (used when loading saved state)."""
        existing = self._vars.get(variable.name)
        if existing is not None and existing.type != variable.type:
            raise TypeMismatchError(
                f"Variable {variable.name} is already declared as {existing.type.value}"
            )
        self._vars[variable.name] = variable

    # Float variables

    def get_float(self, name: str) -> float:
        return self._typed(name, VarType.FLOAT).value

    def get_float_original(self, name: str) -> float:
        return self._typed(name, VarType.FLOAT).original_value

    def set_float(self, name: str, value: float) -> None:
        self._set(name, VarType.FLOAT, value)

    def set_float_original(self, name: str, value: float) -> None:
        self._set(name, VarType.FLOAT, value, original=True)

    # Boolean variables

    def get_bool(self, name: str) -> bool:
        return self._typed(name, VarType.BOOL).value

    def get_bool_original(self, name: str) -> bool:
        return self._typed(name, VarType.BOOL).original_value

    def set_bool(self, name: str, value: bool) -> None:
        self._set(name, VarType.BOOL, value)

    def set_bool_original(self, name: str, value: bool) -> None:
        self._set(name, VarType.BOOL, value, original=True)

    # String variables

    def get_string(self, name: str) -> str:
        return self._typed(name, VarType.STRING).value

    def get_string_original(self, name: str) -> str:
        return self._typed(name, VarType.STRING).original_value

    def set_string(self, name: str, value: str) -> None:
        self._set(name, VarType.STRING, value)

    def set_string_original(self, name: str, value: str) -> None:
        self._set(name, VarType.STRING, value, original=True)

    def set_variable(self, name: str, text: str) -> None:
        """
        Set a variable from free text.

        An existing variable keeps its type and text is parsed accordingly.
        A new variable gets the type inferred from text.

        Raises:
            TypeMismatchError: If text cannot be parsed as the existing type
        """
        var_type = self.type_of(name)
        if var_type is None:
            var_type, value = infer_value(text)
            self._set(name, var_type, value)
            return
        try:
            if var_type == VarType.FLOAT:
                value = parse_float(text)
            elif var_type == VarType.BOOL:
                value = parse_bool(text)
            else:
                value = text
        except ValueError as e:
            raise TypeMismatchError(f"Cannot set {var_type.value} variable {name}: {e}")
        self._set(name, var_type, value)

    def remove(self, name: str) -> None:
        self.get(name)
        del self._vars[name]

    def reset(self) -> None:
        """Restore every variable to its original value."""
        for var in self._vars.values():
            var.reset()

    def snapshot(self) -> dict[str, VariableValue]:
        """Current values by name, for rendering job templates."""
        return {name: self._vars[name].value for name in sorted(self._vars)}

    def clear(self) -> None:
        self._vars.clear()
