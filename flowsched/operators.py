"""
Operator engine - evaluate one Operator against a VariableStore.

Operand resolution:
- An operand naming a declared variable reads that variable (typed access)
- Otherwise it is parsed as a literal of the expected type
- Path operands naming a string variable use the variable's value as path

Failure semantics:
- File operators never raise for missing files or OS errors; they log a
  warning and return False so the run can continue
- Malformed operands raise OperatorError (or TypeMismatchError)
- Division by zero raises DivisionByZeroError and leaves the output unchanged
"""

import logging
import operator as _op
import shutil
import time
from pathlib import Path
from typing import Callable, Optional

from flowsched.errors import DivisionByZeroError, OperatorError
from flowsched.schemas import Operator, OperatorKind, UNDEFINED
from flowsched.variables import VariableStore, parse_bool, parse_float

logger = logging.getLogger(__name__)


_BOOL_LOGIC: dict[OperatorKind, Callable[[bool, bool], bool]] = {
    OperatorKind.BOOL_AND: lambda a, b: a and b,
    OperatorKind.BOOL_OR: lambda a, b: a or b,
}

_COMPARISONS: dict[OperatorKind, Callable[[float, float], bool]] = {
    OperatorKind.BOOL_GT_VAR: _op.gt,
    OperatorKind.BOOL_LT_VAR: _op.lt,
    OperatorKind.BOOL_EQ_VAR: _op.eq,
    OperatorKind.BOOL_GT_CONST: _op.gt,
    OperatorKind.BOOL_LT_CONST: _op.lt,
    OperatorKind.BOOL_EQ_CONST: _op.eq,
}

_ARITHMETIC: dict[OperatorKind, Callable[[float, float], float]] = {
    OperatorKind.FLOAT_PLUS_VAR: _op.add,
    OperatorKind.FLOAT_MINUS_VAR: _op.sub,
    OperatorKind.FLOAT_MULT_VAR: _op.mul,
    OperatorKind.FLOAT_PLUS_CONST: _op.add,
    OperatorKind.FLOAT_MINUS_CONST: _op.sub,
    OperatorKind.FLOAT_MULT_CONST: _op.mul,
}

_DIVISIONS = (
    OperatorKind.FLOAT_DIVIDE_VAR,
    OperatorKind.FLOAT_DIVIDE_CONST,
    OperatorKind.FLOAT_DIVIDE_CONST_INV,
)


def read_float(store: VariableStore, token: str) -> float:
    """Resolve a float operand: declared variable first, then literal."""
    if token in store:
        return store.get_float(token)
    try:
        return parse_float(token)
    except ValueError:
        raise OperatorError(f"{token!r} is neither a float variable nor a float literal") from None


def read_bool(store: VariableStore, token: str) -> bool:
    """Resolve a boolean operand: declared variable first, then literal."""
    if token in store:
        return store.get_bool(token)
    try:
        return parse_bool(token)
    except ValueError:
        raise OperatorError(f"{token!r} is neither a boolean variable nor a boolean literal") from None


def read_path(store: VariableStore, token: str) -> Path:
    """Resolve a path operand: string variable value, else the literal path."""
    if token == UNDEFINED:
        raise OperatorError("Path operand is undefined")
    if token in store:
        return Path(store.get_string(token))
    return Path(token)


def _destination(src: Path, dest: Path, dest_token: str) -> Path:
    """Copy/move into a directory when dest is one (or ends with a slash)."""
    if dest.is_dir() or dest_token.endswith("/"):
        return dest / src.name
    return dest


def _touch(path: Path) -> bool:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()
    except OSError as e:
        logger.warning(f"touch {path} failed: {e}")
        return False
    return True


def _copy_or_move(src: Path, dest: Path, dest_token: str, move: bool) -> bool:
    action = "move" if move else "copy"
    if not src.exists():
        logger.warning(f"{action} skipped, source does not exist: {src}")
        return False
    target = _destination(src, dest, dest_token)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        if move:
            shutil.move(str(src), str(target))
        elif src.is_dir():
            shutil.copytree(src, target, dirs_exist_ok=True)
        else:
            shutil.copy2(src, target)
    except OSError as e:
        logger.warning(f"{action} {src} -> {target} failed: {e}")
        return False
    return True


def _delete(path: Path) -> bool:
    if not path.exists():
        logger.warning(f"delete skipped, file does not exist: {path}")
        return False
    if path.is_dir():
        logger.warning(f"delete skipped, refusing to remove directory: {path}")
        return False
    try:
        path.unlink()
    except OSError as e:
        logger.warning(f"delete {path} failed: {e}")
        return False
    return True


def wait_seconds_remaining(op: Operator, store: VariableStore, now: Optional[float] = None) -> float:
    """
    Seconds a wait_since_last_time operator still has to wait.

    input1 is the interval in seconds; output holds the last-time checkpoint
    (epoch seconds). A checkpoint of 0 (never waited) means no wait.
    """
    if now is None:
        now = time.time()
    interval = read_float(store, op.input1)
    last = 0.0
    if op.output != UNDEFINED and op.output in store:
        last = store.get_float(op.output)
    if last <= 0:
        return 0.0
    return max(0.0, interval - (now - last))


def perform_operation(op: Operator, store: VariableStore, now: Optional[float] = None) -> bool:
    """
    Perform a single operator.

    Args:
        op: The operator to perform
        store: Variables read and written by the operator
        now: Current epoch time (wait operator), defaults to time.time()

    Returns:
        True if the operator was applied, False if a file operator failed
        softly or a wait operator's interval has not yet elapsed

    Raises:
        OperatorError: If an operand cannot be resolved
        DivisionByZeroError: If a division operator divides by zero
        TypeMismatchError: If a variable operand has the wrong type
    """
    kind = op.type

    if kind in _BOOL_LOGIC:
        result = _BOOL_LOGIC[kind](read_bool(store, op.input1), read_bool(store, op.input2))
        _write_bool(store, op, result)
        return True

    if kind == OperatorKind.BOOL_NOT:
        _write_bool(store, op, not read_bool(store, op.input1))
        return True

    if kind in _COMPARISONS:
        result = _COMPARISONS[kind](read_float(store, op.input1), read_float(store, op.input2))
        _write_bool(store, op, result)
        return True

    if kind == OperatorKind.BOOL_FILE_EXISTS:
        _write_bool(store, op, read_path(store, op.input1).exists())
        return True

    if kind in _ARITHMETIC:
        result = _ARITHMETIC[kind](read_float(store, op.input1), read_float(store, op.input2))
        _write_float(store, op, result)
        return True

    if kind in _DIVISIONS:
        a = read_float(store, op.input1)
        b = read_float(store, op.input2)
        # div_const_by divides the constant (input2) by the variable (input1)
        numerator, denominator = (b, a) if kind == OperatorKind.FLOAT_DIVIDE_CONST_INV else (a, b)
        if denominator == 0:
            raise DivisionByZeroError(
                f"{kind.value}: division by zero ({op.input1}, {op.input2})"
            )
        _write_float(store, op, numerator / denominator)
        return True

    if kind == OperatorKind.STRING_TOUCH_FILE:
        return _touch(read_path(store, op.input1))

    if kind in (OperatorKind.STRING_COPY_FILE, OperatorKind.STRING_MOVE_FILE):
        return _copy_or_move(
            read_path(store, op.input1),
            read_path(store, op.input2),
            op.input2,
            move=kind == OperatorKind.STRING_MOVE_FILE,
        )

    if kind == OperatorKind.STRING_DELETE_FILE:
        return _delete(read_path(store, op.input1))

    if kind == OperatorKind.WAIT_SINCE_LAST_TIME:
        if now is None:
            now = time.time()
        if wait_seconds_remaining(op, store, now) > 0:
            return False
        _write_float(store, op, now)
        return True

    if kind == OperatorKind.EXIT:
        return True

    raise OperatorError(f"Unsupported operator type: {kind}")


def _write_bool(store: VariableStore, op: Operator, value: bool) -> None:
    if op.output != UNDEFINED:
        store.set_bool(op.output, value)


def _write_float(store: VariableStore, op: Operator, value: float) -> None:
    if op.output != UNDEFINED:
        store.set_float(op.output, value)
