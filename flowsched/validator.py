"""
Validator - static well-formedness checks for a Schedule.

All issues are collected instead of stopping at the first one. Errors make
a schedule unrunnable; warnings are reported but do not block a run (a
schedule without a reachable EXIT may be meant to run until aborted).
"""

from collections import deque
from dataclasses import dataclass, field

from flowsched.schemas import (
    EXIT_NODE,
    NodeKind,
    Operand,
    OperatorKind,
    UNDEFINED,
    VarType,
    WAIT_NODE,
)
from flowsched.variables import parse_float

_OPERAND_SLOTS = ("input1", "input2", "output")

_VAR_OPERANDS = {
    Operand.FLOAT_VAR: VarType.FLOAT,
    Operand.BOOL_VAR: VarType.BOOL,
}


@dataclass
class ValidationReport:
    """Issues found in a schedule."""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def issues(self) -> list[str]:
        return [f"ERROR: {e}" for e in self.errors] + [f"WARNING: {w}" for w in self.warnings]

    def __str__(self) -> str:
        if not self.errors and not self.warnings:
            return "no issues"
        return "\n".join(f"  - {issue}" for issue in self.issues)

    def to_dict(self) -> dict:
        return {"ok": self.ok, "errors": self.errors, "warnings": self.warnings}


def _check_operand(schedule, op_name: str, slot: str, token: str, expected: Operand, report: ValidationReport) -> None:
    label = f"Operator {op_name}: {slot}"
    actual = schedule.variables.type_of(token)

    if expected == Operand.NONE:
        if token != UNDEFINED:
            report.warnings.append(f"{label} '{token}' is ignored by {schedule.operators[op_name].type.value}")
        return

    if token == UNDEFINED:
        report.errors.append(f"{label} is required")
        return

    if expected in _VAR_OPERANDS:
        want = _VAR_OPERANDS[expected]
        if actual is None:
            report.errors.append(f"{label} '{token}' is not a declared {want.value} variable")
        elif actual != want:
            report.errors.append(f"{label} '{token}' is a {actual.value} variable, expected {want.value}")
        return

    if expected == Operand.FLOAT_VALUE:
        if actual is None:
            try:
                parse_float(token)
            except ValueError:
                report.errors.append(f"{label} '{token}' is neither a float variable nor a number")
        elif actual != VarType.FLOAT:
            report.errors.append(f"{label} '{token}' is a {actual.value} variable, expected float")
        return

    # Paths: a string variable or a literal path
    if actual is not None and actual != VarType.STRING:
        report.errors.append(f"{label} '{token}' is a {actual.value} variable, expected a path")


def _is_terminal(schedule, name: str) -> bool:
    ref = schedule.resolve_node(name)
    if ref.kind == NodeKind.EXIT:
        return True
    return ref.kind == NodeKind.OPERATOR and schedule.operators[ref.name].type == OperatorKind.EXIT


def validate(schedule) -> ValidationReport:
    """
    Check a schedule for authoring errors.

    Errors:
    - start or current node undefined
    - edge endpoints that are not nodes; edges leaving EXIT
    - fork condition not a declared boolean variable
    - more than one outgoing edge/fork from a node
    - operator operands not matching the operator's signature
    - non-terminal nodes without an outgoing edge
    Warnings:
    - no path from the start node to EXIT
    - nodes unreachable from the start node
    - variables nothing refers to
    """
    report = ValidationReport()

    if not schedule.resolve_node(schedule.original_start_node).is_defined:
        report.errors.append(f"Start node '{schedule.original_start_node}' is not defined")
    if not schedule.resolve_node(schedule.current_node).is_defined:
        report.errors.append(f"Current node '{schedule.current_node}' is not defined")

    outgoing: dict[str, int] = {}
    for edge in schedule.edges:
        outgoing[edge.input_node] = outgoing.get(edge.input_node, 0) + 1
        if not schedule.is_node(edge.input_node):
            report.errors.append(f"Edge from undefined node '{edge.input_node}'")
        elif edge.input_node == EXIT_NODE:
            report.errors.append("Edges cannot leave EXIT")
        for target in edge.targets():
            if not schedule.is_node(target):
                report.errors.append(f"Edge from '{edge.input_node}' to undefined node '{target}'")
        if edge.is_fork:
            var_type = schedule.variables.type_of(edge.bool_variable)
            if var_type is None:
                report.errors.append(
                    f"Fork at '{edge.input_node}' uses undeclared variable '{edge.bool_variable}'"
                )
            elif var_type != VarType.BOOL:
                report.errors.append(
                    f"Fork at '{edge.input_node}' uses {var_type.value} variable '{edge.bool_variable}', expected bool"
                )

    for node, count in sorted(outgoing.items()):
        if count > 1:
            report.errors.append(f"Node '{node}' has {count} outgoing edges/forks, at most one is allowed")

    for op_name, op in sorted(schedule.operators.items()):
        for slot, expected in zip(_OPERAND_SLOTS, op.signature):
            _check_operand(schedule, op_name, slot, getattr(op, slot), expected, report)

    nodes = list(schedule.operators) + list(schedule.jobs)
    if any(WAIT_NODE in edge.targets() for edge in schedule.edges) or schedule.current_node == WAIT_NODE:
        nodes.append(WAIT_NODE)
    for node in sorted(nodes):
        if node not in outgoing and not _is_terminal(schedule, node):
            report.errors.append(f"Node '{node}' has no outgoing edge and is not an exit")

    # Reachability from the start node
    start = schedule.resolve_node(schedule.original_start_node)
    if start.is_defined:
        seen = {start.name}
        queue = deque([start.name])
        while queue:
            node = queue.popleft()
            for edge in schedule.outgoing_edges(node):
                for target in edge.targets():
                    ref = schedule.resolve_node(target)
                    if ref.is_defined and ref.name not in seen:
                        seen.add(ref.name)
                        queue.append(ref.name)
        if not any(_is_terminal(schedule, node) for node in seen):
            report.warnings.append(
                f"No path from start node '{start.name}' reaches EXIT; the schedule runs until aborted"
            )
        for node in sorted((set(schedule.operators) | set(schedule.jobs)) - seen):
            report.warnings.append(f"Node '{node}' is unreachable from start node '{start.name}'")

    for var in schedule.variables:
        if not schedule.variable_references(var.name):
            report.warnings.append(f"Variable '{var.name}' is never used")

    return report
