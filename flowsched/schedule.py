"""
Schedule - the persisted aggregate and its graph model.

A Schedule holds:
- Typed variables (VariableStore)
- Operator nodes (name -> Operator)
- Job nodes (name -> ScheduleJob)
- Edges and forks between nodes
- The current node and the original start node

Node names live in one namespace: every name resolves to exactly one of
job, operator, the reserved WAIT/EXIT nodes, or undefined. Each node has at
most one outgoing edge or fork; add_edge/add_fork refuse a second one and
the validator reports any that slip in through saved state.

Lifecycle:
1. Authoring: add/remove variables, operators, jobs, edges
2. reset(): variables back to their originals, current node to start
3. Execution: flowsched.controller.ScheduleRunner advances current_node
"""

import logging
from typing import Any, Optional

from flowsched.errors import (
    EdgeConflictError,
    NodeNotFoundError,
    PersistenceError,
    ReferentialIntegrityError,
    ScheduleError,
    TypeMismatchError,
)
from flowsched.schemas import (
    Edge,
    EXIT_NODE,
    JobMode,
    NodeKind,
    NodeRef,
    Operator,
    OperatorKind,
    RESERVED_NODES,
    ScheduleJob,
    UNDEFINED,
    Variable,
    VarType,
    WAIT_NODE,
)
from flowsched.variables import VariableStore

logger = logging.getLogger(__name__)

# Persisted section names
SECTION_GENERAL = "schedule_general"
SECTION_VARIABLES = {
    VarType.FLOAT: "schedule_floats",
    VarType.BOOL: "schedule_bools",
    VarType.STRING: "schedule_strings",
}
SECTION_OPERATORS = "schedule_operators"
SECTION_JOBS = "schedule_jobs"
SECTION_EDGES = "schedule_edges"


class Schedule:
    """A workflow graph with typed variables and a current position."""

    def __init__(self, name: str = ""):
        self.clear()
        self.name = name

    def clear(self) -> None:
        """Drop everything and return to an empty schedule."""
        self.name = ""
        self.email_address = ""
        self.current_node = UNDEFINED
        self.original_start_node = UNDEFINED
        self.variables = VariableStore()
        self.operators: dict[str, Operator] = {}
        self.jobs: dict[str, ScheduleJob] = {}
        self.edges: list[Edge] = []

    def set_name(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return (
            f"Schedule(name={self.name}, current_node={self.current_node}, "
            f"operators={len(self.operators)}, jobs={len(self.jobs)}, edges={len(self.edges)})"
        )

    # =========================================================================
    # Variables
    # =========================================================================

    def _declare(self, name: str, var_type: VarType, value: Any) -> None:
        if self.is_node(name):
            raise ScheduleError(f"Variable name {name} is already used by a node")
        existing = self.variables.type_of(name)
        if existing is not None and existing != var_type:
            raise TypeMismatchError(f"Variable {name} is already declared as {existing.value}")
        setter = {
            VarType.FLOAT: (self.variables.set_float, self.variables.set_float_original),
            VarType.BOOL: (self.variables.set_bool, self.variables.set_bool_original),
            VarType.STRING: (self.variables.set_string, self.variables.set_string_original),
        }[var_type]
        setter[0](name, value)
        setter[1](name, value)

    def add_float_variable(self, name: str, value: float) -> None:
        """Declare (or redeclare) a float with value = original = value."""
        self._declare(name, VarType.FLOAT, value)

    def add_boolean_variable(self, name: str, value: bool) -> None:
        self._declare(name, VarType.BOOL, value)

    def add_string_variable(self, name: str, value: str) -> None:
        self._declare(name, VarType.STRING, value)

    def set_variable(self, name: str, text: str) -> None:
        """Set a variable from text, declaring it with an inferred type if new."""
        if name not in self.variables and self.is_node(name):
            raise ScheduleError(f"Variable name {name} is already used by a node")
        self.variables.set_variable(name, text)

    def variable_references(self, name: str) -> list[str]:
        """Nodes whose operator operands or fork condition use name."""
        users = [
            op_name for op_name, op in self.operators.items()
            if name in op.references()
        ]
        users.extend(
            edge.input_node for edge in self.edges
            if edge.is_fork and edge.bool_variable == name
        )
        return users

    def remove_variable(self, name: str) -> None:
        """
        Remove a variable.

        Raises:
            VariableNotFoundError: If name is not declared
            ReferentialIntegrityError: If an operator or fork still uses it
        """
        users = self.variable_references(name)
        if users:
            raise ReferentialIntegrityError(
                f"Variable {name} is still used by: {', '.join(sorted(set(users)))}"
            )
        self.variables.remove(name)

    # =========================================================================
    # Operators
    # =========================================================================

    def _check_node_name_free(self, name: str) -> None:
        if name in RESERVED_NODES:
            raise ScheduleError(f"{name} is a reserved node name")
        if name in self.operators or name in self.jobs:
            raise ScheduleError(f"Node {name} already exists")

    def add_operator(
        self,
        type: OperatorKind | str,
        input1: str = UNDEFINED,
        input2: str = UNDEFINED,
        output: str = UNDEFINED,
        name: Optional[str] = None,
    ) -> str:
        """
        Add an operator node.

        Returns:
            The node name (generated from the parameters when not given)
        """
        op = Operator(type=type, input1=input1, input2=input2, output=output)
        name = name or op.default_name()
        self._check_node_name_free(name)
        self.operators[name] = op
        return name

    def set_operator_parameters(
        self,
        name: str,
        type: OperatorKind | str,
        input1: str = UNDEFINED,
        input2: str = UNDEFINED,
        output: str = UNDEFINED,
    ) -> None:
        """Change an operator's parameters while keeping its node name and edges."""
        if name not in self.operators:
            raise NodeNotFoundError(f"Operator not found: {name}")
        self.operators[name] = Operator(type=type, input1=input1, input2=input2, output=output)

    def get_operator_parameters(self, name: str) -> tuple[OperatorKind, str, str, str]:
        if name not in self.operators:
            raise NodeNotFoundError(f"Operator not found: {name}")
        op = self.operators[name]
        return op.type, op.input1, op.input2, op.output

    def remove_operator(self, name: str) -> None:
        """Remove an operator node together with every edge touching it."""
        if name not in self.operators:
            raise NodeNotFoundError(f"Operator not found: {name}")
        del self.operators[name]
        self._remove_edges_touching(name)

    # =========================================================================
    # Jobs
    # =========================================================================

    def add_job(self, name: str, mode: JobMode | str = JobMode.NEW, has_started: bool = False) -> None:
        """Add a job node; name is also the executor's template name."""
        self._check_node_name_free(name)
        self.jobs[name] = ScheduleJob(name=name, current_name=name, mode=mode, has_started=has_started)

    def remove_job(self, name: str) -> None:
        """Remove a job node together with every edge touching it."""
        if name not in self.jobs:
            raise NodeNotFoundError(f"Job not found: {name}")
        del self.jobs[name]
        self._remove_edges_touching(name)

    def find_job_by_current_name(self, current_name: str) -> Optional[str]:
        """Node name of the job whose concrete instance is current_name."""
        for name, job in self.jobs.items():
            if job.current_name == current_name:
                return name
        return None

    # =========================================================================
    # Graph
    # =========================================================================

    def add_exit_node(self) -> str:
        """Return the reserved EXIT node, which is always a valid edge target."""
        return EXIT_NODE

    def outgoing_edges(self, node: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.input_node == node]

    def outgoing_edge(self, node: str) -> Optional[Edge]:
        """The single edge or fork leaving node, if any."""
        edges = self.outgoing_edges(node)
        return edges[0] if edges else None

    def _add_outgoing(self, edge: Edge) -> None:
        existing = self.outgoing_edge(edge.input_node)
        if existing is not None:
            kind = "fork" if existing.is_fork else "edge"
            raise EdgeConflictError(
                f"Node {edge.input_node} already has an outgoing {kind} to {existing.output_node}"
            )
        self.edges.append(edge)

    def add_edge(self, input_node: str, output_node: str) -> None:
        """
        Connect input_node to output_node.

        Raises:
            EdgeConflictError: If input_node already has an outgoing edge or fork
        """
        self._add_outgoing(Edge(input_node=input_node, output_node=output_node))

    def add_fork(self, input_node: str, bool_variable: str, output_node: str, output_node_false: str) -> None:
        """
        Branch from input_node on a boolean variable.

        Raises:
            EdgeConflictError: If input_node already has an outgoing edge or fork
        """
        self._add_outgoing(Edge.fork(input_node, bool_variable, output_node, output_node_false))

    def remove_edge(self, input_node: str) -> None:
        """Remove the edge or fork leaving input_node."""
        self.edges = [edge for edge in self.edges if edge.input_node != input_node]

    def _remove_edges_touching(self, node: str) -> None:
        self.edges = [
            edge for edge in self.edges
            if edge.input_node != node and node not in edge.targets()
        ]

    def resolve_node(self, name: str) -> NodeRef:
        """Classify name as job, operator, WAIT, EXIT or undefined."""
        if name == WAIT_NODE:
            return NodeRef(NodeKind.WAIT, name)
        if name == EXIT_NODE:
            return NodeRef(NodeKind.EXIT, name)
        if name in self.operators:
            return NodeRef(NodeKind.OPERATOR, name)
        if name in self.jobs:
            return NodeRef(NodeKind.JOB, name)
        job_name = self.find_job_by_current_name(name)
        if job_name is not None:
            return NodeRef(NodeKind.JOB, job_name)
        return NodeRef(NodeKind.UNDEFINED, name)

    def is_node(self, name: str) -> bool:
        return self.resolve_node(name).is_defined

    def is_job(self, name: str) -> bool:
        return self.resolve_node(name).kind == NodeKind.JOB

    def is_operator(self, name: str) -> bool:
        return self.resolve_node(name).kind == NodeKind.OPERATOR

    def set_current_node(self, name: str) -> None:
        ref = self.resolve_node(name)
        if not ref.is_defined:
            raise NodeNotFoundError(f"Cannot set current node, no such node: {name}")
        self.current_node = ref.name

    def set_original_start_node(self, name: str) -> None:
        """Set the start node; the current node moves there too."""
        ref = self.resolve_node(name)
        if not ref.is_defined:
            raise NodeNotFoundError(f"Cannot set start node, no such node: {name}")
        self.original_start_node = ref.name
        self.current_node = ref.name

    def next_node(self, node: Optional[str] = None) -> Optional[str]:
        """Node reached by following the edge or fork leaving node (default: current)."""
        edge = self.outgoing_edge(self.current_node if node is None else node)
        if edge is None:
            return None
        return edge.get_output_node(self.variables)

    def goto_next_node(self) -> bool:
        """
        Follow one edge from the current node without running it.

        Returns:
            False if the current node has no outgoing edge
        """
        nxt = self.next_node()
        if nxt is None:
            return False
        logger.debug(f"{self.name}: {self.current_node} -> {nxt}")
        self.current_node = nxt
        return True

    def reset(self) -> None:
        """Restore variables, drop job instances and return to the start node."""
        self.variables.reset()
        for job in self.jobs.values():
            job.has_started = False
            job.handle = None
            job.current_name = job.name
        self.current_node = self.original_start_node

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self):
        """Run the validator and return its ValidationReport."""
        from flowsched.validator import validate

        return validate(self)

    def is_valid(self) -> bool:
        report = self.validate()
        for issue in report.warnings:
            logger.warning(f"{self.name}: {issue}")
        for issue in report.errors:
            logger.error(f"{self.name}: {issue}")
        return report.ok

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize the whole aggregate, one section per table."""
        result: dict[str, Any] = {
            SECTION_GENERAL: {
                "name": self.name,
                "email": self.email_address,
                "current_node": self.current_node,
                "original_start_node": self.original_start_node,
            },
        }
        for var_type, section in SECTION_VARIABLES.items():
            result[section] = [v.to_dict() for v in self.variables.variables(var_type)]
        result[SECTION_OPERATORS] = [
            self.operators[name].to_dict(name) for name in sorted(self.operators)
        ]
        result[SECTION_JOBS] = [self.jobs[name].to_dict() for name in sorted(self.jobs)]
        result[SECTION_EDGES] = [edge.to_dict() for edge in self.edges]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Schedule":
        """
        Deserialize a saved schedule.

        Raises:
            PersistenceError: If a section is malformed or the current/start
                node is missing
        """
        if not isinstance(data, dict):
            raise PersistenceError("Saved schedule must be a mapping")
        general = data.get(SECTION_GENERAL)
        if not isinstance(general, dict):
            raise PersistenceError(f"Missing section: {SECTION_GENERAL}")
        for key in ("current_node", "original_start_node"):
            if not general.get(key):
                raise PersistenceError(f"{SECTION_GENERAL}.{key} is required")

        schedule = cls(name=general.get("name", ""))
        schedule.email_address = general.get("email", "") or ""
        schedule.current_node = general["current_node"]
        schedule.original_start_node = general["original_start_node"]

        section = SECTION_GENERAL
        try:
            for var_type, section in SECTION_VARIABLES.items():
                for row in data.get(section, []):
                    schedule.variables.add(Variable.from_dict(row, var_type))
            section = SECTION_OPERATORS
            for row in data.get(section, []):
                schedule.operators[row["name"]] = Operator.from_dict(row)
            section = SECTION_JOBS
            for row in data.get(section, []):
                job = ScheduleJob.from_dict(row)
                schedule.jobs[job.name] = job
            section = SECTION_EDGES
            for row in data.get(section, []):
                schedule.edges.append(Edge.from_dict(row))
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed {section}: {e}") from e

        return schedule
