"""Tests for the Schedule aggregate: authoring, graph navigation, serialization."""

import json
import re

import pytest

from conftest import CHECK_OP, COUNT_OP
from flowsched.errors import (
    EdgeConflictError,
    NodeNotFoundError,
    PersistenceError,
    ReferentialIntegrityError,
    ScheduleError,
    TypeMismatchError,
    VariableNotFoundError,
)
from flowsched.schedule import Schedule
from flowsched.schemas import Edge, JobMode, NodeKind, Operator, OperatorKind


class TestVariables:
    """Declaring, setting and resetting variables."""

    def test_add_sets_value_and_original(self):
        schedule = Schedule("s")
        schedule.add_float_variable("angpix", 1.5)
        schedule.add_boolean_variable("ready", False)
        schedule.add_string_variable("movies", "Movies/*.tif")

        assert schedule.variables.get_float("angpix") == 1.5
        assert schedule.variables.get_float_original("angpix") == 1.5
        assert schedule.variables.get_bool_original("ready") is False
        assert schedule.variables.get_string("movies") == "Movies/*.tif"

    def test_redeclare_resets_both_values(self):
        schedule = Schedule("s")
        schedule.add_float_variable("n", 1)
        schedule.variables.set_float("n", 9)

        schedule.add_float_variable("n", 2)

        assert schedule.variables.get_float("n") == 2.0
        assert schedule.variables.get_float_original("n") == 2.0

    def test_redeclare_as_other_type_rejected(self):
        schedule = Schedule("s")
        schedule.add_float_variable("n", 1)

        with pytest.raises(TypeMismatchError):
            schedule.add_boolean_variable("n", True)

    def test_variable_name_cannot_shadow_node(self):
        schedule = Schedule("s")
        schedule.add_job("align")

        with pytest.raises(ScheduleError):
            schedule.add_float_variable("align", 1)
        with pytest.raises(ScheduleError):
            schedule.set_variable("EXIT", "1")

    def test_reset_restores_all_tables(self, count_schedule):
        count_schedule.add_string_variable("dir", "a/")
        count_schedule.variables.set_float("count", 12)
        count_schedule.variables.set_bool("done", True)
        count_schedule.variables.set_string("dir", "b/")
        count_schedule.current_node = CHECK_OP

        count_schedule.reset()

        for var in count_schedule.variables:
            assert var.value == var.original_value
        assert count_schedule.current_node == COUNT_OP

    def test_reset_clears_job_started_flags(self, align_schedule):
        align_schedule.jobs["align"].has_started = True

        align_schedule.reset()

        assert align_schedule.jobs["align"].has_started is False

    def test_reset_drops_job_instance(self, align_schedule):
        job = align_schedule.jobs["align"]
        job.current_name = "align_001"
        job.handle = "job-7"

        align_schedule.reset()

        assert job.current_name == "align"
        assert job.handle is None
        assert align_schedule.resolve_node("align_001").is_defined is False

    def test_remove_unused_variable(self):
        schedule = Schedule("s")
        schedule.add_float_variable("unused", 3)

        schedule.remove_variable("unused")

        assert "unused" not in schedule.variables

    def test_remove_variable_used_by_operator(self, count_schedule):
        with pytest.raises(ReferentialIntegrityError, match="count"):
            count_schedule.remove_variable("count")

    def test_remove_variable_used_by_fork(self, count_schedule):
        with pytest.raises(ReferentialIntegrityError, match=re.escape(CHECK_OP)):
            count_schedule.remove_variable("done")

    def test_remove_unknown_variable(self):
        with pytest.raises(VariableNotFoundError):
            Schedule("s").remove_variable("ghost")


class TestOperators:
    """Operator nodes."""

    def test_generated_name(self):
        schedule = Schedule("s")
        schedule.add_float_variable("count", 0)

        name = schedule.add_operator(OperatorKind.FLOAT_PLUS_CONST, "count", "1", "count")

        assert name == "count=float_op_plus_const(count,1)"
        assert schedule.is_operator(name)

    def test_explicit_name_and_string_kind(self):
        schedule = Schedule("s")

        name = schedule.add_operator("string_op_touch_file", "done.txt", name="touch_done")

        assert name == "touch_done"
        assert schedule.operators["touch_done"].type == OperatorKind.STRING_TOUCH_FILE

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            Schedule("s").add_operator("float_op_power", "a", "b", "c")

    def test_duplicate_or_reserved_name_rejected(self):
        schedule = Schedule("s")
        schedule.add_job("align")

        with pytest.raises(ScheduleError):
            schedule.add_operator(OperatorKind.EXIT, name="align")
        with pytest.raises(ScheduleError):
            schedule.add_operator(OperatorKind.EXIT, name="WAIT")

    def test_set_parameters_keeps_name_and_edges(self, count_schedule):
        count_schedule.set_operator_parameters(COUNT_OP, OperatorKind.FLOAT_PLUS_CONST, "count", "2", "count")

        assert count_schedule.get_operator_parameters(COUNT_OP) == (
            OperatorKind.FLOAT_PLUS_CONST, "count", "2", "count",
        )
        assert count_schedule.next_node(COUNT_OP) == CHECK_OP

    def test_get_parameters_unknown(self):
        with pytest.raises(NodeNotFoundError):
            Schedule("s").get_operator_parameters("nope")

    def test_remove_operator_drops_edges(self, count_schedule):
        count_schedule.remove_operator(CHECK_OP)

        assert CHECK_OP not in count_schedule.operators
        assert count_schedule.edges == []


class TestJobs:
    """Job nodes."""

    def test_add_job_defaults(self):
        schedule = Schedule("s")
        schedule.add_job("ctffind", "continue")

        job = schedule.jobs["ctffind"]
        assert job.current_name == "ctffind"
        assert job.mode == JobMode.CONTINUE
        assert job.has_started is False

    def test_remove_job_drops_edges(self, align_schedule):
        align_schedule.remove_job("align")

        assert align_schedule.edges == []
        with pytest.raises(NodeNotFoundError):
            align_schedule.remove_job("align")

    def test_find_by_current_name(self, align_schedule):
        align_schedule.jobs["align"].current_name = "align_003"

        assert align_schedule.find_job_by_current_name("align_003") == "align"
        assert align_schedule.find_job_by_current_name("align") is None


class TestGraph:
    """Edges, forks and node resolution."""

    def test_resolve_node_kinds(self, count_schedule):
        count_schedule.add_job("align")

        assert count_schedule.resolve_node("WAIT").kind == NodeKind.WAIT
        assert count_schedule.resolve_node("EXIT").kind == NodeKind.EXIT
        assert count_schedule.resolve_node(COUNT_OP).kind == NodeKind.OPERATOR
        assert count_schedule.resolve_node("align").kind == NodeKind.JOB
        assert count_schedule.resolve_node("nope").kind == NodeKind.UNDEFINED
        assert not count_schedule.is_node("nope")

    def test_second_outgoing_edge_rejected(self, align_schedule):
        align_schedule.add_job("other")

        with pytest.raises(EdgeConflictError):
            align_schedule.add_edge("align", "other")
        with pytest.raises(EdgeConflictError):
            align_schedule.add_fork("align", "flag", "other", "EXIT")

    def test_remove_edge(self, align_schedule):
        align_schedule.remove_edge("align")

        assert align_schedule.outgoing_edge("align") is None
        assert align_schedule.goto_next_node() is False

    def test_plain_edge_next_node(self, align_schedule):
        assert align_schedule.next_node() == "EXIT"

    @pytest.mark.parametrize("flag,expected", [(True, "EXIT"), (False, COUNT_OP)])
    def test_fork_is_deterministic(self, count_schedule, flag, expected):
        count_schedule.variables.set_bool("done", flag)

        assert count_schedule.next_node(CHECK_OP) == expected
        assert count_schedule.next_node(CHECK_OP) == expected

    def test_fork_on_undeclared_variable(self):
        schedule = Schedule("s")
        schedule.add_job("a")
        schedule.add_fork("a", "ghost", "EXIT", "EXIT")
        schedule.set_original_start_node("a")

        with pytest.raises(VariableNotFoundError):
            schedule.goto_next_node()

    def test_set_start_node_moves_current(self, count_schedule):
        count_schedule.set_original_start_node(CHECK_OP)

        assert count_schedule.current_node == CHECK_OP
        assert count_schedule.original_start_node == CHECK_OP

    def test_set_undefined_node_rejected(self, count_schedule):
        with pytest.raises(NodeNotFoundError):
            count_schedule.set_current_node("nope")
        with pytest.raises(NodeNotFoundError):
            count_schedule.set_original_start_node("nope")

    def test_set_current_node_accepts_instance_name(self, align_schedule):
        align_schedule.jobs["align"].current_name = "align_002"

        align_schedule.set_current_node("align_002")

        assert align_schedule.current_node == "align"

    def test_clear(self, count_schedule):
        count_schedule.clear()

        assert count_schedule.name == ""
        assert len(count_schedule.variables) == 0
        assert count_schedule.operators == {}
        assert count_schedule.current_node == "undefined"


class TestSerialization:
    """to_dict / from_dict round trip."""

    def test_round_trip_is_field_for_field(self, count_schedule):
        count_schedule.add_string_variable("movies", "Movies/")
        count_schedule.add_job("align", JobMode.OVERWRITE, has_started=True)
        count_schedule.jobs["align"].current_name = "align_004"
        count_schedule.jobs["align"].handle = "h-4"
        count_schedule.email_address = "lab@example.org"
        count_schedule.variables.set_float("count", 2)

        restored = Schedule.from_dict(json.loads(json.dumps(count_schedule.to_dict())))

        assert restored.name == count_schedule.name
        assert restored.email_address == "lab@example.org"
        assert restored.current_node == count_schedule.current_node
        assert restored.original_start_node == count_schedule.original_start_node
        assert list(restored.variables) == list(count_schedule.variables)
        assert restored.operators == count_schedule.operators
        assert restored.jobs == count_schedule.jobs
        assert restored.edges == count_schedule.edges

    def test_sections_present(self, count_schedule):
        data = count_schedule.to_dict()

        assert set(data) == {
            "schedule_general",
            "schedule_floats",
            "schedule_bools",
            "schedule_strings",
            "schedule_operators",
            "schedule_jobs",
            "schedule_edges",
        }
        assert data["schedule_floats"] == [{"name": "count", "value": 0.0, "original_value": 0.0}]

    def test_missing_optional_fields_use_defaults(self):
        data = {
            "schedule_general": {"name": "s", "current_node": "align", "original_start_node": "align"},
            "schedule_jobs": [{"name": "align", "mode": "new"}],
            "schedule_edges": [{"input": "align", "output": "EXIT"}],
        }

        schedule = Schedule.from_dict(data)

        job = schedule.jobs["align"]
        assert job.has_started is False
        assert job.handle is None
        assert job.current_name == "align"
        assert schedule.email_address == ""
        assert schedule.edges == [Edge("align", "EXIT")]

    def test_operator_missing_operands_default_to_undefined(self):
        data = {
            "schedule_general": {"name": "s", "current_node": "stop", "original_start_node": "stop"},
            "schedule_operators": [{"name": "stop", "type": "exit"}],
        }

        schedule = Schedule.from_dict(data)

        assert schedule.operators["stop"] == Operator(OperatorKind.EXIT)

    @pytest.mark.parametrize("general", [
        None,
        {"name": "s", "original_start_node": "a"},
        {"name": "s", "current_node": "a"},
        {"name": "s", "current_node": "", "original_start_node": "a"},
    ])
    def test_missing_critical_fields_fail_closed(self, general):
        data = {} if general is None else {"schedule_general": general}

        with pytest.raises(PersistenceError):
            Schedule.from_dict(data)

    @pytest.mark.parametrize("section,row", [
        ("schedule_operators", {"name": "op", "type": "float_op_power"}),
        ("schedule_jobs", {"name": "a", "mode": "sometimes"}),
        ("schedule_floats", {"name": "x", "value": "many"}),
        ("schedule_edges", {"output": "EXIT"}),
    ])
    def test_malformed_rows_fail_closed(self, section, row):
        data = {
            "schedule_general": {"name": "s", "current_node": "a", "original_start_node": "a"},
            section: [row],
        }

        with pytest.raises(PersistenceError, match=section):
            Schedule.from_dict(data)
