"""Tests for schedule validation."""

from flowsched.schedule import Schedule
from flowsched.schemas import Edge, OperatorKind
from flowsched.validator import ValidationReport, validate


def has_issue(issues, *fragments) -> bool:
    return any(all(f in issue for f in fragments) for issue in issues)


class TestValidSchedules:

    def test_count_loop_is_valid(self, count_schedule):
        report = validate(count_schedule)

        assert report.ok
        assert report.errors == []
        assert count_schedule.is_valid()

    def test_align_is_valid(self, align_schedule):
        assert align_schedule.validate().ok


class TestErrors:
    """Issues that make a schedule unrunnable."""

    def test_edge_to_nonexistent_node(self, align_schedule):
        align_schedule.remove_edge("align")
        align_schedule.add_edge("align", "postprocess")

        report = validate(align_schedule)

        assert not report.ok
        assert has_issue(report.errors, "undefined node 'postprocess'")
        assert not align_schedule.is_valid()

    def test_edge_from_nonexistent_node(self, align_schedule):
        align_schedule.add_edge("ghost", "align")

        assert has_issue(validate(align_schedule).errors, "from undefined node 'ghost'")

    def test_undeclared_output_variable(self):
        schedule = Schedule("s")
        schedule.add_float_variable("x", 1)
        op = schedule.add_operator(OperatorKind.FLOAT_PLUS_CONST, "x", "1", "y")
        schedule.add_edge(op, "EXIT")
        schedule.set_original_start_node(op)

        report = validate(schedule)

        assert not report.ok
        assert has_issue(report.errors, "output 'y'", "not a declared float variable")

    def test_two_outgoing_edges(self, align_schedule):
        align_schedule.add_job("other")
        align_schedule.add_edge("other", "EXIT")
        # bypass add_edge, as a hand-edited save file could
        align_schedule.edges.append(Edge("align", "other"))

        report = validate(align_schedule)

        assert not report.ok
        assert has_issue(report.errors, "'align' has 2 outgoing")

    def test_undefined_start_node(self):
        schedule = Schedule("s")

        report = validate(schedule)

        assert has_issue(report.errors, "Start node 'undefined'")
        assert has_issue(report.errors, "Current node 'undefined'")

    def test_fork_variable_must_be_bool(self, count_schedule):
        count_schedule.remove_edge(count_schedule.current_node)
        count_schedule.add_fork(count_schedule.current_node, "count", "EXIT", "EXIT")

        assert has_issue(validate(count_schedule).errors, "float variable 'count'", "expected bool")

    def test_fork_variable_must_be_declared(self, align_schedule):
        align_schedule.remove_edge("align")
        align_schedule.add_fork("align", "ghost", "EXIT", "EXIT")

        assert has_issue(validate(align_schedule).errors, "undeclared variable 'ghost'")

    def test_dead_end_node(self, align_schedule):
        align_schedule.add_job("orphan")
        align_schedule.remove_edge("align")
        align_schedule.add_edge("align", "orphan")

        assert has_issue(validate(align_schedule).errors, "'orphan' has no outgoing edge")

    def test_edge_leaving_exit(self, align_schedule):
        align_schedule.add_edge("EXIT", "align")

        assert has_issue(validate(align_schedule).errors, "cannot leave EXIT")

    def test_operand_type_mismatch(self):
        schedule = Schedule("s")
        schedule.add_string_variable("name", "x")
        schedule.add_boolean_variable("flag", False)
        op = schedule.add_operator(OperatorKind.BOOL_GT_VAR, "name", "3", "flag")
        schedule.add_edge(op, "EXIT")
        schedule.set_original_start_node(op)

        report = validate(schedule)

        assert has_issue(report.errors, "input1 'name' is a string variable")
        assert has_issue(report.errors, "input2 '3' is not a declared float variable")

    def test_missing_required_operand(self):
        schedule = Schedule("s")
        op = schedule.add_operator(OperatorKind.STRING_TOUCH_FILE)
        schedule.add_edge(op, "EXIT")
        schedule.set_original_start_node(op)

        assert has_issue(validate(schedule).errors, "input1 is required")

    def test_unparsable_constant(self):
        schedule = Schedule("s")
        schedule.add_float_variable("x", 1)
        op = schedule.add_operator(OperatorKind.FLOAT_MULT_CONST, "x", "twice", "x")
        schedule.add_edge(op, "EXIT")
        schedule.set_original_start_node(op)

        assert has_issue(validate(schedule).errors, "'twice' is neither a float variable nor a number")


class TestWarnings:
    """Issues reported without blocking a run."""

    def test_no_exit_reachable(self):
        schedule = Schedule("forever")
        schedule.add_job("watch")
        schedule.add_edge("watch", "WAIT")
        schedule.add_edge("WAIT", "watch")
        schedule.set_original_start_node("watch")

        report = validate(schedule)

        assert report.ok
        assert has_issue(report.warnings, "reaches EXIT")

    def test_unreachable_node(self, align_schedule):
        align_schedule.add_job("spare")
        align_schedule.add_edge("spare", "EXIT")

        report = validate(align_schedule)

        assert report.ok
        assert has_issue(report.warnings, "'spare' is unreachable")

    def test_unused_variable(self, align_schedule):
        align_schedule.add_float_variable("angpix", 1.0)

        assert has_issue(validate(align_schedule).warnings, "'angpix' is never used")

    def test_ignored_operand(self):
        schedule = Schedule("s")
        op = schedule.add_operator(OperatorKind.EXIT, "extra")
        schedule.set_original_start_node(op)

        report = validate(schedule)

        assert report.ok
        assert has_issue(report.warnings, "input1 'extra' is ignored")


class TestValidationReport:

    def test_str_lists_issues(self):
        report = ValidationReport(errors=["bad edge"], warnings=["unused x"])

        assert str(report) == "  - ERROR: bad edge\n  - WARNING: unused x"
        assert report.to_dict() == {"ok": False, "errors": ["bad edge"], "warnings": ["unused x"]}

    def test_empty_report(self):
        report = ValidationReport()

        assert report.ok
        assert str(report) == "no issues"
