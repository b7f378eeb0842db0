import pytest

from flowsched.job_executor import JobExecutor
from flowsched.schedule import Schedule
from flowsched.schedule_store import InMemoryScheduleStore
from flowsched.schemas import JobMode, OperatorKind


class FakeExecutor(JobExecutor):
    """Executor whose jobs finish only when a test says so."""

    def __init__(self):
        self.submitted = []
        self.instantiated = []
        self.polls = []
        self.done = set()
        self.submit_errors = []
        self.poll_errors = []

    def submit(self, job_name, mode):
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        self.submitted.append((job_name, mode))
        return f"{job_name}-handle"

    def is_finished(self, handle):
        if self.poll_errors:
            raise self.poll_errors.pop(0)
        self.polls.append(handle)
        return handle in self.done

    def instantiate_from_template(self, template_name, variables):
        self.instantiated.append((template_name, dict(variables)))
        return template_name, template_name


class FakeClock:
    """Clock and sleep pair; sleeping moves the clock forward."""

    def __init__(self, now=1_000_000.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


COUNT_OP = "count=float_op_plus_const(count,1)"
CHECK_OP = "done=bool_op_gt_const(count,3)"


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return InMemoryScheduleStore()


@pytest.fixture
def count_schedule() -> Schedule:
    """count += 1 until count > 3, then EXIT."""
    schedule = Schedule("count_loop")
    schedule.add_float_variable("count", 0)
    schedule.add_boolean_variable("done", False)
    add = schedule.add_operator(OperatorKind.FLOAT_PLUS_CONST, "count", "1", "count")
    check = schedule.add_operator(OperatorKind.BOOL_GT_CONST, "count", "3", "done")
    schedule.add_edge(add, check)
    schedule.add_fork(check, "done", schedule.add_exit_node(), add)
    schedule.set_original_start_node(add)
    return schedule


@pytest.fixture
def align_schedule() -> Schedule:
    """A single NEW job followed by EXIT."""
    schedule = Schedule("align_run")
    schedule.add_job("align", JobMode.NEW)
    schedule.add_edge("align", schedule.add_exit_node())
    schedule.set_original_start_node("align")
    return schedule
