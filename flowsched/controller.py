"""
Controller - walks a Schedule's graph one node at a time.

The ScheduleRunner implements:
- Operator nodes: evaluated immediately, then the outgoing edge/fork is followed
- Job nodes: submitted once, then polled until the executor reports completion
- WAIT node and wait operators: suspend until their interval has elapsed
- EXIT node and exit operators: finish the run
- Abort: an out-of-band signal checked at every step boundary

Execution flow (run):
1. Validate the schedule; refuse to start on authoring errors
2. Repeatedly call advance()
   a. Check the abort signal
   b. Resolve the current node and perform its action
   c. Persist the schedule after every step that changed it
   d. When suspended (job running, wait pending), sleep and retry
3. Stop in DONE (exit or abort) or ERROR

Execution is single-threaded. A job that has been submitted is never
cancelled: aborting leaves has_started set so that the next run resumes
polling the same job instead of submitting it again.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from flowsched.errors import (
    PermanentError,
    ScheduleError,
    ScheduleValidationError,
    TransientError,
)
from flowsched.job_executor import JobExecutor
from flowsched.notify import LoggingNotifier, Notifier, notify
from flowsched.operators import perform_operation, wait_seconds_remaining
from flowsched.schedule import Schedule
from flowsched.schedule_store import AbortSignal, InMemoryAbortSignal, ScheduleStore
from flowsched.schemas import JobMode, NodeKind, OperatorKind, ScheduleJob

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_WAIT_INTERVAL = 60.0


class RunState(str, Enum):
    """State of the execution controller."""
    IDLE = "idle"
    AT_OPERATOR = "at_operator"
    AT_JOB = "at_job"
    WAITING = "waiting"
    ABORTING = "aborting"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATES = (RunState.DONE, RunState.ERROR)


@dataclass
class RunResult:
    """Result of running a schedule.

    - name: schedule name
    - state: DONE or ERROR
    - final_node: node the schedule stopped at
    - steps: number of steps that moved the schedule forward
    - aborted: true if the run stopped on an abort request
    - error: error message when state is ERROR
    - duration_ms: total run time
    """
    name: str
    state: RunState
    final_node: str
    steps: int = 0
    aborted: bool = False
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.state == RunState.DONE and self.error is None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "name": self.name,
            "state": self.state.value,
            "final_node": self.final_node,
            "steps": self.steps,
            "success": self.success,
            "duration_ms": self.duration_ms,
        }
        if self.aborted:
            result["aborted"] = True
        if self.error:
            result["error"] = self.error
        return result


class ScheduleRunner:
    """
    Drives one Schedule through its graph.

    The executor is injected rather than stored in the schedule, so the
    persisted aggregate carries only run state.
    """

    def __init__(
        self,
        schedule: Schedule,
        executor: JobExecutor,
        store: Optional[ScheduleStore] = None,
        abort_signal: Optional[AbortSignal] = None,
        notifier: Optional[Notifier] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        wait_interval: float = DEFAULT_WAIT_INTERVAL,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.schedule = schedule
        self.executor = executor
        self.store = store
        if abort_signal is None:
            abort_signal = store.abort_signal(schedule.name) if store else InMemoryAbortSignal()
        self.abort_signal = abort_signal
        self.notifier = notifier if notifier is not None else LoggingNotifier()
        self.poll_interval = poll_interval
        self.wait_interval = wait_interval
        self._clock = clock
        self._sleep = sleep

        self.state = RunState.IDLE
        self.error: Optional[str] = None
        self.aborted = False
        self.steps = 0
        self._suspend_for = poll_interval
        self._wait_started_at: Optional[float] = None

    @property
    def is_finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def abort(self) -> None:
        """Request the run to stop at the next step boundary."""
        self.abort_signal.request()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save(self.schedule)

    def _notify(self, message: str) -> None:
        notify(self.notifier, self.schedule.email_address, message)

    def _fail(self, message: str) -> None:
        self.state = RunState.ERROR
        self.error = message
        logger.error(f"{self.schedule.name}: {message}")
        self._notify(
            f"Schedule {self.schedule.name} stopped with an error at {self.schedule.current_node}: {message}"
        )

    def _finish(self) -> None:
        self.state = RunState.DONE
        logger.info(f"{self.schedule.name}: finished at {self.schedule.current_node}")
        self._persist()
        self._notify(f"Schedule {self.schedule.name} finished at {self.schedule.current_node}")

    def _abort(self) -> None:
        self.state = RunState.ABORTING
        logger.warning(f"{self.schedule.name}: abort requested at node {self.schedule.current_node}")
        self.abort_signal.clear()
        self.aborted = True
        self.state = RunState.DONE
        self._persist()
        self._notify(f"Schedule {self.schedule.name} aborted at {self.schedule.current_node}")

    def _suspend(self, seconds: float) -> bool:
        self._suspend_for = max(0.0, min(self.poll_interval, seconds))
        return False

    def _follow_edge(self) -> bool:
        node = self.schedule.current_node
        try:
            moved = self.schedule.goto_next_node()
        except ScheduleError as e:
            self._fail(f"Cannot follow edge from {node}: {e}")
            return False
        if not moved:
            self._fail(f"Node {node} has no outgoing edge")
            return False
        self._wait_started_at = None
        self._persist()
        return True

    # =========================================================================
    # Stepping
    # =========================================================================

    def advance(self) -> bool:
        """
        Perform one step at the current node.

        Returns:
            True if the schedule moved forward (new node, job submitted,
            or a terminal state reached); False if suspended or failed
        """
        if self.is_finished:
            return False

        if self.abort_signal.is_requested():
            self._abort()
            return True

        ref = self.schedule.resolve_node(self.schedule.current_node)

        if ref.kind == NodeKind.EXIT:
            self._finish()
            return True
        if ref.kind == NodeKind.OPERATOR:
            return self._advance_operator(ref.name)
        if ref.kind == NodeKind.JOB:
            return self._advance_job(self.schedule.jobs[ref.name])
        if ref.kind == NodeKind.WAIT:
            return self._advance_wait()

        self._fail(f"Current node {ref.name} is not defined")
        return False

    def _advance_operator(self, name: str) -> bool:
        self.state = RunState.AT_OPERATOR
        op = self.schedule.operators[name]
        now = self._clock()

        if op.type == OperatorKind.WAIT_SINCE_LAST_TIME:
            try:
                remaining = wait_seconds_remaining(op, self.schedule.variables, now)
            except ScheduleError as e:
                self._fail(f"Operator {name} failed: {e}")
                return False
            if remaining > 0:
                self.state = RunState.WAITING
                logger.debug(f"{self.schedule.name}: {name} waiting {remaining:.1f}s")
                return self._suspend(remaining)

        try:
            applied = perform_operation(op, self.schedule.variables, now=now)
        except ScheduleError as e:
            self._fail(f"Operator {name} failed: {e}")
            return False

        if not applied:
            logger.warning(f"{self.schedule.name}: operator {name} did not apply, continuing")

        if op.type == OperatorKind.EXIT:
            self._finish()
            return True
        return self._follow_edge()

    def _submit(self, job: ScheduleJob) -> None:
        """Instantiate (when needed) and submit a job; raises executor errors."""
        if not job.is_instantiated and (job.mode == JobMode.NEW or job.current_name == job.name):
            concrete_name, handle = self.executor.instantiate_from_template(
                job.name, self.schedule.variables.snapshot()
            )
            if concrete_name != job.current_name:
                logger.info(f"{self.schedule.name}: job {job.name} instantiated as {concrete_name}")
            job.current_name = concrete_name
            job.handle = handle
            self._persist()

        handle = self.executor.submit(job.current_name, job.mode)
        if handle is not None:
            job.handle = handle
        if job.handle is None:
            job.handle = job.current_name

    def _advance_job(self, job: ScheduleJob) -> bool:
        self.state = RunState.AT_JOB

        if not job.has_started:
            try:
                self._submit(job)
            except TransientError as e:
                logger.warning(f"{self.schedule.name}: submitting {job.name} failed, will retry: {e}")
                return self._suspend(self.poll_interval)
            except PermanentError as e:
                self._fail(f"Job {job.name} was rejected: {e}")
                return False
            except Exception as e:
                logger.exception(f"{self.schedule.name}: unexpected executor error")
                self._fail(f"Submitting job {job.name} failed: {e}")
                return False
            job.has_started = True
            logger.info(f"{self.schedule.name}: submitted {job.current_name} ({job.mode.value})")
            self._persist()
            return True

        try:
            finished = self.executor.is_finished(job.handle or job.current_name)
        except TransientError as e:
            logger.warning(f"{self.schedule.name}: status check for {job.current_name} failed, will retry: {e}")
            return self._suspend(self.poll_interval)
        except PermanentError as e:
            self._fail(f"Job {job.current_name} failed: {e}")
            return False
        except Exception as e:
            logger.exception(f"{self.schedule.name}: unexpected executor error")
            self._fail(f"Status check for job {job.current_name} failed: {e}")
            return False

        if not finished:
            return self._suspend(self.poll_interval)

        logger.info(f"{self.schedule.name}: job {job.current_name} finished")
        # A loop back to this node submits the job again
        job.has_started = False
        job.handle = None
        return self._follow_edge()

    def _advance_wait(self) -> bool:
        self.state = RunState.WAITING
        now = self._clock()
        if self._wait_started_at is None:
            self._wait_started_at = now
        remaining = self.wait_interval - (now - self._wait_started_at)
        if remaining > 0:
            return self._suspend(remaining)
        return self._follow_edge()

    def goto_next_node(self) -> bool:
        """Follow one edge from the current node without performing it."""
        moved = self.schedule.goto_next_node()
        if moved:
            self._wait_started_at = None
            self._persist()
        return moved

    def goto_next_job(self) -> bool:
        """
        Advance until the current node is a job node.

        Returns:
            True if stopped at a job node, False if the run finished first
        """
        while not self.is_finished:
            if self.schedule.is_job(self.schedule.current_node):
                return True
            if not self.advance() and not self.is_finished:
                self._sleep(self._suspend_for)
        return False

    # =========================================================================
    # Running
    # =========================================================================

    def run(self, reset: bool = False) -> RunResult:
        """
        Run the schedule until it exits, is aborted, or fails.

        Args:
            reset: Restore variables and start node before running

        Returns:
            RunResult describing how the run ended

        Raises:
            ScheduleValidationError: If the schedule has authoring errors
        """
        started = self._clock()
        if reset:
            self.schedule.reset()

        report = self.schedule.validate()
        for warning in report.warnings:
            logger.warning(f"{self.schedule.name}: {warning}")
        if not report.ok:
            raise ScheduleValidationError(report)

        self.state = RunState.IDLE
        self.error = None
        self.aborted = False
        self.steps = 0

        logger.info(f"Starting schedule: {self.schedule.name} at node {self.schedule.current_node}")
        self._persist()

        while not self.is_finished:
            if self.advance():
                self.steps += 1
            elif not self.is_finished:
                self._sleep(self._suspend_for)

        result = RunResult(
            name=self.schedule.name,
            state=self.state,
            final_node=self.schedule.current_node,
            steps=self.steps,
            aborted=self.aborted,
            error=self.error,
            duration_ms=int((self._clock() - started) * 1000),
        )
        if result.aborted:
            logger.warning(f"Schedule aborted: {self.schedule.name} at {result.final_node}")
        elif result.success:
            logger.info(f"Schedule completed: {self.schedule.name} ({result.steps} steps)")
        else:
            logger.error(f"Schedule failed: {self.schedule.name} - {result.error}")
        return result
