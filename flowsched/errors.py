"""
Error classes for flowsched.

The executor boundary uses the same retry classification as the rest of the
orchestration stack:
- TransientError: Safe to retry on the next poll (backend busy, network issues)
- PermanentError: Do not retry (job template missing, backend rejected the job)

Engine errors derive from ScheduleError. Authoring errors are normally
collected by the validator; the classes below are raised when an operation
cannot be carried out at all.

Error handling contract:
- File operators soft-fail (return False, log a warning)
- Malformed operators and arithmetic errors raise and stop the run
- Persistence errors fail closed and never yield a runnable Schedule
"""


class FlowschedError(Exception):
    """Base exception for flowsched."""
    pass


class TransientError(FlowschedError):
    """
    Transient executor error - safe to retry.

    The controller keeps the schedule at the same job node and retries the
    submission or status check after the next polling interval.
    """
    pass


class PermanentError(FlowschedError):
    """
    Permanent executor error - do not retry.

    The controller moves the run into the ERROR state and leaves the
    persisted position untouched.
    """
    pass


class ScheduleError(FlowschedError):
    """Base class for schedule authoring and engine errors."""
    pass


class VariableNotFoundError(ScheduleError, KeyError):
    """Raised when a variable name is not declared in any table."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep plain messages
        return str(self.args[0]) if self.args else ""


class TypeMismatchError(ScheduleError, TypeError):
    """Raised when a variable is accessed or re-declared as another type."""
    pass


class ReferentialIntegrityError(ScheduleError):
    """Raised when removing a variable that operators or forks still use."""
    pass


class EdgeConflictError(ScheduleError):
    """Raised when a node would get a second outgoing edge or fork."""
    pass


class NodeNotFoundError(ScheduleError):
    """Raised when a name does not resolve to a job, operator or reserved node."""
    pass


class OperatorError(ScheduleError):
    """Raised when an operator cannot be evaluated with its parameters."""
    pass


class DivisionByZeroError(OperatorError, ZeroDivisionError):
    """Raised by the division operators instead of producing inf/NaN."""
    pass


class ScheduleValidationError(ScheduleError):
    """
    Raised when a schedule fails validation before a run.

    Attributes:
        report: The ValidationReport listing every issue found
    """

    def __init__(self, report):
        self.report = report
        super().__init__(f"Schedule is not valid:\n{report}")


class PersistenceError(FlowschedError):
    """Raised when saved schedule state is malformed or unreadable."""
    pass
