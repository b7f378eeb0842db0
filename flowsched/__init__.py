"""
flowsched - Resumable workflow schedules

Runs branching graphs of jobs and operators whose whole state is saved
after every step, so a run can stop, crash or be aborted and resume later.
"""

__version__ = "0.1.0"


__all__ = [
    "Schedule",
    "ScheduleRunner",
    "RunState",
    "RunResult",
    "FlowschedConfig",
    "load_config",
    "get_flowsched_home",
]

from .config import FlowschedConfig, load_config, get_flowsched_home
from .schedule import Schedule
from .controller import ScheduleRunner, RunState, RunResult
