"""
JobExecutor - boundary to the backend that actually runs job nodes.

The engine never runs jobs itself. It hands a job to an executor, polls it
for completion, and asks the executor to render a job template with the
schedule's current variable values. The backend may rename the instance it
creates; the engine records the returned name.

Executors signal failures with flowsched.errors:
- TransientError: retry on the next poll
- PermanentError: stop the run
"""

import importlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from flowsched.schemas import JobMode, VariableValue

logger = logging.getLogger(__name__)


class JobExecutor(ABC):
    """
    Abstract base class for job execution backends.

    Handles are opaque strings chosen by the backend; they are persisted with
    the schedule so that a restarted run can keep polling the same job.
    """

    @abstractmethod
    def submit(self, job_name: str, mode: JobMode) -> Optional[str]:
        """
        Submit a job instance.

        Args:
            job_name: Concrete job name (after instantiation)
            mode: NEW, CONTINUE or OVERWRITE

        Returns:
            Handle used with is_finished(), or None to keep the
            handle returned by instantiate_from_template()
        """
        pass

    @abstractmethod
    def is_finished(self, handle: str) -> bool:
        """Return True once the job behind handle has completed."""
        pass

    @abstractmethod
    def instantiate_from_template(
        self,
        template_name: str,
        variables: dict[str, VariableValue],
    ) -> tuple[str, str]:
        """
        Render a job template with the current variable values.

        Args:
            template_name: The job node's name
            variables: Current value of every schedule variable

        Returns:
            (concrete_name, handle) of the new job instance
        """
        pass


class NoOpJobExecutor(JobExecutor):
    """
    No-op executor for dry runs and testing.

    Every job finishes as soon as it is polled. Calls are recorded so that
    tests and dry runs can show what would have been submitted.
    """

    def __init__(self):
        self.submitted: list[tuple[str, JobMode]] = []
        self.instantiated: list[str] = []

    def submit(self, job_name: str, mode: JobMode) -> Optional[str]:
        logger.info(f"[DRY-RUN] submit {job_name} ({mode.value})")
        self.submitted.append((job_name, mode))
        return job_name

    def is_finished(self, handle: str) -> bool:
        return True

    def instantiate_from_template(
        self,
        template_name: str,
        variables: dict[str, VariableValue],
    ) -> tuple[str, str]:
        self.instantiated.append(template_name)
        return template_name, template_name


def load_executor_factory(factory_path: str) -> Callable[..., Any]:
    """Resolve a "package.module:callable" reference to an executor factory.

    ValueError, ImportError, AttributeError and TypeError are raised for a
    reference without a colon, a module that will not import, a missing name
    and a name that cannot be called, respectively.
    """
    module_path, sep, attr = factory_path.partition(":")
    if not sep or not module_path or not attr:
        raise ValueError(f"Executor factory must look like 'module:function': {factory_path!r}")

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ImportError(f"Executor module {module_path} could not be imported: {e}") from e

    factory = getattr(module, attr, None)
    if factory is None:
        raise AttributeError(f"{module_path} has no executor factory named {attr}")
    if not callable(factory):
        raise TypeError(f"Executor factory {factory_path} is not callable")
    return factory


def build_executor(factory_path: str) -> JobExecutor:
    """Call an executor factory and check that it produced a JobExecutor."""
    executor = load_executor_factory(factory_path)()
    if not isinstance(executor, JobExecutor):
        raise TypeError(f"{factory_path} returned {type(executor).__name__}, not a JobExecutor")
    return executor
