"""
ScheduleStore - Persist complete schedules and their abort signals.

The ScheduleStore manages:
- Saved schedules (the whole aggregate, written on every step)
- Abort signals (an out-of-band marker polled between steps)

Storage backends:
- In-memory (for testing)
- File-based: one directory per schedule name

    store_dir/
        {name}/
            schedule.json
            ABORT_NOW
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from flowsched.errors import PersistenceError
from flowsched.schedule import Schedule

logger = logging.getLogger(__name__)

SCHEDULE_FILENAME = "schedule.json"
ABORT_FILENAME = "ABORT_NOW"


class AbortSignal(ABC):
    """An out-of-band request to stop a running schedule."""

    @abstractmethod
    def request(self) -> None:
        """Ask the running schedule to stop at the next step boundary."""
        pass

    @abstractmethod
    def is_requested(self) -> bool:
        pass

    @abstractmethod
    def clear(self) -> None:
        """Acknowledge the request once the run has stopped."""
        pass


class InMemoryAbortSignal(AbortSignal):
    """Abort flag held in memory (for testing)."""

    def __init__(self):
        self._requested = False

    def request(self) -> None:
        self._requested = True

    def is_requested(self) -> bool:
        return self._requested

    def clear(self) -> None:
        self._requested = False


class FileAbortSignal(AbortSignal):
    """Abort flag represented by the presence of a sentinel file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def request(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch()

    def is_requested(self) -> bool:
        return self.path.exists()

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class ScheduleStore(ABC):
    """
    Abstract base class for schedule storage.

    Implementations must provide methods to:
    - Save and load complete schedules by name
    - Hand out the abort signal belonging to a schedule
    """

    @abstractmethod
    def save(self, schedule: Schedule) -> str:
        """
        Save a schedule, replacing any previous state.

        Returns:
            A reference string for the saved state
        """
        pass

    @abstractmethod
    def load(self, name: str) -> Schedule:
        """
        Load a schedule by name.

        Raises:
            FileNotFoundError: If no schedule with that name was saved
            PersistenceError: If the saved state is malformed
        """
        pass

    @abstractmethod
    def exists(self, name: str) -> bool:
        pass

    @abstractmethod
    def list_schedules(self) -> list[str]:
        pass

    @abstractmethod
    def abort_signal(self, name: str) -> AbortSignal:
        pass


class InMemoryScheduleStore(ScheduleStore):
    """
    In-memory implementation of ScheduleStore for testing.

    Schedules are kept as serialized dictionaries so that loading always
    goes through the same codec as the file store.
    """

    def __init__(self):
        self._schedules: dict[str, dict[str, Any]] = {}
        self._signals: dict[str, InMemoryAbortSignal] = {}

    def save(self, schedule: Schedule) -> str:
        self._schedules[schedule.name] = json.loads(json.dumps(schedule.to_dict()))
        return f"mem://{schedule.name}"

    def load(self, name: str) -> Schedule:
        if name not in self._schedules:
            raise FileNotFoundError(f"Schedule not found: {name}")
        return Schedule.from_dict(self._schedules[name])

    def exists(self, name: str) -> bool:
        return name in self._schedules

    def list_schedules(self) -> list[str]:
        return sorted(self._schedules)

    def abort_signal(self, name: str) -> AbortSignal:
        return self._signals.setdefault(name, InMemoryAbortSignal())

    def clear(self) -> None:
        """Clear all stored data (for testing)."""
        self._schedules.clear()
        self._signals.clear()


class FileScheduleStore(ScheduleStore):
    """File-based implementation of ScheduleStore."""

    def __init__(self, store_dir: Path | str):
        self._store_dir = Path(store_dir).expanduser()
        self._store_dir.mkdir(parents=True, exist_ok=True)

    @property
    def store_dir(self) -> Path:
        return self._store_dir

    def schedule_dir(self, name: str) -> Path:
        if not name or "/" in name or name in (".", ".."):
            raise ValueError(f"Invalid schedule name: {name!r}")
        return self._store_dir / name

    def schedule_path(self, name: str) -> Path:
        return self.schedule_dir(name) / SCHEDULE_FILENAME

    def save(self, schedule: Schedule) -> str:
        path = self.schedule_path(schedule.name)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Write to a temporary file and rename so a crash never leaves half a schedule
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".schedule.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(schedule.to_dict(), f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Saved schedule {schedule.name} at node {schedule.current_node}")
        return f"file://{path}"

    def load(self, name: str) -> Schedule:
        path = self.schedule_path(name)
        if not path.exists():
            raise FileNotFoundError(f"Schedule not found: {name} ({path})")
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Invalid JSON in {path}: {e}") from e
        return Schedule.from_dict(data)

    def exists(self, name: str) -> bool:
        return self.schedule_path(name).exists()

    def list_schedules(self) -> list[str]:
        return sorted(
            p.parent.name for p in self._store_dir.glob(f"*/{SCHEDULE_FILENAME}")
        )

    def abort_signal(self, name: str) -> AbortSignal:
        return FileAbortSignal(self.schedule_dir(name) / ABORT_FILENAME)


def load_schedule_file(path: Path | str) -> Schedule:
    """Load a schedule from an arbitrary JSON file (e.g. a template)."""
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise PersistenceError(f"Invalid JSON in {path}: {e}") from e
    return Schedule.from_dict(data)
