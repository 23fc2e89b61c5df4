"""State stores: last-applied resources between runs."""

from __future__ import annotations

import copy
import json
import os
import tempfile
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Dict, Iterator, Protocol

import structlog

from stackwright.state.lock import FileRunLock, LockInfo, MemoryRunLock
from stackwright.state.models import StackState

logger = structlog.get_logger()

DEFAULT_STATE_DIR = Path(".stackwright")


class StateStore(Protocol):
    def read(self, stack: str) -> StackState:
        ...

    def write(self, state: StackState) -> None:
        ...

    def lock(self, stack: str, run_id: str, operation: str = "apply") -> AbstractContextManager[None]:
        ...

    def force_unlock(self, stack: str) -> bool:
        ...


class MemoryStateStore:
    """Keeps state in a dict; copies on read and write."""

    def __init__(self) -> None:
        self._states: Dict[str, StackState] = {}
        self._locks = MemoryRunLock()

    def read(self, stack: str) -> StackState:
        state = self._states.get(stack)
        return copy.deepcopy(state) if state else StackState(stack=stack)

    def write(self, state: StackState) -> None:
        state.serial += 1
        self._states[state.stack] = copy.deepcopy(state)
        logger.debug("state_written", stack=state.stack, serial=state.serial)

    @contextmanager
    def lock(self, stack: str, run_id: str, operation: str = "apply") -> Iterator[None]:
        self._locks.acquire(LockInfo(stack=stack, run_id=run_id, operation=operation))
        try:
            yield
        finally:
            self._locks.release(stack, run_id)

    def force_unlock(self, stack: str) -> bool:
        return self._locks.force_release(stack)


class FileStateStore:
    """One JSON document per stack under ``directory``."""

    def __init__(self, directory: Path | str | None = None) -> None:
        self.directory = Path(directory) if directory else DEFAULT_STATE_DIR
        self._locks = FileRunLock(self.directory)

    def path_for(self, stack: str) -> Path:
        return self.directory / f"{stack}.state.json"

    def read(self, stack: str) -> StackState:
        path = self.path_for(stack)
        if not path.exists():
            return StackState(stack=stack)
        data = json.loads(path.read_text())
        logger.debug("state_loaded", stack=stack, path=str(path))
        return StackState.from_dict(data)

    def write(self, state: StackState) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        state.serial += 1
        path = self.path_for(state.stack)
        payload = json.dumps(state.to_dict(), indent=2, sort_keys=True) + "\n"

        # write-then-rename so a crash never leaves a truncated state file
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{state.stack}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(payload)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.info("state_written", stack=state.stack, serial=state.serial, path=str(path))

    @contextmanager
    def lock(self, stack: str, run_id: str, operation: str = "apply") -> Iterator[None]:
        self._locks.acquire(LockInfo(stack=stack, run_id=run_id, operation=operation))
        try:
            yield
        finally:
            self._locks.release(stack, run_id)

    def force_unlock(self, stack: str) -> bool:
        return self._locks.force_release(stack)

    def holder(self, stack: str) -> LockInfo | None:
        return self._locks.holder(stack)
