"""Run-level lock: at most one run per stack at a time."""

from __future__ import annotations

import json
import os
import socket
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

import structlog

from stackwright.core.errors import StackLockedError

logger = structlog.get_logger()


@dataclass
class LockInfo:
    stack: str
    run_id: str
    operation: str = "apply"
    host: str = field(default_factory=socket.gethostname)
    pid: int = field(default_factory=os.getpid)
    acquired_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class MemoryRunLock:
    """Process-local lock table."""

    def __init__(self) -> None:
        self._held: Dict[str, LockInfo] = {}
        self._mutex = threading.Lock()

    def acquire(self, info: LockInfo) -> None:
        with self._mutex:
            holder = self._held.get(info.stack)
            if holder is not None:
                raise StackLockedError(info.stack, asdict(holder))
            self._held[info.stack] = info
        logger.info("run_lock_acquired", stack=info.stack, run_id=info.run_id)

    def release(self, stack: str, run_id: str) -> None:
        with self._mutex:
            holder = self._held.get(stack)
            if holder is not None and holder.run_id == run_id:
                del self._held[stack]
                logger.info("run_lock_released", stack=stack, run_id=run_id)

    def holder(self, stack: str) -> LockInfo | None:
        return self._held.get(stack)

    def force_release(self, stack: str) -> bool:
        with self._mutex:
            return self._held.pop(stack, None) is not None


class FileRunLock:
    """Lock file created exclusively next to the state file."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    def path_for(self, stack: str) -> Path:
        return self._directory / f"{stack}.lock"

    def acquire(self, info: LockInfo) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(info.stack)
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise StackLockedError(info.stack, self._read(path)) from None
        with os.fdopen(fd, "w") as f:
            f.write(json.dumps(asdict(info), indent=2, sort_keys=True) + "\n")
        logger.info("run_lock_acquired", stack=info.stack, run_id=info.run_id, path=str(path))

    def release(self, stack: str, run_id: str) -> None:
        path = self.path_for(stack)
        holder = self._read(path)
        if holder.get("run_id") != run_id:
            logger.warning("run_lock_not_owned", stack=stack, run_id=run_id, holder=holder.get("run_id"))
            return
        path.unlink(missing_ok=True)
        logger.info("run_lock_released", stack=stack, run_id=run_id)

    def holder(self, stack: str) -> LockInfo | None:
        data = self._read(self.path_for(stack))
        return LockInfo(**data) if data else None

    def force_release(self, stack: str) -> bool:
        path = self.path_for(stack)
        if not path.exists():
            return False
        path.unlink()
        logger.warning("run_lock_forced_release", stack=stack)
        return True

    @staticmethod
    def _read(path: Path) -> dict:
        try:
            return json.loads(path.read_text())
        except (FileNotFoundError, json.JSONDecodeError):
            return {}
