import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Optional

from panelflow.errors import ReinitializeInProgress
from panelflow.logging_config import get_logger

logger = get_logger(__name__)


class _Holder:
    __slots__ = ("operation", "thread_id", "acquired_at", "depth")

    def __init__(self, operation: str, thread_id: int):
        self.operation = operation
        self.thread_id = thread_id
        self.acquired_at = datetime.now()
        self.depth = 1


class ProjectLockManager:
    """
    Per-project lock so at most one workflow re-initialize runs per project.

    A second request for a busy project fails fast instead of queueing;
    re-entry from the thread that already holds the project is allowed.
    """

    def __init__(self, timeout_seconds: int = 30):
        self._lock = threading.RLock()
        self._holders: Dict[int, _Holder] = {}
        self.timeout_seconds = timeout_seconds

    def is_locked(self, project_id: int) -> bool:
        with self._lock:
            return project_id in self._holders

    def get_current_operation(self, project_id: int) -> Optional[str]:
        with self._lock:
            holder = self._holders.get(project_id)
            return holder.operation if holder else None

    @contextmanager
    def acquire(self, project_id: int, operation_name: str, timeout_seconds: Optional[int] = None):
        """
        Context manager holding the lock for one project.

        Raises:
            ReinitializeInProgress: another thread holds this project
            RuntimeError: the manager mutex could not be acquired in time
        """
        timeout = timeout_seconds or self.timeout_seconds
        acquired = False
        try:
            if not self._lock.acquire(timeout=timeout):
                raise RuntimeError(f"Lock acquisition timed out after {timeout}s for '{operation_name}'")
            try:
                current_thread_id = threading.get_ident()
                holder = self._holders.get(project_id)
                if holder is not None:
                    if holder.thread_id == current_thread_id:
                        holder.depth += 1
                        logger.info("Re-entrant project lock", project_id=project_id, operation=operation_name)
                    else:
                        logger.warning(
                            "Project lock already held",
                            project_id=project_id,
                            held_by=holder.operation,
                            requested_by=operation_name,
                        )
                        raise ReinitializeInProgress(project_id, holder.operation)
                else:
                    self._holders[project_id] = _Holder(operation_name, current_thread_id)
                acquired = True
            finally:
                self._lock.release()

            yield

        finally:
            if acquired:
                with self._lock:
                    holder = self._holders.get(project_id)
                    if holder is not None:
                        holder.depth -= 1
                        if holder.depth <= 0:
                            del self._holders[project_id]
                            logger.debug("Project lock released", project_id=project_id, operation=operation_name)

    def get_status(self) -> dict:
        with self._lock:
            now = datetime.now()
            return {
                "locked_projects": {
                    project_id: {
                        "operation": holder.operation,
                        "held_by_thread": holder.thread_id,
                        "held_for_seconds": (now - holder.acquired_at).total_seconds(),
                    }
                    for project_id, holder in self._holders.items()
                },
                "timestamp": now.isoformat(),
                "timeout_seconds": self.timeout_seconds,
            }


# Global instance - create once and reuse
project_lock_manager = ProjectLockManager()
