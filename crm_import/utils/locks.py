import threading
from typing import Dict, List
from contextlib import contextmanager
import logging

logger = logging.getLogger(__name__)


class _TargetLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0  # threads holding or waiting on ``lock``


class ImportLockManager:
    """
    Per-target locks so that two imports into the same tenant/entity write
    sequentially. Duplicate lookups and the write that follows them must not
    interleave with another batch targeting the same records.

    An entry lives only while some import holds or waits on it, so short-lived
    targets (one per dry-run store) do not accumulate.
    """
    _locks: Dict[str, _TargetLock] = {}
    _global_lock = threading.Lock()

    @staticmethod
    def target_key(store_target: str, entity_type: str) -> str:
        return f"{store_target}:{entity_type}"

    @classmethod
    def active_targets(cls) -> List[str]:
        with cls._global_lock:
            return sorted(cls._locks)

    @classmethod
    def _checkout(cls, target: str) -> _TargetLock:
        with cls._global_lock:
            entry = cls._locks.get(target)
            if entry is None:
                entry = cls._locks[target] = _TargetLock()
            entry.holders += 1
            return entry

    @classmethod
    def _checkin(cls, target: str, entry: _TargetLock) -> None:
        with cls._global_lock:
            entry.holders -= 1
            if entry.holders == 0 and cls._locks.get(target) is entry:
                del cls._locks[target]

    @classmethod
    @contextmanager
    def acquire(cls, target: str):
        """Context manager to acquire and release an import target lock."""
        entry = cls._checkout(target)
        try:
            logger.debug("Waiting for import lock '%s'", target)
            entry.lock.acquire()
            logger.debug("Acquired import lock '%s'", target)
            try:
                yield
            finally:
                entry.lock.release()
                logger.debug("Released import lock '%s'", target)
        finally:
            cls._checkin(target, entry)
