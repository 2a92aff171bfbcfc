"""
Account Locking Module

Per-account mutexes plus a thread-scoped unit of work. A unit of work wraps
storage.atomic() and keeps every account lock it takes until the outermost
block has committed or rolled back, so a read-modify-write of a balance is
never interleaved with another writer on the same account.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from .storage import StorageInterface
from .logging_config import get_logger


class AccountLockRegistry:
    """
    Hands out one mutex per account number

    Locks are created on first use and dropped again once no thread holds
    or waits for them, so the registry does not grow with the number of
    accounts ever touched.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, List] = {}  # account_nr -> [lock, users]

    def acquire(self, account_nr: int) -> None:
        """Block until the lock for account_nr is held by the caller"""
        with self._guard:
            entry = self._locks.setdefault(account_nr, [threading.Lock(), 0])
            entry[1] += 1
        entry[0].acquire()

    def release(self, account_nr: int) -> None:
        """Release a lock taken with acquire()"""
        with self._guard:
            entry = self._locks.get(account_nr)
            if entry is None:
                raise RuntimeError(f"Account {account_nr} is not locked")
            entry[0].release()
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[account_nr]

    def is_locked(self, account_nr: int) -> bool:
        """Check whether any thread currently holds the account lock"""
        with self._guard:
            entry = self._locks.get(account_nr)
            return entry is not None and entry[0].locked()

    def tracked_accounts(self) -> Set[int]:
        """Account numbers with a live lock (held or awaited)"""
        with self._guard:
            return set(self._locks)


@dataclass
class _UnitState:
    held: List[int] = field(default_factory=list)
    callbacks: List[Callable[[], None]] = field(default_factory=list)


class UnitOfWork:
    """
    Thread-scoped atomic unit spanning storage writes and account locks

    begin() is re-entrant: a nested begin() on the same thread joins the
    running unit, which is what lets a transfer enclose both of its legs.
    """

    def __init__(self, storage: StorageInterface,
                 locks: Optional[AccountLockRegistry] = None):
        self.storage = storage
        self.locks = locks or AccountLockRegistry()
        self._local = threading.local()
        self.logger = get_logger("sparesti.locking")

    @property
    def active(self) -> bool:
        """True while the calling thread is inside begin()"""
        return getattr(self._local, 'state', None) is not None

    @contextmanager
    def begin(self):
        """Open (or join) the calling thread's unit of work"""
        if self.active:
            with self.storage.atomic():
                yield self
            return

        self._local.state = _UnitState()
        try:
            with self.storage.atomic():
                yield self
        except BaseException:
            self._finish(committed=False)
            raise
        self._finish(committed=True)

    def lock_account(self, account_nr: int) -> None:
        """Take the account lock for the rest of the unit of work"""
        state = self._require_state()
        if account_nr in state.held:
            return
        self.locks.acquire(account_nr)
        state.held.append(account_nr)

    def lock_accounts(self, *account_nrs: int) -> None:
        """Take several account locks in ascending order"""
        for account_nr in sorted(set(account_nrs)):
            self.lock_account(account_nr)

    def holds_lock(self, account_nr: int) -> bool:
        """Check whether the calling thread's unit holds the account lock"""
        state = getattr(self._local, 'state', None)
        return state is not None and account_nr in state.held

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run callback once the outermost unit has committed"""
        self._require_state().callbacks.append(callback)

    def _require_state(self) -> _UnitState:
        state = getattr(self._local, 'state', None)
        if state is None:
            raise RuntimeError("No unit of work is active on this thread")
        return state

    def _finish(self, committed: bool) -> None:
        state = self._local.state
        self._local.state = None

        for account_nr in reversed(state.held):
            self.locks.release(account_nr)

        if not committed:
            return

        for callback in state.callbacks:
            try:
                callback()
            except Exception:
                # Already committed; report and carry on
                self.logger.exception("on_commit callback failed")
