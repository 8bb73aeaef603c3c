import time
import logging
import threading
from concurrent import futures
from typing import (
    Callable,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from .error import ContextCancelledError

T = TypeVar('T')


class Context:
    """Cancellation and deadline carrier threaded through every blocking call.

    Cancelling a context cancels all of its children; cancelling a child
    leaves the parent untouched. A child never outlives the deadline of its
    parent.
    """

    def __init__(self, timeout: Optional[float] = None, parent: Optional['Context'] = None) -> None:
        self.parent = parent
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: List['Context'] = []
        self._reason = 'context cancelled'
        self.deadline: Optional[float] = None if timeout is None else time.monotonic() + timeout
        if parent is not None and parent.deadline is not None:
            self.deadline = parent.deadline if self.deadline is None else min(self.deadline, parent.deadline)

    def __repr__(self) -> str:
        return '<Context(cancelled={}, remaining={})>'.format(self.cancelled, self.remaining())

    def child(self, timeout: Optional[float] = None) -> 'Context':
        child = Context(timeout=timeout, parent=self)
        with self._lock:
            self._children.append(child)
            cancelled = self._event.is_set()
            reason = self._reason
        if cancelled:
            child.cancel(reason)
        return child

    def close(self) -> None:
        """Detach from the parent once this context is no longer in use."""
        if self.parent is None:
            return
        with self.parent._lock:  # pylint: disable=protected-access
            if self in self.parent._children:  # pylint: disable=protected-access
                self.parent._children.remove(self)  # pylint: disable=protected-access

    @property
    def children(self) -> List['Context']:
        with self._lock:
            return list(self._children)

    def cancel(self, reason: str = 'context cancelled') -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel(reason)

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel('deadline exceeded')
            return True
        return False

    @property
    def reason(self) -> str:
        return self._reason

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        if self.cancelled:
            raise ContextCancelledError(self._reason)

    def sleep(self, seconds: float) -> None:
        end = time.monotonic() + seconds
        while True:
            self.check()
            left = end - time.monotonic()
            if left <= 0:
                return
            remaining = self.remaining()
            step = left if remaining is None else min(left, remaining)
            self._event.wait(step)


def run_concurrently(context: Context, tasks: Sequence[Callable[[Context], T]]) -> List[T]:
    """Run every task on its own worker thread and wait for all of them.

    The first error wins. Once a task fails the group context handed to the
    tasks is cancelled, so siblings sitting in a retry loop or a backoff sleep
    give up promptly and command containers still running are force removed.
    Every task is awaited before the first error is re-raised and the
    results of the siblings are discarded.
    """
    if not tasks:
        return []

    group_context = context.child()
    first_error: Optional[BaseException] = None
    try:
        with futures.ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix='ibctest') as executor:
            pending = [executor.submit(task, group_context) for task in tasks]
            for future in futures.as_completed(pending):
                error = future.exception()
                if error is None:
                    continue
                if first_error is None:
                    first_error = error
                    logging.warning("CANCELLING siblings after failure: %s", error)
                    group_context.cancel('sibling task failed: {}'.format(error))
                else:
                    logging.debug("DISCARDED sibling failure: %s", error)
    finally:
        group_context.close()

    if first_error is not None:
        raise first_error
    return [future.result() for future in pending]
