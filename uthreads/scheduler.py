"""Round-robin scheduler for user-level threads driven by quantum ticks.

Each spawned thread runs the callable it was spawned with.  If that callable
returns a generator, every ``yield`` ends the thread's current slice of work;
the scheduler then treats the quantum as expired unless the thread already
gave up the CPU (by sleeping, blocking or terminating itself).  A callable
that does not return a generator runs to completion in one slice.

The main thread (tid 0) is the code that owns the :class:`Scheduler`.  The
state machine itself (:meth:`Scheduler.tick`, :meth:`Scheduler.block`, ...)
can be driven directly, or :meth:`Scheduler.run` can execute thread bodies.
"""

from __future__ import annotations

import enum
import inspect
from dataclasses import dataclass, field
from typing import Callable, Generator, Iterator, Optional

from uthreads.thread_queue import IntQueue

MAX_THREAD_NUM = 100
"""Maximum number of threads, including the main thread."""

MAIN_TID = 0

EntryPoint = Callable[[], object]


class UThreadError(Exception):
    """Raised when a thread-library call is invalid."""


class ThreadState(enum.Enum):
    """Lifecycle states of a thread slot."""

    UNUSED = 0
    READY = 1
    RUNNING = 2
    BLOCKED = 3
    TERMINATED = 4


@dataclass
class ThreadControlBlock:
    """Bookkeeping for one thread slot."""

    tid: int
    state: ThreadState = ThreadState.UNUSED
    quantums: int = 0
    sleep_until: int = 0
    entry: Optional[EntryPoint] = None
    body: Optional[Generator[object, None, None]] = field(default=None, repr=False)

    @property
    def alive(self) -> bool:
        return self.state not in (ThreadState.UNUSED, ThreadState.TERMINATED)


def _launch(entry: EntryPoint) -> Iterator[object]:
    result = entry()
    if inspect.isgenerator(result):
        yield from result


class Scheduler:
    """User-level thread table, ready queue and round-robin scheduling."""

    def __init__(self, quantum_usecs: int) -> None:
        if quantum_usecs <= 0:
            raise UThreadError("quantum_usecs must be positive")
        self.quantum_usecs = quantum_usecs
        self._threads = [ThreadControlBlock(tid) for tid in range(MAX_THREAD_NUM)]
        self._ready = IntQueue(MAX_THREAD_NUM)
        self._total_quantums = 1
        self._current_tid = MAIN_TID
        self._num_threads = 1
        self._shut_down = False
        self._stepping: Optional[int] = None

        main = self._threads[MAIN_TID]
        main.state = ThreadState.RUNNING
        main.quantums = 1

    # ------------------------------------------------------------------
    # read-only views
    # ------------------------------------------------------------------

    @property
    def current_tid(self) -> int:
        """The id of the running thread."""
        return self._current_tid

    @property
    def total_quantums(self) -> int:
        """Quantums started since initialisation, counting the first as 1."""
        return self._total_quantums

    @property
    def num_threads(self) -> int:
        """Number of live threads, the main thread included."""
        return self._num_threads

    @property
    def shut_down(self) -> bool:
        """Whether the main thread has been terminated."""
        return self._shut_down

    @property
    def ready_tids(self) -> tuple[int, ...]:
        """The ready queue from head to tail."""
        return tuple(self._ready)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _check_active(self) -> None:
        if self._shut_down:
            raise UThreadError("the thread library has been shut down")

    def _slot(self, tid: int) -> ThreadControlBlock:
        if not 0 <= tid < MAX_THREAD_NUM:
            raise UThreadError(f"invalid thread id {tid}")
        return self._threads[tid]

    def _existing(self, tid: int) -> ThreadControlBlock:
        tcb = self._slot(tid)
        if not tcb.alive:
            raise UThreadError(f"no thread with id {tid}")
        return tcb

    def _release(self, tcb: ThreadControlBlock) -> None:
        body, tcb.body = tcb.body, None
        tcb.entry = None
        if body is not None and tcb.tid != self._stepping:
            body.close()

    def _shutdown(self) -> None:
        for tcb in self._threads:
            if tcb.alive:
                self._release(tcb)
                tcb.state = ThreadState.TERMINATED
        self._ready.clear()
        self._num_threads = 0
        self._shut_down = True

    # ------------------------------------------------------------------
    # public interface
    # ------------------------------------------------------------------

    def spawn(self, entry_point: EntryPoint) -> int:
        """Create a thread at the lowest free id and append it to the ready queue."""
        self._check_active()
        if entry_point is None or not callable(entry_point):
            raise UThreadError("entry_point must be callable")
        if self._num_threads >= MAX_THREAD_NUM:
            raise UThreadError("maximum number of threads reached")
        tcb = next(
            (t for t in self._threads[1:] if not t.alive),
            None,
        )
        if tcb is None:
            raise UThreadError("no free thread slot")
        tcb.state = ThreadState.READY
        tcb.quantums = 0
        tcb.sleep_until = 0
        tcb.entry = entry_point
        tcb.body = _launch(entry_point)
        self._num_threads += 1
        self._ready.enqueue(tcb.tid)
        return tcb.tid

    def terminate(self, tid: int) -> None:
        """Terminate a thread; terminating the main thread shuts everything down."""
        self._check_active()
        tcb = self._existing(tid)

        if tid == MAIN_TID:
            self._shutdown()
            return

        if tid == self._current_tid:
            tcb.state = ThreadState.TERMINATED
            self._num_threads -= 1
            self._release(tcb)
            if self._num_threads == 0:
                self._shutdown()
                return
            self.schedule_next()
            return

        if tcb.state is ThreadState.READY:
            self._ready.delete(tid)
        tcb.state = ThreadState.TERMINATED
        self._num_threads -= 1
        self._release(tcb)

    def block(self, tid: int) -> None:
        """Move a thread to BLOCKED; blocking the running thread switches away."""
        self._check_active()
        if tid == MAIN_TID:
            raise UThreadError("the main thread cannot be blocked")
        tcb = self._existing(tid)
        if tid == self._current_tid:
            tcb.state = ThreadState.BLOCKED
            self.schedule_next()
            return
        if tcb.state is ThreadState.READY:
            self._ready.delete(tid)
        tcb.state = ThreadState.BLOCKED

    def resume(self, tid: int) -> None:
        """Move a blocked, non-sleeping thread to the end of the ready queue."""
        self._check_active()
        tcb = self._existing(tid)
        if tcb.state is ThreadState.BLOCKED and tcb.sleep_until == 0:
            tcb.state = ThreadState.READY
            self._ready.enqueue(tid)

    def sleep(self, num_quantums: int) -> None:
        """Block the running thread for ``num_quantums`` quantums."""
        self._check_active()
        if self._current_tid == MAIN_TID:
            raise UThreadError("the main thread cannot sleep")
        if num_quantums <= 0:
            raise UThreadError("num_quantums must be positive")
        tcb = self._threads[self._current_tid]
        tcb.sleep_until = self._total_quantums + num_quantums
        tcb.state = ThreadState.BLOCKED
        self.schedule_next()

    def tick(self) -> int:
        """Handle the expiry of the running thread's quantum; return the new current tid."""
        self._check_active()
        return self.schedule_next()

    def schedule_next(self) -> int:
        """Start a new quantum, waking sleepers and switching to the next ready thread."""
        self._check_active()
        prev = self._threads[self._current_tid]

        self._total_quantums += 1
        if prev.state is not ThreadState.TERMINATED:
            prev.quantums += 1

        for tcb in self._threads:
            if (
                tcb.state is ThreadState.BLOCKED
                and 0 < tcb.sleep_until <= self._total_quantums
            ):
                tcb.sleep_until = 0
                tcb.state = ThreadState.READY
                self._ready.enqueue(tcb.tid)

        if prev.state is ThreadState.RUNNING:
            prev.state = ThreadState.READY
            self._ready.enqueue(prev.tid)

        if self._ready.is_empty():
            return self._current_tid

        nxt = self._ready.dequeue()
        self._threads[nxt].state = ThreadState.RUNNING
        self._current_tid = nxt
        return nxt

    def state_of(self, tid: int) -> ThreadState:
        """The state of the slot ``tid``."""
        return self._slot(tid).state

    def get_quantums(self, tid: int) -> int:
        """Number of quantums thread ``tid`` has been charged with."""
        return self._existing(tid).quantums

    # ------------------------------------------------------------------
    # execution
    # ------------------------------------------------------------------

    def run(self, max_quantums: Optional[int] = None) -> int:
        """Execute thread bodies until only the main thread is left.

        Stops early when the library shuts down or the total quantum count
        reaches ``max_quantums``.  Quantums owned by the main thread pass
        without work.  Returns the total quantum count.
        """
        self._check_active()
        if max_quantums is not None and max_quantums <= 0:
            raise UThreadError("max_quantums must be positive")
        while (
            not self._shut_down
            and self._num_threads > 1
            and (max_quantums is None or self._total_quantums < max_quantums)
        ):
            tid = self._current_tid
            if tid == MAIN_TID:
                self.tick()
            else:
                self._step(tid)
        return self._total_quantums

    def _step(self, tid: int) -> None:
        tcb = self._threads[tid]
        body = tcb.body
        if body is None:
            self.tick()
            return
        before = self._total_quantums
        self._stepping = tid
        try:
            next(body)
            finished = False
        except StopIteration:
            finished = True
        finally:
            self._stepping = None

        if self._shut_down or tcb.body is not body:
            body.close()
            return
        if finished:
            self.terminate(tid)
            return
        if self._current_tid == tid and self._total_quantums == before:
            self.tick()