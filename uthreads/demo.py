"""Demonstration workloads for the user-level thread scheduler.

Worker bodies are generator functions: each ``yield`` marks the end of a
slice of work, after which the scheduler may switch to another thread.
"""

from __future__ import annotations

import argparse
import sys
from functools import partial
from typing import Iterator, Optional, Sequence, TextIO

from uthreads.scheduler import MAIN_TID, Scheduler, ThreadState, UThreadError

DEFAULT_QUANTUM_USECS = 100_000
DEFAULT_ITERATIONS = 10
PAIR_ITERATIONS = 100


def _report(scheduler: Scheduler, name: str, counter: int, out: TextIO) -> None:
    tid = scheduler.current_tid
    print(
        f"[{name}] Running, iteration {counter}. "
        f"Total quantums: {scheduler.total_quantums}, "
        f"My quantums: {scheduler.get_quantums(tid)}",
        file=out,
    )


def busy_worker(
    scheduler: Scheduler, name: str, iterations: int, out: TextIO
) -> Iterator[None]:
    """Report status once per slice of work for ``iterations`` slices."""
    for counter in range(1, iterations + 1):
        _report(scheduler, name, counter, out)
        yield


def sleeping_worker(
    scheduler: Scheduler,
    name: str,
    iterations: int,
    sleep_every: int,
    sleep_quantums: int,
    out: TextIO,
) -> Iterator[None]:
    """Like :func:`busy_worker`, sleeping ``sleep_quantums`` every ``sleep_every`` iterations."""
    for counter in range(1, iterations + 1):
        _report(scheduler, name, counter, out)
        if sleep_every > 0 and counter % sleep_every == 0:
            print(f"[{name}] Sleeping for {sleep_quantums} quantums...", file=out)
            scheduler.sleep(sleep_quantums)
            yield
            print(f"[{name}] Woke up from sleep.", file=out)
        else:
            yield


def _late_worker(
    scheduler: Scheduler,
    name: str,
    iterations: int,
    initial_sleep: int,
    out: TextIO,
) -> Iterator[None]:
    print(f"[{name}] Started. Sleeping for {initial_sleep} quantums...", file=out)
    scheduler.sleep(initial_sleep)
    yield
    print(f"[{name}] Woke up from sleep. Continuing execution...", file=out)
    yield from busy_worker(scheduler, name, iterations, out)


def _run_one_quantum(scheduler: Scheduler) -> None:
    scheduler.run(scheduler.total_quantums + 1)


def run_demo(
    quantum_usecs: int = DEFAULT_QUANTUM_USECS,
    iterations: int = DEFAULT_ITERATIONS,
    out: Optional[TextIO] = None,
) -> Scheduler:
    """Run four workers alongside the main thread, then shut everything down.

    Output goes to ``out`` (standard output when omitted).  Returns the
    scheduler, which has been shut down by the time this returns.
    """
    out = sys.stdout if out is None else out
    scheduler = Scheduler(quantum_usecs)

    entries = [
        partial(busy_worker, scheduler, "Thread 1", iterations, out),
        partial(_late_worker, scheduler, "Thread 2", iterations, 3, out),
        partial(sleeping_worker, scheduler, "Thread 3", iterations, 4, 2, out),
        partial(busy_worker, scheduler, "Thread 4", iterations, out),
    ]
    tids = []
    for number, entry in enumerate(entries, start=1):
        try:
            tids.append(scheduler.spawn(entry))
        except UThreadError:
            print(f"Failed to spawn thread {number}", file=sys.stderr)

    counter = 1
    while scheduler.num_threads > 1 and not scheduler.shut_down:
        if scheduler.current_tid == MAIN_TID:
            _report(scheduler, "Main Thread", counter, out)
            counter += 1
        _run_one_quantum(scheduler)

    print("[Main Thread] Shutting down user-level threads", file=out)
    for tid in tids:
        if scheduler.state_of(tid) not in (ThreadState.UNUSED, ThreadState.TERMINATED):
            scheduler.terminate(tid)
    print("[Main Thread] Shutdown succeeded", file=out)
    print("[Main Thread] Terminating Main Thread", file=out)
    scheduler.terminate(MAIN_TID)
    return scheduler


def _counting_worker(
    scheduler: Scheduler, iterations: int, done: list[int]
) -> Iterator[None]:
    tid = scheduler.current_tid
    for _ in range(iterations):
        yield
    done.append(tid)
    scheduler.terminate(tid)


def _run_pair(quantum_usecs: int, iterations: int, out: TextIO) -> Scheduler:
    scheduler = Scheduler(quantum_usecs)
    done: list[int] = []
    for _ in range(2):
        scheduler.spawn(partial(_counting_worker, scheduler, iterations, done))
    while len(done) < 2:
        _run_one_quantum(scheduler)
    print("Done!", file=out)
    scheduler.terminate(MAIN_TID)
    return scheduler


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        prog="uthreads", description="Run a user-level thread scheduling demo."
    )
    parser.add_argument(
        "--quantum",
        type=int,
        default=DEFAULT_QUANTUM_USECS,
        help="quantum length in microseconds",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="iterations each worker performs",
    )
    parser.add_argument(
        "--pair",
        action="store_true",
        help="run two silent workers and report when both are done",
    )
    args = parser.parse_args(argv)

    try:
        if args.pair:
            iterations = PAIR_ITERATIONS if args.iterations is None else args.iterations
            _run_pair(args.quantum, iterations, sys.stdout)
        else:
            iterations = (
                DEFAULT_ITERATIONS if args.iterations is None else args.iterations
            )
            run_demo(args.quantum, iterations, sys.stdout)
    except UThreadError as exc:
        print(f"thread library error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())