# uthreads

A small library of cooperative user-level threads driven by a round-robin
scheduler. Threads share one time line divided into *quantums*. Each thread
runs in turn. The scheduler counts the quantums each thread has been charged
with and the quantums that have passed in total.

## Features

- A main thread (tid `0`) exists as soon as the `Scheduler` is created. It is
  in the `RUNNING` state and has been charged one quantum.
- Up to 100 threads in all, the main thread included. A new thread gets the
  lowest free id, and the ids of terminated threads are given out again.
- A FIFO ready queue. New, resumed and woken threads join at the back.
- `block` / `resume` for explicit suspension. Blocking the main thread is an
  error. Resuming a sleeping thread leaves it asleep.
- `sleep(n)` blocks the running thread for `n` quantums, counted from the
  current total. The main thread cannot sleep.
- Per-thread and total quantum counters. The total starts at 1.
- Invalid calls raise `UThreadError`. Examples are an unknown tid, a
  non-positive quantum length, too many threads, or any call after shutdown.

## Installation

```
pip install .
```

To run the tests, install the test extra:

```
pip install .[test]
pytest
```

## Usage

```python
from uthreads.scheduler import Scheduler, ThreadState

sched = Scheduler(quantum_usecs=100_000)

def worker():
    for _ in range(3):
        yield  # end of this slice of work

tid = sched.spawn(worker)
sched.run(max_quantums=10)

print(sched.total_quantums, sched.state_of(tid))  # the worker is TERMINATED
```

### Thread bodies

A thread's entry point is any callable that takes no arguments.

- If the callable returns a generator, each `yield` ends the thread's current
  slice of work. The scheduler then counts the quantum as expired, unless the
  thread already gave up the CPU by sleeping, blocking or terminating itself.
- If the callable returns anything else, it runs to completion in a single
  slice.
- A thread whose body finishes is terminated.

`Scheduler.run(max_quantums=None)` executes thread bodies until only the main
thread is left. It stops sooner if the library is shut down or the total
quantum count reaches `max_quantums`. Quantums that belong to the main thread
pass with no work done. It returns the total quantum count.

### Driving the state machine directly

You can also drive the scheduler without running any bodies:

- `tick()` ends the running thread's quantum. It wakes sleepers whose time is
  up, moves the running thread to the back of the ready queue, switches to the
  head of the queue, and returns the new current tid. If the queue is empty,
  the current thread keeps running.
- `schedule_next()` does the same work as `tick()`.
- `block(tid)`, `resume(tid)` and `sleep(num_quantums)` change thread states.
  Blocking or sleeping the running thread switches to the next ready thread.
- `terminate(tid)` ends a thread. Terminating tid `0` shuts the whole
  scheduler down, and after that every call raises `UThreadError`.
- `state_of(tid)` returns a `ThreadState`: `UNUSED`, `READY`, `RUNNING`,
  `BLOCKED` or `TERMINATED`.
- `get_quantums(tid)` returns the quantums a live thread has been charged
  with.
- Read-only properties: `current_tid`, `total_quantums`, `num_threads`,
  `shut_down` and `ready_tids`. `ready_tids` lists the ready queue from head
  to tail.

### The queue

The ready queue is an `IntQueue` from `uthreads.thread_queue`. It is a
fixed-capacity FIFO of integers that can be used on its own. Its capacity
defaults to 128.

- It supports `enqueue`, `dequeue`, `peek`, `delete` and `clear`.
- `delete` removes the first matching value and returns whether it found one.
- It also supports `is_empty`, `is_full`, `len()`, `in`, and iteration that
  does not consume the queue.
- Adding to a full queue raises `QueueFullError`. Taking from an empty queue,
  or peeking at one, raises `QueueEmptyError`.

## Demo

```
uthreads-demo
```

This runs four workers alongside the main thread:

- Threads 1 and 4 report on every iteration.
- Thread 2 sleeps for 3 quantums before it starts.
- Thread 3 sleeps for 2 quantums every 4 iterations.

Each report shows the worker's iteration, the total quantums and the worker's
own quantums. The main thread also reports whenever it holds the CPU. When
the workers finish, the main thread terminates what is left and then
terminates itself.

Options:

- `--quantum N`: quantum length in microseconds (default 100000).
- `--iterations N`: iterations per worker (default 10, or 100 with `--pair`).
- `--pair`: run two silent workers instead, and print `Done!` once both have
  finished.

If the library reports an error, the command prints
`thread library error: ...` to standard error and exits with status 1.

## What it does not do

Scheduling is cooperative and counted in quantums only. No timer or signal
preempts a thread. A thread gives up the CPU only at a `yield` or by calling
into the scheduler. The `quantum_usecs` value is checked to be positive and
stored, but no wall-clock or CPU time is measured against it. Threads do not
run in parallel.