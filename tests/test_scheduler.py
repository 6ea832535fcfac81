import pytest

from uthreads.scheduler import (
    MAX_THREAD_NUM,
    Scheduler,
    ThreadControlBlock,
    ThreadState,
    UThreadError,
)


def _noop():
    return None


def _forever():
    while True:
        yield


def _make_logging_worker(sched, log, steps):
    def worker():
        for _ in range(steps):
            log.append(sched.current_tid)
            yield

    return worker


def _make_sleeping_body(sched, woke, quantums):
    def body():
        start = sched.total_quantums
        sched.sleep(quantums)
        yield
        woke.append((start, sched.total_quantums))

    return body


def _make_main_terminator(sched):
    def body():
        sched.terminate(0)
        yield

    return body


def _make_failing_body(message):
    def body():
        yield
        raise ValueError(message)

    return body


@pytest.fixture
def sched():
    return Scheduler(1000)


def test_invalid_quantum_rejected():
    with pytest.raises(UThreadError):
        Scheduler(0)
    with pytest.raises(UThreadError):
        Scheduler(-5)


def test_initial_state(sched):
    assert sched.total_quantums == 1
    assert sched.current_tid == 0
    assert sched.get_quantums(0) == 1
    assert sched.state_of(0) is ThreadState.RUNNING
    assert sched.num_threads == 1
    assert sched.ready_tids == ()
    assert sched.quantum_usecs == 1000


def test_spawn_assigns_increasing_ids_and_queues(sched):
    a = sched.spawn(_noop)
    b = sched.spawn(_noop)
    assert 0 < a < b
    assert sched.ready_tids == (a, b)
    assert sched.state_of(a) is ThreadState.READY
    assert sched.get_quantums(a) == 0
    assert sched.num_threads == 3


def test_spawn_rejects_missing_entry(sched):
    with pytest.raises(UThreadError):
        sched.spawn(None)


def test_spawn_limit(sched):
    ids = [sched.spawn(_noop) for _ in range(MAX_THREAD_NUM - 1)]
    assert len(set(ids)) == MAX_THREAD_NUM - 1
    assert sched.num_threads == MAX_THREAD_NUM
    with pytest.raises(UThreadError):
        sched.spawn(_noop)


def test_spawn_reuses_lowest_terminated_slot(sched):
    ids = [sched.spawn(_noop) for _ in range(3)]
    sched.terminate(ids[1])
    assert sched.spawn(_noop) == ids[1]


def test_tick_round_robin(sched):
    a = sched.spawn(_noop)
    b = sched.spawn(_noop)
    before = sched.total_quantums
    assert sched.tick() == a
    assert sched.current_tid == a
    assert sched.state_of(0) is ThreadState.READY
    assert sched.ready_tids == (b, 0)
    assert sched.tick() == b
    assert sched.ready_tids == (0, a)
    assert sched.tick() == 0
    assert sched.total_quantums == before + 3


def test_quantums_charged_to_previous_thread(sched):
    a = sched.spawn(_noop)
    main_before = sched.get_quantums(0)
    sched.tick()
    assert sched.get_quantums(0) == main_before + 1
    assert sched.get_quantums(a) == 0
    sched.tick()
    assert sched.get_quantums(a) == 1


def test_tick_with_only_main_keeps_main(sched):
    before = sched.total_quantums
    assert sched.tick() == 0
    assert sched.state_of(0) is ThreadState.RUNNING
    assert sched.total_quantums == before + 1


def test_block_other_thread_and_resume(sched):
    a = sched.spawn(_noop)
    b = sched.spawn(_noop)
    sched.block(a)
    assert sched.state_of(a) is ThreadState.BLOCKED
    assert sched.ready_tids == (b,)
    assert sched.tick() == b
    sched.resume(a)
    assert sched.state_of(a) is ThreadState.READY
    assert sched.ready_tids == (0, a)


def test_block_running_thread_switches(sched):
    a = sched.spawn(_noop)
    b = sched.spawn(_noop)
    sched.tick()
    sched.block(a)
    assert sched.current_tid == b
    assert sched.state_of(a) is ThreadState.BLOCKED
    assert a not in sched.ready_tids


def test_block_errors(sched):
    with pytest.raises(UThreadError):
        sched.block(0)
    with pytest.raises(UThreadError):
        sched.block(5)
    with pytest.raises(UThreadError):
        sched.block(MAX_THREAD_NUM)


def test_resume_ready_or_running_is_noop(sched):
    a = sched.spawn(_noop)
    sched.resume(a)
    assert sched.ready_tids == (a,)
    sched.resume(0)
    assert sched.state_of(0) is ThreadState.RUNNING
    with pytest.raises(UThreadError):
        sched.resume(7)


def test_sleep_errors(sched):
    with pytest.raises(UThreadError):
        sched.sleep(2)
    sched.spawn(_noop)
    sched.tick()
    with pytest.raises(UThreadError):
        sched.sleep(0)


def test_sleep_wakes_after_requested_quantums(sched):
    a = sched.spawn(_noop)
    sched.tick()
    start = sched.total_quantums
    sched.sleep(3)
    assert sched.state_of(a) is ThreadState.BLOCKED
    assert sched.current_tid == 0
    while sched.state_of(a) is ThreadState.BLOCKED:
        assert sched.total_quantums < start + 3
        sched.tick()
    assert sched.total_quantums >= start + 3


def test_resume_does_not_wake_sleeper(sched):
    a = sched.spawn(_noop)
    sched.tick()
    sched.sleep(5)
    sched.resume(a)
    assert sched.state_of(a) is ThreadState.BLOCKED
    assert a not in sched.ready_tids


def test_terminate_ready_thread(sched):
    a = sched.spawn(_noop)
    b = sched.spawn(_noop)
    sched.terminate(a)
    assert sched.state_of(a) is ThreadState.TERMINATED
    assert sched.ready_tids == (b,)
    assert sched.num_threads == 2
    with pytest.raises(UThreadError):
        sched.terminate(a)
    with pytest.raises(UThreadError):
        sched.get_quantums(a)


def test_terminate_invalid_ids(sched):
    for tid in (-1, MAX_THREAD_NUM, 3):
        with pytest.raises(UThreadError):
            sched.terminate(tid)


def test_terminate_self_switches(sched):
    a = sched.spawn(_noop)
    sched.tick()
    sched.terminate(a)
    assert sched.current_tid == 0
    assert sched.state_of(a) is ThreadState.TERMINATED


def test_terminate_main_shuts_down(sched):
    a = sched.spawn(_noop)
    sched.terminate(0)
    assert sched.shut_down
    assert sched.state_of(a) is ThreadState.TERMINATED
    assert sched.ready_tids == ()
    with pytest.raises(UThreadError):
        sched.spawn(_noop)
    with pytest.raises(UThreadError):
        sched.tick()


def test_run_interleaves_generator_bodies(sched):
    log = []
    worker = _make_logging_worker(sched, log, 4)
    a = sched.spawn(worker)
    b = sched.spawn(worker)
    sched.run()
    assert log[:4] == [a, b, a, b]
    assert log.count(a) == 4
    assert log.count(b) == 4
    assert sched.state_of(a) is ThreadState.TERMINATED
    assert sched.state_of(b) is ThreadState.TERMINATED
    assert sched.num_threads == 1


def test_run_plain_function_self_terminating(sched):
    done = []

    def f():
        done.append(sched.current_tid)
        sched.terminate(sched.current_tid)

    a = sched.spawn(f)
    b = sched.spawn(f)
    sched.run()
    assert sorted(done) == [a, b]
    assert sched.num_threads == 1
    assert not sched.shut_down


def test_run_sleeping_body(sched):
    woke = []
    tid = sched.spawn(_make_sleeping_body(sched, woke, 3))
    sched.run()
    assert len(woke) == 1
    start, end = woke[0]
    assert end >= start + 3
    assert sched.state_of(tid) is ThreadState.TERMINATED


def test_run_stops_at_max_quantums(sched):
    sched.spawn(_forever)
    assert sched.run(10) == 10
    assert sched.total_quantums == 10
    with pytest.raises(UThreadError):
        sched.run(0)


def test_run_body_terminating_main(sched):
    other = sched.spawn(_make_main_terminator(sched))
    sched.spawn(_forever)
    sched.run()
    assert sched.shut_down
    assert sched.state_of(other) is ThreadState.TERMINATED


def test_run_propagates_body_errors(sched):
    sched.spawn(_make_failing_body("boom"))
    with pytest.raises(ValueError, match="boom"):
        sched.run()


def test_thread_control_block_alive():
    tcb = ThreadControlBlock(3)
    assert not tcb.alive
    tcb.state = ThreadState.BLOCKED
    assert tcb.alive