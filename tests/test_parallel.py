import threading
import time

import pytest

from rgbdkit.parallel import MAX_THREADS, run_threaded


def test_results_keep_input_order():
    inputs = list(range(250))
    assert run_threaded(lambda x: x * x, inputs) == [x * x for x in inputs]


def test_empty_input():
    assert run_threaded(lambda x: x, []) == []


def test_accepts_generator():
    assert run_threaded(str, (i for i in range(3))) == ["0", "1", "2"]


def test_every_input_processed_once():
    seen = []
    lock = threading.Lock()

    def record(x):
        with lock:
            seen.append(x)
        return x

    run_threaded(record, range(120))
    assert sorted(seen) == list(range(120))


def test_exception_propagates():
    def fail(x):
        if x == 7:
            raise ValueError("bad input")
        return x

    with pytest.raises(ValueError, match="bad input"):
        run_threaded(fail, range(20))


def test_concurrency_is_bounded():
    active = 0
    peak = 0
    lock = threading.Lock()

    def work(x):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with lock:
            active -= 1
        return x

    result = run_threaded(work, range(MAX_THREADS + 30))
    assert result == list(range(MAX_THREADS + 30))
    assert 1 <= peak <= MAX_THREADS