import logging
import time
from unittest.mock import patch

from rgbdkit.timing import Duration, Timer


def test_duration_default_is_zero():
    assert Duration().elapsed() == 0.0


def test_duration_measures_milliseconds():
    d = Duration()
    with patch.object(time, "perf_counter", side_effect=[1.0, 1.25]):
        d.tick()
        d.tock()
    assert d.elapsed() == 250.0


def test_duration_real_clock_is_non_negative():
    d = Duration()
    d.tick()
    d.tock()
    assert d.elapsed() >= 0.0


def test_duration_negative_warns(caplog):
    d = Duration()
    with patch.object(time, "perf_counter", side_effect=[1.0, 2.0]):
        d.tock()
        d.tick()
    with caplog.at_level(logging.WARNING):
        value = d.elapsed()
    assert value == -1000.0
    assert "less than 0" in caplog.text


def test_timer_tock_without_tick_warns(caplog):
    timer = Timer()
    with caplog.at_level(logging.WARNING):
        timer.tock("solve")
    assert "solve" not in timer.durations
    assert "TOCK without TICK" in caplog.text


def test_timer_tick_tock_records(caplog):
    timer = Timer()
    timer.tick("solve")
    timer.tock("solve")
    assert "solve" in timer.durations
    assert timer.elapsed("solve") >= 0.0


def test_timer_elapsed_unknown_is_zero():
    timer = Timer()
    assert timer.elapsed("missing") == 0.0
    assert "missing" in timer.durations


def test_timer_log_format(capsys):
    timer = Timer()
    with patch.object(time, "perf_counter", side_effect=[1.0, 1.25]):
        timer.tick("step")
        timer.tock("step")
    timer.log("step")
    assert capsys.readouterr().out == "step::250ms\n"


def test_timer_log_all_sorted(capsys):
    timer = Timer()
    for name in ["zeta", "alpha", "mid"]:
        timer.tick(name)
        timer.tock(name)
    timer.log_all()
    lines = capsys.readouterr().out.splitlines()
    names = [line.split("::")[0] for line in lines]
    assert names == sorted(["zeta", "alpha", "mid"])
    assert all(line.endswith("ms") for line in lines)


def test_timer_reset_clears():
    timer = Timer()
    timer.tick("a")
    timer.reset()
    assert timer.durations == {}