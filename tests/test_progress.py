# tests/test_progress.py
import logging
import threading

import pytest

from fastrmsds.analysis.progress import ProgressReporter, format_duration


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def test_format_duration():
    assert format_duration(None) == "?"
    assert format_duration(0) == "0:00:00"
    assert format_duration(3725.4) == "1:02:05"
    assert format_duration(-3) == "0:00:00"


def test_emits_one_line_per_step(caplog):
    caplog.set_level(logging.INFO, logger="fastrmsds")
    log = logging.getLogger("fastrmsds.test.progress")
    p = ProgressReporter(100, step=0.1, logger=log).start()
    for _ in range(100):
        p.update()
    assert p.completed == 100
    assert p.lines_emitted == 10
    lines = [r.getMessage() for r in caplog.records if r.name == "fastrmsds.test.progress"]
    assert len(lines) == 10
    assert "100.0% complete (100/100)" in lines[-1]


def test_large_batch_emits_single_line():
    p = ProgressReporter(100, step=0.1, enabled=True).start()
    p.update(55)
    assert p.lines_emitted == 1
    p.update(4)
    assert p.lines_emitted == 1
    p.update(1)
    assert p.lines_emitted == 2


def test_remaining_projection_from_throughput():
    clock = FakeClock()
    p = ProgressReporter(10, clock=clock).start()
    assert p.remaining() is None
    clock.t = 4.0
    p.update(2)
    assert p.elapsed() == pytest.approx(4.0)
    assert p.remaining() == pytest.approx(16.0)
    p.update(8)
    assert p.remaining() == 0.0
    assert "remaining 0:00:00" in p.status_line()


def test_overflow_raises():
    p = ProgressReporter(3)
    p.update(3)
    with pytest.raises(ValueError):
        p.update()
    assert p.completed == 3
    with pytest.raises(ValueError):
        p.update(-1)


def test_invalid_construction():
    with pytest.raises(ValueError):
        ProgressReporter(-1)
    with pytest.raises(ValueError):
        ProgressReporter(10, step=0.0)
    with pytest.raises(ValueError):
        ProgressReporter(10, step=1.5)


def test_disabled_reporter_counts_silently(caplog):
    caplog.set_level(logging.INFO)
    p = ProgressReporter(10, enabled=False, logger=logging.getLogger("fastrmsds.quiet"))
    p.update(10)
    p.finish()
    assert p.completed == 10
    assert p.lines_emitted == 0
    assert not [r for r in caplog.records if r.name == "fastrmsds.quiet"]


def test_zero_total_is_complete():
    p = ProgressReporter(0)
    assert p.fraction == 1.0
    p.finish()
    assert p.finished


def test_finish_freezes_elapsed():
    clock = FakeClock()
    p = ProgressReporter(2, clock=clock).start()
    clock.t = 3.0
    p.update(2)
    p.finish()
    clock.t = 100.0
    assert p.elapsed() == pytest.approx(3.0)


def test_thread_safe_updates():
    total = 8 * 500
    p = ProgressReporter(total, step=0.01)

    def work():
        for _ in range(500):
            p.update()

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert p.completed == total
    assert p.lines_emitted == 100
