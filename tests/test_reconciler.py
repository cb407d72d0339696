import logging
import queue
import threading
import time

import pytest

from conftest import FakeRecordManager
from srv_announcer.errors import BackendError, ConfigError
from srv_announcer.reconciler import Reconciler
from srv_announcer.records import DryRunRecordManager
from srv_announcer.runtime import RuntimeState


def _feed(reconciler, signals):
    for s in signals:
        reconciler.handle(s)


def _wait_for(cond, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if cond():
            return True
        time.sleep(0.01)
    return cond()


def test_only_state_changes_reach_the_backend(manager, spec):
    r = Reconciler(manager, spec)
    _feed(r, [True, True, False, False, True])

    assert manager.calls == ["add", "remove", "add"]
    assert manager.records == [spec.value]


def test_first_unhealthy_signal_removes_record(manager, spec):
    manager.records.append(spec.value)
    r = Reconciler(manager, spec)
    _feed(r, [False, True, True, False])

    assert manager.calls == ["remove", "add", "remove"]
    assert manager.records == []
    assert r.last_known is False


def test_handle_reports_whether_backend_was_called(manager, spec):
    r = Reconciler(manager, spec)
    assert r.handle(True) is True
    assert r.handle(True) is False
    assert r.handle(False) is True


def test_backend_error_is_retried_on_next_identical_signal(manager, spec):
    manager.failures.append(BackendError("throttled"))
    runtime = RuntimeState()
    r = Reconciler(manager, spec, runtime=runtime)

    r.handle(True)
    assert manager.records == []
    assert r.last_known is None

    r.handle(True)
    assert manager.calls == ["add", "add"]
    assert manager.records == [spec.value]
    assert r.last_known is True

    # Converged: further identical signals are no-ops again.
    r.handle(True)
    assert manager.calls == ["add", "add"]

    snap = runtime.snapshot()
    assert snap["backend_failures"] == 1
    assert snap["transitions"] == 1
    assert snap["observations"] == 3
    assert snap["last_applied"] is True


def test_failed_remove_keeps_previous_applied_state(manager, spec):
    r = Reconciler(manager, spec)
    r.handle(True)
    manager.failures.append(BackendError("network down"))
    r.handle(False)
    assert r.last_known is True
    assert manager.records == [spec.value]

    # Back to healthy before the retry happened: record is already there.
    r.handle(True)
    assert manager.calls == ["add", "remove"]

    r.handle(False)
    assert manager.calls == ["add", "remove", "remove"]
    assert manager.records == []


def test_config_error_propagates(manager, spec):
    manager.failures.append(ConfigError("no such zone"))
    r = Reconciler(manager, spec)
    with pytest.raises(ConfigError):
        r.handle(True)
    assert r.last_known is None


def test_run_returns_immediately_when_already_cancelled(manager, spec):
    stop = threading.Event()
    stop.set()
    signals = queue.Queue()
    signals.put(True)

    Reconciler(manager, spec, poll_s=0.01).run(stop, signals)

    assert manager.calls == []


def test_run_stops_on_cancellation_without_further_calls(manager, spec):
    stop = threading.Event()
    signals = queue.Queue()
    runtime = RuntimeState()
    r = Reconciler(manager, spec, runtime=runtime, poll_s=0.01)
    t = threading.Thread(target=r.run, args=(stop, signals))
    t.start()

    signals.put(True)
    signals.put(True)
    signals.put(False)
    assert _wait_for(lambda: manager.calls == ["add", "remove"])
    assert runtime.snapshot()["running"] is True

    stop.set()
    t.join(1.0)
    assert not t.is_alive()

    signals.put(True)
    time.sleep(0.05)
    assert manager.calls == ["add", "remove"]
    assert runtime.snapshot()["running"] is False


def test_run_raises_config_error(spec):
    manager = FakeRecordManager()
    manager.failures.append(ConfigError("record set cannot be resolved"))
    stop = threading.Event()
    signals = queue.Queue()
    signals.put(True)

    with pytest.raises(ConfigError):
        Reconciler(manager, spec, poll_s=0.01).run(stop, signals)


def _transition_lines(caplog):
    return [r.getMessage() for r in caplog.records if r.name == "srv_announcer.reconciler"]


def test_dry_run_logs_same_transitions_as_live(manager, spec, caplog):
    sequence = [True, True, False, True, False, False]

    with caplog.at_level(logging.DEBUG):
        _feed(Reconciler(manager, spec, record_name="_https._tcp.example.com"), sequence)
    live = _transition_lines(caplog)
    caplog.clear()

    with caplog.at_level(logging.DEBUG):
        _feed(Reconciler(DryRunRecordManager("_https._tcp.example.com"), spec, record_name="_https._tcp.example.com"), sequence)
    dry = _transition_lines(caplog)
    dry_run_lines = [r.getMessage() for r in caplog.records if r.name == "srv_announcer.records"]

    assert live == dry
    assert any("adding" in line for line in live)
    assert any("removing" in line for line in live)
    assert len(dry_run_lines) == 4
    assert all(line.startswith("[dry-run]") for line in dry_run_lines)


def test_backend_failure_is_logged_with_context(manager, spec, caplog):
    manager.failures.append(BackendError("connection reset"))
    with caplog.at_level(logging.WARNING):
        Reconciler(manager, spec).handle(True)

    msgs = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert len(msgs) == 1
    assert "add" in msgs[0]
    assert spec.target in msgs[0]
    assert "connection reset" in msgs[0]
