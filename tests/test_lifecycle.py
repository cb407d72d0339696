import os
import signal
import threading
import time

import pytest

from conftest import FakeRecordManager
from srv_announcer import lifecycle
from srv_announcer.errors import ConfigError
from srv_announcer.health import HttpHealthcheck, MockHealthcheck, TcpHealthcheck
from srv_announcer.records import DryRunRecordManager, Route53RecordManager
from srv_announcer.settings import Settings


def _settings(**kw):
    base = dict(
        srv_record_name="_https._tcp.example.com",
        srv_record_target="web-1.example.com.",
        zone_name="example.com",
        check_timeout_s=0.1,
    )
    base.update(kw)
    return Settings(**base)


class _RecordingSource:
    def __init__(self):
        self.started = False

    def run(self, stop, out):
        self.started = True
        stop.wait()


class _FakeRoute53:
    def __init__(self, zones):
        self.zones = zones

    def list_hosted_zones_by_name(self, DNSName, MaxItems):
        return {"HostedZones": self.zones, "IsTruncated": False, "MaxItems": MaxItems}


def _run_in_thread(**kwargs):
    result = {}
    t = threading.Thread(target=lambda: result.setdefault("rc", lifecycle.run(**kwargs)))
    t.start()
    return t, result


def _wait_for(cond, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if cond():
            return True
        time.sleep(0.01)
    return cond()


def test_clean_shutdown_exits_zero():
    manager = FakeRecordManager()
    source = MockHealthcheck(poll_s=0.01)
    stop = threading.Event()
    t, result = _run_in_thread(
        settings=_settings(), manager=manager, source=source, stop=stop, install_signals=False
    )

    for v in (False, True, True, False):
        source.health_c.put(v)
    assert _wait_for(lambda: manager.calls == ["remove", "add", "remove"])

    stop.set()
    t.join(2.0)
    assert not t.is_alive()
    assert result["rc"] == 0
    assert manager.records == []


def test_zone_lookup_failure_prevents_start():
    source = _RecordingSource()
    rc = lifecycle.run(
        _settings(),
        source=source,
        install_signals=False,
        client_factory=lambda: _FakeRoute53([]),
    )
    assert rc == 1
    assert source.started is False


def test_invalid_settings_exit_non_zero():
    source = _RecordingSource()
    rc = lifecycle.run(_settings(zone_name=None), source=source, install_signals=False)
    assert rc == 1
    assert source.started is False


def test_malformed_check_host_exits_one_before_start():
    manager = FakeRecordManager()
    rc = lifecycle.run(_settings(check_target="a..example.com:443"), manager=manager, install_signals=False)
    assert rc == 1
    assert manager.calls == []


def test_fatal_engine_error_stops_health_source():
    manager = FakeRecordManager()
    manager.failures.append(ConfigError("record set vanished with its zone"))
    source = MockHealthcheck(poll_s=0.01)
    stop = threading.Event()
    source.health_c.put(True)

    rc = lifecycle.run(_settings(), manager=manager, source=source, stop=stop, install_signals=False)

    assert rc == 1
    assert stop.is_set()


def test_build_record_manager_dry_run():
    assert isinstance(lifecycle.build_record_manager(_settings(dry_run=True)), DryRunRecordManager)


def test_build_record_manager_route53():
    client = _FakeRoute53([{"Id": "/hostedzone/ZABC", "Name": "example.com.", "CallerReference": "r"}])
    m = lifecycle.build_record_manager(_settings(), client_factory=lambda: client)
    assert isinstance(m, Route53RecordManager)
    assert m.zone_id == "ZABC"
    assert m.record_name == "_https._tcp.example.com."


def test_build_record_manager_needs_zone():
    with pytest.raises(ConfigError):
        lifecycle.build_record_manager(_settings(zone_name=None))


def test_build_health_source():
    tcp = lifecycle.build_health_source(_settings(srv_record_port=8443))
    assert isinstance(tcp, TcpHealthcheck)
    assert (tcp.host, tcp.port) == ("web-1.example.com", 8443)

    http = lifecycle.build_health_source(_settings(check_url="http://127.0.0.1:8080/health"))
    assert isinstance(http, HttpHealthcheck)


def test_sigterm_sets_stop_event():
    saved = {s: signal.getsignal(s) for s in (signal.SIGINT, signal.SIGTERM)}
    stop = threading.Event()
    try:
        lifecycle.install_signal_handlers(stop)
        os.kill(os.getpid(), signal.SIGTERM)
        assert stop.wait(1.0)
    finally:
        for s, h in saved.items():
            signal.signal(s, h)
