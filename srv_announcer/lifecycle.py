from __future__ import annotations

import logging
import queue
import signal
import threading
from typing import Any, Callable

from .errors import ConfigError
from .health import HealthSource, HttpHealthcheck, TcpHealthcheck
from .reconciler import Reconciler
from .records import DryRunRecordManager, RecordManager, Route53RecordManager, find_zone_id, new_route53_client
from .runtime import RuntimeState
from .settings import Settings
from .status import StatusServer, create_app

logger = logging.getLogger(__name__)


def install_signal_handlers(stop: threading.Event) -> None:
    """SIGINT/SIGTERM cancel the shared stop event. Main thread only."""

    def _handler(signum: int, _frame: Any) -> None:
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def build_record_manager(settings: Settings, client_factory: Callable[[], Any] = new_route53_client) -> RecordManager:
    if settings.dry_run:
        logger.info("Dry-run mode, DNS will not be modified")
        return DryRunRecordManager(settings.srv_record_name)
    if not settings.zone_name:
        raise ConfigError("Zone name needs to be specified")
    client = client_factory()
    zone_id = find_zone_id(client, settings.zone_name)
    logger.info("Using hosted zone %s (%s)", settings.zone_name, zone_id)
    return Route53RecordManager(client, zone_id, settings.srv_record_name)


def build_health_source(settings: Settings) -> HealthSource:
    if settings.check_url:
        logger.info("Checking %s every %ss", settings.check_url, settings.check_interval_s)
        return HttpHealthcheck(settings.check_url, settings.check_timeout_s, settings.check_interval_s)
    if not settings.check_target:
        logger.info(
            "Check target %s derived from srv-record-target and srv-record-port", settings.derived_check_target()
        )
    return TcpHealthcheck(settings.derived_check_target(), settings.check_timeout_s, settings.check_interval_s)


def run(
    settings: Settings,
    *,
    manager: RecordManager | None = None,
    source: HealthSource | None = None,
    stop: threading.Event | None = None,
    install_signals: bool = True,
    client_factory: Callable[[], Any] = new_route53_client,
) -> int:
    """Run the announcer until cancelled. Returns the process exit code."""
    try:
        settings.validate()
        spec = settings.record_spec()
        if not settings.target_is_fqdn:
            logger.warning(
                "The target of the RFC2782 SRV Record doesn't end with a dot, "
                "which is probably not what you want. Continuing anyway."
            )
        if manager is None:
            manager = build_record_manager(settings, client_factory)
        if source is None:
            source = build_health_source(settings)
    except ConfigError as e:
        logger.error("Startup failed: %s", e)
        return 1

    if stop is None:
        stop = threading.Event()
    if install_signals:
        install_signal_handlers(stop)

    runtime = RuntimeState()
    signals: "queue.Queue[bool]" = queue.Queue()
    reconciler = Reconciler(manager, spec, record_name=settings.srv_record_name, runtime=runtime)

    status_server: StatusServer | None = None
    if settings.status_port:
        app = create_app(runtime, spec, settings.srv_record_name, dry_run=settings.dry_run)
        status_server = StatusServer(app, settings.status_host, settings.status_port)
        status_server.start()

    checker = threading.Thread(target=source.run, args=(stop, signals), name="healthcheck", daemon=True)
    checker.start()
    try:
        reconciler.run(stop, signals)
    except ConfigError as e:
        logger.error("Fatal configuration error, stopping: %s", e)
        return 1
    finally:
        stop.set()
        checker.join(settings.check_timeout_s + 1.0)
        if checker.is_alive():
            logger.warning("Healthcheck did not stop in time")
        if status_server:
            status_server.stop()
    logger.info("Shut down cleanly")
    return 0
