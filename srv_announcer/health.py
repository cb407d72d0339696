from __future__ import annotations

import ipaddress
import logging
import queue
import socket
import threading
import time
from typing import Protocol

import httpx

from .errors import ConfigError, HealthcheckError

logger = logging.getLogger(__name__)


class HealthSource(Protocol):
    """Produces health signals for one target until ``stop`` is set.

    Implementations put ``True``/``False`` on ``out`` and must not put anything
    once ``stop`` has been observed.
    """

    def run(self, stop: threading.Event, out: "queue.Queue[bool]") -> None: ...


def split_host_port(target: str) -> tuple[str, int]:
    """'host:port' or '[v6addr]:port' -> (host, port)."""
    host, sep, port_s = target.rpartition(":")
    if not sep or not host or not port_s:
        raise ConfigError(f"Check target {target!r} must be in host:port form")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_s)
    except ValueError:
        raise ConfigError(f"Check target {target!r} has an invalid port") from None
    if not 0 < port <= 65535:
        raise ConfigError(f"Check target {target!r} has an out of range port")
    check_hostname(host)
    return host, port


def check_hostname(host: str) -> None:
    """IP literals pass; names need 1-63 char labels and 253 chars overall."""
    try:
        ipaddress.ip_address(host)
        return
    except ValueError:
        pass
    name = host[:-1] if host.endswith(".") else host
    if not name or len(name) > 253:
        raise ConfigError(f"Check host {host!r} is not a valid hostname")
    for label in name.split("."):
        if not 0 < len(label) <= 63:
            raise ConfigError(f"Check host {host!r} has an empty or too long label")


def dial(host: str, port: int, timeout_s: float) -> float:
    """Open and close a TCP connection. Returns latency in ms."""
    start = time.monotonic()
    try:
        with socket.create_connection((host, port), timeout=timeout_s):
            pass
    except (OSError, ValueError) as e:
        # ValueError covers UnicodeError from the idna codec on odd hostnames.
        raise HealthcheckError(f"dial {host}:{port}: {e}") from e
    return round((time.monotonic() - start) * 1000.0, 2)


def check_health(url: str, timeout_s: float = 2.0) -> tuple[bool, str, float | None]:
    """GET a health URL. Healthy iff the response is HTTP 200.

    Returns (is_healthy, message, latency_ms).
    """
    start = time.monotonic()
    try:
        with httpx.Client(timeout=timeout_s, follow_redirects=False) as client:
            resp = client.get(url)
        latency_ms = round((time.monotonic() - start) * 1000.0, 2)
        if resp.status_code != 200:
            return False, f"HTTP {resp.status_code}", latency_ms
        return True, "Healthy", latency_ms
    except (httpx.ConnectError, httpx.TimeoutException):
        latency_ms = round((time.monotonic() - start) * 1000.0, 2)
        return False, "No response", latency_ms
    except httpx.HTTPError as e:
        latency_ms = round((time.monotonic() - start) * 1000.0, 2)
        return False, f"Error: {type(e).__name__}: {e}", latency_ms


class _PeriodicHealthcheck:
    """Check right away, then once per interval, until stopped."""

    def __init__(self, timeout_s: float, interval_s: float):
        if timeout_s <= 0 or interval_s <= 0:
            raise ConfigError("check timeout and interval must be positive")
        self.timeout_s = float(timeout_s)
        self.interval_s = float(interval_s)

    def check_once(self) -> bool:
        raise NotImplementedError

    def run(self, stop: threading.Event, out: "queue.Queue[bool]") -> None:
        while not stop.is_set():
            try:
                healthy = self.check_once()
            except Exception as e:
                logger.error("Healthcheck failed: %s: %s", type(e).__name__, e)
                healthy = False
            if stop.is_set():
                return
            out.put(healthy)
            if stop.wait(self.interval_s):
                return


class TcpHealthcheck(_PeriodicHealthcheck):
    """Healthy when a TCP connection to ``target`` succeeds within the timeout."""

    def __init__(self, target: str, timeout_s: float = 1.0, interval_s: float = 10.0):
        super().__init__(timeout_s, interval_s)
        self.target = target
        self.host, self.port = split_host_port(target)

    def check_once(self) -> bool:
        try:
            latency = dial(self.host, self.port, self.timeout_s)
        except HealthcheckError as e:
            logger.debug("Healthcheck of %s failed: %s", self.target, e)
            return False
        logger.debug("Healthcheck of %s succeeded in %sms", self.target, latency)
        return True


class HttpHealthcheck(_PeriodicHealthcheck):
    """Healthy when GET ``url`` answers HTTP 200 within the timeout."""

    def __init__(self, url: str, timeout_s: float = 1.0, interval_s: float = 10.0):
        super().__init__(timeout_s, interval_s)
        if not url.startswith(("http://", "https://")):
            raise ConfigError(f"Check URL {url!r} must start with http:// or https://")
        self.url = url

    def check_once(self) -> bool:
        ok, msg, latency = check_health(self.url, timeout_s=self.timeout_s)
        logger.debug("Healthcheck of %s: %s (%sms)", self.url, msg, latency)
        return ok


class MockHealthcheck:
    """Forwards whatever is put on ``health_c`` until stopped."""

    def __init__(self, poll_s: float = 0.05) -> None:
        self.health_c: "queue.Queue[bool]" = queue.Queue()
        self.poll_s = poll_s

    def run(self, stop: threading.Event, out: "queue.Queue[bool]") -> None:
        while not stop.is_set():
            try:
                health = self.health_c.get(timeout=self.poll_s)
            except queue.Empty:
                continue
            if stop.is_set():
                return
            out.put(health)
