from __future__ import annotations


class AnnouncerError(Exception):
    """Base class for errors raised by srv-announcer."""


class ConfigError(AnnouncerError):
    """Misconfiguration. Not retryable; the process exits non-zero."""


class BackendError(AnnouncerError):
    """Transient DNS backend failure (network, throttling, API errors)."""


class HealthcheckError(AnnouncerError):
    """A single failed health check. Health checks turn it into a False signal."""
