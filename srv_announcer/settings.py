from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass

from .errors import ConfigError
from .models import SRVRecordSpec, build_record_spec

ENV_PREFIX = "SRV_ANNOUNCER_"

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def env_name(flag: str) -> str:
    """--srv-record-ttl -> SRV_ANNOUNCER_SRV_RECORD_TTL"""
    return ENV_PREFIX + flag.lstrip("-").replace("-", "_").upper()


_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "no", "n", "off", ""}


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean like true or false, got {raw!r}")


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def env_str(name: str, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw


def parse_duration(raw: str) -> float:
    """Parse '500ms', '10s', '1m30s', '1h' or a bare number of seconds."""
    text = str(raw).strip().lower()
    if not text:
        raise ValueError("empty duration")
    try:
        value = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(value):
            raise ValueError(f"invalid duration {raw!r}")
        return value
    pos = 0
    total = 0.0
    for m in _DURATION_PART_RE.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {raw!r}")
    return total


def env_duration(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return parse_duration(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a duration like 10s or 500ms, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    srv_record_name: str
    srv_record_target: str
    zone_name: str | None = None
    srv_record_ttl: int = 60
    srv_record_priority: int = 10
    srv_record_weight: int = 10
    srv_record_port: int = 443

    check_target: str | None = None
    check_url: str | None = None
    check_interval_s: float = 10.0
    check_timeout_s: float = 1.0

    dry_run: bool = False
    log_level: str = "info"

    # 0 disables the status API.
    status_port: int = 0
    status_host: str = "0.0.0.0"

    def validate(self) -> None:
        if not self.srv_record_name:
            raise ConfigError("srv-record-name needs to be specified")
        if not self.srv_record_target:
            raise ConfigError("srv-record-target needs to be specified")
        if not self.dry_run and not self.zone_name:
            raise ConfigError("Zone name needs to be specified")
        if self.check_interval_s <= 0:
            raise ConfigError("check-interval must be positive")
        if self.check_timeout_s <= 0:
            raise ConfigError("check-timeout must be positive")
        if not 0 <= self.status_port <= 65535:
            raise ConfigError("status-port must be between 0 and 65535")
        self.record_spec()

    def record_spec(self) -> SRVRecordSpec:
        return build_record_spec(
            target=self.srv_record_target,
            port=self.srv_record_port,
            priority=self.srv_record_priority,
            weight=self.srv_record_weight,
            ttl=self.srv_record_ttl,
        )

    @property
    def target_is_fqdn(self) -> bool:
        return self.srv_record_target.endswith(".")

    def derived_check_target(self) -> str:
        """hostname:port to dial, derived from the SRV target when unset."""
        if self.check_target:
            return self.check_target
        return f"{self.srv_record_target.rstrip('.')}:{self.srv_record_port}"
