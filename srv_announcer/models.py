from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError


class SRVRecordSpec(BaseModel):
    """The single SRV record this process manages. Built once at startup."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., min_length=1, max_length=253, description="Target FQDN, usually dot-terminated")
    port: int = Field(443, ge=0, le=65535)
    priority: int = Field(10, ge=0, le=65535)
    weight: int = Field(10, ge=0, le=65535)
    ttl: int = Field(60, ge=1, le=2147483647, description="TTL of the record set in seconds")

    @property
    def value(self) -> str:
        """RDATA in zone-file order: priority weight port target."""
        return f"{self.priority} {self.weight} {self.port} {self.target}"

    def __str__(self) -> str:
        return self.value


def build_record_spec(target: str, port: int, priority: int, weight: int, ttl: int) -> SRVRecordSpec:
    try:
        return SRVRecordSpec(target=target, port=port, priority=priority, weight=weight, ttl=ttl)
    except ValidationError as e:
        raise ConfigError(f"Invalid SRV record: {e}") from e


class StatusResponse(BaseModel):
    record_name: str
    record: SRVRecordSpec
    dry_run: bool
    running: bool
    last_observed: bool | None = Field(None, description="Most recent health signal")
    last_applied: bool | None = Field(None, description="State last applied to DNS successfully")
    observations: int = 0
    transitions: int = 0
    backend_failures: int = 0
    started_at: str
    updated_at: str


class EventOut(BaseModel):
    ts: str
    level: str
    message: str
