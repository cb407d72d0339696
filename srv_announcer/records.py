from __future__ import annotations

import logging
from typing import Any, Protocol

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import BackendError, ConfigError
from .models import SRVRecordSpec

logger = logging.getLogger(__name__)

# Route 53 error codes that no amount of retrying will fix.
CONFIG_ERROR_CODES = {
    "NoSuchHostedZone",
    "InvalidInput",
    "InvalidDomainName",
    "AccessDenied",
    "AccessDeniedException",
}


class RecordManager(Protocol):
    """Idempotent add/remove of one SRV record in one record set."""

    def add_record(self, spec: SRVRecordSpec) -> None: ...

    def remove_record(self, spec: SRVRecordSpec) -> None: ...


def fqdn(name: str) -> str:
    return name if name.endswith(".") else f"{name}."


def same_srv_value(a: str, b: str) -> bool:
    """Compare SRV RDATA ignoring case and a trailing dot on the target."""
    pa, pb = a.split(), b.split()
    if len(pa) != 4 or len(pb) != 4:
        return a.strip() == b.strip()
    return pa[:3] == pb[:3] and pa[3].rstrip(".").lower() == pb[3].rstrip(".").lower()


class DryRunRecordManager:
    """Only logs what would be done. Never fails."""

    def __init__(self, record_name: str = "") -> None:
        self.record_name = record_name

    def add_record(self, spec: SRVRecordSpec) -> None:
        logger.info("[dry-run] would add SRV record '%s' to %s", spec, self.record_name or "record set")

    def remove_record(self, spec: SRVRecordSpec) -> None:
        logger.info("[dry-run] would remove SRV record '%s' from %s", spec, self.record_name or "record set")


def new_route53_client(timeout_s: float = 10.0, max_attempts: int = 3) -> Any:
    """Route 53 client with bounded timeouts. Credentials come from the usual AWS chain."""
    cfg = BotoConfig(
        connect_timeout=timeout_s,
        read_timeout=timeout_s,
        retries={"max_attempts": max_attempts, "mode": "standard"},
    )
    return boto3.client("route53", config=cfg)


def find_zone_id(client: Any, zone_name: str) -> str:
    """Look up a hosted zone by name and return its bare id (no /hostedzone/ prefix)."""
    wanted = fqdn(zone_name).lower()
    try:
        resp = client.list_hosted_zones_by_name(DNSName=wanted, MaxItems="1")
    except (ClientError, BotoCoreError) as e:
        raise ConfigError(f"Unable to look up hosted zone {zone_name!r}: {e}") from e
    zones = resp.get("HostedZones", [])
    if not zones or fqdn(zones[0]["Name"]).lower() != wanted:
        raise ConfigError(f"Hosted zone {zone_name!r} not found")
    return zones[0]["Id"].rsplit("/", 1)[-1]


class Route53RecordManager:
    """Manages one value inside an SRV record set of a Route 53 hosted zone.

    Values owned by other announcers in the same record set are left alone.
    """

    def __init__(self, client: Any, zone_id: str, record_name: str):
        if not zone_id:
            raise ConfigError("Route 53 zone id is empty")
        self.client = client
        self.zone_id = zone_id
        self.record_name = fqdn(record_name)

    def add_record(self, spec: SRVRecordSpec) -> None:
        current = self._get_record_set()
        values = self._values(current)
        if any(same_srv_value(v, spec.value) for v in values):
            logger.debug("SRV record '%s' already present in %s", spec, self.record_name)
            return
        self._change("UPSERT", self._record_set(values + [spec.value], spec.ttl))
        logger.info("Added SRV record '%s' to %s", spec, self.record_name)

    def remove_record(self, spec: SRVRecordSpec) -> None:
        current = self._get_record_set()
        values = self._values(current)
        remaining = [v for v in values if not same_srv_value(v, spec.value)]
        if len(remaining) == len(values):
            logger.debug("SRV record '%s' already absent from %s", spec, self.record_name)
            return
        if remaining:
            self._change("UPSERT", self._record_set(remaining, int(current.get("TTL", spec.ttl))))
        else:
            # Route 53 has no empty record sets; DELETE must match the current set exactly.
            self._change("DELETE", current)
        logger.info("Removed SRV record '%s' from %s", spec, self.record_name)

    def _record_set(self, values: list[str], ttl: int) -> dict[str, Any]:
        return {
            "Name": self.record_name,
            "Type": "SRV",
            "TTL": int(ttl),
            "ResourceRecords": [{"Value": v} for v in values],
        }

    @staticmethod
    def _values(record_set: dict[str, Any] | None) -> list[str]:
        if not record_set:
            return []
        return [r["Value"] for r in record_set.get("ResourceRecords", [])]

    def _get_record_set(self) -> dict[str, Any] | None:
        try:
            resp = self.client.list_resource_record_sets(
                HostedZoneId=self.zone_id,
                StartRecordName=self.record_name,
                StartRecordType="SRV",
                MaxItems="1",
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate("list record sets", e) from e
        for rs in resp.get("ResourceRecordSets", []):
            if fqdn(rs["Name"]).lower() == self.record_name.lower() and rs["Type"] == "SRV":
                return rs
        return None

    def _change(self, action: str, record_set: dict[str, Any] | None) -> None:
        try:
            self.client.change_resource_record_sets(
                HostedZoneId=self.zone_id,
                ChangeBatch={
                    "Comment": "srv-announcer",
                    "Changes": [{"Action": action, "ResourceRecordSet": record_set}],
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(f"{action} {self.record_name}", e) from e

    def _translate(self, op: str, e: Exception) -> Exception:
        if isinstance(e, ClientError):
            code = e.response.get("Error", {}).get("Code", "")
            if code in CONFIG_ERROR_CODES:
                return ConfigError(f"Route 53 {op} in zone {self.zone_id} failed ({code}): {e}")
        return BackendError(f"Route 53 {op} in zone {self.zone_id} failed: {e}")
