from __future__ import annotations

import argparse
import json
import sys

import requests

from . import __version__, lifecycle
from .errors import ConfigError
from .logging_config import configure_logging
from .settings import Settings, env_bool, env_duration, env_int, env_name, env_str, parse_duration


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _duration(raw: str) -> float:
    try:
        return parse_duration(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _add_run_flags(p: argparse.ArgumentParser) -> None:
    def env(flag: str) -> str:
        return f"[${env_name(flag)}]"

    p.add_argument(
        "-l",
        "--log-level",
        help=f"The level at which to log (trace|debug|info|warn|error|fatal|panic), defaults to info {env('log-level')}",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help=f"Don't actually update DNS, only log what would be done {env('dry-run')}",
    )
    p.add_argument(
        "--zone-name",
        help=f"Name of the Route 53 zone the records to manage are in {env('zone-name')}",
    )
    p.add_argument(
        "--srv-record-name",
        help=f"RFC2782 name (_service._proto.name), required {env('srv-record-name')}",
    )
    p.add_argument(
        "--srv-record-ttl",
        type=int,
        help=f"TTL of the RFC2782 SRV record set in seconds, defaults to 60 {env('srv-record-ttl')}",
    )
    p.add_argument(
        "--srv-record-priority",
        type=int,
        help=f"Priority of the RFC2782 SRV record, defaults to 10 {env('srv-record-priority')}",
    )
    p.add_argument(
        "--srv-record-weight",
        type=int,
        help=f"Weight of the RFC2782 SRV record, defaults to 10 {env('srv-record-weight')}",
    )
    p.add_argument(
        "--srv-record-port",
        type=int,
        help=f"Port of the RFC2782 SRV record, defaults to 443 {env('srv-record-port')}",
    )
    p.add_argument(
        "--srv-record-target",
        help=f"Target of the RFC2782 SRV record, usually your hostname ending with a dot, required {env('srv-record-target')}",
    )
    p.add_argument(
        "--check-target",
        help=f"hostname:port to check. Derived from --srv-record-target and --srv-record-port if unset {env('check-target')}",
    )
    p.add_argument(
        "--check-url",
        help=f"Check this URL over HTTP (healthy on 200) instead of dialing TCP {env('check-url')}",
    )
    p.add_argument(
        "--check-interval",
        type=_duration,
        help=f"Interval between checks, defaults to 10s {env('check-interval')}",
    )
    p.add_argument(
        "--check-timeout",
        type=_duration,
        help=f"Timeout for each check, defaults to 1s {env('check-timeout')}",
    )
    p.add_argument(
        "--status-port",
        type=int,
        help=f"Serve /healthz, /status and /events on this port, 0 disables {env('status-port')}",
    )
    p.add_argument(
        "--status-host",
        help=f"Address the status API binds to, defaults to 0.0.0.0 {env('status-host')}",
    )


def _resolve(value, flag: str, read, default=None):
    """Command line wins, then SRV_ANNOUNCER_* from the environment, then the default."""
    if value is not None:
        return value
    return read(env_name(flag), default)


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Raises ConfigError when an SRV_ANNOUNCER_* value can't be parsed."""
    return Settings(
        srv_record_name=_resolve(args.srv_record_name, "srv-record-name", env_str) or "",
        srv_record_target=_resolve(args.srv_record_target, "srv-record-target", env_str) or "",
        zone_name=_resolve(args.zone_name, "zone-name", env_str),
        srv_record_ttl=_resolve(args.srv_record_ttl, "srv-record-ttl", env_int, 60),
        srv_record_priority=_resolve(args.srv_record_priority, "srv-record-priority", env_int, 10),
        srv_record_weight=_resolve(args.srv_record_weight, "srv-record-weight", env_int, 10),
        srv_record_port=_resolve(args.srv_record_port, "srv-record-port", env_int, 443),
        check_target=_resolve(args.check_target, "check-target", env_str),
        check_url=_resolve(args.check_url, "check-url", env_str),
        check_interval_s=_resolve(args.check_interval, "check-interval", env_duration, 10.0),
        check_timeout_s=_resolve(args.check_timeout, "check-timeout", env_duration, 1.0),
        dry_run=_resolve(args.dry_run, "dry-run", env_bool, False),
        log_level=_resolve(args.log_level, "log-level", env_str, "info"),
        status_port=_resolve(args.status_port, "status-port", env_int, 0),
        status_host=_resolve(args.status_host, "status-host", env_str, "0.0.0.0"),
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="srv-announcer",
        description="Sidecar managing DNS records in an SRV record set (RFC2782), "
        "a poor man's alternative to proper service discovery",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_run = sub.add_parser("run", help="Health check the target and keep the SRV record in sync")
    _add_run_flags(s_run)

    s_status = sub.add_parser("status", help="Show the status of a running announcer")
    s_status.add_argument("--api", default="http://localhost:8080", help="Status API base URL")
    s_status.add_argument("--events", type=int, default=0, help="Also show this many recent events")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.cmd == "run":
        try:
            settings = settings_from_args(args)
            configure_logging(settings.log_level)
        except ConfigError as e:
            print(f"srv-announcer: {e}", file=sys.stderr)
            return 1
        return lifecycle.run(settings)

    if args.cmd == "status":
        base = args.api.rstrip("/")
        try:
            r = requests.get(f"{base}/status", timeout=10)
            out = {"status": r.json()}
            if r.ok and args.events > 0:
                ev = requests.get(f"{base}/events", params={"limit": args.events}, timeout=10)
                out["events"] = ev.json()
        except (requests.RequestException, ValueError) as e:
            print(f"srv-announcer: unable to query {base}: {e}", file=sys.stderr)
            return 1
        _print(out)
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
