"""srv-announcer.

Sidecar that keeps a DNS SRV record set (RFC 2782) in sync with the health of a
single endpoint, a poor man's alternative to proper service discovery:
 - a health source checks the endpoint on an interval
 - the reconciler turns health transitions into add/remove calls
 - a record manager applies them to Route 53 (or only logs them in dry-run mode)
"""

__version__ = "0.3.0"
