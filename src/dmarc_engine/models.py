"""Shared data contracts between all dmarc-engine modules. Zero logic here."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


# ── Enums ──────────────────────────────────────────────────────────────────────

class Disposition(Enum):
    NONE = "none"
    QUARANTINE = "quarantine"
    REJECT = "reject"


class AlignmentMode(Enum):
    STRICT = "s"
    RELAXED = "r"


class DnsStatus(Enum):
    NOERROR = "NOERROR"
    NXDOMAIN = "NXDOMAIN"
    SERVFAIL = "SERVFAIL"
    TIMEOUT = "TIMEOUT"
    ERROR = "ERROR"


TEMPORARY_DNS_STATUSES = frozenset({DnsStatus.SERVFAIL, DnsStatus.TIMEOUT, DnsStatus.ERROR})


class Reason:
    """Decision reason tags."""

    DKIM_ALIGNED = "dkim_aligned"
    SPF_ALIGNED = "spf_aligned"
    NOT_ALIGNED = "not_aligned"
    PCT_SAMPLED_OUT = "pct_sampled_out"
    NO_POLICY = "no_policy"
    NO_FROM_HOST = "no_from_host"
    DOMAIN_NOT_IN_DNS = "domain_not_in_dns"
    DNS_TEMPERROR = "dns_temperror"


# ── DNS Layer ──────────────────────────────────────────────────────────────────

@dataclass
class DnsRecord:
    record_type: str
    value: str
    ttl: int


@dataclass
class DnsResponse:
    domain: str
    record_type: str
    status: DnsStatus
    records: list = field(default_factory=list)  # list[DnsRecord]
    resolver_used: str = ""
    response_time_ms: float = 0.0
    cache_hit: bool = False
    queried_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_temporary_failure(self) -> bool:
        return self.status in TEMPORARY_DNS_STATUSES


# ── Policy Layer ───────────────────────────────────────────────────────────────

@dataclass
class Policy:
    p: Disposition
    domain: str                       # zone the record was published at
    sp: Optional[Disposition] = None
    adkim: AlignmentMode = AlignmentMode.RELAXED
    aspf: AlignmentMode = AlignmentMode.RELAXED
    pct: int = 100
    rua: Optional[str] = None
    ruf: Optional[str] = None
    raw_record: Optional[str] = None
    repaired: bool = False            # invalid p/sp forced to p=none


@dataclass
class Discovery:
    policy: Optional[Policy] = None
    temporary_error: bool = False
    org_domain_used: bool = False


# ── Decision Layer ─────────────────────────────────────────────────────────────

@dataclass
class Decision:
    aligned: bool
    disposition: Disposition
    reason: str
    from_host: Optional[str] = None
    policy: Optional[Policy] = None
    sampled_out: bool = False
