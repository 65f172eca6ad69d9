"""DNS query engine: resolver fallback, in-memory TTL cache, DMARC record fetching."""

import re
import threading
import time
from dataclasses import replace
from typing import Optional

import dns.exception
import dns.rdatatype
import dns.resolver
import structlog

from .exceptions import (
    DnsNxdomainError,
    DnsServfailError,
    DnsTimeoutError,
    InvalidDomainError,
)
from .models import DnsRecord, DnsResponse, DnsStatus

logger = structlog.get_logger(__name__)


# ── DNS Cache ──────────────────────────────────────────────────────────────────

class DnsCache:
    """In-memory cache with TTL enforcement. Thread-safe."""

    MAX_ENTRIES = 10_000
    MIN_TTL = 300
    MAX_TTL = 86_400
    NXDOMAIN_TTL = 300
    TEMPFAIL_TTL = 30

    def __init__(self):
        self._store: dict[str, tuple[DnsResponse, float]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _make_key(domain: str, record_type: str) -> str:
        return f"{record_type.upper()}:{domain.lower().rstrip('.')}"

    def get(self, domain: str, record_type: str) -> Optional[DnsResponse]:
        key = self._make_key(domain, record_type)
        with self._lock:
            if key not in self._store:
                return None
            response, expires_at = self._store[key]
            if time.monotonic() > expires_at:
                del self._store[key]
                return None
            return replace(response, cache_hit=True)

    def put(self, domain: str, record_type: str, response: DnsResponse) -> None:
        key = self._make_key(domain, record_type)
        expires_at = time.monotonic() + self._effective_ttl(response)
        with self._lock:
            if len(self._store) >= self.MAX_ENTRIES:
                self._evict_expired()
            self._store[key] = (response, expires_at)

    def _effective_ttl(self, response: DnsResponse) -> int:
        if response.is_temporary_failure:
            return self.TEMPFAIL_TTL
        if response.status == DnsStatus.NXDOMAIN:
            return self.NXDOMAIN_TTL
        if not response.records:
            return self.MIN_TTL
        raw_ttl = min(r.ttl for r in response.records)
        return max(self.MIN_TTL, min(self.MAX_TTL, raw_ttl))

    def flush(self) -> None:
        with self._lock:
            self._store.clear()

    def _evict_expired(self) -> None:
        now = time.monotonic()
        expired = [k for k, (_, exp) in self._store.items() if now > exp]
        for k in expired:
            del self._store[k]


# ── Resolver ───────────────────────────────────────────────────────────────────

_LABEL = r"_?[a-z0-9](?:[a-z0-9\-]{0,61}[a-z0-9])?"
_DOMAIN_PATTERN = re.compile(rf"^(?:{_LABEL}\.)*{_LABEL}$")

TIMEOUT = 5.0
MAX_RETRIES = 2
SYSTEM_RESOLVER = "system"


def validate_domain(domain: str) -> str:
    """Normalize ``domain`` (lowercase, no trailing dot) or raise InvalidDomainError."""
    domain = domain.lower().strip().rstrip(".")
    if not domain:
        raise InvalidDomainError("Domain is empty")
    if len(domain) > 253:
        raise InvalidDomainError(f"Domain too long: {domain}")
    if not _DOMAIN_PATTERN.match(domain):
        raise InvalidDomainError(f"Invalid domain name: {domain}")
    return domain


class DnsResolver:
    """Resolver capability: answer records, NXDOMAIN, or a temporary failure status.

    DNS outcomes are reported through ``DnsResponse.status``; only an invalid
    query name raises.
    """

    def __init__(
        self,
        nameservers: Optional[list] = None,
        timeout: float = TIMEOUT,
        max_retries: int = MAX_RETRIES,
        cache: Optional[DnsCache] = None,
    ):
        self._nameservers = list(nameservers or [])
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._cache = cache

    def query(self, domain: str, record_type: str) -> DnsResponse:
        """Cache-first, then tries nameservers in order."""
        domain = validate_domain(domain)

        if self._cache is not None:
            cached = self._cache.get(domain, record_type)
            if cached:
                return cached

        failure: Optional[DnsResponse] = None
        for nameserver in self._nameservers or [None]:
            for attempt in range(self._max_retries):
                used = nameserver or SYSTEM_RESOLVER
                try:
                    response = self._query_nameserver(nameserver, domain, record_type)
                except DnsNxdomainError:
                    response = DnsResponse(
                        domain=domain,
                        record_type=record_type,
                        status=DnsStatus.NXDOMAIN,
                        resolver_used=used,
                    )
                except DnsTimeoutError as e:
                    failure = DnsResponse(domain=domain, record_type=record_type,
                                          status=DnsStatus.TIMEOUT, resolver_used=used)
                    logger.debug("dns_attempt_failed", error=str(e), attempt=attempt + 1)
                    continue
                except DnsServfailError as e:
                    failure = DnsResponse(domain=domain, record_type=record_type,
                                          status=DnsStatus.SERVFAIL, resolver_used=used)
                    logger.debug("dns_attempt_failed", error=str(e), attempt=attempt + 1)
                    continue
                self._remember(domain, record_type, response)
                return response

        logger.warning(
            "dns_query_failed",
            domain=domain,
            record_type=record_type,
            status=failure.status.value,
        )
        self._remember(domain, record_type, failure)
        return failure

    def _remember(self, domain: str, record_type: str, response: DnsResponse) -> None:
        if self._cache is not None:
            self._cache.put(domain, record_type, response)

    def _query_nameserver(self, nameserver: Optional[str], domain: str, record_type: str) -> DnsResponse:
        resolver = dns.resolver.Resolver(configure=nameserver is None)
        if nameserver is not None:
            resolver.nameservers = [nameserver]
        resolver.timeout = self._timeout
        resolver.lifetime = self._timeout

        start = time.monotonic()
        try:
            rdtype = dns.rdatatype.from_text(record_type)
            answer = resolver.resolve(domain, rdtype)
            records = self._parse_records(answer, record_type)
            return DnsResponse(
                domain=domain,
                record_type=record_type,
                status=DnsStatus.NOERROR,
                records=records,
                resolver_used=nameserver or SYSTEM_RESOLVER,
                response_time_ms=(time.monotonic() - start) * 1000,
            )
        except dns.resolver.NXDOMAIN:
            raise DnsNxdomainError(f"NXDOMAIN: {domain}")
        except dns.resolver.NoAnswer:
            # Name exists, record type does not
            return DnsResponse(
                domain=domain,
                record_type=record_type,
                status=DnsStatus.NOERROR,
                records=[],
                resolver_used=nameserver or SYSTEM_RESOLVER,
                response_time_ms=(time.monotonic() - start) * 1000,
            )
        except dns.exception.Timeout:
            raise DnsTimeoutError(f"Timeout querying {nameserver or SYSTEM_RESOLVER} for {record_type} {domain}")
        except dns.resolver.NoNameservers:
            raise DnsServfailError(f"No nameservers available for {domain}")
        except dns.exception.DNSException as e:
            raise DnsServfailError(f"DNS error from {nameserver or SYSTEM_RESOLVER}: {e}")

    def _parse_records(self, answer, record_type: str) -> list:
        records = []
        ttl = answer.rrset.ttl if answer.rrset else DnsCache.MIN_TTL

        for rdata in answer:
            if record_type == "TXT":
                # Concatenate multi-string TXT records per RFC
                value = b"".join(rdata.strings).decode("ascii", errors="replace")
            elif record_type == "NS":
                value = str(rdata.target)
            else:
                value = str(rdata)
            records.append(DnsRecord(record_type=record_type, value=value, ttl=ttl))

        return records


# ── DMARC Record Fetcher ───────────────────────────────────────────────────────

class DmarcRecordFetcher:
    """NS existence checks and ``_dmarc`` TXT lookups over a resolver capability."""

    def __init__(self, resolver: DnsResolver):
        self._resolver = resolver

    def _query(self, name: str, record_type: str) -> DnsResponse:
        try:
            return self._resolver.query(name, record_type)
        except InvalidDomainError as e:
            # A name that fails validation cannot exist in DNS.
            logger.warning("dns_query_name_invalid", name=name, record_type=record_type, error=str(e))
            return DnsResponse(domain=name, record_type=record_type, status=DnsStatus.NXDOMAIN)

    def exists_detailed(self, domain: str) -> DnsResponse:
        return self._query(domain, "NS")

    def exists(self, domain: str) -> bool:
        """True iff ``domain`` has at least one NS record."""
        response = self.exists_detailed(domain)
        if response.is_temporary_failure:
            logger.warning("ns_lookup_failed", domain=domain, status=response.status.value)
        return response.status == DnsStatus.NOERROR and bool(response.records)

    def fetch_dmarc_txt_detailed(self, zone: str) -> tuple:
        """Returns (candidate payloads, DnsResponse) for ``_dmarc.<zone>``."""
        response = self._query(f"_dmarc.{zone}", "TXT")
        if response.status != DnsStatus.NOERROR:
            if response.is_temporary_failure:
                logger.warning("dmarc_lookup_failed", zone=zone, status=response.status.value)
            return [], response
        candidates = [r.value for r in response.records if r.value.startswith("v=")]
        return candidates, response

    def fetch_dmarc_txt(self, zone: str) -> list:
        return self.fetch_dmarc_txt_detailed(zone)[0]


def create_fetcher(config=None) -> DmarcRecordFetcher:
    """Module-level factory for CLI and API use."""
    if config is None:
        return DmarcRecordFetcher(DnsResolver(cache=DnsCache()))
    resolver = DnsResolver(
        nameservers=config.nameservers,
        timeout=config.dns_timeout,
        max_retries=config.dns_retries,
        cache=DnsCache() if config.use_cache else None,
    )
    return DmarcRecordFetcher(resolver)
