"""Shared test factories for mock DNS responses and engine objects."""

from types import SimpleNamespace
from unittest.mock import MagicMock

from dmarc_engine.dns_fetcher import DmarcRecordFetcher
from dmarc_engine.models import DnsRecord, DnsResponse, DnsStatus
from dmarc_engine.suffix_matcher import SuffixMatcher

SUFFIXES = ["com", "net", "org", "uk", "co.uk", "ac.uk", "jp", "kyoto.jp"]


class FakeAnswer:
    """Stands in for a dnspython Answer: iterable rdatas plus an rrset TTL."""

    def __init__(self, rdatas, ttl=3600):
        self._rdatas = rdatas
        self.rrset = SimpleNamespace(ttl=ttl)

    def __iter__(self):
        return iter(self._rdatas)


def txt_rdata(*chunks):
    return SimpleNamespace(strings=[c.encode("ascii") for c in chunks])


def matcher(suffixes=None):
    return SuffixMatcher(SUFFIXES if suffixes is None else suffixes)


def dns_response(domain, values=None, status=DnsStatus.NOERROR, record_type="TXT"):
    """Build a DnsResponse with zero or more records of ``record_type``."""
    records = []
    if values:
        records = [DnsRecord(record_type=record_type, value=v, ttl=3600) for v in values]
    return DnsResponse(domain=domain, record_type=record_type, status=status, records=records)


def nxdomain(domain, record_type="TXT"):
    return dns_response(domain, status=DnsStatus.NXDOMAIN, record_type=record_type)


def servfail(domain, record_type="TXT"):
    return dns_response(domain, status=DnsStatus.SERVFAIL, record_type=record_type)


def timeout(domain, record_type="TXT"):
    return dns_response(domain, status=DnsStatus.TIMEOUT, record_type=record_type)


def mock_resolver(txt=None, ns=None):
    """
    Build a mock DnsResolver whose query() answers from the given mappings.

    txt / ns: dict of name -> list[str] of record values, or a DnsResponse.
    Unknown names return an empty NOERROR response.
    """
    tables = {"TXT": txt or {}, "NS": ns or {}}
    resolver = MagicMock()

    def _query(domain, record_type):
        table = tables.get(record_type, {})
        if domain not in table:
            return dns_response(domain, record_type=record_type)
        val = table[domain]
        if isinstance(val, DnsResponse):
            return val
        return dns_response(domain, val, record_type=record_type)

    resolver.query.side_effect = _query
    return resolver


def mock_fetcher(txt=None, ns=None):
    """A real DmarcRecordFetcher over a mock resolver."""
    return DmarcRecordFetcher(mock_resolver(txt, ns))


def queried_names(fetcher, record_type="TXT"):
    """Names the fetcher's mock resolver was asked for, in order."""
    return [
        c.args[0] for c in fetcher._resolver.query.call_args_list
        if c.args[1] == record_type
    ]
