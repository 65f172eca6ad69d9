"""DMARC policy discovery: exact domain, then organizational domain."""

from typing import Optional

import structlog

from . import record_parser
from .dns_fetcher import DmarcRecordFetcher
from .exceptions import DmarcParseError
from .models import Discovery, Policy
from .suffix_matcher import SuffixMatcher

logger = structlog.get_logger(__name__)


class PolicyDiscoverer:
    def __init__(self, fetcher: DmarcRecordFetcher, matcher: SuffixMatcher):
        self._fetcher = fetcher
        self._matcher = matcher

    def discover(self, from_host: str) -> Optional[Policy]:
        return self.discover_detailed(from_host).policy

    def discover_detailed(self, from_host: str) -> Discovery:
        """Run the lookup ladder for ``from_host``.

        1. ``_dmarc.<from_host>``, keeping records whose v= is DMARC1.
        2. If none, ``_dmarc.<organizational domain>`` unless that is the same name.
        3. More than one record at the answering zone means no policy.
        4. Invalid p=/sp= falls back to p=none when rua= is a mailto: URI.
        """
        from_host = from_host.lower().rstrip(".")
        zone = from_host
        matches, temporary = self._matches(zone)
        org_used = False

        if not matches:
            org_host = self._matcher.organizational_domain(from_host)
            if org_host == from_host:
                logger.debug("no_dmarc_record", domain=from_host)
                return Discovery(temporary_error=temporary)
            zone = org_host
            org_used = True
            matches, org_temporary = self._matches(zone)
            temporary = temporary or org_temporary
            if not matches:
                logger.debug("no_dmarc_record", domain=from_host, org_domain=org_host)
                return Discovery(temporary_error=temporary, org_domain_used=True)

        if len(matches) > 1:
            logger.info("multiple_dmarc_records", zone=zone, count=len(matches))
            return Discovery(org_domain_used=org_used)

        raw, tags = matches[0]
        try:
            policy = record_parser.build_policy(tags, zone, raw)
        except DmarcParseError as e:
            policy = record_parser.repaired_policy(tags, zone, raw)
            logger.info(
                "invalid_dmarc_record",
                zone=zone,
                error=str(e),
                repaired=policy is not None,
            )
        else:
            logger.debug("dmarc_record_found", zone=zone, p=policy.p.value)

        return Discovery(policy=policy, org_domain_used=org_used)

    def _matches(self, zone: str) -> tuple:
        """Returns ([(raw, tags), ...], temporary_error) for the DMARC1 records at ``zone``."""
        candidates, response = self._fetcher.fetch_dmarc_txt_detailed(zone)
        matches = []
        for raw in candidates:
            tags = record_parser.parse(raw)
            if record_parser.is_dmarc_record(tags):
                matches.append((raw, tags))
        return matches, response.is_temporary_failure
