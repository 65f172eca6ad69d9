"""Per-message DMARC check: existence, discovery, alignment."""

from typing import Callable, Iterable, Optional

import structlog

from .alignment import AlignmentEvaluator, extract_from_host
from .config import EngineConfig
from .dns_fetcher import DmarcRecordFetcher, validate_domain
from .exceptions import InvalidDomainError
from .models import Decision, Discovery, Disposition, DnsStatus, Reason
from .policy_discoverer import PolicyDiscoverer
from .suffix_matcher import SuffixMatcher

logger = structlog.get_logger(__name__)


class DmarcEngine:
    def __init__(
        self,
        fetcher: DmarcRecordFetcher,
        matcher: SuffixMatcher,
        config: Optional[EngineConfig] = None,
        sampler: Optional[Callable[[], int]] = None,
    ):
        self._config = config or EngineConfig()
        self._fetcher = fetcher
        self._matcher = matcher
        self._discoverer = PolicyDiscoverer(fetcher, matcher)
        self._evaluator = AlignmentEvaluator(
            matcher,
            honor_relaxed=self._config.honor_relaxed_alignment,
            sampler=sampler,
        )

    def organizational_domain(self, domain: str) -> str:
        return self._matcher.organizational_domain(validate_domain(domain))

    def discover(self, domain: str) -> Discovery:
        return self._discoverer.discover_detailed(validate_domain(domain))

    def check_header(
        self,
        from_header: Optional[str],
        dkim_pass_domains: Iterable[str] = (),
        spf_pass_domain: Optional[str] = None,
    ) -> Decision:
        return self.check(extract_from_host(from_header), dkim_pass_domains, spf_pass_domain)

    def check(
        self,
        from_host: Optional[str],
        dkim_pass_domains: Iterable[str] = (),
        spf_pass_domain: Optional[str] = None,
    ) -> Decision:
        """Full DMARC decision for one message. Never raises for DNS or record problems."""
        if not from_host:
            return Decision(False, Disposition.NONE, Reason.NO_FROM_HOST)
        try:
            from_host = validate_domain(from_host)
        except InvalidDomainError as e:
            logger.warning("invalid_from_host", from_host=from_host, error=str(e))
            return Decision(False, Disposition.NONE, Reason.NO_FROM_HOST)

        log = logger.bind(from_host=from_host)

        if not self._exists_in_dns(from_host):
            log.info("from_domain_not_in_dns")
            return Decision(False, self._config.nonexistent_disposition, Reason.DOMAIN_NOT_IN_DNS, from_host)

        discovery = self._discoverer.discover_detailed(from_host)
        if discovery.policy is None:
            reason = Reason.DNS_TEMPERROR if discovery.temporary_error else Reason.NO_POLICY
            log.debug("no_policy", reason=reason)
            return Decision(False, Disposition.NONE, reason, from_host)

        return self._evaluator.evaluate(
            from_host,
            [d.lower().rstrip(".") for d in dkim_pass_domains if d],
            spf_pass_domain.lower().rstrip(".") if spf_pass_domain else None,
            discovery.policy,
        )

    def _exists_in_dns(self, from_host: str) -> bool:
        """NS presence at the From domain or its organizational domain.

        A temporary failure cannot prove non-existence and counts as present.
        """
        names = [from_host]
        org_host = self._matcher.organizational_domain(from_host)
        if org_host != from_host:
            names.append(org_host)

        for name in names:
            response = self._fetcher.exists_detailed(name)
            if response.is_temporary_failure:
                logger.warning("existence_check_inconclusive", domain=name, status=response.status.value)
                return True
            if response.status == DnsStatus.NOERROR and response.records:
                return True
        return False
