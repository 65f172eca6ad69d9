"""Identifier alignment and disposition for a discovered DMARC policy."""

import random
from email.utils import getaddresses
from typing import Callable, Iterable, Optional

import structlog

from .models import AlignmentMode, Decision, Disposition, Policy, Reason
from .suffix_matcher import SuffixMatcher

logger = structlog.get_logger(__name__)


def _random_sample() -> int:
    return random.randint(1, 100)


def extract_from_host(header_value: Optional[str]) -> Optional[str]:
    """Domain of the single address in an RFC 5322 From header value.

    Returns None when the header is missing, names no domain, or lists more
    than one mailbox.
    """
    if not header_value:
        return None
    addresses = [addr for _, addr in getaddresses([header_value]) if addr]
    if len(addresses) != 1:
        return None
    _, at, domain = addresses[0].rpartition("@")
    domain = domain.strip().strip(">").strip().lower().rstrip(".")
    if not at or not domain:
        return None
    return domain


class AlignmentEvaluator:
    """Decides alignment and disposition for one message.

    Alignment is exact-match by default regardless of adkim/aspf. With
    ``honor_relaxed=True`` a relaxed policy mode compares organizational
    domains instead.
    """

    def __init__(
        self,
        matcher: Optional[SuffixMatcher] = None,
        honor_relaxed: bool = False,
        sampler: Optional[Callable[[], int]] = None,
    ):
        if honor_relaxed and matcher is None:
            raise ValueError("relaxed alignment needs a SuffixMatcher")
        self._matcher = matcher
        self._honor_relaxed = honor_relaxed
        self._sampler = sampler or _random_sample

    def evaluate(
        self,
        from_host: str,
        dkim_pass_domains: Iterable[str],
        spf_pass_domain: Optional[str],
        policy: Policy,
    ) -> Decision:
        for domain in dkim_pass_domains:
            if self._is_aligned(domain, from_host, policy.adkim):
                logger.debug("dmarc_pass", from_host=from_host, via="dkim", domain=domain)
                return Decision(True, Disposition.NONE, Reason.DKIM_ALIGNED, from_host, policy)

        if spf_pass_domain and self._is_aligned(spf_pass_domain, from_host, policy.aspf):
            logger.debug("dmarc_pass", from_host=from_host, via="spf", domain=spf_pass_domain)
            return Decision(True, Disposition.NONE, Reason.SPF_ALIGNED, from_host, policy)

        disposition = self.requested_disposition(from_host, policy)
        if disposition != Disposition.NONE and not self._in_sample(policy.pct):
            logger.info("dmarc_fail_sampled_out", from_host=from_host, pct=policy.pct)
            return Decision(False, Disposition.NONE, Reason.PCT_SAMPLED_OUT, from_host, policy, sampled_out=True)

        logger.info("dmarc_fail", from_host=from_host, disposition=disposition.value)
        return Decision(False, disposition, Reason.NOT_ALIGNED, from_host, policy)

    @staticmethod
    def requested_disposition(from_host: str, policy: Policy) -> Disposition:
        """sp= applies when the policy came from the organizational domain of a subdomain."""
        is_subdomain = from_host.lower().rstrip(".") != policy.domain
        if is_subdomain and policy.sp is not None:
            return policy.sp
        return policy.p

    def _in_sample(self, pct: int) -> bool:
        if pct >= 100:
            return True
        if pct <= 0:
            return False
        return self._sampler() <= pct

    def _is_aligned(self, domain: str, from_host: str, mode: AlignmentMode) -> bool:
        if domain == from_host:
            return True
        if self._honor_relaxed and mode == AlignmentMode.RELAXED:
            return (self._matcher.organizational_domain(domain)
                    == self._matcher.organizational_domain(from_host))
        return False
