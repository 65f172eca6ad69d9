"""DMARC policy discovery and alignment decisions for inbound mail."""

__version__ = "0.1.0"

from .alignment import AlignmentEvaluator, extract_from_host  # noqa: E402
from .dns_fetcher import DmarcRecordFetcher, DnsResolver, create_fetcher  # noqa: E402
from .engine import DmarcEngine  # noqa: E402
from .models import AlignmentMode, Decision, Disposition, Policy, Reason  # noqa: E402
from .policy_discoverer import PolicyDiscoverer  # noqa: E402
from .suffix_matcher import SuffixMatcher, load_suffix_list, organizational_domain  # noqa: E402

__all__ = [
    "AlignmentEvaluator",
    "AlignmentMode",
    "Decision",
    "Disposition",
    "DmarcEngine",
    "DmarcRecordFetcher",
    "DnsResolver",
    "Policy",
    "PolicyDiscoverer",
    "Reason",
    "SuffixMatcher",
    "create_fetcher",
    "extract_from_host",
    "load_suffix_list",
    "organizational_domain",
]
