"""Custom exception hierarchy for dmarc-engine."""


class DmarcEngineError(Exception):
    """Base exception for all dmarc-engine errors."""


# ── DNS Errors ─────────────────────────────────────────────────────────────────

class DnsError(DmarcEngineError):
    """Base class for DNS-related errors."""


class DnsTimeoutError(DnsError):
    """DNS query timed out."""


class DnsNxdomainError(DnsError):
    """Domain or record does not exist."""


class DnsServfailError(DnsError):
    """DNS server returned SERVFAIL or no nameserver could answer."""


# ── Validation Errors ──────────────────────────────────────────────────────────

class ValidationError(DmarcEngineError):
    """Base class for input validation errors."""


class InvalidDomainError(ValidationError):
    """The provided domain name is invalid."""


# ── Configuration Errors ───────────────────────────────────────────────────────

class ConfigurationError(DmarcEngineError):
    """Engine configuration is missing or unusable."""


class SuffixListError(ConfigurationError):
    """The public suffix list could not be loaded."""


# ── Parse Errors ───────────────────────────────────────────────────────────────

class DmarcParseError(DmarcEngineError):
    """A DMARC record failed policy validation."""
