"""Organizational Domain computation against a public suffix list."""

from pathlib import Path
from typing import Iterable, Union

import structlog

from .exceptions import SuffixListError

logger = structlog.get_logger(__name__)


def _labels(domain: str) -> list:
    return domain.strip().lower().rstrip(".").split(".")


def organizational_domain(domain: str, suffixes) -> str:
    """Return the registrable domain of ``domain``.

    Suffix candidates are built right to left and compared label by label
    against ``suffixes``; the longest match wins. When the whole name is a
    public suffix it is returned unchanged. When nothing matches, the
    rightmost label is taken as the suffix.
    """
    labels = _labels(domain)
    longest = 0
    for count in range(1, len(labels) + 1):
        if ".".join(labels[-count:]) in suffixes:
            longest = count

    if longest == len(labels):
        return ".".join(labels)
    if longest == 0:
        # Unlisted TLD: two labels rather than the bare rightmost one.
        longest = 1
    return ".".join(labels[-(longest + 1):])


class SuffixMatcher:
    """Read-only public suffix set, safe to share between evaluations."""

    def __init__(self, suffixes: Iterable[str]):
        self._suffixes = frozenset(s.strip().lower().rstrip(".") for s in suffixes if s.strip())

    def __len__(self) -> int:
        return len(self._suffixes)

    def __contains__(self, suffix: str) -> bool:
        return suffix.lower().rstrip(".") in self._suffixes

    def organizational_domain(self, domain: str) -> str:
        return organizational_domain(domain, self._suffixes)

    def is_public_suffix(self, domain: str) -> bool:
        return ".".join(_labels(domain)) in self._suffixes


# ── Loading ────────────────────────────────────────────────────────────────────

def parse_suffix_list(lines: Iterable[str]) -> list:
    """Extract plain suffix rules from public_suffix_list.dat formatted lines.

    Wildcard (``*.``) and exception (``!``) rules are skipped: matching is
    exact per label.
    """
    suffixes = []
    skipped = 0
    for line in lines:
        line = line.strip()
        if not line or line.startswith("//"):
            continue
        rule = line.split()[0].lower()
        if rule.startswith("!") or "*" in rule:
            skipped += 1
            continue
        suffixes.append(rule.rstrip("."))
    if skipped:
        logger.debug("suffix_rules_skipped", count=skipped)
    return suffixes


def load_suffix_list(path: Union[str, Path]) -> SuffixMatcher:
    try:
        with open(path, encoding="utf-8") as f:
            suffixes = parse_suffix_list(f)
    except OSError as e:
        raise SuffixListError(f"Cannot read public suffix list {path}: {e}") from e
    if not suffixes:
        raise SuffixListError(f"Public suffix list {path} contains no rules")
    logger.info("suffix_list_loaded", path=str(path), rules=len(suffixes))
    return SuffixMatcher(suffixes)
