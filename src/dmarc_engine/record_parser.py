"""DMARC TXT record tag parsing and Policy construction."""

import re
from typing import Optional

from .exceptions import DmarcParseError
from .models import AlignmentMode, Disposition, Policy

DMARC_VERSION = "DMARC1"
REPORTING_URI_SCHEME = "mailto:"

_WHITESPACE = re.compile(r"\s+")

_DISPOSITIONS = {d.value: d for d in Disposition}
_ALIGNMENT_MODES = {m.value: m for m in AlignmentMode}


# ── Parsing ────────────────────────────────────────────────────────────────────

def parse(raw: str) -> dict:
    """Split a record into a tag -> value mapping.

    All whitespace is removed first. Segments without ``=`` are ignored and
    the last occurrence of a duplicated tag wins.
    """
    tags = {}
    for part in _WHITESPACE.sub("", raw).split(";"):
        if "=" not in part:
            continue
        key, _, value = part.partition("=")
        tags[key] = value
    return tags


def serialize(tags: dict) -> str:
    """Inverse of parse() for well-formed mappings; ``v`` is emitted first."""
    ordered = sorted(tags.items(), key=lambda kv: kv[0] != "v")
    return "; ".join(f"{k}={v}" for k, v in ordered)


def is_dmarc_record(tags: dict) -> bool:
    return tags.get("v", "").lower() == DMARC_VERSION.lower()


def is_reporting_uri(value: Optional[str]) -> bool:
    """A reporting URI list is usable when its first URI is a mailto: address."""
    if not value:
        return False
    first = value.split(",")[0]
    return first.lower().startswith(REPORTING_URI_SCHEME)


# ── Tag values ─────────────────────────────────────────────────────────────────

def parse_disposition(value: Optional[str]) -> Optional[Disposition]:
    if value is None:
        return None
    return _DISPOSITIONS.get(value.lower())


def parse_alignment(value: Optional[str]) -> AlignmentMode:
    if value is None:
        return AlignmentMode.RELAXED
    return _ALIGNMENT_MODES.get(value.lower(), AlignmentMode.RELAXED)


def parse_pct(value: Optional[str]) -> int:
    try:
        pct = int(value)
    except (ValueError, TypeError):
        return 100
    if not 0 <= pct <= 100:
        return 100
    return pct


# ── Policy construction ────────────────────────────────────────────────────────

def build_policy(tags: dict, domain: str, raw: Optional[str] = None) -> Policy:
    """Validate ``p``/``sp`` and build a typed Policy. Raises DmarcParseError."""
    p = parse_disposition(tags.get("p"))
    if p is None:
        raise DmarcParseError(f"Invalid or missing p= tag: {tags.get('p')!r}")

    sp = None
    if "sp" in tags:
        sp = parse_disposition(tags["sp"])
        if sp is None:
            raise DmarcParseError(f"Invalid sp= tag: {tags['sp']!r}")

    return Policy(
        p=p,
        domain=domain,
        sp=sp,
        adkim=parse_alignment(tags.get("adkim")),
        aspf=parse_alignment(tags.get("aspf")),
        pct=parse_pct(tags.get("pct")),
        rua=tags.get("rua") or None,
        ruf=tags.get("ruf") or None,
        raw_record=raw,
    )


def repaired_policy(tags: dict, domain: str, raw: Optional[str] = None) -> Optional[Policy]:
    """Treat an invalid record as p=none when it carries a usable rua=, else None."""
    rua = tags.get("rua")
    if not is_reporting_uri(rua):
        return None
    return Policy(
        p=Disposition.NONE,
        domain=domain,
        rua=rua,
        raw_record=raw,
        repaired=True,
    )
