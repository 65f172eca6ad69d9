"""Engine configuration from environment variables and an optional .env file."""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError
from .models import Disposition

DEFAULT_DNS_TIMEOUT = 5.0
DEFAULT_DNS_RETRIES = 2

_TRUE = {"1", "true", "yes", "on"}


@dataclass
class EngineConfig:
    suffix_list_path: Optional[str] = None
    nameservers: list = field(default_factory=list)  # list[str]
    dns_timeout: float = DEFAULT_DNS_TIMEOUT
    dns_retries: int = DEFAULT_DNS_RETRIES
    use_cache: bool = True
    honor_relaxed_alignment: bool = False
    nonexistent_disposition: Disposition = Disposition.NONE
    api_key: str = ""

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "EngineConfig":
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        nameservers = os.getenv("DMARC_NAMESERVERS", "")
        try:
            return cls(
                suffix_list_path=os.getenv("DMARC_SUFFIX_LIST") or None,
                nameservers=[n.strip() for n in nameservers.split(",") if n.strip()],
                dns_timeout=float(os.getenv("DMARC_DNS_TIMEOUT", str(DEFAULT_DNS_TIMEOUT))),
                dns_retries=int(os.getenv("DMARC_DNS_RETRIES", str(DEFAULT_DNS_RETRIES))),
                use_cache=os.getenv("DMARC_DNS_CACHE", "true").strip().lower() in _TRUE,
                honor_relaxed_alignment=os.getenv("DMARC_RELAXED_ALIGNMENT", "").strip().lower() in _TRUE,
                nonexistent_disposition=Disposition(os.getenv("DMARC_NONEXISTENT_DISPOSITION", "none").lower()),
                api_key=os.getenv("DMARC_API_KEY", ""),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid DMARC_* environment setting: {e}") from e
