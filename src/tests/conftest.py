import logging

import pytest
import structlog

PSL = """\
// test public suffix list
com
net
org
uk
co.uk
"""


@pytest.fixture()
def suffix_file(tmp_path):
    path = tmp_path / "public_suffix_list.dat"
    path.write_text(PSL, encoding="utf-8")
    return str(path)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "DMARC_SUFFIX_LIST",
        "DMARC_NAMESERVERS",
        "DMARC_DNS_TIMEOUT",
        "DMARC_DNS_RETRIES",
        "DMARC_DNS_CACHE",
        "DMARC_RELAXED_ALIGNMENT",
        "DMARC_NONEXISTENT_DISPOSITION",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    root.handlers = handlers
    root.setLevel(level)
