"""Unit tests for DMARC tag parsing and Policy construction."""

import pytest

from dmarc_engine import record_parser
from dmarc_engine.exceptions import DmarcParseError
from dmarc_engine.models import AlignmentMode, Disposition

ZONE = "example.com"


class TestParse:
    def test_basic_tags(self):
        tags = record_parser.parse("v=DMARC1; p=reject; rua=mailto:agg@example.com")
        assert tags == {"v": "DMARC1", "p": "reject", "rua": "mailto:agg@example.com"}

    def test_all_whitespace_removed(self):
        tags = record_parser.parse(" v = DMARC1 ;\tp= quar antine ; ")
        assert tags == {"v": "DMARC1", "p": "quarantine"}

    def test_value_split_on_first_equals_only(self):
        tags = record_parser.parse("v=DMARC1; rua=mailto:a@example.com?x=y")
        assert tags["rua"] == "mailto:a@example.com?x=y"

    def test_segment_without_equals_ignored(self):
        tags = record_parser.parse("v=DMARC1; garbage; p=none")
        assert tags == {"v": "DMARC1", "p": "none"}

    def test_last_duplicate_wins(self):
        tags = record_parser.parse("v=DMARC1; p=none; p=reject")
        assert tags["p"] == "reject"

    def test_empty_string(self):
        assert record_parser.parse("") == {}

    def test_tag_names_keep_case(self):
        assert "P" in record_parser.parse("v=DMARC1; P=reject")


class TestSerialize:
    def test_round_trip(self):
        mapping = {
            "p": "quarantine", "v": "DMARC1", "sp": "reject", "adkim": "s",
            "aspf": "r", "pct": "25", "rua": "mailto:agg@example.com",
            "ruf": "mailto:fail@example.com", "ri": "86400", "rf": "afrf",
        }
        assert record_parser.parse(record_parser.serialize(mapping)) == mapping

    def test_version_tag_first(self):
        assert record_parser.serialize({"p": "none", "v": "DMARC1"}).startswith("v=DMARC1")


class TestPredicates:
    @pytest.mark.parametrize("version", ["DMARC1", "dmarc1", "Dmarc1"])
    def test_dmarc_version_case_insensitive(self, version):
        assert record_parser.is_dmarc_record({"v": version})

    @pytest.mark.parametrize("tags", [{}, {"v": "DMARC2"}, {"v": "spf1"}])
    def test_non_dmarc_versions_rejected(self, tags):
        assert not record_parser.is_dmarc_record(tags)

    @pytest.mark.parametrize("uri", ["mailto:a@example.com", "MAILTO:a@example.com",
                                     "mailto:a@example.com,https://example.com/r"])
    def test_mailto_reporting_uri_valid(self, uri):
        assert record_parser.is_reporting_uri(uri)

    @pytest.mark.parametrize("uri", [None, "", "a@example.com", "https://example.com/report"])
    def test_other_reporting_uris_invalid(self, uri):
        assert not record_parser.is_reporting_uri(uri)


class TestTagValues:
    def test_disposition_case_insensitive(self):
        assert record_parser.parse_disposition("Reject") is Disposition.REJECT

    def test_unknown_disposition_is_none(self):
        assert record_parser.parse_disposition("bogus") is None

    def test_alignment_defaults_to_relaxed(self):
        assert record_parser.parse_alignment(None) is AlignmentMode.RELAXED
        assert record_parser.parse_alignment("x") is AlignmentMode.RELAXED

    def test_strict_alignment(self):
        assert record_parser.parse_alignment("s") is AlignmentMode.STRICT

    @pytest.mark.parametrize("value,expected", [
        ("0", 0), ("50", 50), ("100", 100),
        (None, 100), ("abc", 100), ("150", 100), ("-5", 100), ("", 100),
    ])
    def test_pct(self, value, expected):
        assert record_parser.parse_pct(value) == expected


class TestBuildPolicy:
    def test_defaults(self):
        policy = record_parser.build_policy({"v": "DMARC1", "p": "none"}, ZONE)
        assert policy.p is Disposition.NONE
        assert policy.sp is None
        assert policy.adkim is AlignmentMode.RELAXED
        assert policy.aspf is AlignmentMode.RELAXED
        assert policy.pct == 100
        assert policy.rua is None
        assert policy.domain == ZONE
        assert not policy.repaired

    def test_all_tags(self):
        raw = "v=DMARC1; p=quarantine; sp=reject; adkim=s; aspf=s; pct=20; rua=mailto:a@example.com"
        policy = record_parser.build_policy(record_parser.parse(raw), ZONE, raw)
        assert policy.p is Disposition.QUARANTINE
        assert policy.sp is Disposition.REJECT
        assert policy.adkim is AlignmentMode.STRICT
        assert policy.aspf is AlignmentMode.STRICT
        assert policy.pct == 20
        assert policy.rua == "mailto:a@example.com"
        assert policy.raw_record == raw

    def test_missing_p_raises(self):
        with pytest.raises(DmarcParseError):
            record_parser.build_policy({"v": "DMARC1"}, ZONE)

    def test_invalid_p_raises(self):
        with pytest.raises(DmarcParseError):
            record_parser.build_policy({"v": "DMARC1", "p": "bogus"}, ZONE)

    def test_invalid_sp_raises(self):
        with pytest.raises(DmarcParseError):
            record_parser.build_policy({"v": "DMARC1", "p": "none", "sp": "bogus"}, ZONE)


class TestRepairedPolicy:
    def test_mailto_rua_gives_none_policy(self):
        policy = record_parser.repaired_policy({"p": "bogus", "rua": "mailto:x@example.com"}, ZONE)
        assert policy.p is Disposition.NONE
        assert policy.rua == "mailto:x@example.com"
        assert policy.repaired

    def test_without_rua_gives_nothing(self):
        assert record_parser.repaired_policy({"p": "bogus"}, ZONE) is None

    def test_non_mailto_rua_gives_nothing(self):
        assert record_parser.repaired_policy({"p": "bogus", "rua": "https://x"}, ZONE) is None
