"""JSON serializer for discovery results and decisions."""

import json
from typing import Optional

from .models import Decision, Discovery, Policy


class JsonReporter:
    def render_decision(self, decision: Decision) -> str:
        return json.dumps(self.decision_dict(decision), indent=2)

    def render_discovery(self, domain: str, discovery: Discovery) -> str:
        return json.dumps(self.discovery_dict(domain, discovery), indent=2)

    def render_org_domain(self, domain: str, org_domain: str) -> str:
        return json.dumps({"domain": domain, "organizational_domain": org_domain}, indent=2)

    def decision_dict(self, decision: Decision) -> dict:
        return {
            "from_host": decision.from_host,
            "aligned": decision.aligned,
            "disposition": decision.disposition.value,
            "reason": decision.reason,
            "sampled_out": decision.sampled_out,
            "policy": self.policy_dict(decision.policy),
        }

    def discovery_dict(self, domain: str, discovery: Discovery) -> dict:
        return {
            "domain": domain,
            "found": discovery.policy is not None,
            "org_domain_used": discovery.org_domain_used,
            "temporary_error": discovery.temporary_error,
            "policy": self.policy_dict(discovery.policy),
        }

    def policy_dict(self, policy: Optional[Policy]) -> Optional[dict]:
        if policy is None:
            return None
        return {
            "domain": policy.domain,
            "p": policy.p.value,
            "sp": policy.sp.value if policy.sp else None,
            "adkim": policy.adkim.value,
            "aspf": policy.aspf.value,
            "pct": policy.pct,
            "rua": policy.rua,
            "ruf": policy.ruf,
            "repaired": policy.repaired,
            "raw_record": policy.raw_record,
        }
