"""
Credential Gate

Decides whether a user's active integrations permit starting an enrichment
job. Pure policy evaluation: no I/O, no caching, no error states.

Policy groups:
- mandatory: every member must be active
- lead_source: at least one member must be active (interchangeable providers)
- optional: never consulted, listed for display only
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from .models import ServiceName


@dataclass(frozen=True)
class GateDecision:
    """Outcome of evaluating a user's active services against the policy"""
    allowed: bool
    missing_mandatory: FrozenSet[ServiceName] = field(default_factory=frozenset)
    lead_source_satisfied: bool = True

    def describe(self) -> Optional[str]:
        """User-facing explanation of a denial, None when allowed"""
        if self.allowed:
            return None

        parts = []
        if self.missing_mandatory:
            names = ", ".join(sorted(s.value for s in self.missing_mandatory))
            parts.append(f"missing required integrations: {names}")
        if not self.lead_source_satisfied:
            parts.append("at least one lead source integration is required")
        return "Cannot create campaign: " + "; ".join(parts)


class CredentialPolicy:
    """Static classification of services into gate groups"""

    def __init__(
        self,
        mandatory: Iterable[ServiceName],
        lead_source: Iterable[ServiceName],
        optional: Iterable[ServiceName] = (),
    ):
        self.mandatory = frozenset(mandatory)
        self.lead_source = frozenset(lead_source)
        self.optional = frozenset(optional)

        if (
            self.mandatory & self.lead_source
            or self.mandatory & self.optional
            or self.lead_source & self.optional
        ):
            raise ValueError("Credential policy groups must be disjoint")

    def evaluate(self, active_service_names: Iterable[ServiceName]) -> GateDecision:
        """Allowed iff all mandatory services and any lead source are active"""
        active = frozenset(active_service_names)

        missing = self.mandatory - active
        lead_ok = bool(self.lead_source & active)

        return GateDecision(
            allowed=not missing and lead_ok,
            missing_mandatory=missing,
            lead_source_satisfied=lead_ok,
        )


DEFAULT_POLICY = CredentialPolicy(
    mandatory={ServiceName.APOLLO},
    lead_source={ServiceName.LEADMAGIC, ServiceName.ICYPEAS},
    optional={
        ServiceName.TRYKITT,
        ServiceName.A_LEADS,
        ServiceName.MAILVERIFY,
        ServiceName.ENRICHLY,
    },
)


def evaluate(
    active_service_names: Iterable[ServiceName],
    policy: CredentialPolicy = DEFAULT_POLICY,
) -> GateDecision:
    """Evaluate active services against a policy (the default one if omitted)"""
    return policy.evaluate(active_service_names)


__all__ = [
    "GateDecision",
    "CredentialPolicy",
    "DEFAULT_POLICY",
    "evaluate",
]
