from typing import Dict, Iterable, List

from parkdesk.errors import DuplicatePricingRule, RuleNotFound
from parkdesk.schemas import EntryFee, PricingRule


class PricingCatalog:
    """Billing rules keyed by vehicle type, matched case-insensitively."""

    def __init__(self, rules: Iterable[PricingRule] = ()):
        self._rules: Dict[str, PricingRule] = {}
        for rule in rules:
            key = rule.vehicle_type.lower()
            if key in self._rules:
                raise DuplicatePricingRule(rule.vehicle_type)
            self._rules[key] = rule

    def __len__(self):
        return len(self._rules)

    def rules(self) -> List[PricingRule]:
        return list(self._rules.values())

    def lookup(self, vehicle_type: str) -> PricingRule:
        rule = self._rules.get((vehicle_type or "").lower())
        if rule is None:
            raise RuleNotFound(vehicle_type)
        return rule

    def entry_fee(self, vehicle_type: str) -> EntryFee:
        rule = self.lookup(vehicle_type)
        return EntryFee(vehicle_type=rule.vehicle_type, base_fee=rule.base_fee, base_hours=rule.base_hours)
