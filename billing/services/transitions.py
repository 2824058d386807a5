"""
Table-driven status state machines for quotes and invoices.

Each ``TransitionRule`` lists the legal targets from one source status plus
the preconditions those moves carry. A source may appear in several rules
when its targets have different preconditions. Anything not in the table
is rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Tuple

from ..models import Invoice, Quote


@dataclass(frozen=True)
class TransitionRule:
    source: str
    targets: FrozenSet[str]
    requires_items: bool = False
    requires_number_generation: bool = False
    requires_payment_date: bool = False


class StatusTransitionPolicy:
    def __init__(self, rules: Iterable[TransitionRule]):
        index = {}
        for rule in rules:
            for target in rule.targets:
                key = (rule.source, target)
                if key in index:
                    raise ValueError(f"Duplicate transition rule {rule.source} -> {target}")
                index[key] = rule
        self._rules: Mapping[Tuple[str, str], TransitionRule] = MappingProxyType(index)

    def rule_for(self, current: str, target: str):
        return self._rules.get((current, target))

    def is_valid(self, current: str, target: str) -> bool:
        return self.rule_for(current, target) is not None

    def requires_items(self, current: str, target: str) -> bool:
        rule = self.rule_for(current, target)
        return bool(rule and rule.requires_items)

    def requires_number_generation(self, current: str, target: str) -> bool:
        rule = self.rule_for(current, target)
        return bool(rule and rule.requires_number_generation)

    def requires_payment_date(self, current: str, target: str) -> bool:
        rule = self.rule_for(current, target)
        return bool(rule and rule.requires_payment_date)

    def allowed_targets(self, current: str) -> FrozenSet[str]:
        return frozenset(target for source, target in self._rules if source == current)


QUOTE_TRANSITIONS = StatusTransitionPolicy([
    TransitionRule(
        Quote.Status.DRAFT,
        frozenset({Quote.Status.SENT}),
        requires_items=True,
        requires_number_generation=True,
    ),
    TransitionRule(Quote.Status.SENT, frozenset({Quote.Status.ACCEPTED, Quote.Status.DECLINED})),
    TransitionRule(Quote.Status.ACCEPTED, frozenset({Quote.Status.DECLINED})),
    TransitionRule(Quote.Status.DECLINED, frozenset({Quote.Status.SENT})),
])

INVOICE_TRANSITIONS = StatusTransitionPolicy([
    TransitionRule(
        Invoice.Status.DRAFT,
        frozenset({Invoice.Status.SENT}),
        requires_items=True,
        requires_number_generation=True,
    ),
    TransitionRule(Invoice.Status.SENT, frozenset({Invoice.Status.OVERDUE})),
    TransitionRule(Invoice.Status.SENT, frozenset({Invoice.Status.PAID}), requires_payment_date=True),
    TransitionRule(Invoice.Status.OVERDUE, frozenset({Invoice.Status.PAID}), requires_payment_date=True),
])
