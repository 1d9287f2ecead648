"""Routing of order items into print sections by configured sort rules."""

from __future__ import annotations

from typing import Iterable

from posprint.errors import ConfigurationError, NoRouteForItem
from posprint.models import PrintableItem, RuleKind, SortedPrintSection, SortRule

# Lower rank is evaluated first.
_KIND_RANK: dict[RuleKind, int] = {
    RuleKind.OVERRIDE: 0,
    RuleKind.PRODUCT_TYPE: 1,
    RuleKind.COURSE: 2,
    RuleKind.ROOM: 3,
    RuleKind.DEFAULT: 4,
}


def _rule_matches(rule: SortRule, item: PrintableItem) -> bool:
    if rule.kind is RuleKind.DEFAULT:
        return True
    if rule.kind is RuleKind.OVERRIDE:
        return rule.match in (item.item_id, item.product_id)
    if rule.kind is RuleKind.PRODUCT_TYPE:
        return item.product_type_id is not None and item.product_type_id == rule.match
    if rule.kind is RuleKind.COURSE:
        return item.course is not None and str(item.course) == rule.match
    if rule.kind is RuleKind.ROOM:
        return item.room_id is not None and item.room_id == rule.match
    return False


class RuleEvaluator:
    """
    Evaluates an immutable snapshot of sort rules.

    Rules are tried most specific first (override, product type, course, room,
    default), then by ordering index, then by declaration order. The first
    matching rule assigns the item's section.
    """

    def __init__(self, rules: Iterable[SortRule]) -> None:
        declared = [rule for rule in rules if rule.active]
        self.rules: tuple[SortRule, ...] = tuple(
            rule
            for _, rule in sorted(
                enumerate(declared),
                key=lambda pair: (_KIND_RANK[pair[1].kind], pair[1].order, pair[0]),
            )
        )
        if not any(rule.kind is RuleKind.DEFAULT for rule in self.rules):
            raise ConfigurationError("Sort rules need an active default rule so every item has a section")

    def rule_for(self, item: PrintableItem) -> tuple[int, SortRule]:
        for index, rule in enumerate(self.rules):
            if _rule_matches(rule, item):
                return index, rule
        raise NoRouteForItem(item)

    def route(self, items: Iterable[PrintableItem]) -> list[SortedPrintSection]:
        buckets: dict[str, list[PrintableItem]] = {}
        # section -> (lowest rule index that routed into it, first item position)
        section_keys: dict[str, tuple[int, int]] = {}

        for position, item in enumerate(items):
            rule_index, rule = self.rule_for(item)
            buckets.setdefault(rule.target, []).append(item)
            current = section_keys.get(rule.target)
            if current is None:
                section_keys[rule.target] = (rule_index, position)
            elif rule_index < current[0]:
                section_keys[rule.target] = (rule_index, current[1])

        ordered = sorted(section_keys, key=lambda section_id: section_keys[section_id])
        return [SortedPrintSection(section_id=section_id, items=tuple(buckets[section_id])) for section_id in ordered]


def route_items(items: Iterable[PrintableItem], rules: Iterable[SortRule]) -> list[SortedPrintSection]:
    """Partition items into sections; sections without items are not returned."""
    return RuleEvaluator(rules).route(items)
