"""Merchant name -> coarse expense category.

Rules live in TOML files (see rules/default_merchant_categories.toml):

    [[rules]]
    category = "restaurant"
    keywords = ["restaurant", "cafe", "pizza"]
    priority = 10

Later files override earlier ones on ties because their layer priority is
higher. Keywords are case-insensitive and matched on word boundaries.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

RuleEntry = tuple[tuple[str, ...], str, int]


@dataclass(frozen=True)
class MerchantCategoryRules:
    """In-memory merchant categorization rules, highest priority first."""

    rules: tuple[RuleEntry, ...]


def _normalize_keywords(raw: Any) -> tuple[str, ...]:
    """Normalize keywords value from TOML into a tuple of non-empty strings."""
    if isinstance(raw, str):
        value = raw.strip()
        return (value,) if value else tuple()
    if isinstance(raw, list):
        return tuple(str(v).strip() for v in raw if str(v).strip())
    return tuple()


def build_merchant_category_rules(configs: Sequence[Mapping[str, Any]] | None = None) -> MerchantCategoryRules:
    """Merge rule layers from parsed TOML configs."""
    rules: list[RuleEntry] = []
    for layer, config in enumerate(configs or (), start=1):
        for rule in config.get("rules", []):
            if not isinstance(rule, Mapping):
                continue
            keywords = _normalize_keywords(rule.get("keywords"))
            category = str(rule.get("category") or "").strip()
            if not keywords or not category:
                continue
            priority = int(rule.get("priority", 0)) + layer * 100
            rules.append((keywords, category, priority))
    rules.sort(key=lambda entry: entry[2], reverse=True)
    return MerchantCategoryRules(rules=tuple(rules))


def categorize_merchant(merchant: str | None, rules: MerchantCategoryRules) -> str | None:
    """Return the category of the highest-priority rule matching the merchant name."""
    if not merchant:
        return None
    for keywords, category, _priority in rules.rules:
        for keyword in keywords:
            if re.search(r"\b" + re.escape(keyword) + r"\b", merchant, re.IGNORECASE):
                return category
    return None
