"""Runtime loaders for merchant rules (known merchants and categories)."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from receiptlens.receipt.merchant_categories import MerchantCategoryRules, build_merchant_category_rules
from receiptlens.runtime.paths import get_paths


def _load_toml(path: Path) -> dict[str, Any]:
    """Load TOML file and return parsed dict; missing files map to empty dict."""
    if not path.exists():
        return {}

    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


@lru_cache(maxsize=4)
def load_known_merchant_keywords(config_path: str | None = None) -> tuple[str, ...]:
    """
    Load known merchant keywords from merchant_rules.toml.

    Args:
        config_path: Optional TOML path override. If None, uses default project path.

    Returns:
        Tuple of merchant keywords from all rules, preserving file order.
    """
    path = Path(config_path) if config_path is not None else get_paths().merchant_rules
    config = _load_toml(path)

    keywords: list[str] = []
    for rule in config.get("rules", []):
        keywords.extend(str(keyword) for keyword in rule.get("keywords", []))
    return tuple(keywords)


@lru_cache(maxsize=4)
def load_merchant_category_rules(config_paths: tuple[str, ...] | None = None) -> MerchantCategoryRules:
    """Load merchant category rules: built-in defaults, then the project override file."""
    if config_paths is None:
        p = get_paths()
        files = [p.default_merchant_categories, p.merchant_categories]
    else:
        files = [Path(path) for path in config_paths]
    return build_merchant_category_rules(tuple(_load_toml(path) for path in files))
