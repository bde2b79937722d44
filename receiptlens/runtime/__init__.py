"""Runtime infrastructure for receiptlens.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Path resolution via get_paths(), ProjectPaths
- Settings via ExtractionSettings.from_env()
- Rule loading via load_known_merchant_keywords(), load_merchant_category_rules()

Usage:
    from receiptlens.runtime import get_logger, get_paths

    logger = get_logger(__name__)
    paths = get_paths()
    print(paths.root, paths.merchant_rules)
"""

from receiptlens.runtime.logging import get_logger, parse_log_level, set_log_level
from receiptlens.runtime.merchant_rules import load_known_merchant_keywords, load_merchant_category_rules
from receiptlens.runtime.paths import ProjectPaths, get_paths, reset_paths
from receiptlens.runtime.settings import ExtractionSettings

__all__ = [
    # Logging
    "get_logger",
    "set_log_level",
    "parse_log_level",
    # Rules
    "load_known_merchant_keywords",
    "load_merchant_category_rules",
    # Paths
    "get_paths",
    "reset_paths",
    "ProjectPaths",
    # Settings
    "ExtractionSettings",
]
