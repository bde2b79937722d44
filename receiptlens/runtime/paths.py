"""Centralized path management for receiptlens.

This module provides a single source of truth for the configuration files
the extraction pipeline reads.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parents[1]


def _get_project_root() -> Path:
    """Project root: $RECEIPTLENS_HOME, else the current working directory."""
    home = os.environ.get("RECEIPTLENS_HOME", "").strip()
    if home:
        return Path(home).expanduser()
    return Path.cwd()


@dataclass
class ProjectPaths:
    """Container for project-related paths.

    User configuration lives under <root>/config/; built-in rules ship inside
    the package.
    """

    root: Path = field(default_factory=_get_project_root)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()

    # --- Configuration paths ---
    @property
    def config(self) -> Path:
        """Configuration directory (config/)."""
        return self.root / "config"

    @property
    def merchant_rules(self) -> Path:
        """Known merchant keywords TOML file."""
        return self.config / "merchant_rules.toml"

    @property
    def merchant_categories(self) -> Path:
        """Project-level merchant -> category rules TOML file."""
        return self.config / "merchant_categories.toml"

    # --- Package paths ---
    @property
    def default_merchant_categories(self) -> Path:
        """Built-in merchant -> category rules TOML file."""
        return PACKAGE_DIR / "receipt" / "rules" / "default_merchant_categories.toml"


_paths: ProjectPaths | None = None


def get_paths() -> ProjectPaths:
    """Get the singleton ProjectPaths instance."""
    global _paths
    if _paths is None:
        _paths = ProjectPaths()
    return _paths


def reset_paths() -> None:
    """Forget the cached ProjectPaths so the next call re-reads the environment."""
    global _paths
    _paths = None
