"""Shared pytest fixtures for receiptlens tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from receiptlens.runtime import load_known_merchant_keywords, load_merchant_category_rules, reset_paths

_ENV_VARS = (
    "RECEIPTLENS_ENHANCEMENT_URL",
    "RECEIPTLENS_ENHANCEMENT_API_KEY",
    "RECEIPTLENS_ENHANCEMENT_MODEL",
    "RECEIPTLENS_ENHANCEMENT_TIMEOUT",
    "RECEIPTLENS_DATE_ORDER",
)


def _clear_runtime_caches() -> None:
    reset_paths()
    load_known_merchant_keywords.cache_clear()
    load_merchant_category_rules.cache_clear()


@pytest.fixture(autouse=True)
def project_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point the project root at an empty temp dir so user config never leaks into tests."""
    monkeypatch.setenv("RECEIPTLENS_HOME", str(tmp_path))
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    _clear_runtime_caches()
    yield tmp_path
    _clear_runtime_caches()


SAMPLE_RECEIPT = """\
CAFE OLIMPICO
123 Main Street
Date: 2025-11-15
Bananas  $3.99
2 Apples
5.00
Bread 1.01
SUBTOTAL 10.00
GST 0.50
QST 1.00
TOTAL 11.50
THANK YOU
"""

FRENCH_RECEIPT = """\
RESTAURANT CHEZ MARIO
1234 rue Saint-Denis
Montréal QC
Table 12
15/11/2025 19:30
Pizza margherita 18.00
Vin rouge 12.00
Sous-total 30.00
TPS 1.50
TVQ 2.99
Total 34.49
Merci!
"""


@pytest.fixture
def sample_receipt_text() -> str:
    return SAMPLE_RECEIPT


@pytest.fixture
def french_receipt_text() -> str:
    return FRENCH_RECEIPT
