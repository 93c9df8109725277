from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from storefront.config import Settings


def test_settings_come_from_prefixed_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STOREFRONT_FLAT_SHIPPING_FEE", "12.50")
    monkeypatch.setenv("STOREFRONT_UPLOAD_DIR", str(tmp_path))
    monkeypatch.setenv("STOREFRONT_CURRENCY", "EUR")

    settings = Settings()

    assert settings.flat_shipping_fee == Decimal("12.50")
    assert settings.upload_dir == tmp_path
    assert not hasattr(settings, "currency")


def test_uploads_stay_in_memory_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STOREFRONT_UPLOAD_DIR", raising=False)

    assert Settings().upload_dir is None
