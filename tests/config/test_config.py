"""
Tests for sme_config: loading, validation, trace logging and the bridges
that wire kernel objects from settings.
"""

import logging
from decimal import Decimal

import pytest

from sme_config import get_active_config
from sme_config.bridges import (
    build_allocator,
    build_cheque_stock,
    build_database,
    build_fee_defaults,
    build_issuance_service,
)
from sme_config.loader import compute_checksum, merge
from sme_config.schema import KernelSettings
from sme_kernel.domain.layout import ChequeStock
from sme_kernel.domain.purchase import FeeDefaults


class TestDefaults:
    def test_shipped_defaults(self):
        settings = get_active_config()
        assert isinstance(settings, KernelSettings)
        assert settings.fees.market_fee_percent == Decimal("0.70")
        assert settings.fees.commission_percent == Decimal("2.00")
        assert settings.query.page_size == 50
        assert settings.cheque_stock.width_mm == 202.0
        assert settings.cheque_stock.leaf_number_width == 6
        assert settings.allocation.retry_attempts == 3
        assert settings.logging.level == "INFO"
        assert len(settings.checksum) == 64

    def test_checksum_is_deterministic(self):
        assert get_active_config().checksum == get_active_config().checksum

    def test_settings_are_frozen(self):
        settings = get_active_config()
        with pytest.raises(AttributeError):
            settings.query = None


class TestOverrides:
    def test_site_file_merged_over_defaults(self, tmp_path):
        site = tmp_path / "site.yaml"
        site.write_text(
            "config_id: shop\n"
            "fees:\n"
            "  commission_percent: '1.50'\n"
            "database:\n"
            "  url: sqlite:///shop.db\n"
        )
        settings = get_active_config(site)
        assert settings.config_id == "shop"
        assert settings.fees.commission_percent == Decimal("1.50")
        assert settings.fees.market_fee_percent == Decimal("0.70")
        assert settings.database.url == "sqlite:///shop.db"
        assert settings.checksum != get_active_config().checksum

    def test_overrides_mapping(self):
        settings = get_active_config(overrides={"query": {"page_size": 10}})
        assert settings.query.page_size == 10

    def test_missing_site_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "missing.yaml")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"fees": {"market_fee_percent": "abc"}},
            {"fees": {"commission_percent": "101"}},
            {"query": {"page_size": 0}},
            {"allocation": {"lock_timeout_seconds": -1}},
            {"logging": {"level": "LOUD"}},
            {"database": {"url": " "}},
            {"database": {"uri": "sqlite://"}},
            {"printer": {"dpi": 300}},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            get_active_config(overrides=overrides)


class TestTrace:
    def test_trace_logged(self, captured_logs):
        settings = get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "SME_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["checksum"] == settings.checksum
        assert traces[-1]["config_id"] == "default"
        assert traces[-1]["logger"] == "sme_kernel.config"


class TestLoaderHelpers:
    def test_merge_is_recursive_and_pure(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        merged = merge(base, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1}
        assert base["a"]["y"] == 2

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestBridges:
    def test_value_objects(self):
        settings = get_active_config(
            overrides={"cheque_stock": {"width_mm": 200, "height_mm": 90}}
        )
        assert build_fee_defaults(settings) == FeeDefaults(Decimal("0.70"), Decimal("2.00"))
        assert build_cheque_stock(settings) == ChequeStock(200.0, 90.0)

    def test_database_and_services(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'bridge.db'}"
        settings = get_active_config(
            overrides={"database": {"url": url}, "allocation": {"lock_timeout_seconds": 2}}
        )
        database = build_database(settings)
        try:
            assert database.url == url
            assert database.dialect == "sqlite"
            allocator = build_allocator(settings, database)
            assert allocator.lock_timeout_seconds == 2.0
            assert build_issuance_service(settings, database, allocator=allocator) is not None
        finally:
            database.dispose()
