"""
Tests for practice_config -- YAML loading, validation, and the kernel bridge.
"""

from pathlib import Path
from uuid import UUID

import pytest
import yaml

from practice_config import CONFIG_ENV_VAR, get_active_config
from practice_config.bridges import build_kernel_settings
from practice_config.loader import compute_checksum, parse_config
from practice_config.schema import DEFAULT_SYSTEM_ACTOR_ID
from practice_kernel.domain.billing_policy import PaymentTerms


def write_config(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "tenant.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestPackagedDefaults:
    def test_defaults_load(self, config):
        assert config.config_id == "default"
        assert config.ledger.receivable_account_code == "1200"
        assert config.ledger.income_account_code == "4000"
        assert config.ledger.cash_account_code == "1000"
        assert config.ledger.auto_create_customer_accounts is True
        assert config.numbering["invoice"].prefix == "INV-"
        assert config.billing.default_payment_terms == "net_30"
        assert config.periods.max_catch_up_periods == 24
        assert config.system_actor_id == DEFAULT_SYSTEM_ACTOR_ID
        assert len(config.checksum) == 64

    def test_load_is_logged(self, monkeypatch, captured_logs):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

        get_active_config()

        (record,) = [r for r in captured_logs() if r["message"] == "practice_config_loaded"]
        assert record["config_id"] == "default"


class TestResolution:
    def test_env_var_points_at_file(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, {"config_id": "acme", "version": 3})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        config = get_active_config()

        assert (config.config_id, config.version) == ("acme", 3)

    def test_explicit_path_wins_over_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.yaml"))
        path = write_config(tmp_path, {"config_id": "explicit"})

        assert get_active_config(path).config_id == "explicit"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "missing.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        config = get_active_config(path)

        assert config.ledger.receivable_account_code is None
        assert config.numbering["receipt"].prefix == "RCT-"


class TestValidation:
    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="Unknown configuration sections"):
            parse_config({"ledgers": {}})

    def test_unknown_payment_terms(self):
        with pytest.raises(ValueError, match="default_payment_terms"):
            parse_config({"billing": {"default_payment_terms": "net_90"}})

    def test_numbering_rule_needs_prefix(self):
        with pytest.raises(KeyError):
            parse_config({"numbering": {"invoice": {"width": 4}}})

    @pytest.mark.parametrize(
        "data",
        [
            {"numbering": {"invoice": {"prefix": "I", "width": 0}}},
            {"periods": {"max_catch_up_periods": 0}},
            {"scheduler": {"interval_seconds": 0}},
        ],
    )
    def test_non_positive_limits(self, data):
        with pytest.raises(ValueError):
            parse_config(data)

    def test_numbering_layered_over_builtins(self):
        config = parse_config({"numbering": {"invoice": {"prefix": "BILL/", "width": 4}}})

        assert config.numbering["invoice"].prefix == "BILL/"
        assert config.numbering["invoice"].width == 4
        assert config.numbering["journal"].prefix == "JV-"

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestKernelBridge:
    def test_settings_mirror_config(self, config):
        settings = build_kernel_settings(config)

        assert settings.ledger.receivable_code == "1200"
        assert settings.ledger.cash_code == "1000"
        assert settings.ledger.customer_account_prefix == "AR-"
        assert settings.default_payment_terms == PaymentTerms.NET_30
        assert settings.max_catch_up_periods == 24
        assert settings.number_format("invoice").prefix == "INV-"

    def test_custom_actor_and_terms(self):
        actor = "11111111-2222-3333-4444-555555555555"
        config = parse_config(
            {"system_actor_id": actor, "billing": {"default_payment_terms": "net_15"}}
        )

        settings = build_kernel_settings(config)

        assert settings.system_actor_id == UUID(actor)
        assert settings.default_payment_terms == PaymentTerms.NET_15

    def test_unmapped_document_type_gets_derived_prefix(self, settings):
        assert settings.number_format("credit_note").prefix == "CREDIT_NOTE-"
