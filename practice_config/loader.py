"""
Configuration Loader (``practice_config.loader``).

Responsibility
--------------
Loads a tenant YAML file and parses it into the typed
``practice_config.schema`` dataclasses.  Services never call this
directly; the single public entry point is
``practice_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; unknown top-level sections are rejected rather than ignored.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in a numbering rule  -> ``KeyError`` propagates.
* Non-positive limits or widths  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from practice_config.schema import (
    DEFAULT_SYSTEM_ACTOR_ID,
    BillingSettings,
    LedgerMapping,
    NumberingRule,
    PeriodSettings,
    PracticeConfig,
    SchedulerSettings,
)

_KNOWN_SECTIONS = frozenset({
    "config_id",
    "version",
    "ledger",
    "numbering",
    "billing",
    "periods",
    "scheduler",
    "system_actor_id",
})

_PAYMENT_TERMS = frozenset({"due_on_receipt", "net_15", "net_30", "net_45", "net_60"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_ledger(data: dict[str, Any]) -> LedgerMapping:
    """Parse the ``ledger`` section."""
    return LedgerMapping(
        receivable_account_code=data.get("receivable_account_code"),
        income_account_code=data.get("income_account_code"),
        cash_account_code=data.get("cash_account_code"),
        auto_create_customer_accounts=bool(
            data.get("auto_create_customer_accounts", False)
        ),
        customer_account_prefix=data.get("customer_account_prefix", "AR-"),
    )


def parse_numbering_rule(name: str, data: dict[str, Any]) -> NumberingRule:
    """
    Parse one numbering rule.

    ``prefix`` is required; everything else has a default.
    """
    rule = NumberingRule(
        prefix=data["prefix"],
        suffix=data.get("suffix", ""),
        width=int(data.get("width", 6)),
        zero_pad=bool(data.get("zero_pad", True)),
        starting_number=int(data.get("starting_number", 1)),
    )
    if rule.width < 1:
        raise ValueError(f"numbering.{name}.width must be >= 1, got {rule.width}")
    if rule.starting_number < 0:
        raise ValueError(
            f"numbering.{name}.starting_number must be >= 0, got {rule.starting_number}"
        )
    return rule


def parse_numbering(data: dict[str, Any]) -> dict[str, NumberingRule]:
    """Parse the ``numbering`` section, layered over the built-in rules."""
    rules = dict(PracticeConfig().numbering)
    for name, rule_data in data.items():
        rules[name] = parse_numbering_rule(name, rule_data)
    return rules


def parse_billing(data: dict[str, Any]) -> BillingSettings:
    terms = data.get("default_payment_terms", "net_30")
    if terms not in _PAYMENT_TERMS:
        raise ValueError(f"Unknown default_payment_terms: {terms!r}")
    return BillingSettings(default_payment_terms=terms)


def parse_periods(data: dict[str, Any]) -> PeriodSettings:
    limit = int(data.get("max_catch_up_periods", 24))
    if limit < 1:
        raise ValueError(f"periods.max_catch_up_periods must be >= 1, got {limit}")
    return PeriodSettings(max_catch_up_periods=limit)


def parse_scheduler(data: dict[str, Any]) -> SchedulerSettings:
    interval = float(data.get("interval_seconds", 3600.0))
    if interval <= 0:
        raise ValueError(f"scheduler.interval_seconds must be > 0, got {interval}")
    return SchedulerSettings(interval_seconds=interval)


def parse_config(data: dict[str, Any]) -> PracticeConfig:
    """
    Parse a whole configuration document.

    Raises:
        ValueError: on unknown sections or invalid values.
        KeyError: on a numbering rule without a prefix.
    """
    unknown = set(data) - _KNOWN_SECTIONS
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    actor = data.get("system_actor_id")
    return PracticeConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        ledger=parse_ledger(data.get("ledger") or {}),
        numbering=parse_numbering(data.get("numbering") or {}),
        billing=parse_billing(data.get("billing") or {}),
        periods=parse_periods(data.get("periods") or {}),
        scheduler=parse_scheduler(data.get("scheduler") or {}),
        system_actor_id=UUID(str(actor)) if actor else DEFAULT_SYSTEM_ACTOR_ID,
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> PracticeConfig:
    return parse_config(load_yaml_file(path))
