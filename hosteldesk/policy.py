import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet

import yaml

from .config import POLICY_PATH
from .schemas import PaymentMethod

logger = logging.getLogger(__name__)

DEFAULT_ELECTRONIC_METHODS = frozenset(
    {PaymentMethod.BANK_TRANSFER, PaymentMethod.MOBILE_MONEY, PaymentMethod.CARD}
)


@dataclass(frozen=True)
class PaymentPolicy:
    electronic_methods: FrozenSet[PaymentMethod] = field(
        default_factory=lambda: DEFAULT_ELECTRONIC_METHODS
    )
    deposit_ratio: float = 0.5
    auto_cancel_days: int = 7
    currency: str = "GHS"


_policy = PaymentPolicy()


def _parse_methods(raw: Any) -> FrozenSet[PaymentMethod] | None:
    if not isinstance(raw, list):
        return None
    methods = set()
    for value in raw:
        try:
            methods.add(PaymentMethod(str(value).strip().lower()))
        except ValueError:
            logger.warning("Ignoring unknown payment method in policy: %s", value)
    return frozenset(methods)


def _parse_ratio(raw: Any) -> float | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    if raw < 0 or raw > 1:
        return None
    return float(raw)


def _parse_days(raw: Any) -> int | None:
    if isinstance(raw, bool) or not isinstance(raw, int):
        return None
    if raw < 0:
        return None
    return raw


def policy_from_mapping(payload: Any) -> PaymentPolicy:
    if not isinstance(payload, dict):
        return PaymentPolicy()
    section = payload.get("payments", payload)
    if not isinstance(section, dict):
        return PaymentPolicy()

    defaults = PaymentPolicy()
    methods = _parse_methods(section.get("electronic_methods"))
    ratio = _parse_ratio(section.get("deposit_ratio"))
    days = _parse_days(section.get("auto_cancel_days"))
    currency = section.get("currency")
    return PaymentPolicy(
        electronic_methods=methods if methods is not None else defaults.electronic_methods,
        deposit_ratio=ratio if ratio is not None else defaults.deposit_ratio,
        auto_cancel_days=days if days is not None else defaults.auto_cancel_days,
        currency=currency.strip() if isinstance(currency, str) and currency.strip() else defaults.currency,
    )


def load_policy(path: str | None = None) -> PaymentPolicy:
    """Load the payment policy YAML and make it the active policy.

    Missing or unreadable files keep the defaults. The file may hold the
    settings at the top level or under a ``payments`` key::

        payments:
          electronic_methods: [bank_transfer, mobile_money, card]
          deposit_ratio: 0.5
          auto_cancel_days: 7
          currency: GHS
    """
    global _policy
    source = path or POLICY_PATH
    if not source:
        logger.info("No POLICY_PATH configured, using default payment policy")
        _policy = PaymentPolicy()
        return _policy

    try:
        with open(source, encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except OSError:
        logger.warning("Could not read payment policy from %s, using defaults", source)
        _policy = PaymentPolicy()
        return _policy
    except yaml.YAMLError:
        logger.exception("Invalid YAML content in payment policy: %s", source)
        _policy = PaymentPolicy()
        return _policy

    _policy = policy_from_mapping(payload)
    logger.info(
        "Loaded payment policy from %s (deposit_ratio=%s, auto_cancel_days=%d)",
        source,
        _policy.deposit_ratio,
        _policy.auto_cancel_days,
    )
    return _policy


def get_policy() -> PaymentPolicy:
    return _policy
