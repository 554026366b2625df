"""Tests for PrimeRule conditions, amounts and expiry."""

from decimal import Decimal

import pytest

from monitor.models import Trade
from monitor.primes import PrimeRule, PrimeType


def _trade(amount: str) -> Trade:
    return Trade(timestamp_ms=0, amount=Decimal(amount), price=Decimal("100"))


def test_positive_threshold_matches_buys_at_or_above() -> None:
    rule = PrimeRule(PrimeType.SIZE, Decimal("5"))

    assert rule.matches(_trade("5"))
    assert rule.matches(_trade("7"))
    assert not rule.matches(_trade("4.99"))
    assert not rule.matches(_trade("-10"))


def test_negative_threshold_matches_sells_at_or_below() -> None:
    rule = PrimeRule(PrimeType.SIZE, Decimal("-5"))

    assert rule.matches(_trade("-5"))
    assert rule.matches(_trade("-6"))
    assert not rule.matches(_trade("-4"))
    assert not rule.matches(_trade("10"))


def test_zero_threshold_rejected() -> None:
    with pytest.raises(ValueError):
        PrimeRule(PrimeType.SIZE, Decimal("0"))


def test_order_amount_follows_threshold_sign() -> None:
    assert PrimeRule(PrimeType.SIZE, Decimal("5")).order_amount(Decimal("0.01")) == Decimal("0.01")
    assert PrimeRule(PrimeType.SIZE, Decimal("-5")).order_amount(Decimal("0.01")) == Decimal("-0.01")


def test_fixed_amount_overrides_default_size() -> None:
    rule = PrimeRule(PrimeType.SIZE, Decimal("5"), amount=Decimal("-0.3"))

    assert rule.order_amount(Decimal("0.01")) == Decimal("-0.3")


def test_expiry_is_strictly_after_deadline() -> None:
    rule = PrimeRule(PrimeType.SIZE, Decimal("5"), expiry_ms=1_000)

    assert not rule.is_expired(1_000)
    assert rule.is_expired(1_001)
    assert not PrimeRule(PrimeType.SIZE, Decimal("5")).is_expired(10**15)


def test_key_ignores_amount_and_expiry() -> None:
    a = PrimeRule(PrimeType.SIZE, Decimal("5"), amount=Decimal("1"))
    b = PrimeRule(PrimeType.SIZE, Decimal("5"), expiry_ms=123)

    assert a.key == b.key


def test_describe() -> None:
    assert PrimeRule(PrimeType.SIZE, Decimal("-2.5")).describe() == "size -2.5"
