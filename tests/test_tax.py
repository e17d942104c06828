from decimal import Decimal

import pytest

from ticket_invoice.tax import format_money, from_base, money, split_gross


def test_split_gross_default_rate():
    amounts = split_gross(Decimal("24.20"))
    assert money(amounts.base) == Decimal("20.00")
    assert money(amounts.tax) == Decimal("4.20")
    assert amounts.total == Decimal("24.20")


@pytest.mark.parametrize("gross", ["0.01", "1", "24.20", "99.99", "1234.56"])
@pytest.mark.parametrize("rate", ["0", "4", "10", "21"])
def test_gross_round_trip(gross, rate):
    split = split_gross(Decimal(gross), Decimal(rate))
    rebuilt = from_base(split.base, Decimal(rate))
    assert abs(rebuilt.total - Decimal(gross)) <= Decimal("0.01")
    assert split.base + split.tax == Decimal(gross)


def test_from_base_adds_tax_on_top():
    amounts = from_base(Decimal("100"), Decimal("21"))
    assert amounts.tax == Decimal("21")
    assert amounts.total == Decimal("121")


def test_float_input_does_not_drift():
    assert split_gross(24.2).total == Decimal("24.2")


def test_money_rounds_half_up():
    assert money(Decimal("2.345")) == Decimal("2.35")
    assert format_money(Decimal("24.2")) == "24.20 €"
