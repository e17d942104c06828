from datetime import date, datetime
from decimal import Decimal

from ticket_invoice.fingerprint import ticket_fingerprint


def test_fingerprint_is_deterministic():
    a = ticket_fingerprint(date(2024, 3, 15), Decimal("24.20"), "company-1")
    b = ticket_fingerprint(datetime(2024, 3, 15, 18, 30), Decimal("24.2"), "company-1")
    assert a == b
    assert len(a) == 64


def test_fingerprint_changes_with_each_input():
    base = ticket_fingerprint(date(2024, 3, 15), Decimal("24.20"), "company-1")
    assert ticket_fingerprint(date(2024, 3, 16), Decimal("24.20"), "company-1") != base
    assert ticket_fingerprint(date(2024, 3, 15), Decimal("24.21"), "company-1") != base
    assert ticket_fingerprint(date(2024, 3, 15), Decimal("24.20"), "company-2") != base
