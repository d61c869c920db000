import pytest

from hrms_backend.services.payslip_service import number_to_words, month_label


@pytest.mark.parametrize("amount,words", [
    (0, "ZERO"),
    (7, "SEVEN"),
    (15, "FIFTEEN"),
    (40, "FORTY"),
    (101, "ONE HUNDRED ONE"),
    (70000, "SEVENTY THOUSAND"),
    (95400, "NINETY FIVE THOUSAND FOUR HUNDRED"),
    (100000, "ONE LAKH"),
    (125000, "ONE LAKH TWENTY FIVE THOUSAND"),
    (10000000, "ONE CRORE"),
    (12345678, "ONE CRORE TWENTY THREE LAKH FORTY FIVE THOUSAND SIX HUNDRED SEVENTY EIGHT"),
])
def test_indian_numbering(amount, words):
    assert number_to_words(amount) == words


def test_fraction_is_truncated():
    assert number_to_words(95400.75) == "NINETY FIVE THOUSAND FOUR HUNDRED"


def test_month_label():
    assert month_label("2024-05") == "May 2024"
