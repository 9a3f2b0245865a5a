import unittest
from decimal import Decimal

from bizpilot.currency import (
    CURRENCY_CONFIGS,
    DEFAULT_CURRENCY,
    format_currency,
    format_percentage,
    get_currency_config,
    parse_currency,
)


class FormatCurrencyTests(unittest.TestCase):
    def test_default_is_rand(self):
        self.assertEqual(DEFAULT_CURRENCY, "ZAR")
        self.assertEqual(format_currency(Decimal("1234.56")), "R 1 234,56")

    def test_symbol_placement_and_separators(self):
        self.assertEqual(format_currency(Decimal("1234.56"), "USD"), "$1,234.56")
        self.assertEqual(format_currency(Decimal("1234.56"), "EUR"), "1.234,56 €")
        self.assertEqual(format_currency(Decimal("1234.5"), "CHF"), "CHF 1'234.50")
        self.assertEqual(format_currency(Decimal("1234567.891"), "GBP"), "£1,234,567.89")

    def test_zero_decimal_currency(self):
        self.assertEqual(format_currency(Decimal("1234.4"), "JPY"), "¥1,234")

    def test_negative_amount(self):
        self.assertEqual(format_currency(Decimal("-5"), "USD"), "-$5.00")

    def test_symbol_and_code_flags(self):
        self.assertEqual(format_currency(10, "USD", show_symbol=False), "10.00")
        self.assertEqual(format_currency(10, "USD", show_code=True), "$10.00 USD")

    def test_rounds_half_up(self):
        self.assertEqual(format_currency(Decimal("0.005"), "USD"), "$0.01")

    def test_garbage_renders_as_zero(self):
        self.assertEqual(format_currency("abc", "USD"), "$0.00")
        self.assertEqual(format_currency(None, "USD"), "$0.00")

    def test_unknown_code_falls_back_to_default(self):
        self.assertEqual(get_currency_config("XXX").code, "ZAR")
        self.assertEqual(get_currency_config(None).code, "ZAR")
        self.assertEqual(get_currency_config("usd").code, "USD")


class ParseCurrencyTests(unittest.TestCase):
    def test_parses_formatted_output_for_every_currency(self):
        amount = Decimal("98765.43")
        for code, config in CURRENCY_CONFIGS.items():
            expected = amount.quantize(Decimal(1).scaleb(-config.decimal_places))
            with self.subTest(code=code):
                self.assertEqual(parse_currency(format_currency(amount, code)), expected)

    def test_negative(self):
        self.assertEqual(parse_currency("-$5.00"), Decimal("-5.00"))

    def test_thousands_only(self):
        self.assertEqual(parse_currency("1,234"), Decimal("1234"))
        self.assertEqual(parse_currency("1.234"), Decimal("1234"))
        self.assertEqual(parse_currency("1,234,567"), Decimal("1234567"))

    def test_decimal_comma(self):
        self.assertEqual(parse_currency("R 12,5"), Decimal("12.5"))

    def test_empty_or_garbage(self):
        self.assertEqual(parse_currency(""), Decimal(0))
        self.assertEqual(parse_currency(None), Decimal(0))
        self.assertEqual(parse_currency("n/a"), Decimal(0))


class FormatPercentageTests(unittest.TestCase):
    def test_one_place_by_default(self):
        self.assertEqual(format_percentage(Decimal("40")), "40.0%")
        self.assertEqual(format_percentage(Decimal("39.96")), "40.0%")

    def test_places(self):
        self.assertEqual(format_percentage("12.345", places=2), "12.35%")
