from __future__ import annotations

import unittest

from scrapers.carbon import NoPriceMatch, ParseError, extract_quote_fragment, parse_price_info

RISING_TEXT = (
    "EU Carbon Permits increased to 85.23 EUR on January 15, 2024, up 2.5% from yesterday. "
    "The price has risen 5.2% this month and is up 15.3% compared to the same time last year."
)
FALLING_TEXT = (
    "EU Carbon Permits decreased to 82.15 EUR on January 15, 2024, down 3.2% from yesterday. "
    "The price has fallen 4.1% this month and is down 8.5% compared to the same time last year."
)


class ParsePriceInfoTests(unittest.TestCase):
    def test_price_increase(self) -> None:
        quote = parse_price_info(RISING_TEXT)
        self.assertEqual(85.23, quote.price)
        self.assertEqual("January 15, 2024", quote.date)
        self.assertEqual("EUR", quote.currency)
        self.assertEqual(2.5, quote.daily_change)
        self.assertEqual(5.2, quote.monthly_change)
        self.assertEqual(15.3, quote.yearly_change)
        self.assertIsNone(quote.status)
        self.assertIsNone(quote.observed_at)

    def test_price_decrease(self) -> None:
        quote = parse_price_info(FALLING_TEXT)
        self.assertEqual(82.15, quote.price)
        self.assertEqual(-3.2, quote.daily_change)
        self.assertEqual(-4.1, quote.monthly_change)
        self.assertEqual(-8.5, quote.yearly_change)

    def test_mixed_directions_stay_with_their_own_clause(self) -> None:
        text = (
            "EU Carbon Permits fell to 70.51 EUR on March 14, 2025, down 1.2% from the previous day. "
            "Over the past month, the price has risen 3.4%, and is up 9.9% compared to the same time last year."
        )
        quote = parse_price_info(text)
        self.assertEqual(-1.2, quote.daily_change)
        self.assertEqual(3.4, quote.monthly_change)
        self.assertEqual(9.9, quote.yearly_change)

    def test_yearly_down_does_not_flip_daily_up(self) -> None:
        text = "Price rose to 64.00 EUR on May 2, 2025, up 0.8% today, and is down 20.1% compared to the same time last year."
        quote = parse_price_info(text)
        self.assertEqual(0.8, quote.daily_change)
        self.assertIsNone(quote.monthly_change)
        self.assertEqual(-20.1, quote.yearly_change)

    def test_yearly_phrase_alone_does_not_fill_daily(self) -> None:
        text = "Carbon traded at 71.10 EUR on June 3, 2025 and is up 4.0% compared to the same time last year."
        quote = parse_price_info(text)
        self.assertIsNone(quote.daily_change)
        self.assertEqual(4.0, quote.yearly_change)

    def test_missing_change_phrases_are_unset(self) -> None:
        quote = parse_price_info("EU Carbon Permits were quoted at 80.00 EUR on February 1, 2024.")
        self.assertEqual(80.0, quote.price)
        self.assertIsNone(quote.daily_change)
        self.assertIsNone(quote.monthly_change)
        self.assertIsNone(quote.yearly_change)

    def test_zero_change_is_not_unset(self) -> None:
        quote = parse_price_info("Quoted at 80.00 EUR on February 1, 2024, up 0.0% from yesterday.")
        self.assertEqual(0.0, quote.daily_change)

    def test_missing_price_raises_no_price_match(self) -> None:
        with self.assertRaises(NoPriceMatch):
            parse_price_info("The price has risen 5.2% this month and is up 15.3% compared to the same time last year.")

    def test_no_price_match_is_a_parse_error(self) -> None:
        with self.assertRaises(ParseError):
            parse_price_info("")

    def test_non_positive_price_is_rejected(self) -> None:
        with self.assertRaises(NoPriceMatch):
            parse_price_info("EU Carbon Permits fell to 0.00 EUR on January 15, 2024.")

    def test_thousands_separator_keeps_full_price(self) -> None:
        quote = parse_price_info("Permits at 1,085.23 EUR on January 15, 2024.")
        self.assertEqual(1085.23, quote.price)

    def test_price_without_separator_is_not_split(self) -> None:
        self.assertEqual(1085.5, parse_price_info("Permits at 1085.5 EUR on Jan 15, 2024.").price)

    def test_malformed_grouping_is_no_match(self) -> None:
        with self.assertRaises(NoPriceMatch):
            parse_price_info("Permits at 12,34 EUR on January 15, 2024.")

    def test_date_requires_a_month_name(self) -> None:
        with self.assertRaises(NoPriceMatch):
            parse_price_info("Permits at 85.23 EUR on Monday 15, 2024.")

    def test_abbreviated_month_is_accepted(self) -> None:
        self.assertEqual("Sept 3, 2025", parse_price_info("Permits at 71.00 EUR on Sept 3, 2025.").date)

    def test_parsing_is_deterministic(self) -> None:
        self.assertEqual(parse_price_info(FALLING_TEXT), parse_price_info(FALLING_TEXT))


class ExtractQuoteFragmentTests(unittest.TestCase):
    def test_returns_meta_content(self) -> None:
        html = (
            "<html><head>"
            '<meta name="description" content="Commodity prices and forecasts">'
            f'<meta property="og:description" content="{RISING_TEXT}">'
            "</head><body><p>down 99.9% elsewhere</p></body></html>"
        )
        self.assertEqual(RISING_TEXT, extract_quote_fragment(html))

    def test_falls_back_to_page_text(self) -> None:
        html = "<html><body><p>Nothing to see</p><p>here</p></body></html>"
        self.assertEqual("Nothing to see here", extract_quote_fragment(html))


if __name__ == "__main__":
    unittest.main()
