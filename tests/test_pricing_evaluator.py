"""
Tests for the price rule evaluator.

Verifies that evaluate_price_rule correctly:
- Bills the base rate per unit, rounding partial units up
- Applies the first matching condition and ignores later matches
- Returns no price (never zero) when nothing applies and there is no base rate
- Reads day and time-of-day conditions over the whole booking window
- Works in integer minor units, including zero-decimal currencies
- Rejects structurally invalid definitions with PricingRuleError
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.core.errors import PriceNotApplicableError, PricingRuleError
from app.services.pricing.evaluator import (
    BookingContext,
    PricingBranch,
    evaluate_price_rule,
    require_price,
)

# 2024-01-05 is a Friday
FRIDAY = datetime(2024, 1, 5, tzinfo=timezone.utc)
SATURDAY = datetime(2024, 1, 6, tzinfo=timezone.utc)
MONDAY = datetime(2024, 1, 8, tzinfo=timezone.utc)

WEEKEND = {"kind": "day_of_week", "days": ["sat", "sun"]}


def at(day: datetime, hour: int) -> datetime:
    return day.replace(hour=hour)


def ctx(hours, start_at=None, guest_count=None) -> BookingContext:
    return BookingContext(booking_hours=hours, start_at=start_at, guest_count=guest_count)


def hours_at_least(value):
    return {"kind": "threshold", "field": "booking_hours", "operator": ">=", "value": value}


def condition(cond_id, when, price):
    return {"id": cond_id, "when": when, "price": price}


class TestBaseRate:
    """Pricing without a matching condition."""

    def test_hourly_rate(self):
        """PHP 100/hour for 3 hours = 30000 minor units."""
        result = evaluate_price_rule({"base_rate": "100.00", "unit": "hour"}, ctx(3))

        assert result.price_minor == 30000
        assert result.price == Decimal("300.00")
        assert result.branch == PricingBranch.base_rate
        assert result.matched_condition is None
        assert result.billed_units == 3

    @pytest.mark.parametrize(
        "unit, hours, expected_units",
        [
            ("day", 1, 1),
            ("day", 24, 1),
            ("day", 25, 2),
            ("week", 24, 1),
            ("week", 169, 2),
        ],
    )
    def test_partial_units_round_up(self, unit, hours, expected_units):
        result = evaluate_price_rule({"base_rate": "500", "unit": unit}, ctx(hours))

        assert result.billed_units == expected_units
        assert result.price_minor == 50000 * expected_units

    def test_fractional_hours_bill_a_whole_hour(self):
        result = evaluate_price_rule({"base_rate": "100"}, ctx(Decimal("1.5")))

        assert result.billed_units == 2
        assert result.price_minor == 20000

    def test_zero_rate_is_a_price(self):
        """A free area prices at 0, which is not the same as no price."""
        result = require_price(evaluate_price_rule({"base_rate": "0"}, ctx(2)))

        assert result.price_minor == 0
        assert result.branch == PricingBranch.base_rate

    def test_same_input_gives_same_result(self):
        definition = {
            "base_rate": "80",
            "conditions": [condition("weekend", WEEKEND, {"type": "discount", "percent": "15"})],
        }
        context = ctx(5, start_at=at(SATURDAY, 9))

        assert evaluate_price_rule(definition, context) == evaluate_price_rule(definition, context)

    def test_context_rejects_non_positive_hours(self):
        with pytest.raises(ValueError):
            BookingContext(booking_hours=0)


class TestConditions:
    """Ordered condition matching."""

    def test_first_matching_condition_wins(self):
        definition = {
            "base_rate": "100",
            "conditions": [
                condition("long", hours_at_least(4), {"type": "rate", "amount": "80", "unit": "hour"}),
                condition("longer", hours_at_least(2), {"type": "fixed", "amount": "1"}),
            ],
        }

        result = evaluate_price_rule(definition, ctx(5))

        assert result.matched_condition == "long"
        assert result.branch == PricingBranch.condition
        assert result.price_minor == 40000
        assert result.billed_units == 5

    def test_later_condition_applies_when_earlier_does_not_match(self):
        definition = {
            "base_rate": "100",
            "conditions": [
                condition("long", hours_at_least(4), {"type": "rate", "amount": "80", "unit": "hour"}),
                condition("medium", hours_at_least(2), {"type": "fixed", "amount": "150"}),
            ],
        }

        result = evaluate_price_rule(definition, ctx(3))

        assert result.matched_condition == "medium"
        assert result.price_minor == 15000
        assert result.billed_units is None

    def test_no_match_falls_back_to_base_rate(self):
        definition = {
            "base_rate": "100",
            "conditions": [condition("weekend", WEEKEND, {"type": "fixed", "amount": "50"})],
        }

        result = evaluate_price_rule(definition, ctx(2, start_at=at(MONDAY, 9)))

        assert result.branch == PricingBranch.base_rate
        assert result.price_minor == 20000

    def test_no_base_rate_and_no_match_has_no_price(self):
        definition = {
            "conditions": [condition("weekend", WEEKEND, {"type": "fixed", "amount": "50"})],
        }

        result = evaluate_price_rule(definition, ctx(2, start_at=at(MONDAY, 9)))

        assert result.price_minor is None
        assert result.price is None
        assert result.branch == PricingBranch.no_price
        with pytest.raises(PriceNotApplicableError):
            require_price(result)

    def test_discount_rounds_half_up(self):
        """3333 minor units less 10% is 2999.7, billed as 3000."""
        definition = {
            "base_rate": "33.33",
            "conditions": [condition("promo", hours_at_least(1), {"type": "discount", "percent": "10"})],
        }

        assert evaluate_price_rule(definition, ctx(1)).price_minor == 3000

    def test_guest_count_threshold_needs_a_guest_count(self):
        definition = {
            "base_rate": "100",
            "conditions": [
                condition(
                    "group",
                    {"kind": "threshold", "field": "guest_count", "operator": ">", "value": 5},
                    {"type": "fixed", "amount": "10"},
                ),
            ],
        }

        assert evaluate_price_rule(definition, ctx(1)).branch == PricingBranch.base_rate
        assert evaluate_price_rule(definition, ctx(1, guest_count=6)).matched_condition == "group"

    def test_booking_days_threshold(self):
        definition = {
            "base_rate": "100",
            "conditions": [
                condition(
                    "multi_day",
                    {"kind": "threshold", "field": "booking_days", "operator": ">=", "value": 2},
                    {"type": "rate", "amount": "1500", "unit": "day"},
                ),
            ],
        }

        result = evaluate_price_rule(definition, ctx(30))

        assert result.matched_condition == "multi_day"
        assert result.price_minor == 300000

    def test_all_and_any_combine_predicates(self):
        definition = {
            "base_rate": "100",
            "conditions": [
                condition(
                    "weekend_long",
                    {"kind": "all", "predicates": [WEEKEND, hours_at_least(8)]},
                    {"type": "fixed", "amount": "500"},
                ),
                condition(
                    "off_peak",
                    {
                        "kind": "any",
                        "predicates": [
                            {"kind": "time_of_day", "start": "18:00", "end": "22:00"},
                            {"kind": "day_of_week", "days": ["sun"]},
                        ],
                    },
                    {"type": "discount", "percent": "50"},
                ),
            ],
        }

        weekend_long = evaluate_price_rule(definition, ctx(8, at(SATURDAY, 8)))
        off_peak = evaluate_price_rule(definition, ctx(2, at(MONDAY, 19)))
        peak = evaluate_price_rule(definition, ctx(2, at(MONDAY, 9)))

        assert weekend_long.matched_condition == "weekend_long"
        assert off_peak.matched_condition == "off_peak"
        assert off_peak.price_minor == 10000
        assert peak.branch == PricingBranch.base_rate


class TestCalendarPredicates:
    """Day-of-week and time-of-day conditions."""

    @pytest.mark.parametrize(
        "start_at, hours, matches",
        [
            (at(SATURDAY, 10), 2, True),
            (at(MONDAY, 10), 2, False),
            # Friday 22:00 for 4h runs into Saturday
            (at(FRIDAY, 22), 4, True),
            # Friday 20:00 for 4h ends exactly at Saturday 00:00
            (at(FRIDAY, 20), 4, False),
        ],
    )
    def test_day_of_week_checks_every_day_touched(self, start_at, hours, matches):
        definition = {
            "base_rate": "100",
            "conditions": [condition("weekend", WEEKEND, {"type": "fixed", "amount": "50"})],
        }

        result = evaluate_price_rule(definition, ctx(hours, start_at=start_at))

        assert (result.matched_condition == "weekend") is matches

    @pytest.mark.parametrize(
        "hour, matches",
        [(23, True), (2, True), (22, True), (6, False), (12, False)],
    )
    def test_time_of_day_wraps_past_midnight(self, hour, matches):
        definition = {
            "base_rate": "100",
            "conditions": [
                condition(
                    "night",
                    {"kind": "time_of_day", "start": "22:00", "end": "06:00"},
                    {"type": "rate", "amount": "60", "unit": "hour"},
                ),
            ],
        }

        result = evaluate_price_rule(definition, ctx(2, start_at=at(MONDAY, hour)))

        assert (result.matched_condition == "night") is matches

    def test_no_start_time_means_no_calendar_match(self):
        definition = {
            "base_rate": "100",
            "conditions": [
                condition("weekend", WEEKEND, {"type": "fixed", "amount": "50"}),
                condition(
                    "morning",
                    {"kind": "time_of_day", "start": "06:00", "end": "12:00"},
                    {"type": "fixed", "amount": "70"},
                ),
            ],
        }

        assert evaluate_price_rule(definition, ctx(2)).branch == PricingBranch.base_rate


class TestCurrencies:
    def test_zero_decimal_currency(self):
        result = evaluate_price_rule({"base_rate": "500"}, ctx(3), minor_exponent=0)

        assert result.price_minor == 1500
        assert result.price == Decimal("1500")

    @pytest.mark.parametrize("base_rate, exponent", [("10.005", 2), ("100.5", 0)])
    def test_amount_finer_than_currency_is_rejected(self, base_rate, exponent):
        with pytest.raises(PricingRuleError):
            evaluate_price_rule({"base_rate": base_rate}, ctx(1), minor_exponent=exponent)


class TestMalformedDefinitions:
    """Structural problems are rule errors, never a silent fallback."""

    @pytest.mark.parametrize(
        "definition",
        [
            pytest.param(
                {
                    "base_rate": "100",
                    "conditions": [
                        condition("x", {"kind": "lunar_phase"}, {"type": "fixed", "amount": "1"})
                    ],
                },
                id="unknown-predicate",
            ),
            pytest.param(
                {
                    "base_rate": "100",
                    "conditions": [
                        condition(
                            "x",
                            {"kind": "threshold", "field": "floor_area", "operator": ">", "value": 1},
                            {"type": "fixed", "amount": "1"},
                        )
                    ],
                },
                id="unknown-field",
            ),
            pytest.param(
                {"base_rate": "100", "conditions": [condition("x", WEEKEND, {"type": "bogus"})]},
                id="unknown-price",
            ),
            pytest.param(
                {"conditions": [condition("x", WEEKEND, {"type": "discount", "percent": "10"})]},
                id="discount-without-base",
            ),
            pytest.param(
                {
                    "base_rate": "100",
                    "conditions": [
                        condition("dup", WEEKEND, {"type": "fixed", "amount": "1"}),
                        condition("dup", WEEKEND, {"type": "fixed", "amount": "2"}),
                    ],
                },
                id="duplicate-id",
            ),
            pytest.param({"base_rate": "100", "surcharge": "5"}, id="unknown-key"),
            pytest.param({"base_rate": "-1"}, id="negative-rate"),
            pytest.param({"base_rate": "100", "unit": "fortnight"}, id="unknown-unit"),
            pytest.param(["not", "an", "object"], id="not-a-mapping"),
        ],
    )
    def test_malformed_definition_raises(self, definition):
        with pytest.raises(PricingRuleError):
            evaluate_price_rule(definition, ctx(1, start_at=at(MONDAY, 9)))

    def test_error_is_a_server_error_with_details(self):
        with pytest.raises(PricingRuleError) as exc_info:
            evaluate_price_rule({"conditions": "nope"}, ctx(1))

        assert exc_info.value.status_code == 500
        assert "errors" in exc_info.value.details
