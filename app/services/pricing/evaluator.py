# app/services/pricing/evaluator.py
"""
Price rule evaluation.

Pricing model:
- conditions are tried in declared order; the first whose predicate holds
  sets the price and later matches are ignored
- otherwise price = base_rate * ceil(booking_hours / unit_hours)
- no base rate and no match means the rule cannot price the booking
  (price is None, never zero)

All arithmetic is done in integer minor units. Evaluation is pure: no I/O,
no clock reads, no shared state.
"""

import operator
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from app.core.errors import PriceNotApplicableError, PricingRuleError
from app.schemas.price_rule import (
    UNIT_HOURS,
    AllPredicate,
    AnyPredicate,
    DayOfWeekPredicate,
    DiscountPrice,
    FixedPrice,
    PriceCondition,
    PriceRuleDefinition,
    PricingUnit,
    RatePrice,
    ThresholdField,
    ThresholdPredicate,
    TimeOfDayPredicate,
)
from app.utils.money import from_minor

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

COMPARATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


class PricingBranch(str, Enum):
    condition = "condition"
    base_rate = "base_rate"
    no_price = "no_price"


@dataclass(frozen=True)
class BookingContext:
    """
    What a rule is evaluated against. ``start_at`` should already be in the
    space's local time so day and time-of-day conditions read local clocks.
    """
    booking_hours: Decimal
    start_at: Optional[datetime] = None
    guest_count: Optional[int] = None

    def __post_init__(self):
        hours = Decimal(str(self.booking_hours))
        if hours <= 0:
            raise ValueError("booking_hours must be positive")
        object.__setattr__(self, "booking_hours", hours)

    @property
    def booking_days(self) -> int:
        return billed_units(self.booking_hours, PricingUnit.day)

    @property
    def end_at(self) -> Optional[datetime]:
        if self.start_at is None:
            return None
        return self.start_at + timedelta(hours=float(self.booking_hours))


@dataclass(frozen=True)
class EvaluationResult:
    price_minor: Optional[int]
    matched_condition: Optional[str]
    branch: PricingBranch
    billed_units: Optional[int] = None
    minor_exponent: int = 2

    @property
    def price(self) -> Optional[Decimal]:
        """Price in major units, for display."""
        if self.price_minor is None:
            return None
        return from_minor(self.price_minor, self.minor_exponent)


def parse_definition(raw: Union[PriceRuleDefinition, Mapping[str, Any]]) -> PriceRuleDefinition:
    """Validate a stored definition into its typed form."""
    if isinstance(raw, PriceRuleDefinition):
        return raw
    if not isinstance(raw, Mapping):
        raise PricingRuleError(
            f"Price rule definition must be an object, got {type(raw).__name__}"
        )
    try:
        return PriceRuleDefinition.model_validate(raw)
    except ValidationError as e:
        raise PricingRuleError(
            "Malformed price rule definition",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


def billed_units(hours: Decimal, unit: PricingUnit) -> int:
    """Whole units billed for a duration; partial units round up."""
    return int((hours / UNIT_HOURS[unit]).to_integral_value(rounding=ROUND_CEILING))


def to_minor(amount: Decimal, exponent: int) -> int:
    scaled = amount.scaleb(exponent)
    if scaled != scaled.to_integral_value():
        raise PricingRuleError(
            f"Amount {amount} has more precision than the currency allows"
        )
    return int(scaled)


def evaluate_price_rule(
    definition: Union[PriceRuleDefinition, Mapping[str, Any]],
    context: BookingContext,
    *,
    minor_exponent: int = 2,
) -> EvaluationResult:
    """
    Price a booking.

    Raises PricingRuleError when the definition is malformed. A definition
    that is valid but has nothing to charge returns a result whose price is
    None; use ``require_price`` to turn that into a client error.
    """
    definition = parse_definition(definition)

    for condition in definition.conditions:
        if _matches(condition.when, context):
            price_minor, units = _condition_price(
                condition, definition, context, minor_exponent
            )
            return EvaluationResult(
                price_minor=price_minor,
                matched_condition=condition.id,
                branch=PricingBranch.condition,
                billed_units=units,
                minor_exponent=minor_exponent,
            )

    if definition.base_rate is None:
        return EvaluationResult(
            price_minor=None,
            matched_condition=None,
            branch=PricingBranch.no_price,
            minor_exponent=minor_exponent,
        )

    units = billed_units(context.booking_hours, definition.unit)
    return EvaluationResult(
        price_minor=to_minor(definition.base_rate, minor_exponent) * units,
        matched_condition=None,
        branch=PricingBranch.base_rate,
        billed_units=units,
        minor_exponent=minor_exponent,
    )


def require_price(result: EvaluationResult) -> EvaluationResult:
    if result.price_minor is None:
        raise PriceNotApplicableError()
    return result


def _matches(node, context: BookingContext) -> bool:
    if isinstance(node, ThresholdPredicate):
        actual = _threshold_value(node.field, context)
        if actual is None:
            return False
        return COMPARATORS[node.operator](Decimal(actual), node.value)

    if isinstance(node, DayOfWeekPredicate):
        if context.start_at is None:
            return False
        return not _days_touched(context).isdisjoint(node.days)

    if isinstance(node, TimeOfDayPredicate):
        if context.start_at is None:
            return False
        t = context.start_at.time().replace(tzinfo=None)
        if node.start < node.end:
            return node.start <= t < node.end
        return t >= node.start or t < node.end

    if isinstance(node, AllPredicate):
        return all(_matches(child, context) for child in node.predicates)

    if isinstance(node, AnyPredicate):
        return any(_matches(child, context) for child in node.predicates)

    raise PricingRuleError(f"Unsupported predicate node {type(node).__name__}")


def _threshold_value(field: ThresholdField, context: BookingContext):
    if field == ThresholdField.booking_hours:
        return context.booking_hours
    if field == ThresholdField.booking_days:
        return context.booking_days
    if field == ThresholdField.guest_count:
        return context.guest_count
    raise PricingRuleError(f"Unsupported threshold field {field!r}")


def _days_touched(context: BookingContext) -> set:
    """Weekday names covered by [start_at, end_at)."""
    first = context.start_at.date()
    # The end instant itself is outside the window
    last = (context.end_at - timedelta(microseconds=1)).date()
    span = min((last - first).days, 6)
    return {WEEKDAYS[(first + timedelta(days=i)).weekday()] for i in range(span + 1)}


def _condition_price(
    condition: PriceCondition,
    definition: PriceRuleDefinition,
    context: BookingContext,
    exponent: int,
):
    price = condition.price

    if isinstance(price, FixedPrice):
        return to_minor(price.amount, exponent), None

    if isinstance(price, RatePrice):
        units = billed_units(context.booking_hours, price.unit)
        return to_minor(price.amount, exponent) * units, units

    if isinstance(price, DiscountPrice):
        if definition.base_rate is None:
            raise PricingRuleError(
                f"Condition '{condition.id}' discounts a rule without a base rate"
            )
        units = billed_units(context.booking_hours, definition.unit)
        base_minor = to_minor(definition.base_rate, exponent) * units
        discounted = (Decimal(base_minor) * (100 - price.percent) / 100).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )
        return int(discounted), units

    raise PricingRuleError(f"Unsupported price node {type(price).__name__}")
