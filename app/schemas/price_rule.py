# app/schemas/price_rule.py
"""
Price rule definitions.

A definition is a small declarative AST: a base rate billed per unit plus an
ordered list of conditions, each pairing a predicate with a price. Predicates
and prices are closed sets of variants told apart by their ``kind`` / ``type``
tag, so an unknown node fails validation instead of being skipped.
"""
from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PricingUnit(str, Enum):
    hour = "hour"
    day = "day"
    week = "week"


UNIT_HOURS: Dict[PricingUnit, int] = {
    PricingUnit.hour: 1,
    PricingUnit.day: 24,
    PricingUnit.week: 168,
}


class ThresholdField(str, Enum):
    booking_hours = "booking_hours"
    booking_days = "booking_days"
    guest_count = "guest_count"


Comparator = Literal["<", "<=", ">", ">=", "==", "!="]
Weekday = Literal["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


class _Node(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# --- Predicates ---

class ThresholdPredicate(_Node):
    kind: Literal["threshold"]
    field: ThresholdField
    operator: Comparator
    value: Decimal


class DayOfWeekPredicate(_Node):
    """Matches when the booking window touches any of the listed days."""

    kind: Literal["day_of_week"]
    days: List[Weekday] = Field(min_length=1)


class TimeOfDayPredicate(_Node):
    """Matches when the booking starts in [start, end); wraps past midnight."""

    kind: Literal["time_of_day"]
    start: time
    end: time

    @model_validator(mode="after")
    def _non_empty_range(self):
        if self.start == self.end:
            raise ValueError("time_of_day start and end must differ")
        return self


class AllPredicate(_Node):
    kind: Literal["all"]
    predicates: List["Predicate"] = Field(min_length=1)


class AnyPredicate(_Node):
    kind: Literal["any"]
    predicates: List["Predicate"] = Field(min_length=1)


Predicate = Annotated[
    Union[
        ThresholdPredicate,
        DayOfWeekPredicate,
        TimeOfDayPredicate,
        AllPredicate,
        AnyPredicate,
    ],
    Field(discriminator="kind"),
]


# --- Prices ---

class FixedPrice(_Node):
    """Total price for the booking."""

    type: Literal["fixed"]
    amount: Decimal = Field(ge=0)


class RatePrice(_Node):
    """Replacement rate billed per unit, rounded up to whole units."""

    type: Literal["rate"]
    amount: Decimal = Field(ge=0)
    unit: PricingUnit


class DiscountPrice(_Node):
    """Percentage off the base-rate price."""

    type: Literal["discount"]
    percent: Decimal = Field(ge=0, le=100)


ConditionPrice = Annotated[
    Union[FixedPrice, RatePrice, DiscountPrice],
    Field(discriminator="type"),
]


class PriceCondition(_Node):
    id: str = Field(min_length=1, max_length=100)
    when: Predicate
    price: ConditionPrice


class PriceRuleDefinition(_Node):
    base_rate: Optional[Decimal] = Field(default=None, ge=0)
    unit: PricingUnit = PricingUnit.hour
    conditions: List[PriceCondition] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_conditions(self):
        seen = set()
        for condition in self.conditions:
            if condition.id in seen:
                raise ValueError(f"duplicate condition id '{condition.id}'")
            seen.add(condition.id)
            if isinstance(condition.price, DiscountPrice) and self.base_rate is None:
                raise ValueError(
                    f"condition '{condition.id}' applies a discount but the rule has no base_rate"
                )
        return self


AllPredicate.model_rebuild()
AnyPredicate.model_rebuild()
PriceCondition.model_rebuild()
PriceRuleDefinition.model_rebuild()


# --- API payloads ---

class PriceRuleBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class PriceRuleCreate(PriceRuleBase):
    definition: PriceRuleDefinition


class PriceRuleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    definition: Optional[PriceRuleDefinition] = None


class PriceRule(PriceRuleBase):
    id: str
    space_id: str
    version: int
    previous_version_id: Optional[str] = None
    definition: Dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AreaPriceRuleAssign(BaseModel):
    price_rule_id: Optional[str] = None


class BookingContextIn(BaseModel):
    booking_hours: Decimal = Field(gt=0)
    start_at: Optional[datetime] = None
    guest_count: Optional[int] = Field(default=None, ge=1)


class EvaluateRequest(BaseModel):
    definition: PriceRuleDefinition
    context: BookingContextIn
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class EvaluateResponse(BaseModel):
    price: Optional[Decimal] = None
    price_minor: Optional[int] = None
    currency: str
    matched_condition: Optional[str] = None
    branch: str
    billed_units: Optional[int] = None
