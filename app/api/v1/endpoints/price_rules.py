# app/api/v1/endpoints/price_rules.py
import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import crud
from app.api import deps
from app.core.config import settings
from app.core.errors import AreaNotFoundError, PriceRuleNotFoundError
from app.models.space import Space
from app.schemas.price_rule import (
    AreaPriceRuleAssign,
    EvaluateRequest,
    EvaluateResponse,
    PriceRule,
    PriceRuleCreate,
    PriceRuleUpdate,
)
from app.schemas.token import TokenPayload
from app.services.pricing.evaluator import BookingContext, evaluate_price_rule
from app.utils.money import minor_exponent

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/spaces/{space_id}/price-rules",
    response_model=PriceRule,
    status_code=status.HTTP_201_CREATED,
)
def create_price_rule(
    rule_in: PriceRuleCreate,
    space: Space = Depends(deps.get_owned_space),
    db: Session = Depends(deps.get_db),
):
    """Create a price rule for one of the partner's spaces."""
    rule = crud.price_rule.create_for_space(db, space_id=space.id, obj_in=rule_in)
    logger.info(f"Price rule {rule.id} created for space {space.id}")
    return rule


@router.get("/spaces/{space_id}/price-rules", response_model=List[PriceRule])
def list_price_rules(
    skip: int = 0,
    limit: int = 100,
    space: Space = Depends(deps.get_owned_space),
    db: Session = Depends(deps.get_db),
):
    return crud.price_rule.get_multi_by_space(db, space_id=space.id, skip=skip, limit=limit)


@router.get("/spaces/{space_id}/price-rules/{rule_id}", response_model=PriceRule)
def get_price_rule(
    rule_id: str,
    space: Space = Depends(deps.get_owned_space),
    db: Session = Depends(deps.get_db),
):
    rule = crud.price_rule.get_in_space(db, space_id=space.id, rule_id=rule_id)
    if rule is None:
        raise PriceRuleNotFoundError(rule_id)
    return rule


@router.put("/spaces/{space_id}/price-rules/{rule_id}", response_model=PriceRule)
def update_price_rule(
    rule_id: str,
    rule_in: PriceRuleUpdate,
    space: Space = Depends(deps.get_owned_space),
    db: Session = Depends(deps.get_db),
):
    """
    Edit a price rule.

    If bookings were already priced with the rule, the edit is saved as a new
    version and the response carries the new id; areas follow automatically.
    """
    rule = crud.price_rule.get_in_space(db, space_id=space.id, rule_id=rule_id)
    if rule is None:
        raise PriceRuleNotFoundError(rule_id)
    return crud.price_rule.update_rule(db, db_obj=rule, obj_in=rule_in)


@router.put("/spaces/{space_id}/areas/{area_id}/price-rule", response_model=AreaPriceRuleAssign)
def assign_area_price_rule(
    area_id: str,
    assign_in: AreaPriceRuleAssign,
    space: Space = Depends(deps.get_owned_space),
    db: Session = Depends(deps.get_db),
):
    """Set (or clear, with null) the active price rule of an area."""
    area = crud.area.get_in_space(db, space_id=space.id, area_id=area_id)
    if area is None:
        raise AreaNotFoundError(area_id)

    if assign_in.price_rule_id is not None:
        rule = crud.price_rule.get_in_space(db, space_id=space.id, rule_id=assign_in.price_rule_id)
        if rule is None:
            raise PriceRuleNotFoundError(assign_in.price_rule_id)

    area = crud.area.set_price_rule(db, db_obj=area, price_rule_id=assign_in.price_rule_id)
    return AreaPriceRuleAssign(price_rule_id=area.price_rule_id)


@router.post("/price-rules/evaluate", response_model=EvaluateResponse)
def evaluate_price_rule_preview(
    evaluate_in: EvaluateRequest,
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Dry-run a definition against a sample booking. A rule that cannot price
    the sample answers with a null price rather than an error.
    """
    currency = (evaluate_in.currency or settings.DEFAULT_CURRENCY).upper()
    context = BookingContext(
        booking_hours=evaluate_in.context.booking_hours,
        start_at=evaluate_in.context.start_at,
        guest_count=evaluate_in.context.guest_count,
    )
    result = evaluate_price_rule(
        evaluate_in.definition, context, minor_exponent=minor_exponent(currency)
    )
    return EvaluateResponse(
        price=result.price,
        price_minor=result.price_minor,
        currency=currency,
        matched_condition=result.matched_condition,
        branch=result.branch.value,
        billed_units=result.billed_units,
    )
