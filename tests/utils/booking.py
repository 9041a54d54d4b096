from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.models.area import Area
from app.models.booking import Booking
from app.models.price_rule import PriceRule
from app.models.space import Space
from app.utils.time import utcnow
from tests.utils.auth import CUSTOMER_ID, PARTNER_ID

HOURLY_RULE = {"base_rate": "100.00", "unit": "hour", "conditions": []}


def create_test_space(db: Session, partner_auth_id: str = PARTNER_ID, **overrides) -> Space:
    """
    Creates a published space owned by the test partner.
    """
    space = Space(
        name=overrides.pop("name", "Makati Hub"),
        partner_auth_id=partner_auth_id,
        timezone=overrides.pop("timezone", "UTC"),
        **overrides,
    )
    db.add(space)
    db.commit()
    db.refresh(space)
    return space


def create_test_rule(db: Session, space: Space, definition=None, **overrides) -> PriceRule:
    rule = PriceRule(
        space_id=space.id,
        name=overrides.pop("name", "Standard"),
        definition=definition if definition is not None else HOURLY_RULE,
        **overrides,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def create_test_area(db: Session, space: Space, rule=None, **overrides) -> Area:
    """
    Creates an area with room for 5 guests, priced by ``rule`` when given.
    """
    area = Area(
        space_id=space.id,
        name=overrides.pop("name", "Board Room"),
        max_capacity=overrides.pop("max_capacity", 5),
        currency=overrides.pop("currency", "PHP"),
        price_rule_id=rule.id if rule is not None else None,
        **overrides,
    )
    db.add(area)
    db.commit()
    db.refresh(area)
    return area


def create_test_booking(
    db: Session,
    area: Area,
    start_at: datetime,
    hours: int = 2,
    guest_count: int = 1,
    status: str = "pending",
    paid: bool = False,
    **overrides,
) -> Booking:
    """
    Creates a booking directly in the database, bypassing pricing.

    Priced at PHP 200.00 unless ``price_minor`` is given; ``paid`` stamps
    ``paid_at`` with the current time.
    """
    now = utcnow()
    booking = Booking(
        space_id=area.space_id,
        area_id=area.id,
        user_auth_id=overrides.pop("user_auth_id", CUSTOMER_ID),
        partner_auth_id=overrides.pop("partner_auth_id", PARTNER_ID),
        status=status,
        start_at=start_at,
        end_at=start_at + timedelta(hours=hours),
        booking_hours=hours,
        guest_count=guest_count,
        expires_at=overrides.pop("expires_at", now + timedelta(minutes=30)),
        price_minor=overrides.pop("price_minor", 20000),
        currency=overrides.pop("currency", "PHP"),
        area_max_capacity=overrides.pop("area_max_capacity", area.max_capacity),
        paid_at=overrides.pop("paid_at", now if paid else None),
        **overrides,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking
