# app/crud/crud_price_rule.py
import logging
from typing import List, Optional

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import PriceRuleSupersededError
from app.crud.base import CRUDBase
from app.crud.crud_area import area as crud_area
from app.models.booking import Booking
from app.models.price_rule import PriceRule
from app.schemas.price_rule import PriceRuleCreate, PriceRuleUpdate

logger = logging.getLogger(__name__)


class CRUDPriceRule(CRUDBase[PriceRule, PriceRuleCreate, PriceRuleUpdate]):
    def create_for_space(
        self, db: Session, *, space_id: str, obj_in: PriceRuleCreate
    ) -> PriceRule:
        db_obj = PriceRule(
            space_id=space_id,
            name=obj_in.name,
            description=obj_in.description,
            definition=obj_in.definition.model_dump(mode="json"),
            version=1,
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_in_space(
        self, db: Session, *, space_id: str, rule_id: str
    ) -> Optional[PriceRule]:
        return (
            db.query(self.model)
            .filter(self.model.id == rule_id, self.model.space_id == space_id)
            .first()
        )

    def get_multi_by_space(
        self, db: Session, *, space_id: str, skip: int = 0, limit: int = 100
    ) -> List[PriceRule]:
        return (
            db.query(self.model)
            .filter(self.model.space_id == space_id)
            .order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def is_referenced(self, db: Session, *, rule_id: str) -> bool:
        """True once any booking has been priced with this rule."""
        return db.query(exists().where(Booking.price_rule_id == rule_id)).scalar()

    def get_successor_id(self, db: Session, *, rule_id: str) -> Optional[str]:
        return (
            db.query(self.model.id)
            .filter(self.model.previous_version_id == rule_id)
            .scalar()
        )

    def update_rule(
        self, db: Session, *, db_obj: PriceRule, obj_in: PriceRuleUpdate
    ) -> PriceRule:
        """
        Apply an edit to a rule.

        Rules already used to price a booking are never modified: the edit
        becomes a new version row and every area on the old row is moved to
        it. Unused rules are edited in place. Only the newest version of a
        rule can be edited; older ids raise PriceRuleSupersededError.
        """
        changes = {
            k: v
            for k, v in obj_in.model_dump(exclude_unset=True).items()
            if v is not None or k == "description"
        }
        if obj_in.definition is not None:
            changes["definition"] = obj_in.definition.model_dump(mode="json")

        # Serializes concurrent edits of the same version
        db_obj = (
            db.query(self.model)
            .filter(self.model.id == db_obj.id)
            .populate_existing()
            .with_for_update()
            .one()
        )
        successor_id = self.get_successor_id(db, rule_id=db_obj.id)
        if successor_id is not None:
            db.rollback()
            raise PriceRuleSupersededError(db_obj.id, successor_id)

        if not self.is_referenced(db, rule_id=db_obj.id):
            return self.update(db, db_obj=db_obj, obj_in=changes)

        new_rule = PriceRule(
            space_id=db_obj.space_id,
            name=changes.get("name", db_obj.name),
            description=changes.get("description", db_obj.description),
            definition=changes.get("definition", db_obj.definition),
            version=db_obj.version + 1,
            previous_version_id=db_obj.id,
        )
        try:
            db.add(new_rule)
            db.flush()
        except IntegrityError:
            db.rollback()
            raise PriceRuleSupersededError(
                db_obj.id, self.get_successor_id(db, rule_id=db_obj.id) or "unknown"
            )
        moved = crud_area.repoint_price_rule(
            db, old_rule_id=db_obj.id, new_rule_id=new_rule.id
        )
        db.commit()
        db.refresh(new_rule)
        logger.info(
            f"Price rule {db_obj.id} is referenced by bookings; created version "
            f"{new_rule.version} as {new_rule.id} and moved {moved} area(s)"
        )
        return new_rule


price_rule = CRUDPriceRule(PriceRule)
