# app/crud/crud_area.py
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.area import Area


class CRUDArea(CRUDBase[Area, BaseModel, BaseModel]):
    def get_for_update(self, db: Session, *, area_id: str) -> Optional[Area]:
        """
        Get an area with a row lock (SELECT ... FOR UPDATE).

        Holding this lock serializes capacity decisions for the area until
        the surrounding transaction ends.
        """
        return (
            db.query(self.model)
            .filter(self.model.id == area_id)
            .with_for_update()
            .first()
        )

    def get_in_space(
        self, db: Session, *, space_id: str, area_id: str
    ) -> Optional[Area]:
        return (
            db.query(self.model)
            .filter(self.model.id == area_id, self.model.space_id == space_id)
            .first()
        )

    def set_price_rule(
        self, db: Session, *, db_obj: Area, price_rule_id: Optional[str]
    ) -> Area:
        db_obj.price_rule_id = price_rule_id
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def repoint_price_rule(
        self, db: Session, *, old_rule_id: str, new_rule_id: str
    ) -> int:
        """Move every area using one rule onto another. Caller commits."""
        return (
            db.query(self.model)
            .filter(self.model.price_rule_id == old_rule_id)
            .update({"price_rule_id": new_rule_id}, synchronize_session=False)
        )


area = CRUDArea(Area)
