# app/crud/crud_space.py
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.space import Space


class CRUDSpace(CRUDBase[Space, BaseModel, BaseModel]):
    def get_owned(
        self, db: Session, *, space_id: str, partner_auth_id: str
    ) -> Optional[Space]:
        """Get a space only if it belongs to the given partner."""
        return (
            db.query(self.model)
            .filter(
                self.model.id == space_id,
                self.model.partner_auth_id == partner_auth_id,
            )
            .first()
        )


space = CRUDSpace(Space)
