# app/crud/crud_notification.py
import logging
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.notification import Notification
from app.schemas.notification import NotificationCreate

logger = logging.getLogger(__name__)


class CRUDNotification(CRUDBase[Notification, NotificationCreate, BaseModel]):
    def exists_for(
        self, db: Session, *, booking_id: str, user_auth_id: str, kind: str
    ) -> bool:
        return (
            db.query(self.model.id)
            .filter(
                self.model.booking_id == booking_id,
                self.model.user_auth_id == user_auth_id,
                self.model.kind == kind,
            )
            .first()
            is not None
        )

    def create_once(
        self, db: Session, *, obj_in: NotificationCreate
    ) -> Optional[Notification]:
        """
        Insert a notification unless one of the same kind already exists for
        this booking and recipient. Returns None when skipped. Caller commits.
        """
        kind = obj_in.kind.value
        if self.exists_for(
            db, booking_id=obj_in.booking_id, user_auth_id=obj_in.user_auth_id, kind=kind
        ):
            return None

        db_obj = Notification(
            booking_id=obj_in.booking_id,
            user_auth_id=obj_in.user_auth_id,
            kind=kind,
            title=obj_in.title,
            body=obj_in.body,
        )
        try:
            with db.begin_nested():
                db.add(db_obj)
        except IntegrityError:
            logger.info(
                f"Notification {kind} for booking {obj_in.booking_id} already exists, skipping"
            )
            return None
        return db_obj

    def get_multi_by_booking(self, db: Session, *, booking_id: str) -> List[Notification]:
        return (
            db.query(self.model)
            .filter(self.model.booking_id == booking_id)
            .order_by(self.model.created_at)
            .all()
        )


notification = CRUDNotification(Notification)
