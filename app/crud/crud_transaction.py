# app/crud/crud_transaction.py
from typing import Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.transaction import Transaction
from app.schemas.payment import TransactionCreate


class CRUDTransaction(CRUDBase[Transaction, TransactionCreate, BaseModel]):
    def get_by_external_reference(
        self, db: Session, *, external_reference: str
    ) -> Optional[Transaction]:
        return (
            db.query(self.model)
            .filter(self.model.external_reference == external_reference)
            .first()
        )

    def record_charge(
        self, db: Session, *, obj_in: TransactionCreate
    ) -> Tuple[Transaction, bool]:
        """
        Add the ledger row for a payment unless it is already recorded.

        Returns the row and whether it was created. The unique constraint on
        ``external_reference`` backs the existence check. Caller commits.
        """
        existing = self.get_by_external_reference(
            db, external_reference=obj_in.external_reference
        )
        if existing:
            return existing, False

        db_obj = Transaction(**obj_in.model_dump(), kind="charge", status="succeeded")
        db.add(db_obj)
        db.flush()
        return db_obj, True


transaction = CRUDTransaction(Transaction)
