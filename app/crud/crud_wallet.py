# app/crud/crud_wallet.py
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.wallet import Wallet


class CRUDWallet(CRUDBase[Wallet, BaseModel, BaseModel]):
    def get_by_owner(self, db: Session, *, owner_auth_id: str) -> Optional[Wallet]:
        return (
            db.query(self.model)
            .filter(self.model.owner_auth_id == owner_auth_id)
            .with_for_update()
            .first()
        )

    def credit(
        self, db: Session, *, owner_auth_id: str, amount_minor: int, currency: str
    ) -> Wallet:
        """Increase a wallet balance, opening the wallet if needed. Caller commits."""
        wallet = self.get_by_owner(db, owner_auth_id=owner_auth_id)
        if wallet is None:
            wallet = Wallet(owner_auth_id=owner_auth_id, currency=currency, balance_minor=0)
            db.add(wallet)
        wallet.balance_minor = (wallet.balance_minor or 0) + amount_minor
        db.flush()
        return wallet


wallet = CRUDWallet(Wallet)
