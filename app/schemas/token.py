# app/schemas/token.py
from typing import Optional

from pydantic import BaseModel


class TokenPayload(BaseModel):
    sub: str  # auth id of the caller
    role: Optional[str] = None  # 'customer', 'partner' or 'admin'
    exp: int

    model_config = {"from_attributes": True}
