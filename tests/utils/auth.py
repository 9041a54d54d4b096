import time

from jose import jwt

from app.core.config import settings

PARTNER_ID = "partner_1"
CUSTOMER_ID = "customer_1"


def get_user_authentication_headers(
    user_id: str = CUSTOMER_ID, role: str = "customer"
) -> dict[str, str]:
    """
    Generates a valid JWT token and authentication headers for a test user.
    """
    token = jwt.encode(
        {"sub": user_id, "role": role, "exp": int(time.time()) + 3600},
        settings.JWT_SECRET,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}
