# bookingcart/core/auth.py
from typing import Optional

from fastapi import HTTPException, Request, status


def _extract_bearer_token(request: Request) -> Optional[str]:
    """
    Reads the token from an `Authorization: Bearer <token>` header.
    Returns None when it is missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


# --------- FastAPI Dependencies --------- #

async def get_bearer_token(request: Request) -> str:
    """
    Token required. It is not verified here: the marketplace API receives it with every
    cart call and is the one that authenticates the user.
    """
    token = _extract_bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token
