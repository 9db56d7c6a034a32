"""Bearer-token verification for tokens issued by the hosted auth provider.

Sign-up, login and password handling live with the provider. This module
only turns the Authorization header into an explicit UserSession, which
routes pass down to every service call that touches the store.
"""

import jwt
from dataclasses import dataclass
from fastapi import HTTPException, Request
from revision.config import settings

JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class UserSession:
    user_id: str
    email: str
    token: str
    role: str = "authenticated"


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def session_from_token(token: str) -> UserSession:
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return UserSession(
        user_id=str(user_id),
        email=payload.get("email", ""),
        token=token,
        role=payload.get("role", "authenticated"),
    )


async def get_current_session(request: Request) -> UserSession:
    """FastAPI dependency: validate the bearer token and return the caller's session."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")

    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Empty token")

    return session_from_token(token)
