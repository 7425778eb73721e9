from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.db.session import SessionLocal
from app.core.auth_utils import decode_token

security = HTTPBearer()

ROLES = ("user", "owner", "admin")


@dataclass(frozen=True)
class Principal:
    """Who is acting. Passed explicitly into every service call."""

    id: int
    role: str
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    payload = decode_token(credentials.credentials)

    if payload["role"] not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid role"
        )

    try:
        principal_id = int(payload["id"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    return Principal(id=principal_id, role=payload["role"], email=payload["sub"])
