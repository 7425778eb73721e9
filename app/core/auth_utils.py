from fastapi import HTTPException

from app.core.jwt import decode_access_token

REQUIRED_CLAIMS = ("sub", "role", "id")


def decode_token(token: str):
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if any(claim not in payload for claim in REQUIRED_CLAIMS):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    return payload
