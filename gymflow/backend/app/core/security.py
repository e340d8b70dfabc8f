from dataclasses import dataclass
from typing import Any, Dict

from jose import jwt

from ..config import get_settings

ALGORITHM = "HS256"


@dataclass(slots=True, frozen=True)
class Principal:
    subject: str
    role: str
    member_id: int | None = None


def decode_access_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(
        token,
        settings.auth_jwt_secret,
        algorithms=[ALGORITHM],
        audience=settings.auth_jwt_audience,
    )


def principal_from_claims(claims: Dict[str, Any]) -> Principal:
    member_id = claims.get("member_id")
    return Principal(
        subject=str(claims["sub"]),
        role=str(claims.get("role") or ""),
        member_id=int(member_id) if member_id is not None else None,
    )
