from typing import Annotated
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from ..core.constants import MEMBER_ROLE
from ..core.security import Principal, decode_access_token, principal_from_claims
from ..events import EventChannel


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=True)


def get_current_principal(token: Annotated[str, Depends(oauth2_scheme)]) -> Principal:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    try:
        claims = decode_access_token(token)
        return principal_from_claims(claims)
    except (JWTError, KeyError, ValueError) as exc:
        raise credentials_exception from exc


def require_roles(*roles: str):
    def dependency(principal: Annotated[Principal, Depends(get_current_principal)]) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return principal

    return dependency


def ensure_member_scope(principal: Principal, member_id: int) -> None:
    """Members may only act on their own bookings and preferences."""

    if principal.role == MEMBER_ROLE and principal.member_id != member_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def get_event_channel(request: Request) -> EventChannel:
    return request.app.state.events
