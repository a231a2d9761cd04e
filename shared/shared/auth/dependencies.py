"""
Bearer-token verification shared by every Circle service.

Tokens are minted by the identity service (users) or by a deploy-time key
holder (service tokens).  Only verification happens here: signature,
issuer, audience and expiry, with ``leeway_seconds`` of clock skew.
"""
import logging
from functools import lru_cache
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from shared.auth.config import AuthSettings
from shared.constants import Role
from shared.models.user import CurrentUser

logger = logging.getLogger(__name__)

http_bearer = HTTPBearer(auto_error=False)
_KNOWN_ROLES = {r.value: r for r in Role}


@lru_cache
def get_auth_settings() -> AuthSettings:
    return AuthSettings()


class InvalidToken(HTTPException):
    def __init__(self, detail: str = "Not authenticated") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def decode_user(token: str, settings: AuthSettings) -> CurrentUser:
    """Verify ``token`` and build the caller; raises InvalidToken."""
    try:
        claims = jwt.decode(
            token,
            settings.secret,
            algorithms=[settings.algorithm],
            issuer=settings.issuer,
            audience=settings.audience,
            options={"leeway": settings.leeway_seconds},
        )
    except ExpiredSignatureError as exc:
        raise InvalidToken("Token has expired") from exc
    except JWTError as exc:
        logger.debug("Rejected bearer token: %s", exc)
        raise InvalidToken() from exc

    try:
        user_id = UUID(str(claims["sub"]))
    except (KeyError, ValueError) as exc:
        raise InvalidToken("Token subject is not a user id") from exc

    # Roles this service does not know about grant nothing
    roles = [_KNOWN_ROLES[r] for r in claims.get("roles") or [] if r in _KNOWN_ROLES]
    return CurrentUser(id=user_id, username=claims.get("username") or "", roles=roles)


async def get_current_user_required(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    settings: AuthSettings = Depends(get_auth_settings),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise InvalidToken()
    return decode_user(credentials.credentials, settings)
