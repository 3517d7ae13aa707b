"""
Utilitaires partages entre les routers API.
"""
import logging
from uuid import UUID

from fastapi import Depends, Request, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi import Limiter
from slowapi.util import get_remote_address
from jose import JWTError, jwt as jose_jwt
from sqlmodel import Session

from app.auth.jwt import get_current_user_id
from app.core.database import get_session
from app.core.settings import get_settings
from app.domain.services.activity_store import ActivityStore

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def security(request: Request) -> HTTPAuthorizationCredentials:
    """Extrait le JWT depuis le header Bearer ou le cookie access_token."""
    # 1. Essayer le header Authorization: Bearer <token>
    creds = await _bearer_scheme(request)
    if creds:
        return creds

    # 2. Fallback sur le cookie httpOnly
    token = request.cookies.get("access_token")
    if token:
        return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_token_from_request(request: Request) -> str | None:
    """Extrait le JWT brut depuis header ou cookie (pour le rate limiter)."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get("access_token")


def _get_user_or_ip(request: Request) -> str:
    """Key function pour le rate limiter : retourne le user_id JWT si present, sinon l'IP."""
    token = _extract_token_from_request(request)
    if token:
        try:
            settings = get_settings()
            payload = jose_jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
            user_id = payload.get("sub")
            if user_id:
                return f"user:{user_id}"
        except JWTError:
            pass
    return get_remote_address(request)


limiter = Limiter(key_func=_get_user_or_ip, default_limits=["100/minute"], headers_enabled=True)


def user_uuid_from(token: HTTPAuthorizationCredentials) -> UUID:
    """UUID de l'utilisateur authentifie."""
    user_id = get_current_user_id(token.credentials)
    try:
        return UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
        )


def get_store(session: Session = Depends(get_session)) -> ActivityStore:
    return ActivityStore(session)

