"""
FastAPI Dependencies

Database session, authentication, tenant resolution and role checks.

SECURITY NOTES:
- JWT payloads are never logged
- Bearer token first, then the "session" cookie set at login
- The company of a request always comes from the authenticated user,
  never from the request body or path
"""

from typing import Annotated, Optional
from fastapi import Depends, Cookie
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from jose import JWTError, jwt
import bcrypt
from datetime import datetime, timedelta, timezone
import logging

from bizdocs.database import get_db
from bizdocs.config import settings
from bizdocs.exceptions import ForbiddenError, UnauthorizedError
from bizdocs.models.company import Company
from bizdocs.models.user import User
from bizdocs.schemas.auth import TokenData
from bizdocs.services.email_service import EmailService, get_email_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

ROLES_MANAGING_DOCUMENTS = ("admin", "manager")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Signed JWT carrying data plus an exp claim."""
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email, "company_id": user.company_id})


def decode_access_token(token: str) -> TokenData:
    """Claims of a valid token. Anything else is a 401."""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return TokenData(user_id=int(claims["sub"]), email=claims.get("email"))
    except (JWTError, KeyError, TypeError, ValueError):
        raise UnauthorizedError()


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)] = None,
    session_token: Annotated[Optional[str], Cookie(alias="session")] = None,
) -> User:
    """The user behind the bearer token, or the session cookie when there is none."""
    token = credentials.credentials if credentials else session_token
    if not token:
        raise UnauthorizedError()

    token_data = decode_access_token(token)
    user = await db.get(User, token_data.user_id)
    if user is None:
        logger.warning(f"Token for unknown user {token_data.user_id}")
        raise UnauthorizedError()
    if not user.is_active:
        raise ForbiddenError("User account is disabled")
    return user


async def get_current_company(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> Company:
    """Tenant of the request."""
    company = await db.get(Company, current_user.company_id)
    if company is None or not company.is_active:
        raise ForbiddenError("Company account is disabled")
    return company


def require_role(*roles: str):
    """Dependency that lets only users holding one of roles through."""

    async def check_role(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if current_user.role not in roles:
            logger.warning(f"User {current_user.id} ({current_user.role}) denied; needs one of {roles}")
            raise ForbiddenError(f"Requires role: {', '.join(roles)}")
        return current_user

    return check_role


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentCompany = Annotated[Company, Depends(get_current_company)]
Mailer = Annotated[EmailService, Depends(get_email_service)]

AdminUser = Annotated[User, Depends(require_role("admin"))]
ManagerUser = Annotated[User, Depends(require_role(*ROLES_MANAGING_DOCUMENTS))]
