from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from sqlalchemy import select

from bizdocs.api.deps import (
    DbSession,
    CurrentUser,
    verify_password,
    get_password_hash,
    create_user_token,
)
from bizdocs.config import settings
from bizdocs.exceptions import UnauthorizedError, ValidationError
from bizdocs.models.user import User
from bizdocs.schemas.auth import (
    AuthMeResponse,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    Token,
    UserResponse,
)
from bizdocs.schemas.types import MessageResponse
from bizdocs.services import company_service

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=settings.ENVIRONMENT != "development",
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    response: Response,
    data: RegisterRequest,
    db: DbSession,
):
    """Create a company and its admin user, and sign the user in."""
    user = await company_service.register_company(db, data, get_password_hash(data.password))
    await db.commit()
    await db.refresh(user)

    token = create_user_token(user)
    _set_session_cookie(response, token)
    return Token(access_token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=Token)
async def login(
    response: Response,
    login_data: LoginRequest,
    db: DbSession,
):
    """Authenticate user and return JWT token."""
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        raise UnauthorizedError("Incorrect email or password")
    if not user.is_active:
        raise UnauthorizedError("User account is disabled")

    user.last_login = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)

    token = create_user_token(user)
    _set_session_cookie(response, token)
    return Token(access_token=token, user=UserResponse.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    """Logout user by clearing session cookie."""
    response.delete_cookie(key="session")
    return {"message": "Successfully logged out"}


@router.get("/me", response_model=AuthMeResponse)
async def get_current_user_info(current_user: CurrentUser):
    """Get current authenticated user information."""
    return AuthMeResponse(user=UserResponse.model_validate(current_user))


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)
    return current_user


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: PasswordChange,
    db: DbSession,
    current_user: CurrentUser,
):
    if not verify_password(data.current_password, current_user.hashed_password):
        raise ValidationError(
            "Current password is incorrect",
            errors=[{"field": "current_password", "message": "is incorrect", "type": "value_error"}],
        )
    current_user.hashed_password = get_password_hash(data.new_password)
    await db.commit()
    return {"message": "Password updated successfully"}
