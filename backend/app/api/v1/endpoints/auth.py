import logging
from typing import Any
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app import models
from app.api import deps
from app.core.auth_service import AuthService
from app.schemas.auth import (
    AuthResponse, AuthTokensResponse, EmailPasswordRequest,
    LogoutRequest, RefreshTokenRequest, UserInfo
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=AuthResponse)
def login(
    *,
    db: Session = Depends(deps.get_db),
    login_data: EmailPasswordRequest,
) -> Any:
    """
    Authenticate clinic staff with email and password.
    """
    try:
        return AuthService(db).authenticate_with_password(
            email=login_data.email,
            password=login_data.password
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )


@router.post("/refresh", response_model=AuthTokensResponse)
def refresh_tokens(
    *,
    db: Session = Depends(deps.get_db),
    refresh_data: RefreshTokenRequest,
) -> Any:
    """
    Refresh access token using refresh token.
    """
    try:
        return AuthService(db).refresh_tokens(refresh_data.refresh_token)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    *,
    db: Session = Depends(deps.get_db),
    logout_data: LogoutRequest,
) -> None:
    AuthService(db).logout(logout_data.refresh_token)


@router.get("/profile", response_model=UserInfo)
def get_profile(
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Identity of the user the access token was issued to.
    """
    logger.info(f"Profile access for user: {current_user.email}")
    return AuthService(db).build_user_info(current_user)
