import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session
from jose import JWTError

from app.core.config import settings
from app.core import security
from app.models.user import User
from app.models.revoked_token import RevokedToken
from app.schemas.auth import AuthResponse, AuthTokensResponse, UserInfo
from app.crud import user as user_crud

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def authenticate_with_password(self, email: str, password: str) -> AuthResponse:
        """Authenticate staff user with email and password"""
        user = user_crud.get_by_email(self.db, email=email)
        if not user or not security.verify_password(password, user.hashed_password):
            logger.info("Failed login for %s", email)
            raise ValueError("Invalid email or password")

        if not user.is_active:
            raise ValueError("Inactive user")

        user.last_login_at = datetime.utcnow()
        self.db.commit()

        return AuthResponse(
            tokens=self._create_tokens(user),
            user=self.build_user_info(user)
        )

    def refresh_tokens(self, refresh_token: str) -> AuthTokensResponse:
        """Issue a new access token; the refresh token is kept as is"""
        payload = self._decode_refresh_token(refresh_token)

        user = user_crud.get(self.db, id=int(payload["sub"]))
        if not user or not user.is_active:
            raise ValueError("Invalid refresh token")

        return AuthTokensResponse(
            access_token=security.create_access_token(user.id, clinic_id=user.clinic_id, role=user.role),
            refresh_token=refresh_token,
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        )

    def logout(self, refresh_token: Optional[str]) -> None:
        """Revoke the refresh token so it can no longer mint access tokens"""
        if not refresh_token:
            return
        try:
            payload = self._decode_refresh_token(refresh_token)
        except ValueError:
            # Already unusable
            return

        jti = payload["jti"]
        if self.db.get(RevokedToken, jti) is not None:
            return
        self.db.add(RevokedToken(
            jti=jti,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            revoked_at=datetime.now(timezone.utc),
        ))
        self.db.commit()
        logger.info("Revoked refresh token for user %s", payload.get("sub"))

    def _decode_refresh_token(self, refresh_token: str) -> dict:
        try:
            payload = security.decode_token(refresh_token)
        except JWTError:
            raise ValueError("Invalid refresh token")
        if payload.get("type") != security.REFRESH_TOKEN_TYPE:
            raise ValueError("Invalid token type")
        if not payload.get("sub") or not payload.get("jti"):
            raise ValueError("Invalid refresh token")
        if self.db.get(RevokedToken, payload["jti"]) is not None:
            raise ValueError("Refresh token has been revoked")
        return payload

    def _create_tokens(self, user: User) -> AuthTokensResponse:
        """Create access and refresh tokens"""
        return AuthTokensResponse(
            access_token=security.create_access_token(user.id, clinic_id=user.clinic_id, role=user.role),
            refresh_token=security.create_refresh_token(user.id),
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        )

    def build_user_info(self, user: User) -> UserInfo:
        parts = [p for p in [user.first_name, user.last_name] if p]
        return UserInfo(
            id=user.id,
            email=user.email,
            full_name=" ".join(parts) if parts else None,
            role=user.role,
            clinic_id=user.clinic_id,
            last_login_at=user.last_login_at
        )
