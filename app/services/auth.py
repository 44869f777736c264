# services/auth.py
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.hasher import PasswordHelper
from app.core.security import jwt_manager
from app.models.user import User
from app.schemas.auth import AuthResponse, LoginRequest, UserCreate, UserResponse

logger = logging.getLogger(__name__)


class AuthService:
    """Email/password login and account creation"""

    def _build_auth_response(self, user: User) -> AuthResponse:
        token = jwt_manager.create_access_token(user)
        return AuthResponse(
            access_token=token,
            token_type="bearer",
            expires_in=settings.jwt_expiration_days * 24 * 60 * 60,
            user=UserResponse.model_validate(user),
        )

    def login(self, request: LoginRequest, db: Session) -> AuthResponse:
        user = db.query(User).filter(User.email == request.email.lower()).first()

        if not user or not PasswordHelper.check_password(
            request.password, user.hashed_password
        ):
            logger.warning(f"Failed login attempt for {request.email}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated"
            )

        logger.info(f"User {user.id} logged in")
        return self._build_auth_response(user)

    def create_user(self, user_in: UserCreate, db: Session) -> User:
        email = user_in.email.lower()
        if db.query(User).filter(User.email == email).first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A user with this email already exists",
            )

        user = User(
            email=email,
            full_name=user_in.full_name,
            hashed_password=PasswordHelper.hash_password(user_in.password),
            role=user_in.role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.id} created with role {user.role}")
        return user


auth_service = AuthService()
