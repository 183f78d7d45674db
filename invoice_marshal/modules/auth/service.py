import logging
from datetime import datetime, timezone
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from invoice_marshal.modules.auth.models import User
from invoice_marshal.modules.auth.schemas import UserCreate, UserOut, TokenResponse, OnboardingUpdate
from invoice_marshal.modules.auth.utils import hash_password, verify_password, create_access_token
from invoice_marshal.core.config import settings

logger = logging.getLogger(__name__)


class AuthService:
    """
    Servicio de autenticación: registro, login y onboarding.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, user_data: UserCreate) -> User:
        """
        Crear nuevo usuario. El email debe ser único.
        """
        email = user_data.email.lower()
        existing_user = self.db.query(User).filter(User.email == email).first()
        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        try:
            user = User(
                email=email,
                password=hash_password(user_data.password),
                is_active=True
            )
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
            logger.info(f"User registered: {user.id}")
            return user
        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registering user {email}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error creating user"
            )

    def login(self, email: str, password: str) -> TokenResponse:
        """
        Login de usuario con email y contraseña.
        """
        user = self.db.query(User).filter(User.email == email.lower()).first()

        if not user or not verify_password(password, user.password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Inactive account"
            )

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()

        access_token = create_access_token({"sub": str(user.id), "email": user.email})
        return TokenResponse(
            access_token=access_token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserOut.model_validate(user)
        )

    def complete_onboarding(self, user: User, data: OnboardingUpdate) -> User:
        """
        Guardar nombre, apellido y dirección del usuario.
        Se puede repetir para actualizar los datos.
        """
        try:
            user.first_name = data.first_name
            user.last_name = data.last_name
            user.address = data.address
            self.db.commit()
            self.db.refresh(user)
            return user
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating onboarding for user {user.id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating user"
            )
