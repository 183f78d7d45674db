from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from invoice_marshal.dependencies.dbDependecies import get_db
from invoice_marshal.modules.auth.service import AuthService
from invoice_marshal.modules.auth.utils import get_current_user
from invoice_marshal.modules.auth.models import User
from invoice_marshal.modules.auth.schemas import UserCreate, UserOut, TokenResponse, OnboardingUpdate

auth_router = APIRouter()

@auth_router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Registrar nuevo usuario.
    """
    auth_service = AuthService(db)
    return auth_service.create_user(user_data)

@auth_router.post("/login", response_model=TokenResponse)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Login de usuario. El campo username lleva el email.
    """
    auth_service = AuthService(db)
    return auth_service.login(form_data.username, form_data.password)

@auth_router.get("/me", response_model=UserOut)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """
    Obtener información del usuario actual.
    """
    return UserOut.model_validate(current_user)

@auth_router.patch("/onboarding", response_model=UserOut)
async def complete_onboarding(
    data: OnboardingUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Completar onboarding: nombre, apellido y dirección.
    """
    auth_service = AuthService(db)
    return auth_service.complete_onboarding(current_user, data)
