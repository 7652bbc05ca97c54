# routers/auth.py — Registration and login
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    AuthService, UserRegister, UserLogin, TokenResponse,
    ACCESS_TOKEN_EXPIRE_MINUTES, user_summary,
)
from database import get_db_session
from errors import AuthenticationError

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _build_token_response(user_obj) -> TokenResponse:
    """Build token response from a user ORM instance"""
    return TokenResponse(
        token=AuthService.token_for(user_obj),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=user_summary(user_obj),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db_session),
):
    """Register a new user account"""
    user = await AuthService.register_user(user_data, db)
    return _build_token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db_session),
):
    """Authenticate and receive a token"""
    user = await AuthService.authenticate_user(credentials.email, credentials.password, db)
    if not user:
        raise AuthenticationError("Invalid credentials")
    return _build_token_response(user)
