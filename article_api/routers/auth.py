from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from article_api.database import get_db
from article_api.dependencies import get_current_user
from article_api.schemas import AuthTokens, LoginRequest, RegisterRequest, UserResponse
from article_api.services import auth_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

@router.post("/register", status_code=201, response_model=UserResponse)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.register(db, data)

@router.post("/login", response_model=AuthTokens)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.login(db, data)

@router.get("/me", response_model=UserResponse)
async def me(user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await auth_service.get_profile(db, user["sub"])
