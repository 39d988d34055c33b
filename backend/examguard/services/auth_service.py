from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from ..core.security import create_access_token, verify_token
from ..core.config import settings
from .user_service import UserService
from ..schemas.auth import Token
from ..models.user import User


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_service = UserService(db)

    async def authenticate_and_create_token(self, email: str, password: str) -> Optional[Token]:
        user = await self.user_service.authenticate_user(email, password)
        if not user:
            return None

        expires = timedelta(minutes=settings.access_token_expire_minutes)
        access_token = create_access_token(data={"sub": user.email, "role": user.role}, expires_delta=expires)
        return Token(access_token=access_token, expires_in=int(expires.total_seconds()), role=user.role)

    async def get_current_user(self, token: str) -> Optional[User]:
        email = verify_token(token)
        if email is None:
            return None
        return await self.user_service.get_user_by_email(email)
