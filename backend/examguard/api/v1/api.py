from fastapi import APIRouter

from .endpoints import auth, users, exams, cheating_logs

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(exams.router, prefix="/exam", tags=["exams"])
api_router.include_router(cheating_logs.router, prefix="/cheatingLogs", tags=["cheating-logs"])
