from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ....core.database import get_async_db
from ....api.deps import get_current_active_user, get_current_teacher
from ....models.user import User
from ....schemas.exam import Exam, ExamCreate, VerifyCodeRequest, Question, ExamAttempt
from ....services.exam_service import ExamService, ExamNotFoundError, verify_exam_code
from ....services.attempt_service import (
    SessionAttemptTracker,
    ExamWindowError,
    AttemptCompletedError,
    AttemptNotFoundError,
)

router = APIRouter()


def _exam_not_found() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Exam not found"})


@router.get("", response_model=List[Exam])
async def get_exams(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """All exams; the access code itself is never returned, only requiresCode"""
    return await ExamService(db).list_exams()


@router.post("", response_model=Exam, status_code=status.HTTP_201_CREATED)
async def create_exam(
    exam_data: ExamCreate,
    current_teacher: User = Depends(get_current_teacher),
    db: AsyncSession = Depends(get_async_db)
):
    return await ExamService(db).create_exam(exam_data, current_teacher)


@router.post("/{exam_id}/verify-code")
async def verify_code(
    exam_id: str,
    request: VerifyCodeRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    try:
        exam = await ExamService(db).require_exam(exam_id)
    except ExamNotFoundError:
        return _exam_not_found()

    if verify_exam_code(exam, request.exam_code):
        return {"valid": True, "message": "Access granted"}
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"valid": False, "message": "Invalid exam code"}
    )


@router.get("/questions/{exam_id}", response_model=List[Question])
async def get_questions_by_exam(
    exam_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """
    Session gate: questions are served only inside the exam window and only
    while the caller's attempt is not completed. The first successful call
    starts the attempt; later calls resume it.
    """
    exam_id = exam_id.strip()
    user_id = current_user.id

    exam_service = ExamService(db)
    try:
        exam = await exam_service.require_exam(exam_id)
    except ExamNotFoundError:
        return _exam_not_found()

    tracker = SessionAttemptTracker(db)
    try:
        await tracker.authorize_question_access(exam, user_id)
    except ExamWindowError as e:
        boundary_key = "startsAt" if e.bound == ExamWindowError.NOT_STARTED else "endedAt"
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": str(e), boundary_key: e.boundary.isoformat()}
        )
    except AttemptCompletedError as e:
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": str(e)})

    return await exam_service.get_questions(exam_id)


@router.post("/{exam_id}/submit", response_model=ExamAttempt)
async def submit_exam(
    exam_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    exam_id = exam_id.strip()
    user_id = current_user.id

    try:
        await ExamService(db).require_exam(exam_id)
    except ExamNotFoundError:
        return _exam_not_found()

    tracker = SessionAttemptTracker(db)
    try:
        return await tracker.complete(exam_id, user_id)
    except AttemptNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam was never started")
    except AttemptCompletedError as e:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": str(e), "completedAt": e.attempt.completed_at.isoformat()}
        )
